from functools import lru_cache

from google.cloud import secretmanager


@lru_cache(maxsize=None)
def get_secret(secret_id: str) -> str:
    client = secretmanager.SecretManagerServiceClient()
    response = client.access_secret_version(request={"name": secret_id})
    return response.payload.data.decode("UTF-8")
