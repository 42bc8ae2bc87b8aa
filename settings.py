import logging
import os
import secrets
from functools import lru_cache
from typing import Optional

import secretmanager

logger = logging.getLogger('uvicorn.error')

ALLOWED_HOSTS = [h.strip() for h in os.environ.get("GRAMS_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]
SITE_URL = os.environ.get("GRAMS_SITE_URL", "http://localhost:8000").rstrip("/")
EMAIL_FROM = os.environ.get("GRAMS_EMAIL_FROM", "no-reply@localhost")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get("GRAMS_TOKEN_EXPIRE_MINUTES", "150"))

# Routes the redirects point at
ROOT_PATH = "/"
SIGN_IN_PATH = "/users/sign_in"
SIGN_UP_VALIDATE_PATH = "/users/validate"


def _lookup(name: str) -> Optional[str]:
    """
    Returns the value of GRAMS_<name>, or the Secret Manager secret named by
    GRAMS_<name>_ID, or None when neither is configured.
    """
    value = os.environ.get(f"GRAMS_{name}")
    if value:
        return value
    secret_id = os.environ.get(f"GRAMS_{name}_ID")
    if secret_id:
        return secretmanager.get_secret(secret_id)
    return None


@lru_cache(maxsize=1)
def get_secret_key() -> str:
    key = _lookup("SECRET_KEY")
    if key is None:
        logger.warning("GRAMS_SECRET_KEY is not configured; tokens and sessions will not survive a restart.")
        return secrets.token_urlsafe(32)
    return key


def get_fernet_key() -> Optional[str]:
    return _lookup("FERNET_KEY")


def get_sendgrid_api_key() -> Optional[str]:
    return _lookup("SENDGRID_API_KEY")
