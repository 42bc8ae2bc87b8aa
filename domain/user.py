from pydantic import BaseModel


class User(BaseModel):
    username: str
    email: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    disabled: bool | None = None


class UserInDB(User):
    hashed_password: str


class SignUpUser(BaseModel):
    username: str
    email: str
    given_name: str | None = None
    family_name: str | None = None
    password: str


class Challenge(BaseModel):
    challenge: str
