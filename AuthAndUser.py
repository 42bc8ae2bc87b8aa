from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel
import logging

import settings
from domain.user import User, UserInDB
from errors import Unauthenticated
from repository import UserRepository, get_user_repository

logger = logging.getLogger('uvicorn.error')

ALGORITHM = "HS256"
SESSION_USER_KEY = "username"

# Anonymous requests are allowed through; require_user decides what to do with them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

class Token(BaseModel):
    access_token: str
    token_type: str


def verify_password(plain_password, hashed_password):
    return bcrypt.checkpw(
        bytes(plain_password, encoding="utf-8"),
        bytes(hashed_password, encoding="utf-8"),
    )


def get_password_hash(password) -> str:
    return bcrypt.hashpw(
        bytes(password, encoding="utf-8"),
        bcrypt.gensalt(),
    ).decode("utf-8")


async def authenticate_user(users: UserRepository, username: str, password: str) -> Optional[UserInDB]:
    user = await users.find_by_username(username)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(data: dict, expires_delta: timedelta | None = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=15)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.get_secret_key(), algorithm=ALGORITHM)
    return encoded_jwt


def username_from_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.get_secret_key(), algorithms=[ALGORITHM])
    except InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None
    return payload.get("sub")


async def get_current_user(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
) -> Optional[User]:
    """
    The actor behind the request: the bearer token's subject if a valid token
    was sent, otherwise whoever signed in through the session cookie.
    None means the request is anonymous.
    """
    username = username_from_token(token) if token else None
    if username is None:
        username = request.session.get(SESSION_USER_KEY)
    if username is None:
        return None
    user = await users.find_by_username(username)
    if user is None:
        logger.warning(f"Credentials refer to unknown user {username}")
        return None
    return User(**user.model_dump(exclude={"hashed_password"}))


async def require_user(
    current_user: Annotated[Optional[User], Depends(get_current_user)],
) -> User:
    if current_user is None:
        raise Unauthenticated("You need to sign in before continuing.")
    if current_user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user
