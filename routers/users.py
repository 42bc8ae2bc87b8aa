from fastapi import Request, APIRouter, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from typing import Annotated, List
from fastapi import Depends
from cryptography.fernet import Fernet, InvalidToken
import logging

import AuthAndUser as auth
import sendgridemail
import settings
from domain.user import Challenge, SignUpUser, User, UserInDB
from repository import UserRepository, get_user_repository

logger = logging.getLogger('uvicorn.error')

CHALLENGE_TTL_SECONDS = 24 * 60 * 60

router = APIRouter(
    prefix="/users",
    tags=["users"]
)


class SignInForm(BaseModel):
    action: str = settings.SIGN_IN_PATH
    inputs: List[str] = ["username", "password"]


async def get_fernet(request: Request) -> Fernet:
    if not getattr(request.app.state, 'fernet', None):
        logger.error("Fernet client not initialized; sign up is unavailable.")
        raise HTTPException(status_code=503, detail="Sign up is currently unavailable")
    return request.app.state.fernet


@router.get("/sign_in", response_model=SignInForm)
async def sign_in_form():
    return SignInForm()


@router.post("/sign_in")
async def sign_in(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    users: Annotated[UserRepository, Depends(get_user_repository)],
):
    user = await auth.authenticate_user(users, form_data.username, form_data.password)
    if not user:
        logger.warning(f"Failed sign in for {form_data.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")
    request.session[auth.SESSION_USER_KEY] = user.username
    logger.info(f"User '{user.username}' signed in")
    return RedirectResponse(url=settings.ROOT_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/sign_out")
async def sign_out(request: Request):
    request.session.clear()
    return RedirectResponse(url=settings.ROOT_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/me/", response_model=User)
async def read_users_me(
    current_user: Annotated[User, Depends(auth.require_user)],
):
    return current_user


@router.post("/challenge/")
async def create_challenge(
    user: SignUpUser,
    fernet: Annotated[Fernet, Depends(get_fernet)],
):
    challenge = fernet.encrypt(user.model_dump_json().encode("utf-8")).decode("utf-8")
    try:
        sendgridemail.send_signup_email(user, challenge)
    except Exception as e:
        logger.exception(f"Failed to send sign up email to {user.email}: {e}")
        raise HTTPException(status_code=502, detail="Could not send the sign up email")
    return {"message": f"Validate your signup using the email sent to {user.email}"}


async def register_from_challenge(challenge: str, fernet: Fernet, users: UserRepository) -> User:
    try:
        decrypted_challenge = fernet.decrypt(challenge.encode("utf-8"), ttl=CHALLENGE_TTL_SECONDS)
    except InvalidToken:
        logger.warning("Rejected invalid or expired sign up challenge")
        raise HTTPException(status_code=400, detail="Invalid or expired sign up challenge")
    user = SignUpUser.model_validate_json(decrypted_challenge)
    if await users.find_by_email(user.email) is not None:
        raise HTTPException(status_code=409, detail=f"User with email: {user.email} already exists. Please log in.")
    if await users.find_by_username(user.username) is not None:
        raise HTTPException(status_code=409, detail=f"User with username: {user.username} already exists. Please log in.")
    logger.info(f"Creating user {user.username}")
    new_user = UserInDB(
        username=user.username,
        email=user.email,
        given_name=user.given_name,
        family_name=user.family_name,
        hashed_password=auth.get_password_hash(user.password),
    )
    await users.create(new_user)
    return User(**new_user.model_dump(exclude={"hashed_password"}))


@router.post("/", response_model=User, status_code=status.HTTP_201_CREATED)
async def create_user(
    challenge: Challenge,
    fernet: Annotated[Fernet, Depends(get_fernet)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
):
    return await register_from_challenge(challenge.challenge, fernet, users)


# Target of the link in the sign up email
@router.get("/validate")
async def validate_sign_up(
    challenge: str,
    fernet: Annotated[Fernet, Depends(get_fernet)],
    users: Annotated[UserRepository, Depends(get_user_repository)],
):
    await register_from_challenge(challenge, fernet, users)
    return RedirectResponse(url=settings.SIGN_IN_PATH, status_code=status.HTTP_303_SEE_OTHER)
