# In main.py

from datetime import timedelta
from typing import Annotated, List

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from starlette_authlib.middleware import AuthlibMiddleware as SessionMiddleware

import logging
import AuthAndUser as auth
from cryptography.fernet import Fernet
import settings
from contextlib import asynccontextmanager

from google.cloud import firestore

from domain.posts import Post
from errors import register_exception_handlers
from repository import UserRepository, get_user_repository

# Import routers
from routers import comments, posts, users

logger = logging.getLogger('uvicorn.error')


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: Initializing resources...")
    try:
        fernet_key = settings.get_fernet_key()
        app.state.fernet = Fernet(fernet_key) if fernet_key else None
        if app.state.fernet:
            logger.info("Fernet client initialized.")
        else:
            logger.warning("No Fernet key configured; sign up is disabled.")
    except Exception as e:
        logger.error(f"Failed to initialize Fernet: {e}")
        app.state.fernet = None

    try:
        app.state.db = firestore.AsyncClient()
        logger.info("Firestore Async client initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize Firestore Async client: {e}")
        app.state.db = None

    yield
    logger.info("Application shutdown: Cleaning up resources...")
    if hasattr(app.state, 'db') and app.state.db:
        try:
            await app.state.db.close() # Close the async client
            logger.info("Firestore Async client closed.")
        except Exception as e:
            logger.error(f"Error closing Firestore client: {e}")


app = FastAPI(lifespan=lifespan)
app.include_router(users.router)
app.include_router(posts.router)
app.include_router(comments.router)
register_exception_handlers(app)

# The grams index doubles as the home page
app.add_api_route("/", posts.list_posts, methods=["GET"], response_model=List[Post], tags=["posts"])

app.add_middleware(SessionMiddleware, secret_key=settings.get_secret_key())
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)


@app.post("/token")
async def login_for_access_token(
        form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
        users: Annotated[UserRepository, Depends(get_user_repository)],
) -> auth.Token:
    user = await auth.authenticate_user(users, form_data.username, form_data.password)
    if not user:
        logger.warning(f"Failed token request for {form_data.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = auth.create_access_token(
        data={"sub": user.username}, expires_delta=access_token_expires
    )
    return auth.Token(access_token=access_token, token_type="bearer")
