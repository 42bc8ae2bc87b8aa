import os

# Must be set before the app (and settings) are imported
os.environ.setdefault("GRAMS_SECRET_KEY", "test-secret-key")
os.environ.setdefault("GRAMS_ALLOWED_HOSTS", "testserver")

import datetime

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

import AuthAndUser as auth
import repository
from domain.posts import Post
from domain.user import UserInDB
from errors import NotFound, PostTooLargeToDelete
from main import app
from repository import get_post_repository, get_user_repository

PASSWORD = "s3cret-password"


class FakePostRepository:
    """In-memory stand-in for the Firestore PostRepository."""

    def __init__(self):
        self.posts = {}
        self.comments = {}

    async def all(self):
        return sorted(self.posts.values(), key=lambda p: p.created_at, reverse=True)

    async def find_by_id(self, post_id):
        return self.posts.get(post_id)

    async def create(self, post):
        post.ensure_valid()
        self.posts[post.id] = post
        return post

    async def update_message(self, post, message):
        updated = post.model_copy(update={"message": message})
        updated.ensure_valid()
        self.posts[post.id] = updated
        return updated

    async def delete(self, post):
        if len(self.comments.get(post.id, [])) + 1 > repository.MAX_BATCH_WRITES:
            raise PostTooLargeToDelete(f"Post with id {post.id} has too many comments to be deleted.")
        removed = len(self.comments.pop(post.id, []))
        del self.posts[post.id]
        return removed

    async def comments_for(self, post_id):
        return sorted(self.comments.get(post_id, []), key=lambda c: c.created_at)

    async def add_comment(self, comment):
        if comment.post_id not in self.posts:
            raise NotFound(f"Post with id {comment.post_id} not found.")
        self.comments.setdefault(comment.post_id, []).append(comment)
        return comment


class FakeUserRepository:
    def __init__(self):
        self.users = {}

    async def find_by_username(self, username):
        return self.users.get(username)

    async def find_by_email(self, email):
        for user in self.users.values():
            if user.email == email:
                return user
        return None

    async def create(self, user):
        self.users[user.username] = user
        return user


@pytest.fixture
def post_repo():
    return FakePostRepository()


@pytest.fixture
def user_repo():
    return FakeUserRepository()


@pytest.fixture
def client(post_repo, user_repo):
    app.dependency_overrides[get_post_repository] = lambda: post_repo
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.state.fernet = Fernet(Fernet.generate_key())
    yield TestClient(app, follow_redirects=False)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(user_repo):
    hashed = auth.get_password_hash(PASSWORD)
    counter = {"n": 0}

    def _make_user(username=None, **kwargs):
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = UserInDB(
            username=username,
            email=kwargs.pop("email", f"{username}@example.com"),
            hashed_password=hashed,
            **kwargs,
        )
        user_repo.users[username] = user
        return user

    return _make_user


@pytest.fixture
def make_post(post_repo, make_user):
    def _make_post(message="hello", owner=None):
        owner = owner or make_user()
        post = Post(message=message, owner=owner.username)
        post_repo.posts[post.id] = post
        return post

    return _make_post


@pytest.fixture
def headers_for():
    def _headers_for(user):
        token = auth.create_access_token({"sub": user.username}, datetime.timedelta(minutes=5))
        return {"Authorization": f"Bearer {token}"}

    return _headers_for


@pytest.fixture
def password():
    return PASSWORD
