import logging
from typing import List, Optional

from fastapi import Depends, HTTPException, Request
from google.api_core.exceptions import InvalidArgument
from google.cloud import firestore
from google.cloud.firestore import AsyncClient # Specifically import AsyncClient for type hinting
from google.cloud.firestore_v1 import FieldFilter
from pydantic import ValidationError

from domain.comments import Comment
from domain.posts import Post
from domain.user import UserInDB
from errors import NotFound, PostTooLargeToDelete

logger = logging.getLogger('uvicorn.error')

# --- Constants ---
POSTS_COLLECTION = "posts"
COMMENTS_SUBCOLLECTION = "comments"
USERS_COLLECTION = "users"
MAX_BATCH_WRITES = 500 # Firestore limit for a single write batch
MAX_DOCUMENT_ID_BYTES = 1500


def is_valid_document_id(doc_id: str) -> bool:
    """Firestore refuses these ids outright, so they can never name a document."""
    if not doc_id or "/" in doc_id or doc_id in (".", ".."):
        return False
    if doc_id.startswith("__") and doc_id.endswith("__"):
        return False
    return len(doc_id.encode("utf-8")) <= MAX_DOCUMENT_ID_BYTES


async def get_firestore_client(request: Request) -> AsyncClient:
    if not hasattr(request.app.state, 'db') or not request.app.state.db:
        logger.error("Firestore client not initialized or unavailable.")
        raise HTTPException(status_code=503, detail="Database service unavailable")
    if not isinstance(request.app.state.db, AsyncClient):
        logger.error("Firestore client is not an AsyncClient.")
        raise HTTPException(status_code=503, detail="Database service misconfigured")
    return request.app.state.db


class PostRepository:
    """
    Posts live in the ``posts`` collection, keyed by post id; each post keeps
    its comments in a ``comments`` sub-collection.
    """

    def __init__(self, db: AsyncClient):
        self.db = db
        self.posts = db.collection(POSTS_COLLECTION)

    async def all(self) -> List[Post]:
        all_posts = []
        async for doc in self.posts.order_by("created_at", direction=firestore.Query.DESCENDING).stream():
            post_data = doc.to_dict()
            post_data['id'] = doc.id
            try:
                all_posts.append(Post(**post_data))
            except ValidationError as validation_error:
                logger.error(f"Data validation error for post doc {doc.id}: {validation_error}. Data: {post_data}")
                continue
        return all_posts

    async def find_by_id(self, post_id: str) -> Optional[Post]:
        if not is_valid_document_id(post_id):
            return None
        try:
            post_doc = await self.posts.document(post_id).get()
        except InvalidArgument as e:
            logger.warning(f"Firestore rejected post id {post_id!r}: {e}")
            return None
        if not post_doc.exists:
            return None
        post_data = post_doc.to_dict()
        post_data['id'] = post_doc.id
        return Post(**post_data)

    async def create(self, post: Post) -> Post:
        post.ensure_valid()
        await self.posts.document(post.id).set(post.model_dump(exclude={"id"}))
        return post

    async def update_message(self, post: Post, message: str) -> Post:
        updated = post.model_copy(update={"message": message})
        updated.ensure_valid()
        await self.posts.document(post.id).update({"message": message})
        return updated

    async def delete(self, post: Post) -> int:
        """
        Deletes the post together with all of its comments in one write batch,
        so either everything goes or nothing does. Comments written while the
        batch was in flight are swept afterwards. Returns the number of
        comments removed.
        """
        post_ref = self.posts.document(post.id)
        batch = self.db.batch()
        removed_comments = 0
        async for comment_doc in post_ref.collection(COMMENTS_SUBCOLLECTION).stream():
            batch.delete(comment_doc.reference)
            removed_comments += 1
        if removed_comments + 1 > MAX_BATCH_WRITES:
            logger.error(f"Post {post.id} has {removed_comments} comments, too many to delete atomically")
            raise PostTooLargeToDelete(f"Post with id {post.id} has too many comments to be deleted.")
        batch.delete(post_ref)
        await batch.commit()
        return removed_comments + await self._sweep_comments(post_ref)

    async def _sweep_comments(self, post_ref) -> int:
        swept = 0
        async for comment_doc in post_ref.collection(COMMENTS_SUBCOLLECTION).stream():
            await comment_doc.reference.delete()
            swept += 1
        if swept:
            logger.warning(f"Swept {swept} comments left under deleted post {post_ref.id}")
        return swept

    async def comments_for(self, post_id: str) -> List[Comment]:
        comments_query = self.posts.document(post_id).collection(COMMENTS_SUBCOLLECTION).order_by(
            "created_at", direction=firestore.Query.ASCENDING
        )
        all_comments = []
        async for doc in comments_query.stream():
            comment_data = doc.to_dict()
            comment_data['id'] = doc.id
            try:
                all_comments.append(Comment(**comment_data))
            except ValidationError as validation_error:
                logger.error(f"Data validation error for comment {doc.id} in post {post_id}: {validation_error}. Data: {comment_data}")
                continue
        return all_comments

    async def add_comment(self, comment: Comment) -> Comment:
        """
        Writes the comment only under a live post. The post is checked again
        after the write: if it was deleted meanwhile the comment is removed
        and NotFound raised, otherwise the delete sweep will pick it up.
        """
        post_ref = self.posts.document(comment.post_id)
        if not (await post_ref.get()).exists:
            raise NotFound(f"Post with id {comment.post_id} not found.")
        comment_ref = post_ref.collection(COMMENTS_SUBCOLLECTION).document(comment.id)
        await comment_ref.set(comment.model_dump(exclude={"id"}))
        if not (await post_ref.get()).exists:
            await comment_ref.delete()
            raise NotFound(f"Post with id {comment.post_id} not found.")
        return comment


class UserRepository:
    def __init__(self, db: AsyncClient):
        self.users = db.collection(USERS_COLLECTION)

    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        user_doc = await self.users.document(username).get()
        if not user_doc.exists:
            return None
        return UserInDB(**user_doc.to_dict())

    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        query = self.users.where(filter=FieldFilter("email", "==", email)).limit(1)
        async for doc in query.stream():
            return UserInDB(**doc.to_dict())
        return None

    async def create(self, user: UserInDB) -> UserInDB:
        await self.users.document(user.username).set(user.model_dump())
        return user


async def get_post_repository(db: AsyncClient = Depends(get_firestore_client)) -> PostRepository:
    return PostRepository(db)


async def get_user_repository(db: AsyncClient = Depends(get_firestore_client)) -> UserRepository:
    return UserRepository(db)
