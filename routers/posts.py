# In routers/posts.py

import logging
from fastapi import APIRouter, HTTPException, Depends, status
from fastapi.responses import RedirectResponse
from typing import List, Annotated

import AuthAndUser as auth
import settings
from domain.posts import Post, PostDetail, PostForm, PostParams
from domain.user import User
from errors import Forbidden, GramsError, NotFound
from repository import PostRepository, get_post_repository

logger = logging.getLogger('uvicorn.error')

# --- Constants ---
MAX_TEXT_FIELD_SIZE_KB = 500
MAX_TEXT_FIELD_SIZE_BYTES = MAX_TEXT_FIELD_SIZE_KB * 1024

router = APIRouter(
    prefix="/posts",
    tags=["posts"]
)


def check_message_size(message: str) -> None:
    if len(message.encode('utf-8')) > MAX_TEXT_FIELD_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Message exceeds the maximum size of {MAX_TEXT_FIELD_SIZE_KB} KB."
        )


def redirect_to_root() -> RedirectResponse:
    return RedirectResponse(url=settings.ROOT_PATH, status_code=status.HTTP_303_SEE_OTHER)


# --- Dependencies ---
async def find_post(
    post_id: str,
    posts: Annotated[PostRepository, Depends(get_post_repository)],
) -> Post:
    try:
        post = await posts.find_by_id(post_id)
    except Exception as e:
        logger.exception(f"Error retrieving post {post_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching post")
    if post is None:
        logger.warning(f"Post document with ID {post_id} not found.")
        raise NotFound(f"Post with id {post_id} not found")
    return post


async def find_owned_post(
    post_id: str,
    current_user: Annotated[User, Depends(auth.require_user)],
    posts: Annotated[PostRepository, Depends(get_post_repository)],
) -> Post:
    # Signed in first, then the post must exist, then it must be ours
    post = await find_post(post_id, posts)
    if not post.is_owned_by(current_user.username):
        logger.warning(f"User '{current_user.username}' is not the owner of post {post_id}")
        raise Forbidden("You are not allowed to change this post.")
    return post


# --- Post API Routes ---
@router.get("", response_model=List[Post])
async def list_posts(
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    try:
        return await posts.all()
    except Exception as e:
        logger.exception(f"Error retrieving all posts: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching posts")


@router.get("/new", response_model=PostForm)
async def new_post(
    current_user: Annotated[User, Depends(auth.require_user)],
):
    return PostForm()


@router.post("", status_code=status.HTTP_303_SEE_OTHER)
async def create_post(
    current_user: Annotated[User, Depends(auth.require_user)],
    post_in: PostParams,
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    check_message_size(post_in.message)
    new_post_obj = Post(message=post_in.message, owner=current_user.username)
    try:
        await posts.create(new_post_obj)
    except (GramsError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Error creating post for user '{current_user.username}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while creating post")
    logger.info(f"User '{current_user.username}' created post '{new_post_obj.id}'")
    return redirect_to_root()


@router.get("/{post_id}", response_model=PostDetail)
async def get_post_by_id(
    post: Annotated[Post, Depends(find_post)],
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    try:
        comments = await posts.comments_for(post.id)
    except Exception as e:
        logger.exception(f"Error retrieving comments for post {post.id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching post")
    return PostDetail(**post.model_dump(), comments=comments)


@router.get("/{post_id}/edit", response_model=PostForm)
async def edit_post(
    post: Annotated[Post, Depends(find_owned_post)],
):
    return PostForm(message=post.message)


@router.patch("/{post_id}", status_code=status.HTTP_303_SEE_OTHER)
async def update_post(
    post: Annotated[Post, Depends(find_owned_post)],
    post_in: PostParams,
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    check_message_size(post_in.message)
    try:
        await posts.update_message(post, post_in.message)
    except (GramsError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Error updating post '{post.id}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while updating post")
    logger.info(f"User '{post.owner}' updated post '{post.id}'")
    return redirect_to_root()


@router.delete("/{post_id}", status_code=status.HTTP_303_SEE_OTHER)
async def delete_post(
    post: Annotated[Post, Depends(find_owned_post)],
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    try:
        removed_comments = await posts.delete(post)
    except (GramsError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Error deleting post '{post.id}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while deleting post")
    logger.info(f"User '{post.owner}' deleted post '{post.id}' and {removed_comments} comments")
    return redirect_to_root()
