import logging
from fastapi import APIRouter, HTTPException, Depends, status
from typing import List, Annotated

import AuthAndUser as auth
from domain.comments import Comment, CommentParams
from domain.posts import Post
from domain.user import User
from errors import GramsError
from repository import PostRepository, get_post_repository
from routers.posts import check_message_size, find_post, redirect_to_root

logger = logging.getLogger('uvicorn.error')

router = APIRouter(
    prefix="/posts/{post_id}/comments",
    tags=["comments"]
)


@router.post("", status_code=status.HTTP_303_SEE_OTHER)
async def create_comment(
    current_user: Annotated[User, Depends(auth.require_user)],
    post: Annotated[Post, Depends(find_post)],
    comment_in: CommentParams,
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    check_message_size(comment_in.message)
    new_comment_obj = Comment(
        post_id=post.id,
        author=current_user.username,
        message=comment_in.message,
    )
    try:
        await posts.add_comment(new_comment_obj)
    except (GramsError, HTTPException):
        raise
    except Exception as e:
        logger.exception(f"Error creating comment for post '{post.id}' by user '{current_user.username}': {e}")
        raise HTTPException(status_code=500, detail="Internal server error while creating comment.")
    logger.info(f"User '{current_user.username}' created comment '{new_comment_obj.id}' on post '{post.id}'")
    return redirect_to_root()


@router.get("", response_model=List[Comment])
async def get_comments_for_post(
    post: Annotated[Post, Depends(find_post)],
    posts: Annotated[PostRepository, Depends(get_post_repository)],
):
    try:
        return await posts.comments_for(post.id)
    except Exception as e:
        logger.exception(f"Error retrieving comments for post {post.id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error while fetching comments.")
