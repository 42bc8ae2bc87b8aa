from pydantic import BaseModel, Field
from typing import List
import datetime
import uuid

from domain.comments import Comment
from errors import PostValidationError

BLANK_MESSAGE_ERROR = "Message can't be blank"


class PostParams(BaseModel):
    message: str


class Post(BaseModel):
    id: str = Field(default_factory=lambda: f"post-{uuid.uuid4().hex}")
    message: str
    owner: str # Username of the creator, never changes
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))

    model_config = {"from_attributes": True}

    def is_owned_by(self, username: str) -> bool:
        return self.owner == username

    def ensure_valid(self) -> None:
        errors = validate_message(self.message)
        if errors:
            raise PostValidationError(errors, message=self.message)


class PostDetail(Post):
    comments: List[Comment] = Field(default_factory=list)


class PostForm(BaseModel):
    """What the new/edit pages render: the current message and any errors."""
    message: str = ""
    errors: List[str] = Field(default_factory=list)


def validate_message(message: str) -> List[str]:
    errors = []
    if not message or not message.strip():
        errors.append(BLANK_MESSAGE_ERROR)
    return errors
