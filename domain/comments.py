from pydantic import BaseModel, Field
import datetime
import uuid


class CommentParams(BaseModel):
    message: str


class Comment(BaseModel):
    id: str = Field(default_factory=lambda: f"comment-{uuid.uuid4().hex}")
    post_id: str
    author: str # Username of the commenter
    message: str
    created_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))

    model_config = {"from_attributes": True}
