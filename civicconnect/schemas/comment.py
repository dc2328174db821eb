from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CommentCreate(BaseModel):
    body: str
    is_internal: bool = False


class Comment(BaseModel):
    id: int
    issue_id: int
    user_id: int
    author_name: Optional[str] = None
    body: str
    is_internal: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
