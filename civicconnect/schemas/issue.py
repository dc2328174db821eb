from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from civicconnect.models.issue import IssueCategory, IssuePriority, IssueStatus
from civicconnect.schemas.comment import Comment


# Shared properties
class IssueBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: str = Field(..., min_length=1)
    category: IssueCategory
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# Properties to receive on issue creation
class IssueCreate(IssueBase):
    priority: IssuePriority = IssuePriority.MEDIUM


# Triage fields staff can change. Unset fields are left untouched;
# an explicit null clears assignee, department or notes.
class IssueUpdate(BaseModel):
    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None
    assigned_to: Optional[int] = None
    assigned_department: Optional[str] = Field(None, max_length=255)
    resolution_notes: Optional[str] = None

    @field_validator("status", "priority")
    @classmethod
    def not_null(cls, v, info):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


# Properties to return to client
class Issue(IssueBase):
    id: int
    status: IssueStatus
    priority: IssuePriority
    photo_path: Optional[str] = None
    resolution_photo_path: Optional[str] = None
    resolution_notes: Optional[str] = None
    assigned_to: Optional[int] = None
    assigned_department: Optional[str] = None
    reporter_id: int
    reporter_name: Optional[str] = None
    assignee_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# Properties to return in a detailed issue
class IssueDetail(Issue):
    comments: List[Comment] = []


class CategoryStats(BaseModel):
    category: IssueCategory
    count: int
    pending: int
    resolved: int


class IssueStats(BaseModel):
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    resolved: int = 0
    closed: int = 0
    low: int = 0
    medium: int = 0
    high: int = 0
    urgent: int = 0
    # Issues created during the last 7 days
    recent: int = 0
    by_category: List[CategoryStats] = []
