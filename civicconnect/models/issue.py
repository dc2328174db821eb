from sqlalchemy import Column, String, Integer, Enum, ForeignKey, Text, Float, DateTime
import enum
from sqlalchemy.orm import relationship

from civicconnect.db.base_class import Base


class IssueStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class IssueCategory(str, enum.Enum):
    ROADS = "roads"
    STREETLIGHTS = "streetlights"
    WASTE = "waste"
    WATER = "water"
    SEWAGE = "sewage"
    PARKS = "parks"
    TRAFFIC = "traffic"
    SAFETY = "safety"
    OTHER = "other"


class IssuePriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Issue(Base):
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(IssueCategory), nullable=False, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    status = Column(Enum(IssueStatus), default=IssueStatus.PENDING, nullable=False, index=True)
    priority = Column(Enum(IssuePriority), default=IssuePriority.MEDIUM, nullable=False)

    photo_path = Column(String(255), nullable=True)
    resolution_photo_path = Column(String(255), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    assigned_department = Column(String(255), nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    reporter_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    reporter = relationship(
        "User", back_populates="reported_issues", foreign_keys=[reporter_id], lazy="joined"
    )

    assigned_to = Column(Integer, ForeignKey("user.id"), nullable=True, index=True)
    assignee = relationship(
        "User", back_populates="assigned_issues", foreign_keys=[assigned_to], lazy="joined"
    )

    comments = relationship(
        "Comment",
        back_populates="issue",
        cascade="all, delete-orphan",
        order_by="Comment.id",
    )
    # Deleting an issue detaches its notifications instead of deleting them
    notifications = relationship("Notification", back_populates="issue")

    @property
    def reporter_name(self):
        return self.reporter.full_name if self.reporter else None

    @property
    def assignee_name(self):
        return self.assignee.full_name if self.assignee else None
