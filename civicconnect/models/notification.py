from sqlalchemy import Column, String, Integer, ForeignKey, Text, Boolean, Enum
import enum
from sqlalchemy.orm import relationship

from civicconnect.db.base_class import Base


class NotificationType(str, enum.Enum):
    NEW_ISSUE = "new_issue"
    STATUS_UPDATE = "status_update"
    ASSIGNMENT = "assignment"
    COMMENT = "comment"


class Notification(Base):
    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    # Relationships
    user_id = Column(Integer, ForeignKey("user.id"), nullable=False, index=True)
    user = relationship("User", back_populates="notifications")

    issue_id = Column(Integer, ForeignKey("issue.id", ondelete="SET NULL"), nullable=True)
    issue = relationship("Issue", back_populates="notifications", lazy="joined")

    @property
    def issue_title(self):
        return self.issue.title if self.issue else None
