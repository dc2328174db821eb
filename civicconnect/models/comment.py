from sqlalchemy import Column, Integer, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship

from civicconnect.db.base_class import Base


class Comment(Base):
    id = Column(Integer, primary_key=True, index=True)
    body = Column(Text, nullable=False)
    # Internal comments are only shown to staff and admins
    is_internal = Column(Boolean, default=False, nullable=False)

    # Relationships
    issue_id = Column(Integer, ForeignKey("issue.id", ondelete="CASCADE"), nullable=False, index=True)
    issue = relationship("Issue", back_populates="comments")

    user_id = Column(Integer, ForeignKey("user.id"), nullable=False)
    author = relationship("User", lazy="joined")

    @property
    def author_name(self):
        return self.author.full_name if self.author else None
