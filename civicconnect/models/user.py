from sqlalchemy import Boolean, Column, String, Integer, Enum
import enum
from sqlalchemy.orm import relationship

from civicconnect.db.base_class import Base


class UserRole(str, enum.Enum):
    CITIZEN = "citizen"
    STAFF = "staff"
    ADMIN = "admin"

    @property
    def is_admin(self) -> bool:
        return self is UserRole.ADMIN

    @property
    def is_staff(self) -> bool:
        # Admins can do everything staff can
        return self in (UserRole.STAFF, UserRole.ADMIN)


class User(Base):
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String(32), nullable=True)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.CITIZEN, nullable=False)
    address = Column(String(255), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    reported_issues = relationship(
        "Issue", back_populates="reporter", foreign_keys="Issue.reporter_id"
    )
    assigned_issues = relationship(
        "Issue", back_populates="assignee", foreign_keys="Issue.assigned_to"
    )
    notifications = relationship("Notification", back_populates="user")
