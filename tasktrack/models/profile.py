# tasktrack/models/profile.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
import enum

from tasktrack.database import Base
from tasktrack.utils.clock import utcnow


class ProfileRole(str, enum.Enum):
    ADMIN = "admin"
    MEMBER = "member"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("identities.id"), unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    role = Column(String, default=ProfileRole.MEMBER.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    identity = relationship("Identity", back_populates="profile")
    assignments = relationship("TaskAssignment", back_populates="profile")

    __table_args__ = (
        CheckConstraint("role IN ('admin','member')", name="ck_profile_role"),
    )
