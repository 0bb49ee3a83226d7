# tasktrack/models/identity.py
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
import uuid

from tasktrack.database import Base
from tasktrack.utils.clock import utcnow


def _new_user_id() -> str:
    return str(uuid.uuid4())


class Identity(Base):
    __tablename__ = "identities"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_sign_in_at = Column(DateTime(timezone=True), nullable=True)

    profile = relationship("Profile", back_populates="identity", uselist=False)
