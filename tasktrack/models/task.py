# tasktrack/models/task.py
from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Enum, Text, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from tasktrack.database import Base
from tasktrack.utils.clock import utcnow


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    PENDING_APPROVAL = "pending_approval"
    COMPLETED = "completed"


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")

    status = Column(
        Enum(TaskStatus, name="task_status", values_callable=lambda e: [m.value for m in e]),
        default=TaskStatus.TODO,
        nullable=False,
        index=True,
    )
    due_date = Column(Date, nullable=False, index=True)

    # Artifact key in the blob store, "{task_id}/{file_name}"
    file_path = Column(String(500), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(String(36), ForeignKey("profiles.user_id"), nullable=False)
    approved_by = Column(String(36), ForeignKey("profiles.user_id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    # System dates
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    creator = relationship("Profile", foreign_keys=[created_by])
    approver = relationship("Profile", foreign_keys=[approved_by])
    assignments = relationship(
        "TaskAssignment",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="TaskAssignment.id",
    )


class TaskAssignment(Base):
    __tablename__ = "task_assignments"

    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("profiles.user_id"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    task = relationship("Task", back_populates="assignments")
    profile = relationship("Profile", back_populates="assignments")

    __table_args__ = (UniqueConstraint("task_id", "user_id", name="uq_task_assignee"),)
