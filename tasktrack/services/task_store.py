# tasktrack/services/task_store.py
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional

from pydantic import ValidationError as SchemaError
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, joinedload, selectinload
import logging

from tasktrack.errors import (
    ConflictError,
    NotFoundError,
    TaskTrackError,
    TransientError,
    ValidationError,
)
from tasktrack.models import Profile, ProfileRole, Task, TaskAssignment, TaskStatus
from tasktrack.schemas import ProfileOut, TaskOut
from tasktrack.utils.clock import utcnow

logger = logging.getLogger(__name__)

TASK_FIELDS = {
    "title", "description", "due_date", "status", "file_path", "submitted_at",
    "created_by", "approved_by", "approved_at",
}


@dataclass(frozen=True)
class TaskFilter:
    """Filter for task listings; None fields don't constrain, an empty statuses set matches nothing"""

    statuses: Optional[frozenset] = None
    exclude_statuses: Optional[frozenset] = None
    assignee_id: Optional[str] = None


class TaskStore:
    """
    Relational store for profiles, tasks and task assignments.

    Every public method is one unit of work on the given session: it either
    commits or rolls back before returning. Rows are converted into typed
    records (ProfileOut, TaskOut) before they leave the store.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---- low-level helpers ----

    @contextmanager
    def _unit_of_work(self, action: str):
        try:
            yield
        except TaskTrackError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Store rejected {action}: {e.orig}")
            raise ConflictError(f"Store rejected {action}") from e
        except (OperationalError, InterfaceError) as e:
            self.db.rollback()
            logger.error(f"Store unavailable during {action}: {e}")
            raise TransientError(f"Store unavailable during {action}") from e

    def _task_query(self):
        return self.db.query(Task).options(
            selectinload(Task.assignments).joinedload(TaskAssignment.profile),
            joinedload(Task.approver),
        )

    @staticmethod
    def _profile_record(profile: Profile) -> ProfileOut:
        try:
            return ProfileOut.model_validate(profile)
        except SchemaError as e:
            raise ValidationError(f"Malformed profile record for user {profile.user_id}") from e

    @staticmethod
    def _task_record(task: Task) -> TaskOut:
        assignees = [
            {
                "user_id": assignment.user_id,
                "name": assignment.profile.name if assignment.profile else None,
                "email": assignment.profile.email if assignment.profile else None,
            }
            for assignment in task.assignments
        ]
        if not assignees:
            raise ValidationError(f"Task {task.id} has no assignees")

        try:
            return TaskOut.model_validate({
                "id": task.id,
                "title": task.title,
                "description": task.description or "",
                "due_date": task.due_date,
                "status": task.status,
                "file_path": task.file_path,
                "submitted_at": task.submitted_at,
                "created_by": task.created_by,
                "approved_by": task.approved_by,
                "approved_by_name": task.approver.name if task.approver else None,
                "approved_at": task.approved_at,
                "created_at": task.created_at,
                "updated_at": task.updated_at,
                "assignees": assignees,
            })
        except SchemaError as e:
            raise ValidationError(f"Malformed task record {task.id}") from e

    def _missing_profiles(self, user_ids: Iterable[str]) -> List[str]:
        wanted = list(user_ids)
        found = {
            row[0]
            for row in self.db.query(Profile.user_id).filter(Profile.user_id.in_(wanted)).all()
        }
        return [user_id for user_id in wanted if user_id not in found]

    # ---- profiles ----

    def get_profile(self, user_id: str) -> ProfileOut:
        with self._unit_of_work("profile lookup"):
            profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
            if not profile:
                raise NotFoundError(f"Profile {user_id} not found")
            return self._profile_record(profile)

    def list_profiles(self) -> List[ProfileOut]:
        with self._unit_of_work("profile listing"):
            profiles = self.db.query(Profile).order_by(Profile.name.asc(), Profile.id.asc()).all()
            return [self._profile_record(p) for p in profiles]

    def set_role(self, user_id: str, role: ProfileRole) -> ProfileOut:
        with self._unit_of_work("role update"):
            profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
            if not profile:
                raise NotFoundError(f"Profile {user_id} not found")
            profile.role = ProfileRole(role).value
            self.db.commit()
            self.db.refresh(profile)
            return self._profile_record(profile)

    # ---- tasks ----

    def get_task(self, task_id: int) -> TaskOut:
        with self._unit_of_work("task lookup"):
            task = self._task_query().filter(Task.id == task_id).first()
            if not task:
                raise NotFoundError(f"Task {task_id} not found")
            return self._task_record(task)

    def insert_task(self, fields: Dict[str, Any], assignee_ids: List[str]) -> TaskOut:
        """Insert a task and its assignment rows in a single transaction"""
        unknown = set(fields) - TASK_FIELDS
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        with self._unit_of_work("task insert"):
            missing = self._missing_profiles(assignee_ids)
            if missing:
                raise ValidationError(f"Unknown assignees: {', '.join(missing)}")

            task = Task(**fields)
            self.db.add(task)
            self.db.flush()
            for user_id in assignee_ids:
                self.db.add(TaskAssignment(task_id=task.id, user_id=user_id))
            self.db.commit()
            task_id = task.id

        logger.info(f"Task {task_id} inserted with {len(assignee_ids)} assignee(s)")
        return self.get_task(task_id)

    def update_task(
        self,
        task_id: int,
        fields: Dict[str, Any],
        expected_prior_status: Optional[TaskStatus] = None,
    ) -> TaskOut:
        """
        Update task columns, optionally only if the row still has the expected status.

        Raises:
            NotFoundError: the task does not exist
            ConflictError: the task exists but its status is no longer the expected one
        """
        unknown = set(fields) - TASK_FIELDS
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        with self._unit_of_work("task update"):
            values = dict(fields)
            values["updated_at"] = utcnow()

            stmt = update(Task).where(Task.id == task_id)
            if expected_prior_status is not None:
                stmt = stmt.where(Task.status == expected_prior_status)
            result = self.db.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )

            if result.rowcount == 0:
                self.db.rollback()
                if self.db.get(Task, task_id) is None:
                    raise NotFoundError(f"Task {task_id} not found")
                raise ConflictError(
                    f"Task {task_id} was modified concurrently "
                    f"(expected status '{TaskStatus(expected_prior_status).value}')"
                )

            self.db.commit()

        return self.get_task(task_id)

    def iter_tasks(self, task_filter: Optional[TaskFilter] = None) -> Iterator[TaskOut]:
        """Yield tasks matching the filter ordered by due date, then id"""
        task_filter = task_filter or TaskFilter()
        with self._unit_of_work("task listing"):
            query = self._task_query()
            if task_filter.assignee_id:
                query = query.filter(
                    Task.assignments.any(TaskAssignment.user_id == task_filter.assignee_id)
                )
            if task_filter.statuses is not None:
                query = query.filter(Task.status.in_(list(task_filter.statuses)))
            if task_filter.exclude_statuses:
                query = query.filter(Task.status.notin_(list(task_filter.exclude_statuses)))
            rows = query.order_by(Task.due_date.asc(), Task.id.asc()).all()

        for task in rows:
            yield self._task_record(task)

    def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[TaskOut]:
        return list(self.iter_tasks(task_filter))

    # ---- assignments ----

    def insert_assignments(self, task_id: int, user_ids: List[str]) -> List[str]:
        with self._unit_of_work("assignment insert"):
            if self.db.get(Task, task_id) is None:
                raise NotFoundError(f"Task {task_id} not found")
            missing = self._missing_profiles(user_ids)
            if missing:
                raise ValidationError(f"Unknown assignees: {', '.join(missing)}")

            existing = set(self._assignee_ids(task_id))
            for user_id in user_ids:
                if user_id not in existing:
                    self.db.add(TaskAssignment(task_id=task_id, user_id=user_id))
                    existing.add(user_id)
            self.db.commit()

        return self.list_assignments(task_id)

    def _assignee_ids(self, task_id: int) -> List[str]:
        rows = (
            self.db.query(TaskAssignment.user_id)
            .filter(TaskAssignment.task_id == task_id)
            .order_by(TaskAssignment.id.asc())
            .all()
        )
        return [row[0] for row in rows]

    def list_assignments(self, task_id: int) -> List[str]:
        with self._unit_of_work("assignment listing"):
            return self._assignee_ids(task_id)

    def task_counts_by_assignee(self) -> Dict[str, Dict[str, int]]:
        """Active and completed task counts per assignee"""
        with self._unit_of_work("task counts"):
            rows = (
                self.db.query(TaskAssignment.user_id, Task.status, func.count(Task.id))
                .join(Task, Task.id == TaskAssignment.task_id)
                .group_by(TaskAssignment.user_id, Task.status)
                .all()
            )

        counts: Dict[str, Dict[str, int]] = {}
        for user_id, status, total in rows:
            entry = counts.setdefault(user_id, {"active": 0, "completed": 0})
            if TaskStatus(status) == TaskStatus.COMPLETED:
                entry["completed"] += total
            else:
                entry["active"] += total
        return counts
