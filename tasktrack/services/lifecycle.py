# tasktrack/services/lifecycle.py
"""
Task lifecycle: status transitions, approval gating and artifact linkage.

States: todo -> in_progress -> pending_approval -> completed. Only an admin
may approve, reject (pending_approval -> in_progress) or reopen
(completed -> in_progress). The in_progress -> pending_approval edge is taken
only by uploading an artifact, so file_path is set exactly when a task has
been submitted at least once. Rejection keeps the uploaded file.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union
import logging

from tasktrack.errors import (
    AuthorizationError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from tasktrack.models import ProfileRole, TaskStatus
from tasktrack.schemas import ProfileOut, TaskOut, TeamMemberOut
from tasktrack.services.file_storage import LocalBlobStore
from tasktrack.services.file_validation import ArtifactUpload, FileValidationService, file_validator
from tasktrack.services.task_store import TaskFilter, TaskStore
from tasktrack.utils.clock import utcnow

logger = logging.getLogger(__name__)

StatusLike = Union[TaskStatus, str]


@dataclass(frozen=True)
class Transition:
    name: str
    source: TaskStatus
    target: TaskStatus
    admin_only: bool
    via_upload: bool = False


TRANSITIONS: Dict[Tuple[TaskStatus, TaskStatus], Transition] = {
    (t.source, t.target): t
    for t in (
        Transition("start", TaskStatus.TODO, TaskStatus.IN_PROGRESS, admin_only=False),
        Transition("submit", TaskStatus.IN_PROGRESS, TaskStatus.PENDING_APPROVAL, admin_only=False, via_upload=True),
        Transition("approve", TaskStatus.PENDING_APPROVAL, TaskStatus.COMPLETED, admin_only=True),
        Transition("reject", TaskStatus.PENDING_APPROVAL, TaskStatus.IN_PROGRESS, admin_only=True),
        Transition("reopen", TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, admin_only=True),
    )
}

ACTIVE_EXCLUDES = frozenset({TaskStatus.COMPLETED})


def parse_status(value: StatusLike) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in TaskStatus)
        raise ValidationError(f"Invalid status '{value}'. Must be one of: {valid}")


def parse_due_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"Invalid due date: {value!r}")


def is_assignee(task: TaskOut, user: ProfileOut) -> bool:
    return user.user_id in task.assignee_ids


def require_admin(user: ProfileOut, action: str) -> None:
    if not user.is_admin:
        raise AuthorizationError(f"Only an admin can {action}")


def check_transition(task: TaskOut, new_status: TaskStatus, acting_user: ProfileOut) -> Transition:
    """
    Validate a status change without touching the store.

    Raises:
        AuthorizationError: actor is not admin/assignee, or lacks admin role for the edge
        InvalidTransitionError: the (current, new) pair is not a permitted edge
    """
    admin = acting_user.is_admin
    if not admin and not is_assignee(task, acting_user):
        raise AuthorizationError(f"You are not assigned to task {task.id}")
    if not admin and new_status == TaskStatus.COMPLETED:
        raise AuthorizationError("Only an admin can approve tasks")

    transition = TRANSITIONS.get((task.status, new_status))
    if transition is None:
        raise InvalidTransitionError(
            f"Cannot move task {task.id} from '{task.status.value}' to '{new_status.value}'"
        )
    if transition.admin_only and not admin:
        raise AuthorizationError(f"Only an admin can {transition.name} tasks")
    return transition


class TaskListing:
    """Lazy, restartable task sequence; every iteration re-reads the store"""

    def __init__(self, store: TaskStore, task_filter: TaskFilter):
        self.store = store
        self.task_filter = task_filter

    def __iter__(self) -> Iterator[TaskOut]:
        return self.store.iter_tasks(self.task_filter)

    def all(self) -> List[TaskOut]:
        return list(self)


class TaskLifecycleManager:
    """Enforces valid task transitions and keeps artifacts consistent with status"""

    def __init__(
        self,
        store: TaskStore,
        blob_store: LocalBlobStore,
        validator: FileValidationService = file_validator,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.blob_store = blob_store
        self.validator = validator
        self.clock = clock

    # ---- creation ----

    def create_task(
        self,
        title: str,
        description: str,
        assignee_ids: Iterable[str],
        due_date,
        created_by: ProfileOut,
    ) -> TaskOut:
        require_admin(created_by, "create tasks")

        title = (title or "").strip()
        if not title:
            raise ValidationError("Title is required")

        # Keep first-seen order, drop duplicates
        assignees = list(dict.fromkeys(
            user_id.strip() for user_id in (assignee_ids or []) if user_id and user_id.strip()
        ))
        if not assignees:
            raise ValidationError("At least one assignee is required")

        due = parse_due_date(due_date)

        task = self.store.insert_task(
            {
                "title": title,
                "description": (description or "").strip(),
                "due_date": due,
                "status": TaskStatus.TODO,
                "created_by": created_by.user_id,
            },
            assignees,
        )
        logger.info(f"Task {task.id} created by {created_by.user_id} for {', '.join(assignees)}")
        return task

    # ---- reads ----

    def get_task(self, task_id: int, acting_user: ProfileOut) -> TaskOut:
        task = self.store.get_task(task_id)
        if not acting_user.is_admin and not is_assignee(task, acting_user):
            raise AuthorizationError(f"You don't have permission to view task {task_id}")
        return task

    def _visible_filter(self, acting_user: ProfileOut, **kwargs) -> TaskFilter:
        assignee_id = None if acting_user.is_admin else acting_user.user_id
        return TaskFilter(assignee_id=assignee_id, **kwargs)

    def list_tasks(
        self,
        acting_user: ProfileOut,
        status_filter: Union[StatusLike, Iterable[StatusLike], None] = None,
    ) -> TaskListing:
        """
        Tasks visible to the actor, ordered by due date.

        Admins see every task, members only tasks they are assigned to. With no
        status filter, or an empty one, this is the active view, which leaves out
        completed tasks.
        """
        if isinstance(status_filter, (str, TaskStatus)):
            status_filter = [status_filter]
        statuses = frozenset(parse_status(s) for s in status_filter or ())

        if statuses:
            task_filter = self._visible_filter(acting_user, statuses=statuses)
        else:
            task_filter = self._visible_filter(acting_user, exclude_statuses=ACTIVE_EXCLUDES)
        return TaskListing(self.store, task_filter)

    def list_completed(self, acting_user: ProfileOut) -> TaskListing:
        return self.list_tasks(acting_user, TaskStatus.COMPLETED)

    def list_pending_approvals(self, acting_user: ProfileOut) -> TaskListing:
        require_admin(acting_user, "review pending approvals")
        return self.list_tasks(acting_user, TaskStatus.PENDING_APPROVAL)

    # ---- transitions ----

    def change_status(self, task_id: int, new_status: StatusLike, acting_user: ProfileOut) -> TaskOut:
        new_status = parse_status(new_status)
        task = self.store.get_task(task_id)
        transition = check_transition(task, new_status, acting_user)
        if transition.via_upload:
            raise InvalidTransitionError(
                f"Task {task_id} can only be submitted for approval by uploading a file"
            )
        return self._apply(task, transition, acting_user)

    def _apply(self, task: TaskOut, transition: Transition, acting_user: ProfileOut, **fields) -> TaskOut:
        fields["status"] = transition.target
        if transition.target == TaskStatus.COMPLETED:
            fields["approved_by"] = acting_user.user_id
            fields["approved_at"] = self.clock()

        updated = self.store.update_task(task.id, fields, expected_prior_status=task.status)
        logger.info(
            f"Task {task.id} {transition.name}: {transition.source.value} -> "
            f"{transition.target.value} by {acting_user.user_id}"
        )
        return updated

    def start(self, task_id: int, acting_user: ProfileOut) -> TaskOut:
        return self.change_status(task_id, TaskStatus.IN_PROGRESS, acting_user)

    def approve(self, task_id: int, admin: ProfileOut) -> TaskOut:
        require_admin(admin, "approve tasks")
        return self.change_status(task_id, TaskStatus.COMPLETED, admin)

    def reject(self, task_id: int, admin: ProfileOut) -> TaskOut:
        require_admin(admin, "reject tasks")
        task = self.store.get_task(task_id)
        if task.status != TaskStatus.PENDING_APPROVAL:
            raise InvalidTransitionError(
                f"Only tasks pending approval can be rejected (task {task_id} is '{task.status.value}')"
            )
        return self._apply(task, check_transition(task, TaskStatus.IN_PROGRESS, admin), admin)

    def reopen(self, task_id: int, admin: ProfileOut) -> TaskOut:
        require_admin(admin, "reopen tasks")
        task = self.store.get_task(task_id)
        if task.status != TaskStatus.COMPLETED:
            raise InvalidTransitionError(
                f"Only completed tasks can be reopened (task {task_id} is '{task.status.value}')"
            )
        return self._apply(task, check_transition(task, TaskStatus.IN_PROGRESS, admin), admin)

    # ---- artifacts ----

    def upload_artifact(self, task_id: int, upload: ArtifactUpload, acting_user: ProfileOut) -> TaskOut:
        """
        Store the artifact, then submit the task for approval.

        The blob is written under "{task_id}/{file_name}" before the task row is
        touched; a failed blob write leaves the task unchanged.
        """
        task = self.store.get_task(task_id)
        if not is_assignee(task, acting_user):
            raise AuthorizationError(f"Only assignees can upload files for task {task_id}")
        if task.status != TaskStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Files can only be uploaded for tasks in progress (task {task_id} is '{task.status.value}')"
            )

        is_valid, errors = self.validator.comprehensive_validation(upload)
        if not is_valid:
            raise ValidationError(f"File validation failed for {upload.filename}: {'; '.join(errors)}")

        transition = TRANSITIONS[(TaskStatus.IN_PROGRESS, TaskStatus.PENDING_APPROVAL)]
        key = f"{task.id}/{upload.filename}"
        self.blob_store.put(key, upload.content)

        try:
            return self._apply(task, transition, acting_user, file_path=key, submitted_at=self.clock())
        except Exception:
            logger.warning(f"Task {task_id} not updated after upload; blob {key} is orphaned")
            raise

    def download_artifact(self, task_id: int, acting_user: ProfileOut) -> Tuple[str, bytes]:
        task = self.get_task(task_id, acting_user)
        if not task.file_path:
            raise NotFoundError(f"Task {task_id} has no uploaded file")
        return task.file_name, self.blob_store.get(task.file_path)

    # ---- team ----

    def team_roster(self, acting_user: ProfileOut) -> List[TeamMemberOut]:
        counts = self.store.task_counts_by_assignee()
        roster = []
        for profile in self.store.list_profiles():
            stats = counts.get(profile.user_id, {"active": 0, "completed": 0})
            roster.append(TeamMemberOut(
                **profile.model_dump(),
                active_tasks=stats["active"],
                completed_tasks=stats["completed"],
            ))
        return roster

    def set_role(self, user_id: str, role: Union[ProfileRole, str], acting_user: ProfileOut) -> ProfileOut:
        require_admin(acting_user, "change roles")
        try:
            role = ProfileRole(role)
        except ValueError:
            raise ValidationError(f"Invalid role '{role}'")
        if user_id == acting_user.user_id and role != ProfileRole.ADMIN:
            raise ValidationError("Admins cannot remove their own admin role")

        profile = self.store.set_role(user_id, role)
        logger.info(f"Role of {user_id} set to {role.value} by {acting_user.user_id}")
        return profile
