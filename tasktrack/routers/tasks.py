# tasktrack/routers/tasks.py
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from typing import List, Optional
from urllib.parse import quote
import logging

from tasktrack.schemas import ProfileOut, TaskCreate, TaskOut, TaskStatusUpdate
from tasktrack.services.file_validation import ArtifactUpload
from tasktrack.services.lifecycle import TaskLifecycleManager
from tasktrack.utils.auth import get_current_user, get_lifecycle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.post("/", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Create a task and assign it - admin only"""
    return lifecycle.create_task(
        title=task.title,
        description=task.description,
        assignee_ids=task.assignee_ids,
        due_date=task.due_date,
        created_by=current_user,
    )


@router.get("/", response_model=List[TaskOut])
def get_active_tasks(
    status: Optional[List[str]] = Query(None),
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Active tasks visible to the user

    - admin: every task
    - member: only tasks assigned to them
    Completed tasks are left out unless asked for with ?status=completed.
    """
    return lifecycle.list_tasks(current_user, status).all()


@router.get("/completed", response_model=List[TaskOut])
def get_completed_tasks(
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    return lifecycle.list_completed(current_user).all()


@router.get("/pending-approval", response_model=List[TaskOut])
def get_pending_approvals(
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Submissions waiting for review - admin only"""
    return lifecycle.list_pending_approvals(current_user).all()


@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    return lifecycle.get_task(task_id, current_user)


@router.put("/{task_id}/status", response_model=TaskOut)
def update_task_status(
    task_id: int,
    status_update: TaskStatusUpdate,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Move a task along the lifecycle"""
    return lifecycle.change_status(task_id, status_update.status, current_user)


@router.post("/{task_id}/start", response_model=TaskOut)
def start_task(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    return lifecycle.start(task_id, current_user)


@router.post("/{task_id}/approve", response_model=TaskOut)
def approve_task(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    return lifecycle.approve(task_id, current_user)


@router.post("/{task_id}/reject", response_model=TaskOut)
def reject_task(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Send a submission back for revision; the uploaded file is kept"""
    return lifecycle.reject(task_id, current_user)


@router.post("/{task_id}/reopen", response_model=TaskOut)
def reopen_task(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    return lifecycle.reopen(task_id, current_user)


# File Attachment Endpoints
@router.post("/{task_id}/artifact", response_model=TaskOut)
def upload_artifact(
    task_id: int,
    file: UploadFile = File(...),
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Upload the completion archive and submit the task for approval"""
    upload = ArtifactUpload(
        filename=file.filename or "",
        content=file.file.read(),
        content_type=file.content_type,
    )
    return lifecycle.upload_artifact(task_id, upload, current_user)


def content_disposition(filename: str) -> str:
    """Attachment header; non-ASCII names use the RFC 5987 form"""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.get("/{task_id}/artifact")
def download_artifact(
    task_id: int,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Download the submitted archive"""
    filename, content = lifecycle.download_artifact(task_id, current_user)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": content_disposition(filename)},
    )
