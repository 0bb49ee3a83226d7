# tasktrack/schemas/task.py
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Union

from tasktrack.models.task import TaskStatus


class AssigneeOut(BaseModel):
    user_id: str
    name: str
    email: str

    model_config = {
        "from_attributes": True
    }


class TaskCreate(BaseModel):
    # Checked by the lifecycle manager so every bad field surfaces as a ValidationError
    title: str = ""
    description: str = ""
    assignee_ids: List[str] = Field(default_factory=list)
    due_date: Union[date, str, None] = None


class TaskStatusUpdate(BaseModel):
    status: TaskStatus


class TaskOut(BaseModel):
    id: int
    title: str
    description: str
    due_date: date
    status: TaskStatus
    file_path: Optional[str] = None
    submitted_at: Optional[datetime] = None
    created_by: str
    approved_by: Optional[str] = None
    approved_by_name: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    # Related objects
    assignees: List[AssigneeOut]

    model_config = {
        "from_attributes": True
    }

    @property
    def assignee_ids(self) -> List[str]:
        return [assignee.user_id for assignee in self.assignees]

    @property
    def file_name(self) -> Optional[str]:
        if not self.file_path:
            return None
        return self.file_path.rsplit("/", 1)[-1]
