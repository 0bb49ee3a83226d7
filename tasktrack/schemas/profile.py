# tasktrack/schemas/profile.py
from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

from tasktrack.models.profile import ProfileRole


class ProfileOut(BaseModel):
    user_id: str
    email: str
    name: str
    role: ProfileRole
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }

    @property
    def is_admin(self) -> bool:
        return self.role == ProfileRole.ADMIN


class ProfileRoleUpdate(BaseModel):
    role: ProfileRole


class TeamMemberOut(ProfileOut):
    active_tasks: int = 0
    completed_tasks: int = 0


class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
