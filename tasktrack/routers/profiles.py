# tasktrack/routers/profiles.py
from fastapi import APIRouter, Depends
from typing import List

from tasktrack.schemas import ProfileOut, ProfileRoleUpdate, TeamMemberOut
from tasktrack.services.lifecycle import TaskLifecycleManager
from tasktrack.utils.auth import get_current_user, get_lifecycle

router = APIRouter()


@router.get("/me", response_model=ProfileOut)
def get_current_profile(current_user: ProfileOut = Depends(get_current_user)):
    """Get the signed-in user's profile"""
    return current_user


@router.get("/", response_model=List[TeamMemberOut])
def get_team_roster(
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Team members with their active and completed task counts"""
    return lifecycle.team_roster(current_user)


@router.put("/{user_id}/role", response_model=ProfileOut)
def update_role(
    user_id: str,
    role_update: ProfileRoleUpdate,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
    current_user: ProfileOut = Depends(get_current_user),
):
    """Change a member's role - admin only"""
    return lifecycle.set_role(user_id, role_update.role, current_user)
