# tasktrack/routers/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tasktrack.database import get_db
from tasktrack.schemas import LoginRequest, ProfileOut, SignupRequest, Token
from tasktrack.services.identity import IdentityProvider, SessionInfo
from tasktrack.services.task_store import TaskStore
from tasktrack.utils.auth import get_current_user, get_identity_provider

router = APIRouter()


def _token_response(session: SessionInfo, db: Session) -> Token:
    profile = TaskStore(db).get_profile(session.user_id)
    return Token(access_token=session.access_token, token_type="bearer", user=profile)


@router.post("/signup", response_model=Token)
def signup(
    user: SignupRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    session = identity.sign_up(user.email, user.password, user.name)
    return _token_response(session, db)


@router.post("/login", response_model=Token)
def login(
    user: LoginRequest,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    session = identity.sign_in_with_password(user.email, user.password)
    return _token_response(session, db)


@router.post("/logout")
def logout(
    current_user: ProfileOut = Depends(get_current_user),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    """Tokens are stateless; the client drops its token after this call"""
    identity.sign_out()
    return {"message": f"Signed out {current_user.email}"}
