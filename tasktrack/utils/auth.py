# tasktrack/utils/auth.py
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, sessionmaker

from tasktrack.database import get_db, get_session_factory
from tasktrack.errors import AuthenticationError, NotFoundError
from tasktrack.schemas import ProfileOut
from tasktrack.services.auth_context import lookup_profile
from tasktrack.services.file_storage import LocalBlobStore, get_blob_store
from tasktrack.services.identity import IdentityProvider
from tasktrack.services.lifecycle import TaskLifecycleManager
from tasktrack.services.task_store import TaskStore

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def get_identity_provider(session_factory: sessionmaker = Depends(get_session_factory)) -> IdentityProvider:
    return IdentityProvider(session_factory)


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> ProfileOut:
    """Resolve the bearer token to the acting profile"""
    if not token:
        raise AuthenticationError("Not authenticated")

    session = identity.verify_access_token(token)

    # The lookup runs on a worker thread, so it gets its own DB session
    def load_profile(user_id: str) -> ProfileOut:
        db = session_factory()
        try:
            return TaskStore(db).get_profile(user_id)
        finally:
            db.close()

    try:
        return lookup_profile(load_profile, session.user_id)
    except NotFoundError:
        raise AuthenticationError("Could not validate credentials")


def get_lifecycle(
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> TaskLifecycleManager:
    return TaskLifecycleManager(TaskStore(db), blob_store)
