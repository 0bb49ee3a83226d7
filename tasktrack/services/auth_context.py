# tasktrack/services/auth_context.py
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional
import logging

from tasktrack.config import settings
from tasktrack.errors import AuthenticationError, TaskTrackError, TransientError
from tasktrack.schemas import ProfileOut
from tasktrack.services.identity import AuthEvent, IdentityProvider, SessionInfo

logger = logging.getLogger(__name__)

ProfileLoader = Callable[[str], ProfileOut]

_lookup_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="profile-lookup")


def lookup_profile(loader: ProfileLoader, user_id: str, timeout: Optional[float] = None) -> ProfileOut:
    """
    Run a profile lookup with a deadline.

    Raises:
        TransientError: the lookup did not finish within the timeout
    """
    if timeout is None:
        timeout = settings.AUTH['profile_lookup_timeout']

    future = _lookup_pool.submit(loader, user_id)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning(f"Profile lookup for {user_id} timed out after {timeout}s")
        raise TransientError("Profile lookup timed out")


class AuthContext:
    """
    Acting user derived from the identity provider's current session.

    Re-derives the profile on every session change. Call close() (or use it
    as a context manager) to stop listening.
    """

    def __init__(self, identity: IdentityProvider, loader: ProfileLoader, timeout: Optional[float] = None):
        self._identity = identity
        self._loader = loader
        self._timeout = timeout

        self.session: Optional[SessionInfo] = None
        self.profile: Optional[ProfileOut] = None
        self.last_error: Optional[TaskTrackError] = None

        self._subscription = identity.on_session_change(self._on_session_change)
        self._on_session_change(AuthEvent.INITIAL_SESSION, identity.get_current_session())

    def _on_session_change(self, event: AuthEvent, session: Optional[SessionInfo]) -> None:
        self.session = session
        self.profile = None
        self.last_error = None
        if session is None:
            return

        try:
            self.profile = lookup_profile(self._loader, session.user_id, self._timeout)
        except TaskTrackError as e:
            # Surfaced to callers through acting_user
            self.last_error = e
            logger.warning(f"Could not load profile after {event.value}: {e.message}")

    @property
    def acting_user(self) -> ProfileOut:
        if self.last_error is not None:
            raise self.last_error
        if self.profile is None:
            raise AuthenticationError("Not signed in")
        return self.profile

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.is_admin

    def refresh(self) -> None:
        self._on_session_change(AuthEvent.INITIAL_SESSION, self._identity.get_current_session())

    def close(self) -> None:
        self._subscription.unsubscribe()

    def __enter__(self) -> "AuthContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
