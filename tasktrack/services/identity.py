# tasktrack/services/identity.py
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, List, Optional
import logging
import threading

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from tasktrack.config import settings
from tasktrack.errors import AuthenticationError, ConflictError, ValidationError
from tasktrack.models import Identity, Profile, ProfileRole
from tasktrack.utils.clock import utcnow

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthEvent(str, Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class SessionInfo:
    user_id: str
    email: str
    access_token: str
    expires_at: datetime

    @property
    def expired(self) -> bool:
        return self.expires_at <= utcnow()


SessionCallback = Callable[[AuthEvent, Optional[SessionInfo]], None]


class Subscription:
    """Handle returned by on_session_change; call unsubscribe() on teardown"""

    def __init__(self, provider: "IdentityProvider", callback: SessionCallback):
        self._provider = provider
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._provider._remove_listener(self)


class IdentityProvider:
    """
    Password authentication with JWT access tokens.

    Holds the client's current session and notifies subscribers whenever it
    changes. A profile is created the first time an identity authenticates.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        expire_minutes: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self.secret_key = secret_key or settings.AUTH['secret_key']
        self.algorithm = algorithm or settings.AUTH['algorithm']
        self.expire_minutes = expire_minutes or settings.AUTH['access_token_expire_minutes']

        self._current: Optional[SessionInfo] = None
        self._listeners: List[Subscription] = []
        self._lock = threading.Lock()

    # ---- tokens ----

    def create_access_token(self, user_id: str, email: str) -> SessionInfo:
        expires_at = utcnow() + timedelta(minutes=self.expire_minutes)
        token = jwt.encode(
            {"sub": user_id, "email": email, "exp": expires_at},
            self.secret_key,
            algorithm=self.algorithm,
        )
        return SessionInfo(user_id=user_id, email=email, access_token=token, expires_at=expires_at)

    def verify_access_token(self, token: str) -> SessionInfo:
        """Decode a bearer token into a session, raising AuthenticationError when it is unusable"""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise AuthenticationError("Session has expired")
        except JWTError:
            raise AuthenticationError("Could not validate credentials")

        user_id = payload.get("sub")
        if not user_id or "exp" not in payload:
            raise AuthenticationError("Could not validate credentials")

        return SessionInfo(
            user_id=user_id,
            email=payload.get("email", ""),
            access_token=token,
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    # ---- sign up / sign in ----

    def _ensure_profile(self, db: Session, identity: Identity, name: Optional[str] = None) -> Profile:
        profile = db.query(Profile).filter(Profile.user_id == identity.id).first()
        if profile:
            return profile

        profile = Profile(
            user_id=identity.id,
            email=identity.email,
            name=(name or "").strip() or identity.email.split("@")[0],
            role=ProfileRole.MEMBER.value,
        )
        db.add(profile)
        logger.info(f"Profile created for {identity.email}")
        return profile

    def sign_up(self, email: str, password: str, name: Optional[str] = None) -> SessionInfo:
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError("A valid email address is required")
        if not password:
            raise ValidationError("Password is required")

        with self._session_factory() as db:
            if db.query(Identity).filter(Identity.email == email).first():
                raise ValidationError("Email already registered")

            identity = Identity(email=email, hashed_password=hash_password(password))
            db.add(identity)
            try:
                db.flush()
                self._ensure_profile(db, identity, name)
                identity.last_sign_in_at = utcnow()
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise ConflictError("Email already registered") from e
            user_id = identity.id

        logger.info(f"Identity registered: {email}")
        return self._set_current(self.create_access_token(user_id, email))

    def sign_in_with_password(self, email: str, password: str) -> SessionInfo:
        email = normalize_email(email)
        with self._session_factory() as db:
            identity = db.query(Identity).filter(Identity.email == email).first()
            if not identity or not verify_password(password or "", identity.hashed_password):
                logger.warning(f"Failed sign-in for {email}")
                raise AuthenticationError("Invalid credentials")

            self._ensure_profile(db, identity)
            identity.last_sign_in_at = utcnow()
            db.commit()
            user_id = identity.id

        logger.info(f"Signed in: {email}")
        return self._set_current(self.create_access_token(user_id, email))

    def set_session(self, access_token: str) -> SessionInfo:
        """Adopt an existing access token as the current session"""
        return self._set_current(self.verify_access_token(access_token))

    # ---- current session ----

    def get_current_session(self) -> Optional[SessionInfo]:
        current = self._current
        if current is not None and current.expired:
            self._current = None
            self._emit(AuthEvent.SIGNED_OUT, None)
            return None
        return current

    def sign_out(self) -> None:
        if self._current is None:
            return
        email = self._current.email
        self._current = None
        logger.info(f"Signed out: {email}")
        self._emit(AuthEvent.SIGNED_OUT, None)

    def _set_current(self, session: SessionInfo) -> SessionInfo:
        self._current = session
        self._emit(AuthEvent.SIGNED_IN, session)
        return session

    # ---- subscriptions ----

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        subscription = Subscription(self, callback)
        with self._lock:
            self._listeners.append(subscription)
        return subscription

    def _remove_listener(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._listeners:
                self._listeners.remove(subscription)

    def _emit(self, event: AuthEvent, session: Optional[SessionInfo]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for subscription in listeners:
            if not subscription.active:
                continue
            try:
                subscription.callback(event, session)
            except Exception:
                logger.exception(f"Session listener failed on {event.value}")
