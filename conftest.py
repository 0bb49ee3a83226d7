import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="tasktrack-uploads-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from tasktrack.database import build_engine, get_db, get_session_factory, init_db
from tasktrack.models import ProfileRole
from tasktrack.services.file_storage import LocalBlobStore, get_blob_store
from tasktrack.services.file_validation import ArtifactUpload
from tasktrack.services.identity import IdentityProvider
from tasktrack.services.lifecycle import TaskLifecycleManager
from tasktrack.services.task_store import TaskStore

ZIP_BYTES = b"PK\x03\x04" + b"\x00" * 64
PASSWORD = "password123"


def zip_upload(filename="work.zip", content=ZIP_BYTES):
    return ArtifactUpload(filename=filename, content=content, content_type="application/zip")


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'tasktrack.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return TaskStore(db)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(upload_dir=str(tmp_path / "uploads"), bucket="task-files")


@pytest.fixture
def lifecycle(store, blob_store):
    return TaskLifecycleManager(store, blob_store)


@pytest.fixture
def identity(session_factory):
    return IdentityProvider(session_factory, secret_key="test-secret")


@pytest.fixture
def make_user(identity, store):
    """Sign up a user and return their profile"""

    def _make_user(email, role=ProfileRole.MEMBER, name=None):
        session = identity.sign_up(email, PASSWORD, name)
        if role == ProfileRole.ADMIN:
            return store.set_role(session.user_id, ProfileRole.ADMIN)
        return store.get_profile(session.user_id)

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("bhavana@example.com", ProfileRole.ADMIN, "Bhavana")


@pytest.fixture
def member(make_user):
    return make_user("vathsal@example.com", name="Vathsal")


@pytest.fixture
def other_member(make_user):
    return make_user("nagasri@example.com", name="Nagasri")


@pytest.fixture
def new_task(lifecycle, admin, member):
    """Factory for todo tasks assigned to `member` by default"""

    def _new_task(title="Frontend UI Components", assignees=None, due_date="2026-11-01"):
        return lifecycle.create_task(
            title=title,
            description="Create reusable UI components",
            assignee_ids=assignees or [member.user_id],
            due_date=due_date,
            created_by=admin,
        )

    return _new_task


@pytest.fixture
def client(session_factory, blob_store):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    yield TestClient(app)

    app.dependency_overrides.clear()
