# create_tables.py
import os

from tasktrack.database import Base, SessionLocal, engine, init_db
from tasktrack.errors import ValidationError
from tasktrack.models import ProfileRole
from tasktrack.services.identity import IdentityProvider
from tasktrack.services.task_store import TaskStore

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_NAME = os.getenv("ADMIN_NAME", "System Administrator")


def create_tables(drop_existing: bool = False):
    """Create all tables"""
    if drop_existing:
        Base.metadata.drop_all(bind=engine)
        print("🗑️  Existing tables dropped")

    init_db()
    print("✅ All tables created successfully!")

    create_default_admin()


def create_default_admin():
    """Create a default admin user"""
    identity = IdentityProvider(SessionLocal)
    try:
        session = identity.sign_up(ADMIN_EMAIL, ADMIN_PASSWORD, ADMIN_NAME)
    except ValidationError:
        print("ℹ️  Admin user already exists")
        return

    with SessionLocal() as db:
        TaskStore(db).set_role(session.user_id, ProfileRole.ADMIN)

    print("✅ Default admin user created!")
    print(f"   Email: {ADMIN_EMAIL}")
    print(f"   Password: {ADMIN_PASSWORD}")


if __name__ == "__main__":
    create_tables(drop_existing=os.getenv("DROP_EXISTING", "false").lower() == "true")
