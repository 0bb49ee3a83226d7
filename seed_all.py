"""
Master Database Seeding Script
Creates database tables and populates them with the demo team and tasks
"""

import sys
from datetime import datetime
from typing import Dict

from demo_users import DEMO_USERS
from demo_tasks import DEMO_TASKS
from tasktrack.database import SessionLocal, init_db
from tasktrack.errors import TaskTrackError, ValidationError
from tasktrack.models import ProfileRole
from tasktrack.services.auth_context import AuthContext
from tasktrack.services.file_storage import get_blob_store
from tasktrack.services.identity import IdentityProvider
from tasktrack.services.lifecycle import TaskLifecycleManager
from tasktrack.services.task_store import TaskStore


def load_profile(user_id: str):
    with SessionLocal() as db:
        return TaskStore(db).get_profile(user_id)


def seed_demo_users(identity: IdentityProvider) -> Dict[str, str]:
    """Create demo users; returns email -> user id"""
    print(f"\n{'='*60}")
    print("🚀 Creating Demo Users")
    print(f"{'='*60}")

    user_ids = {}
    for user_data in DEMO_USERS:
        try:
            session = identity.sign_up(user_data["email"], user_data["password"], user_data["name"])
            print(f"[SUCCESS] Created user: {user_data['name']} ({user_data['role']})")
        except ValidationError:
            session = identity.sign_in_with_password(user_data["email"], user_data["password"])
            print(f"[SKIP] User {user_data['email']} already exists, skipping...")

        with SessionLocal() as db:
            TaskStore(db).set_role(session.user_id, ProfileRole(user_data["role"]))
        user_ids[user_data["email"]] = session.user_id

    identity.sign_out()
    return user_ids


def seed_demo_tasks(identity: IdentityProvider, user_ids: Dict[str, str]) -> int:
    """Create demo tasks as the demo admin, then start the ones already under way"""
    print(f"\n{'='*60}")
    print("🚀 Creating Demo Tasks")
    print(f"{'='*60}")

    admin_data = next(u for u in DEMO_USERS if u["role"] == "admin")
    passwords = {u["email"]: u["password"] for u in DEMO_USERS}
    created = 0

    with AuthContext(identity, load_profile) as auth, SessionLocal() as db:
        lifecycle = TaskLifecycleManager(TaskStore(db), get_blob_store())

        identity.sign_in_with_password(admin_data["email"], admin_data["password"])
        admin = auth.acting_user

        for task_data in DEMO_TASKS:
            task = lifecycle.create_task(
                title=task_data["title"],
                description=task_data["description"],
                assignee_ids=[user_ids[email] for email in task_data["assignees"]],
                due_date=task_data["due_date"],
                created_by=admin,
            )
            created += 1
            print(f"[SUCCESS] Created task: {task.title}")

            if task_data["start"]:
                first_assignee = task_data["assignees"][0]
                identity.sign_in_with_password(first_assignee, passwords[first_assignee])
                lifecycle.start(task.id, auth.acting_user)
                print(f"          started by {auth.acting_user.name}")
                identity.sign_in_with_password(admin_data["email"], admin_data["password"])

        identity.sign_out()

    return created


def main():
    """Main function to run all seeding operations"""
    print("🌱 MASTER DATABASE SEEDING SCRIPT")
    print("=" * 60)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    init_db()
    identity = IdentityProvider(SessionLocal)

    try:
        user_ids = seed_demo_users(identity)
        task_count = seed_demo_tasks(identity, user_ids)
    except TaskTrackError as e:
        print(f"\n[ERROR] Seeding failed ({e.kind}): {e.message}")
        sys.exit(1)

    print(f"\n{'='*60}")
    print("📊 SEEDING SUMMARY")
    print(f"{'='*60}")
    print(f"   - {len(user_ids)} users (1 admin, {len(user_ids) - 1} members)")
    print(f"   - {task_count} tasks")
    print("\n[INFO] Login Credentials:")
    print("   - All demo users: password123")
    print(f"\nCompleted at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")


if __name__ == "__main__":
    main()
