"""
Tests for task status transitions, approval gating and artifact linkage
"""

from datetime import date

import pytest

from conftest import ZIP_BYTES, zip_upload
from tasktrack.errors import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from tasktrack.models import ProfileRole, TaskStatus
from tasktrack.services.lifecycle import TRANSITIONS, check_transition, parse_due_date
from tasktrack.services.task_store import TaskStore


def submit(lifecycle, task, member, filename="work.zip"):
    lifecycle.start(task.id, member)
    return lifecycle.upload_artifact(task.id, zip_upload(filename), member)


# ---- creation ----

def test_create_task_starts_in_todo(lifecycle, admin, member, other_member):
    task = lifecycle.create_task(
        title="  Database Schema Design ",
        description="Design the schema",
        assignee_ids=[member.user_id, other_member.user_id, member.user_id],
        due_date="2026-11-03",
        created_by=admin,
    )

    assert task.status == TaskStatus.TODO
    assert task.title == "Database Schema Design"
    assert task.assignee_ids == [member.user_id, other_member.user_id]
    assert task.due_date == date(2026, 11, 3)
    assert task.created_by == admin.user_id
    assert task.file_path is None
    assert task.approved_by is None


def test_create_task_requires_an_assignee(lifecycle, admin, store):
    with pytest.raises(ValidationError):
        lifecycle.create_task("Backend API", "", [], "2026-11-01", admin)

    assert store.list_tasks() == []


def test_create_task_rejects_unknown_assignee(lifecycle, admin, store):
    with pytest.raises(ValidationError):
        lifecycle.create_task("Backend API", "", ["no-such-user"], "2026-11-01", admin)

    assert store.list_tasks() == []


@pytest.mark.parametrize("title,due", [("", "2026-11-01"), ("   ", "2026-11-01"), ("Task", "next week"), ("Task", None)])
def test_create_task_validates_fields(lifecycle, admin, member, title, due):
    with pytest.raises(ValidationError):
        lifecycle.create_task(title, "", [member.user_id], due, admin)


def test_member_cannot_create_tasks(lifecycle, member):
    with pytest.raises(AuthorizationError):
        lifecycle.create_task("Task", "", [member.user_id], "2026-11-01", member)


def test_parse_due_date_accepts_dates_and_iso_strings():
    assert parse_due_date(date(2026, 1, 2)) == date(2026, 1, 2)
    assert parse_due_date("2026-01-02") == date(2026, 1, 2)


# ---- transition table ----

def test_transition_table_edges():
    edges = {(s.value, t.value): tr.admin_only for (s, t), tr in TRANSITIONS.items()}
    assert edges == {
        ("todo", "in_progress"): False,
        ("in_progress", "pending_approval"): False,
        ("pending_approval", "completed"): True,
        ("pending_approval", "in_progress"): True,
        ("completed", "in_progress"): True,
    }


@pytest.mark.parametrize("target", [TaskStatus.TODO, TaskStatus.PENDING_APPROVAL, TaskStatus.COMPLETED])
def test_todo_rejects_edges_outside_the_table(lifecycle, new_task, admin, target):
    task = new_task()

    with pytest.raises(InvalidTransitionError):
        lifecycle.change_status(task.id, target, admin)

    assert lifecycle.get_task(task.id, admin).status == TaskStatus.TODO


def test_member_starts_assigned_task(lifecycle, new_task, member):
    task = new_task()

    started = lifecycle.start(task.id, member)

    assert started.status == TaskStatus.IN_PROGRESS


def test_non_assignee_member_cannot_change_status(lifecycle, new_task, admin, other_member):
    task = new_task()

    with pytest.raises(AuthorizationError):
        lifecycle.start(task.id, other_member)

    assert lifecycle.get_task(task.id, admin).status == TaskStatus.TODO


def test_submit_edge_only_through_upload(lifecycle, new_task, member, admin):
    task = new_task()
    lifecycle.start(task.id, member)

    with pytest.raises(InvalidTransitionError):
        lifecycle.change_status(task.id, "pending_approval", member)

    after = lifecycle.get_task(task.id, admin)
    assert after.status == TaskStatus.IN_PROGRESS
    assert after.file_path is None


def test_unknown_status_is_a_validation_error(lifecycle, new_task, admin):
    task = new_task()
    with pytest.raises(ValidationError):
        lifecycle.change_status(task.id, "archived", admin)


def test_change_status_on_missing_task(lifecycle, admin):
    with pytest.raises(NotFoundError):
        lifecycle.start(999, admin)


def test_check_transition_ordering(new_task, lifecycle, member, other_member):
    task = new_task()
    # Authorization is checked before the edge itself
    with pytest.raises(AuthorizationError):
        check_transition(task, TaskStatus.COMPLETED, other_member)
    with pytest.raises(AuthorizationError):
        check_transition(task, TaskStatus.COMPLETED, member)
    with pytest.raises(InvalidTransitionError):
        check_transition(task, TaskStatus.TODO, member)


# ---- artifacts ----

def test_upload_submits_for_approval(lifecycle, new_task, member, blob_store):
    task = new_task()

    submitted = submit(lifecycle, task, member, "ui-components.zip")

    assert submitted.status == TaskStatus.PENDING_APPROVAL
    assert submitted.file_path == f"{task.id}/ui-components.zip"
    assert submitted.file_name == "ui-components.zip"
    assert submitted.submitted_at is not None
    assert blob_store.get(submitted.file_path) == ZIP_BYTES


def test_upload_requires_in_progress(lifecycle, new_task, member, admin, blob_store):
    task = new_task()

    with pytest.raises(InvalidTransitionError):
        lifecycle.upload_artifact(task.id, zip_upload(), member)

    assert lifecycle.get_task(task.id, admin).file_path is None
    assert not blob_store.exists(f"{task.id}/work.zip")


def test_only_assignees_upload(lifecycle, new_task, member, other_member, admin):
    task = new_task()
    lifecycle.start(task.id, member)

    with pytest.raises(AuthorizationError):
        lifecycle.upload_artifact(task.id, zip_upload(), other_member)
    with pytest.raises(AuthorizationError):
        lifecycle.upload_artifact(task.id, zip_upload(), admin)


@pytest.mark.parametrize("filename,content", [
    ("notes.txt", ZIP_BYTES),
    ("work.zip", b""),
    ("work.zip", b"not an archive"),
    ("../escape.zip", ZIP_BYTES),
])
def test_upload_rejects_invalid_files(lifecycle, new_task, member, admin, filename, content):
    task = new_task()
    lifecycle.start(task.id, member)

    with pytest.raises(ValidationError):
        lifecycle.upload_artifact(task.id, zip_upload(filename, content), member)

    after = lifecycle.get_task(task.id, admin)
    assert after.status == TaskStatus.IN_PROGRESS
    assert after.file_path is None


def test_blob_failure_leaves_task_untouched(lifecycle, new_task, member, admin, monkeypatch):
    task = new_task()
    lifecycle.start(task.id, member)

    def broken_put(key, data):
        raise TransientError("Could not store file")

    monkeypatch.setattr(lifecycle.blob_store, "put", broken_put)

    with pytest.raises(TransientError) as excinfo:
        lifecycle.upload_artifact(task.id, zip_upload(), member)

    assert excinfo.value.retryable
    after = lifecycle.get_task(task.id, admin)
    assert after.status == TaskStatus.IN_PROGRESS
    assert after.file_path is None
    assert after.submitted_at is None


def test_store_failure_after_blob_write_propagates(lifecycle, new_task, member, admin, blob_store, monkeypatch):
    task = new_task()
    lifecycle.start(task.id, member)

    def broken_update(task_id, fields, expected_prior_status=None):
        raise TransientError("Store unavailable")

    monkeypatch.setattr(lifecycle.store, "update_task", broken_update)

    with pytest.raises(TransientError):
        lifecycle.upload_artifact(task.id, zip_upload(), member)

    # The blob stays behind; the task is not submitted
    assert blob_store.exists(f"{task.id}/work.zip")
    assert lifecycle.get_task(task.id, admin).status == TaskStatus.IN_PROGRESS


def test_download_artifact(lifecycle, new_task, member, admin, other_member):
    task = new_task()
    submit(lifecycle, task, member, "delivery.zip")

    assert lifecycle.download_artifact(task.id, admin) == ("delivery.zip", ZIP_BYTES)
    assert lifecycle.download_artifact(task.id, member) == ("delivery.zip", ZIP_BYTES)
    with pytest.raises(AuthorizationError):
        lifecycle.download_artifact(task.id, other_member)


def test_download_without_artifact(lifecycle, new_task, admin):
    task = new_task()
    with pytest.raises(NotFoundError):
        lifecycle.download_artifact(task.id, admin)


# ---- approval ----

def test_admin_approves_submission(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)

    approved = lifecycle.approve(task.id, admin)

    assert approved.status == TaskStatus.COMPLETED
    assert approved.approved_by == admin.user_id
    assert approved.approved_by_name == "Bhavana"
    assert approved.approved_at is not None
    assert approved.file_path is not None


@pytest.mark.parametrize("action", ["approve", "reject"])
def test_member_cannot_review(lifecycle, new_task, member, admin, action):
    task = new_task()
    submit(lifecycle, task, member)

    with pytest.raises(AuthorizationError):
        getattr(lifecycle, action)(task.id, member)

    assert lifecycle.get_task(task.id, admin).status == TaskStatus.PENDING_APPROVAL


def test_member_cannot_complete_through_change_status(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)

    with pytest.raises(AuthorizationError):
        lifecycle.change_status(task.id, TaskStatus.COMPLETED, member)


def test_double_approve_is_invalid(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)
    first = lifecycle.approve(task.id, admin)

    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(task.id, admin)

    after = lifecycle.get_task(task.id, admin)
    assert after.approved_at == first.approved_at


def test_approve_requires_pending(lifecycle, new_task, member, admin):
    task = new_task()
    lifecycle.start(task.id, member)

    with pytest.raises(InvalidTransitionError):
        lifecycle.approve(task.id, admin)


def test_reject_keeps_file(lifecycle, new_task, member, admin):
    task = new_task()
    submitted = submit(lifecycle, task, member)

    rejected = lifecycle.reject(task.id, admin)

    assert rejected.status == TaskStatus.IN_PROGRESS
    assert rejected.file_path == submitted.file_path
    assert rejected.approved_by is None


def test_reject_requires_pending(lifecycle, new_task, admin):
    task = new_task()
    with pytest.raises(InvalidTransitionError):
        lifecycle.reject(task.id, admin)


def test_reject_resubmit_approve_scenario(lifecycle, new_task, member, admin, blob_store):
    task = new_task()
    submit(lifecycle, task, member, "v1.zip")
    lifecycle.reject(task.id, admin)

    resubmitted = lifecycle.upload_artifact(task.id, zip_upload("v2.zip"), member)
    assert resubmitted.status == TaskStatus.PENDING_APPROVAL
    assert resubmitted.file_path == f"{task.id}/v2.zip"

    approved = lifecycle.approve(task.id, admin)
    assert approved.status == TaskStatus.COMPLETED
    assert approved.file_name == "v2.zip"
    assert blob_store.exists(f"{task.id}/v1.zip")


def test_reopen_completed_task(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)
    approved = lifecycle.approve(task.id, admin)

    reopened = lifecycle.reopen(task.id, admin)

    assert reopened.status == TaskStatus.IN_PROGRESS
    assert reopened.file_path == approved.file_path
    assert reopened.approved_by == admin.user_id
    assert reopened.approved_at == approved.approved_at


def test_member_cannot_reopen(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)
    approved = lifecycle.approve(task.id, admin)

    with pytest.raises(AuthorizationError):
        lifecycle.reopen(task.id, member)

    after = lifecycle.get_task(task.id, admin)
    assert after.status == TaskStatus.COMPLETED
    assert after.approved_by == admin.user_id
    assert after.approved_at == approved.approved_at
    assert after.updated_at == approved.updated_at


def test_reopen_requires_completed(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)
    with pytest.raises(InvalidTransitionError):
        lifecycle.reopen(task.id, admin)


def test_concurrent_approval_from_stale_snapshot(lifecycle, db, new_task, member, admin, make_user, monkeypatch):
    second_admin = make_user("sravan@example.com", ProfileRole.ADMIN, "Sravan")
    task = new_task()
    submit(lifecycle, task, member)

    stale = lifecycle.get_task(task.id, admin)
    first = lifecycle.approve(task.id, admin)

    # The second reviewer still sees the task as pending
    monkeypatch.setattr(lifecycle.store, "get_task", lambda task_id: stale)
    with pytest.raises(ConflictError):
        lifecycle.approve(task.id, second_admin)

    after = TaskStore(db).get_task(task.id)
    assert after.status == TaskStatus.COMPLETED
    assert after.approved_by == admin.user_id
    assert after.approved_at == first.approved_at


def test_file_path_set_iff_task_was_submitted(lifecycle, new_task, member, admin):
    task = new_task()
    assert task.file_path is None

    assert lifecycle.start(task.id, member).file_path is None
    assert lifecycle.upload_artifact(task.id, zip_upload(), member).file_path is not None
    assert lifecycle.reject(task.id, admin).file_path is not None


# ---- listings ----

def test_member_sees_only_assigned_tasks(lifecycle, new_task, admin, member, other_member):
    mine = new_task("Frontend UI Components")
    theirs = new_task("Backend API Development", assignees=[other_member.user_id])

    assert [t.id for t in lifecycle.list_tasks(member)] == [mine.id]
    assert {t.id for t in lifecycle.list_tasks(admin)} == {mine.id, theirs.id}
    with pytest.raises(AuthorizationError):
        lifecycle.get_task(theirs.id, member)


def test_active_listing_excludes_completed(lifecycle, new_task, member, admin):
    done = new_task("Done", due_date="2026-11-01")
    open_task = new_task("Open", due_date="2026-11-02")
    submit(lifecycle, done, member)
    lifecycle.approve(done.id, admin)

    assert [t.id for t in lifecycle.list_tasks(admin)] == [open_task.id]
    assert [t.id for t in lifecycle.list_completed(admin)] == [done.id]
    assert [t.id for t in lifecycle.list_tasks(member, ["completed", "todo"])] == [done.id, open_task.id]


@pytest.mark.parametrize("status_filter", [[], (), set()])
def test_empty_status_filter_is_the_active_view(lifecycle, new_task, member, admin, status_filter):
    done = new_task("Done")
    open_task = new_task("Open")
    submit(lifecycle, done, member)
    lifecycle.approve(done.id, admin)

    assert [t.id for t in lifecycle.list_tasks(member, status_filter)] == [open_task.id]
    assert [t.id for t in lifecycle.list_tasks(admin, status_filter)] == [open_task.id]


def test_default_clock_is_timezone_aware(lifecycle):
    now = lifecycle.clock()

    assert now.tzinfo is not None
    assert now.utcoffset().total_seconds() == 0


def test_listing_is_ordered_by_due_date(lifecycle, new_task, admin):
    late = new_task("Late", due_date="2026-12-01")
    early = new_task("Early", due_date="2026-11-01")

    assert [t.id for t in lifecycle.list_tasks(admin)] == [early.id, late.id]


def test_listing_is_restartable(lifecycle, new_task, admin):
    new_task()
    listing = lifecycle.list_tasks(admin)

    assert len(listing.all()) == 1
    new_task("Another")
    assert len(list(listing)) == 2


def test_pending_approvals_admin_only(lifecycle, new_task, member, admin):
    task = new_task()
    submit(lifecycle, task, member)

    assert [t.id for t in lifecycle.list_pending_approvals(admin)] == [task.id]
    with pytest.raises(AuthorizationError):
        lifecycle.list_pending_approvals(member)


# ---- team ----

def test_team_roster_counts(lifecycle, new_task, member, other_member, admin):
    done = new_task("Done")
    new_task("Shared", assignees=[member.user_id, other_member.user_id])
    submit(lifecycle, done, member)
    lifecycle.approve(done.id, admin)

    roster = {m.user_id: m for m in lifecycle.team_roster(member)}

    assert roster[member.user_id].active_tasks == 1
    assert roster[member.user_id].completed_tasks == 1
    assert roster[other_member.user_id].active_tasks == 1
    assert roster[admin.user_id].active_tasks == 0


def test_set_role(lifecycle, admin, member):
    promoted = lifecycle.set_role(member.user_id, "admin", admin)
    assert promoted.role == ProfileRole.ADMIN

    with pytest.raises(AuthorizationError):
        lifecycle.set_role(admin.user_id, "member", member)
    with pytest.raises(ValidationError):
        lifecycle.set_role(admin.user_id, "member", admin)
    with pytest.raises(ValidationError):
        lifecycle.set_role(member.user_id, "owner", admin)
