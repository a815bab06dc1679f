from __future__ import annotations

from datetime import datetime

import pytest

from checklist_portal.models import ContactEmail, Inspection, ProjectFile, User
from checklist_portal.store import PortalStore
from tests.helpers import make_project


def test_schema_is_created_in_missing_directory(tmp_path):
    store = PortalStore(tmp_path / "nested" / "dir" / "portal.sqlite")
    try:
        assert store.list_projects() == []
    finally:
        store.close()


def test_replace_projects_lists_newest_first(store):
    updated = datetime(2024, 5, 1, 8, 30)
    store.replace_projects([make_project("First", last_updated=updated), make_project("Second")])

    projects = store.list_projects()
    assert [p.opportunity_name for p in projects] == ["Second", "First"]
    assert projects[1].last_updated == updated
    assert projects[0].planning_checklist == ""
    assert store.get_project(projects[0].id).opportunity_name == "Second"
    assert store.get_project(9999) is None


def test_upsert_user_refreshes_existing_row(store):
    created = store.upsert_user(User(open_id="local-a@example.com", email="a@example.com"))
    assert created.id is not None
    assert created.role == "user"

    updated = store.upsert_user(
        User(open_id="local-a@example.com", role="admin", company="Acme Homes")
    )
    assert updated.id == created.id
    assert updated.role == "admin"
    assert updated.email == "a@example.com"
    assert updated.company == "Acme Homes"


def test_get_user_by_email_prefers_login_method_then_password(store):
    store.upsert_user(User(open_id="oauth-1", email="a@example.com", login_method="oauth"))
    store.upsert_user(
        User(open_id="pw-1", email="a@example.com", password="pw", login_method="other")
    )
    assert store.get_user_by_email("a@example.com").open_id == "pw-1"
    assert store.get_user_by_email("a@example.com", "oauth").open_id == "oauth-1"
    assert store.get_user_by_email("missing@example.com") is None


def test_inspection_lifecycle(store):
    inspection = store.create_inspection(
        Inspection(project_id=1, inspection_type="Framing", notes="gate code 1234")
    )
    assert inspection.id is not None
    assert inspection.status == "pending"
    assert inspection.ghl_synced is False
    assert isinstance(inspection.created_at, datetime)

    store.update_inspection(inspection.id, status="scheduled")
    assert store.get_inspection(inspection.id).status == "scheduled"
    assert [i.id for i in store.list_unsynced_inspections()] == [inspection.id]

    store.mark_inspection_synced(inspection.id, "appt-9")
    synced = store.get_inspection(inspection.id)
    assert synced.ghl_synced is True
    assert synced.ghl_id == "appt-9"
    assert store.list_unsynced_inspections() == []
    assert store.list_inspections(project_id=2) == []


def test_update_inspection_rejects_unknown_fields(store):
    inspection = store.create_inspection(Inspection(project_id=1, inspection_type="Final"))
    with pytest.raises(ValueError):
        store.update_inspection(inspection.id, project_id=5)


def test_contact_emails(store):
    contact = store.create_contact_email(ContactEmail(project_id=3, email="b@example.com"))
    assert store.list_contact_emails(3) == [contact]
    assert store.list_unsynced_contact_emails() == [contact]

    store.mark_contact_synced(contact.id)
    assert store.list_unsynced_contact_emails() == []

    # Deleting through the wrong project leaves the contact alone.
    assert store.delete_contact_email(contact.id, project_id=4) is False
    assert store.delete_contact_email(contact.id, project_id=3) is True
    assert store.list_contact_emails(3) == []


def test_project_files(store):
    stored = store.create_project_file(
        ProjectFile(
            project_id=3,
            file_name="plans.pdf",
            file_url="https://files.example.com/plans.pdf",
            file_key="uploads/plans.pdf",
            file_size=2048,
            mime_type="application/pdf",
            uploaded_by="a@example.com",
        )
    )
    assert stored.id is not None
    assert store.list_project_files(3)[0].file_size == 2048
    assert store.list_project_files(4) == []
    assert store.delete_project_file(stored.id, 3) is True
    assert store.list_project_files() == []
