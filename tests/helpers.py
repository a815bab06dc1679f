"""Shared fakes and builders for the test suite."""

from __future__ import annotations

from typing import List

from checklist_portal.config import SheetsConfig
from checklist_portal.ghl import GHLSyncResult
from checklist_portal.models import Project

PROJECT_HEADER = [
    "Opportunity Name",
    "Email",
    "Stage",
    "Address",
    "Company",
    "Assign Permit Tech",
    "Assign Plans Examiner",
    "Assign Inspector",
    "Planning Checklist",
    "Permitting Information",
    "Inspection Checklist",
    "Updated on",
    "Opportunity ID",
]

LOGIN_HEADER = ["Email", "Password:", "Admin?", "Company"]


class FakeSheets:
    """In-memory stand-in for GoogleSheetsClient."""

    def __init__(self, conf: SheetsConfig, tabs: dict | None = None) -> None:
        self.config = conf
        self.tabs: dict[str, List[List[str]]] = tabs or {}
        self.appended: list[tuple[str, list]] = []
        self.fail_appends = False

    def fetch_values(self, sheet_name: str) -> List[List[str]]:
        return [list(row) for row in self.tabs.get(sheet_name, [])]

    def fetch_projects(self) -> List[List[str]]:
        return self.fetch_values(self.config.projects_sheet_name)

    def fetch_logins(self) -> List[List[str]]:
        return self.fetch_values(self.config.logins_sheet_name)

    def fetch_past_inspections(self) -> List[List[str]]:
        if not self.config.past_inspections_sheet_name:
            return []
        return self.fetch_values(self.config.past_inspections_sheet_name)

    def append_rows(self, sheet_name: str, values) -> dict:
        if self.fail_appends:
            raise OSError("sheet unavailable")
        rows = [list(row) for row in values]
        self.appended.append((sheet_name, rows))
        return {"updates": {"updatedRows": len(rows)}}


class FakeGHL:
    def __init__(self, configured: bool = True, succeed: bool = True) -> None:
        self.is_configured = configured
        self.succeed = succeed
        self.inspections = []
        self.contacts = []

    def _result(self, ghl_id: str) -> GHLSyncResult:
        if self.succeed:
            return GHLSyncResult(success=True, ghl_id=ghl_id)
        return GHLSyncResult(success=False, error="boom")

    def sync_inspection(self, inspection):
        self.inspections.append(inspection)
        return self._result(f"appt-{inspection.id}")

    def sync_contact(self, contact, opportunity_name):
        self.contacts.append((contact, opportunity_name))
        return self._result(f"contact-{contact.id}")


def make_project(name: str = "Lot 7 Addition", **overrides) -> Project:
    values = {
        "opportunity_name": name,
        "email": "owner@example.com",
        "stage": "Permitting",
        "company": "Acme Homes",
    }
    values.update(overrides)
    return Project(**values)
