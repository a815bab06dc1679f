from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from .errors import SyncError
from .google_sheets import GoogleSheetsClient
from .models import Credentials, PastInspection, Project
from .store import PortalStore

LOGGER = logging.getLogger(__name__)

MAX_OPPORTUNITY_NAME_LENGTH = 200

# Project field -> accepted header names (normalized), first non-empty wins.
PROJECT_COLUMNS: Dict[str, tuple[str, ...]] = {
    "opportunity_name": ("opportunity name",),
    "contact_name": ("contact name",),
    "phone": ("phone",),
    "email": ("email",),
    "pipeline": ("pipeline",),
    "stage": ("stage",),
    "lead_value": ("lead value",),
    "source": ("source",),
    "assigned": ("assigned",),
    "created_on": ("created on",),
    "updated_on": ("updated on",),
    "lost_reason_id": ("lost reason id",),
    "lost_reason_name": ("lost reason",),
    "followers": ("followers",),
    "notes": ("notes",),
    "tag": ("tag", "tags"),
    "address": ("address",),
    "subdivision": ("subdivision",),
    "lot_number": ("lot number",),
    "permit_number": ("permit number",),
    "assigned_permit_tech": ("assign permit tech",),
    "assigned_plans_examiner": ("assign plans examiner",),
    "assigned_inspector": ("assign inspector",),
    "planning_checklist": ("planning checklist",),
    "permitting_checklist": ("permitting information",),
    "inspection_checklist": ("inspection checklist",),
    "inspection1_result": ("1st inspection results",),
    "inspection2_result": ("2nd inspection results",),
    "inspection3_result": ("3rd inspection results",),
    "inspection1_type": ("inspection type 1",),
    "inspection2_type": ("inspection type 2",),
    "inspection3_type": ("inspection type 3",),
    "inspection4_type": ("inspection type 4",),
    "inspection5_type": ("inspection type 5",),
    "proposal_sent": ("proposals sent",),
    "proposal_signed": ("proposal signed",),
    "company": ("company",),
    "completion_status": ("engagement status", "completed"),
    "opportunity_id": ("opportunity id",),
}

_MAX_LENGTHS = {
    "opportunity_name": 500,
    "phone": 100,
    "email": 320,
    "opportunity_id": 100,
}

_DATE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
    "%b %d %Y %I:%M %p",
    "%b %d %Y",
)


def _normalize_header(header: str) -> str:
    return str(header).strip().lower()


def build_records(
    values: List[List[str]],
    header_row: int = 1,
    data_start_row: int = 2,
) -> List[Dict[str, str]]:
    """Turn a raw value grid into dicts keyed by normalized header."""

    if not values:
        return []

    if header_row < 1:
        raise ValueError("header_row must be 1 or greater")
    if data_start_row <= header_row:
        raise ValueError("data_start_row must be greater than header_row")

    header_idx = header_row - 1
    if header_idx >= len(values):
        return []

    header = [_normalize_header(name) for name in values[header_idx]]
    records: List[Dict[str, str]] = []
    start_idx = max(data_start_row - 1, header_idx + 1)
    for row in values[start_idx:]:
        record: Dict[str, str] = {}
        for idx, name in enumerate(header):
            if not name or name in record:
                continue
            record[name] = str(row[idx]).strip() if idx < len(row) else ""
        records.append(record)
    return records


def _lookup(record: Dict[str, str], aliases: Sequence[str]) -> str:
    for alias in aliases:
        value = record.get(alias, "")
        if value:
            return value
    return ""


def _parse_date(value: str) -> Optional[datetime]:
    text = (value or "").strip()
    if not text:
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        LOGGER.debug("Unable to parse date value '%s'", text)
        return None


def _is_valid_project_row(opportunity_name: str, email: str) -> bool:
    # Names longer than this are rows whose cells were shifted by stray commas.
    if not opportunity_name or len(opportunity_name) > MAX_OPPORTUNITY_NAME_LENGTH:
        return False
    return "@" in email


def build_projects(
    values: List[List[str]],
    header_row: int = 1,
    data_start_row: int = 2,
    *,
    synced_at: datetime | None = None,
) -> List[Project]:
    synced_at = synced_at or datetime.now()
    projects: List[Project] = []
    skipped = 0
    for record in build_records(values, header_row, data_start_row):
        fields = {name: _lookup(record, aliases) for name, aliases in PROJECT_COLUMNS.items()}
        if not _is_valid_project_row(fields["opportunity_name"], fields["email"]):
            skipped += 1
            continue
        for name, limit in _MAX_LENGTHS.items():
            fields[name] = fields[name][:limit]
        projects.append(
            Project(
                **fields,
                last_updated=_parse_date(fields["updated_on"]),
                synced_at=synced_at,
            )
        )

    if skipped:
        LOGGER.info("Skipped %s rows without a usable opportunity name or email", skipped)
    return projects


def sync_projects(sheets_client: GoogleSheetsClient, store: PortalStore) -> int:
    """Replace stored projects with the current contents of the projects tab."""

    LOGGER.info("Fetching projects from Google Sheets...")
    values = sheets_client.fetch_projects()
    conf = sheets_client.config
    records_available = max(len(values) - conf.header_row, 0)
    LOGGER.info("Fetched %s rows from Google Sheets", records_available)

    # Nothing is deleted unless the fetch produced data.
    if records_available == 0:
        raise SyncError(
            "No data fetched from Google Sheets. "
            "Please check the sheet is accessible and has data."
        )

    projects = build_projects(values, conf.header_row, conf.data_start_row)
    LOGGER.info("Inserting %s valid projects", len(projects))
    store.replace_projects(projects)
    return len(projects)


def find_credentials(
    values: List[List[str]],
    email: str,
    password: str,
    *,
    all_companies_token: str = "ALL",
) -> Credentials | None:
    """Look up an email/password pair in the logins tab."""

    wanted = email.strip().lower()
    for record in build_records(values):
        row_email = record.get("email", "")
        if row_email.lower() != wanted:
            continue
        row_password = record.get("password:", record.get("password", ""))
        if row_password != password:
            LOGGER.debug("Password mismatch for %s in logins sheet", wanted)
            continue
        is_admin = record.get("admin?", "").upper() == "YES"
        return Credentials(
            email=row_email,
            role="admin" if is_admin else "user",
            company=record.get("company", "") or all_companies_token,
        )
    return None


def _company_matches(company: str | None, user_company: str | None, all_token: str) -> bool:
    if user_company == all_token:
        return True
    if not user_company or not company:
        return False
    return company.lower() == user_company.lower()


def build_past_inspections(
    values: List[List[str]],
    user_company: str | None,
    *,
    all_companies_token: str = "ALL",
) -> List[PastInspection]:
    results: List[PastInspection] = []
    for record in build_records(values):
        project_name = record.get("project name", "")
        # The tab repeats its header row between imported batches.
        if not project_name or project_name.lower() == "project name":
            continue
        company = record.get("company", "")
        if not _company_matches(company, user_company, all_companies_token):
            continue
        results.append(
            PastInspection(
                id=f"past-{len(results)}",
                project_name=project_name,
                inspection_type=record.get("inspection type", ""),
                approved_status=_lookup(record, ("approved status", "approved")),
                date_approved=record.get("date approved", ""),
                company=company,
                source="past",
            )
        )
    return results
