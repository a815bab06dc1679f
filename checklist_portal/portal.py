from __future__ import annotations

import hmac
import logging
import re
from datetime import datetime
from typing import List, Sequence

from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error

from .analytics import (
    AdminAnalytics,
    ProgressReport,
    ProjectProgress,
    StaffWorkload,
    build_admin_analytics,
    build_progress_report,
    build_staff_workload,
    project_progress,
)
from .config import AppConfig
from .errors import AccessDeniedError, AuthenticationError, NotFoundError, ValidationError
from .ghl import GHLClient
from .google_sheets import GoogleSheetsClient
from .models import (
    INSPECTION_STATUSES,
    ContactEmail,
    DashboardSummary,
    Inspection,
    PastInspection,
    Project,
    ProjectFile,
    User,
)
from .progress import Phase
from .store import PortalStore
from .sync import build_past_inspections, find_credentials, sync_projects

LOGGER = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# Failures of the Sheets logging side effects; these never fail the caller.
_SHEET_ERRORS = (HttpError, HttpLib2Error, OSError)


def _display_name(email: str) -> str:
    return email.split("@")[0] or "User"


def _same_company(left: str | None, right: str | None) -> bool:
    return (left or "").lower() == (right or "").lower()


class Portal:
    """Operations behind the client portal and the admin dashboards."""

    def __init__(
        self,
        config: AppConfig,
        store: PortalStore,
        sheets_client: GoogleSheetsClient,
        ghl_client: GHLClient | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._sheets = sheets_client
        self._ghl = ghl_client
        self._all = config.all_companies_token

    @property
    def store(self) -> PortalStore:
        return self._store

    # Auth --------------------------------------------------------------------
    def login(self, email: str, password: str) -> User:
        """Authenticate against stored passwords first, then the logins sheet."""

        email = email.strip()
        if not _EMAIL_RE.match(email) or not password:
            raise AuthenticationError("Invalid email or password")

        db_user = self._store.get_user_by_email(email, "password")
        if (
            db_user is not None
            and db_user.password is not None
            and hmac.compare_digest(db_user.password, password)
        ):
            LOGGER.debug("User authenticated via database: %s", email)
            return self._store.upsert_user(
                User(
                    open_id=db_user.open_id,
                    email=email,
                    name=db_user.name or _display_name(email),
                    login_method="password",
                    role=db_user.role,
                    company=db_user.company or self._all,
                    last_signed_in=datetime.now(),
                )
            )

        try:
            logins = self._sheets.fetch_logins()
        except _SHEET_ERRORS:
            LOGGER.exception("Failed to fetch logins from Google Sheets")
            raise AuthenticationError("Invalid email or password") from None

        credentials = find_credentials(
            logins,
            email,
            password,
            all_companies_token=self._all,
        )
        if credentials is None:
            raise AuthenticationError("Invalid email or password")

        LOGGER.debug("User authenticated via logins sheet: %s", email)
        return self._store.upsert_user(
            User(
                open_id=f"local-{email}",
                email=email,
                name=_display_name(email),
                login_method="local",
                role=credentials.role,
                company=credentials.company,
                last_signed_in=datetime.now(),
            )
        )

    # Access control ----------------------------------------------------------
    def has_all_companies(self, user: User) -> bool:
        return user.company == self._all

    def can_access_project(self, user: User, project: Project) -> bool:
        if user.is_admin or self.has_all_companies(user) or not user.company:
            return True
        return _same_company(project.company, user.company)

    def _accessible_project(self, user: User, project_id: int) -> Project:
        project = self._store.get_project(project_id)
        if project is None or not self.can_access_project(user, project):
            raise AccessDeniedError("You do not have access to this project")
        return project

    def _scoped_projects(self, user: User) -> List[Project]:
        projects = self._store.list_projects()
        if user.is_admin or self.has_all_companies(user) or not user.company:
            return projects
        return [p for p in projects if _same_company(p.company, user.company)]

    # Projects ----------------------------------------------------------------
    def list_projects(self, user: User) -> List[Project]:
        """Projects visible on the project list, newest first."""

        if self.has_all_companies(user):
            return self._store.list_projects()
        if not user.company:
            return []
        return [
            p for p in self._store.list_projects() if _same_company(p.company, user.company)
        ]

    def get_project(self, user: User, project_id: int) -> Project:
        project = self._store.get_project(project_id)
        if project is None:
            raise NotFoundError("Project not found")
        if not self.can_access_project(user, project):
            raise AccessDeniedError("You do not have access to this project")
        return project

    def list_projects_with_progress(self, user: User) -> List[ProjectProgress]:
        return [project_progress(project) for project in self.list_projects(user)]

    def sync(self) -> int:
        return sync_projects(self._sheets, self._store)

    # Inspections -------------------------------------------------------------
    def list_inspections(self, user: User, project_id: int) -> List[Inspection]:
        self._accessible_project(user, project_id)
        return self._store.list_inspections(project_id)

    def create_inspection(
        self,
        user: User,
        project_id: int,
        inspection_type: str,
        notes: str | None = None,
    ) -> Inspection:
        project = self._accessible_project(user, project_id)
        if not inspection_type.strip():
            raise ValidationError("Inspection type is required")

        inspection = self._store.create_inspection(
            Inspection(
                project_id=project_id,
                inspection_type=inspection_type,
                notes=notes,
                status="pending",
                project_name=project.opportunity_name or None,
                project_address=project.address or None,
                opportunity_id=project.opportunity_id or "",
                created_by=user.email or "",
            )
        )

        self._log_inspection_request(
            project_name=project.opportunity_name,
            user=user,
            inspection_type=inspection_type,
            opportunity_id=project.opportunity_id,
            notes=notes or "",
        )

        if self._ghl is not None and self._ghl.is_configured:
            result = self._ghl.sync_inspection(inspection)
            if result.success:
                self._store.mark_inspection_synced(inspection.id, result.ghl_id)
                inspection.ghl_synced = True
                inspection.ghl_id = result.ghl_id
            else:
                LOGGER.warning("GHL sync failed for inspection %s: %s", inspection.id, result.error)
        return inspection

    def update_inspection_status(self, user: User, inspection_id: int, status: str) -> Inspection:
        if status not in INSPECTION_STATUSES:
            raise ValidationError(
                f"Unknown inspection status '{status}'; expected one of "
                f"{', '.join(INSPECTION_STATUSES)}"
            )
        inspection = self._store.get_inspection(inspection_id)
        if inspection is None:
            raise NotFoundError("Inspection not found")
        self._accessible_project(user, inspection.project_id)
        self._store.update_inspection(inspection_id, status=status)
        return self._store.get_inspection(inspection_id) or inspection

    def request_new_project_inspection(
        self,
        user: User,
        project_name: str,
        project_address: str,
        inspection_type: str,
        notes: str | None = None,
    ) -> None:
        """Log an inspection request for a project that is not synced yet."""

        combined_notes = f"Address: {project_address}"
        if notes:
            combined_notes += f" | Notes: {notes}"
        self._log_inspection_request(
            project_name=project_name,
            user=user,
            inspection_type=inspection_type,
            opportunity_id="",
            notes=combined_notes,
        )

    def _log_inspection_request(
        self,
        *,
        project_name: str,
        user: User,
        inspection_type: str,
        opportunity_id: str,
        notes: str,
    ) -> None:
        # Columns: project, requester email, type, requested at, requester, approved,
        # opportunity id, notes.
        self._append_log_row(
            self._config.sheets.inspection_requests_sheet_name,
            [
                project_name or "",
                user.email or "",
                inspection_type,
                datetime.now().isoformat(),
                user.name or "Unassigned",
                "pending",
                opportunity_id or "",
                notes,
            ],
        )

    # Contacts ----------------------------------------------------------------
    def list_contacts(self, user: User, project_id: int) -> List[ContactEmail]:
        self._accessible_project(user, project_id)
        return self._store.list_contact_emails(project_id)

    def add_contact(
        self,
        user: User,
        project_id: int,
        email: str,
        name: str | None = None,
    ) -> ContactEmail:
        project = self._accessible_project(user, project_id)
        email = email.strip()
        if not _EMAIL_RE.match(email):
            raise ValidationError(f"Invalid email address: '{email}'")

        contact = self._store.create_contact_email(
            ContactEmail(project_id=project_id, email=email, name=name)
        )

        self._append_log_row(
            self._config.sheets.contact_emails_sheet_name,
            [
                email,
                project.opportunity_name or "Unknown Project",
                project.company or "Unknown",
                name or "",
            ],
        )

        if self._ghl is not None and self._ghl.is_configured:
            result = self._ghl.sync_contact(contact, project.opportunity_name)
            if result.success:
                self._store.mark_contact_synced(contact.id)
                contact.ghl_synced = True
            else:
                LOGGER.warning("GHL sync failed for contact %s: %s", contact.id, result.error)
        return contact

    def delete_contact(self, user: User, project_id: int, contact_id: int) -> bool:
        self._accessible_project(user, project_id)
        return self._store.delete_contact_email(contact_id, project_id)

    # Files -------------------------------------------------------------------
    def list_files(self, user: User, project_id: int) -> List[ProjectFile]:
        self._accessible_project(user, project_id)
        return self._store.list_project_files(project_id)

    def add_file(
        self,
        user: User,
        project_id: int,
        file_name: str,
        file_url: str,
        file_key: str,
        file_size: int | None = None,
        mime_type: str | None = None,
    ) -> ProjectFile:
        project = self._accessible_project(user, project_id)
        stored = self._store.create_project_file(
            ProjectFile(
                project_id=project_id,
                file_name=file_name,
                file_url=file_url,
                file_key=file_key,
                file_size=file_size,
                mime_type=mime_type,
                uploaded_by=user.email,
            )
        )
        self._append_log_row(
            self._config.sheets.client_uploads_sheet_name,
            [
                project.company or "Unknown",
                project.opportunity_name or "Unknown Project",
                user.email or "Unknown",
                file_url,
            ],
        )
        return stored

    def delete_file(self, user: User, project_id: int, file_id: int) -> bool:
        self._accessible_project(user, project_id)
        return self._store.delete_project_file(file_id, project_id)

    # Dashboards --------------------------------------------------------------
    def dashboard_summary(self, user: User) -> DashboardSummary:
        projects = self._scoped_projects(user)
        completed = sum(
            1 for p in projects if (p.completion_status or "").lower() == "completed"
        )
        by_stage: dict[str, int] = {}
        for project in projects:
            stage = project.stage or "Unknown"
            by_stage[stage] = by_stage.get(stage, 0) + 1

        project_ids = {p.id for p in projects}
        files = [f for f in self._store.list_project_files() if f.project_id in project_ids]
        files.sort(key=lambda f: f.created_at or datetime.min, reverse=True)
        inspections = [i for i in self._store.list_inspections() if i.project_id in project_ids]
        inspections.sort(key=lambda i: i.created_at or datetime.min, reverse=True)

        return DashboardSummary(
            total_projects=len(projects),
            active_projects=len(projects) - completed,
            completed_projects=completed,
            projects_by_stage=by_stage,
            recent_files=files[:5],
            upcoming_inspections=inspections[:10],
        )

    def past_inspections(self, user: User) -> List[PastInspection]:
        """Completed projects followed by rows of the past inspections tab."""

        completed = [
            PastInspection(
                id=f"active-{p.id}",
                project_name=p.opportunity_name or "",
                inspection_type="Completed Project",
                approved_status="Complete",
                date_approved="",
                company=p.company or "",
                source="active",
            )
            for p in self._store.list_projects()
            if (p.stage or "").lower() == "complete" and self._matches_company(user, p.company)
        ]

        try:
            values = self._sheets.fetch_past_inspections()
        except _SHEET_ERRORS:
            LOGGER.exception("Failed to fetch past inspections from Google Sheets")
            return []

        past = build_past_inspections(values, user.company, all_companies_token=self._all)
        LOGGER.info(
            "Found %s completed projects and %s past inspections", len(completed), len(past)
        )
        return completed + past

    def _matches_company(self, user: User, company: str | None) -> bool:
        if self.has_all_companies(user):
            return True
        if not user.company or not company:
            return False
        return _same_company(company, user.company)

    def progress_report(self, user: User, phase: Phase) -> ProgressReport:
        return build_progress_report(self.list_projects(user), phase)

    def staff_workload(self, user: User) -> StaffWorkload:
        return build_staff_workload(self.list_projects(user))

    def admin_analytics(
        self,
        user: User,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AdminAnalytics:
        if not self.has_all_companies(user):
            raise AccessDeniedError("Admin access required")
        return build_admin_analytics(
            self._store.list_projects(),
            self._store.list_inspections(),
            start,
            end,
        )

    # Sheet logging -----------------------------------------------------------
    def _append_log_row(self, sheet_name: str | None, row: Sequence[str]) -> bool:
        if not sheet_name:
            LOGGER.warning("No sheet configured for log row %s; skipping", list(row))
            return False
        try:
            self._sheets.append_rows(sheet_name, [list(row)])
        except _SHEET_ERRORS:
            LOGGER.exception("Failed to append row to '%s': %s", sheet_name, list(row))
            return False
        LOGGER.info("Logged row to '%s'", sheet_name)
        return True


def service_user(company: str = "ALL") -> User:
    """Account used by the CLI for unattended admin operations."""

    return User(open_id="cli", name="cli", role="admin", company=company, login_method="cli")

