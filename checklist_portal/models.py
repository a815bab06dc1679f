from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

INSPECTION_STATUSES = ("pending", "scheduled", "completed", "cancelled")


@dataclass(slots=True)
class User:
    """Portal account, either created locally or mirrored from the logins tab."""

    open_id: str
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    login_method: Optional[str] = None
    role: str = "user"
    company: Optional[str] = None  # "ALL" grants access to every company
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_signed_in: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(slots=True)
class Project:
    """A single row of the projects tab after normalization."""

    opportunity_name: str
    email: str = ""
    contact_name: str = ""
    phone: str = ""
    pipeline: str = ""
    stage: str = ""
    lead_value: str = ""
    source: str = ""
    assigned: str = ""
    created_on: str = ""
    updated_on: str = ""
    lost_reason_id: str = ""
    lost_reason_name: str = ""
    followers: str = ""
    notes: str = ""
    tag: str = ""
    address: str = ""
    subdivision: str = ""
    lot_number: str = ""
    permit_number: str = ""
    assigned_permit_tech: str = ""
    assigned_plans_examiner: str = ""
    assigned_inspector: str = ""
    planning_checklist: str = ""
    permitting_checklist: str = ""
    inspection_checklist: str = ""
    inspection1_result: str = ""
    inspection2_result: str = ""
    inspection3_result: str = ""
    inspection1_type: str = ""
    inspection2_type: str = ""
    inspection3_type: str = ""
    inspection4_type: str = ""
    inspection5_type: str = ""
    proposal_sent: str = ""
    proposal_signed: str = ""
    company: str = ""
    completion_status: str = ""
    opportunity_id: str = ""
    last_updated: Optional[datetime] = None
    synced_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def inspection_results(self) -> tuple[str, str, str]:
        return (self.inspection1_result, self.inspection2_result, self.inspection3_result)


@dataclass(slots=True)
class Inspection:
    project_id: int
    inspection_type: str
    notes: Optional[str] = None
    status: str = "pending"
    project_name: Optional[str] = None
    project_address: Optional[str] = None
    opportunity_id: Optional[str] = None
    ghl_synced: bool = False
    ghl_id: Optional[str] = None
    created_by: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class ContactEmail:
    project_id: int
    email: str
    name: Optional[str] = None
    ghl_synced: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(slots=True)
class ProjectFile:
    project_id: int
    file_name: str
    file_url: str
    file_key: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class PastInspection:
    """Completed project or historical inspection shown on the history page."""

    id: str
    project_name: str
    inspection_type: str
    approved_status: str
    date_approved: str
    company: str
    source: str  # "active" for completed projects, "past" for sheet rows


@dataclass(slots=True)
class Credentials:
    """Outcome of a successful lookup in the logins tab."""

    email: str
    role: str
    company: str


@dataclass(slots=True)
class DashboardSummary:
    total_projects: int
    active_projects: int
    completed_projects: int
    projects_by_stage: dict[str, int] = field(default_factory=dict)
    recent_files: list[ProjectFile] = field(default_factory=list)
    upcoming_inspections: list[Inspection] = field(default_factory=list)
