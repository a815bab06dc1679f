"""Dashboard aggregates built from synced projects.

Every percentage here comes from :mod:`checklist_portal.progress`; nothing in
this module interprets checklist text on its own.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from .models import Inspection, Project
from .progress import Phase, classify, progress_status, round_half_up, step_count, step_index

CHECKLIST_FIELDS: Dict[Phase, str] = {
    Phase.PLANNING: "planning_checklist",
    Phase.PERMITTING: "permitting_checklist",
    Phase.INSPECTION: "inspection_checklist",
}

# (role, project field holding assigned names, phase the role is measured on)
STAFF_ROLES: Sequence[tuple[str, str, Phase]] = (
    ("Permit Tech", "assigned_permit_tech", Phase.PLANNING),
    ("Plans Examiner", "assigned_plans_examiner", Phase.PERMITTING),
    ("Inspector", "assigned_inspector", Phase.INSPECTION),
)

COMPLETED_STAGE_MARKERS = ("complete inspection", "completed", "complete", "done")
UNASSIGNED = "Unassigned"
UNKNOWN_STAGE = "Unknown"


def checklist_value(project: Project, phase: Phase) -> str:
    return getattr(project, CHECKLIST_FIELDS[phase]) or ""


# Progress report ---------------------------------------------------------------


@dataclass(slots=True)
class ProjectProgress:
    project: Project
    planning: float
    permitting: float
    inspection: float
    current: float  # progress in the phase the report is built for
    current_value: str

    @property
    def status_label(self) -> str:
        return progress_status(self.current).label

    def for_phase(self, phase: Phase) -> float:
        return getattr(self, phase.value)


@dataclass(slots=True)
class StageProgress:
    stage: str
    project_count: int
    average_progress: int


@dataclass(slots=True)
class ProgressReport:
    phase: Phase
    projects: List[ProjectProgress]
    completed: int
    in_progress: int
    not_started: int
    average_progress: int
    stages: List[StageProgress]

    @property
    def total(self) -> int:
        return len(self.projects)


def project_progress(project: Project, phase: Phase = Phase.PLANNING) -> ProjectProgress:
    current_value = checklist_value(project, phase)
    return ProjectProgress(
        project=project,
        planning=classify(project.planning_checklist, Phase.PLANNING),
        permitting=classify(project.permitting_checklist, Phase.PERMITTING),
        inspection=classify(project.inspection_checklist, Phase.INSPECTION),
        current=classify(current_value, phase),
        current_value=current_value,
    )


def build_progress_report(projects: Iterable[Project], phase: Phase) -> ProgressReport:
    entries = [project_progress(project, phase) for project in projects]
    # Stable sort keeps the incoming (newest first) order among ties.
    entries.sort(key=lambda entry: entry.current, reverse=True)

    total = len(entries)
    average = round_half_up(sum(e.current for e in entries) / total) if total else 0

    by_stage: Dict[str, List[ProjectProgress]] = {}
    for entry in entries:
        by_stage.setdefault(entry.project.stage or UNKNOWN_STAGE, []).append(entry)
    stages = [
        StageProgress(
            stage=stage,
            project_count=len(members),
            average_progress=round_half_up(sum(m.current for m in members) / len(members)),
        )
        for stage, members in by_stage.items()
    ]
    stages.sort(key=lambda s: s.project_count, reverse=True)

    return ProgressReport(
        phase=phase,
        projects=entries,
        completed=sum(1 for e in entries if e.current >= 100),
        in_progress=sum(1 for e in entries if 0 < e.current < 100),
        not_started=sum(1 for e in entries if e.current == 0),
        average_progress=average,
        stages=stages,
    )


# Staff workload ----------------------------------------------------------------


@dataclass(slots=True)
class StaffAssignment:
    project_id: Optional[int]
    project_name: str
    stage: str
    phase: Phase
    checklist_value: str
    completed_tasks: int
    total_tasks: int

    @property
    def remaining_tasks(self) -> int:
        return self.total_tasks - self.completed_tasks


@dataclass(slots=True)
class StaffMember:
    name: str
    role: str
    assignments: List[StaffAssignment] = field(default_factory=list)

    @property
    def total_completed_tasks(self) -> int:
        return sum(a.completed_tasks for a in self.assignments)

    @property
    def total_remaining_tasks(self) -> int:
        return sum(a.remaining_tasks for a in self.assignments)

    @property
    def total_projects(self) -> int:
        return len(self.assignments)


@dataclass(slots=True)
class StaffWorkload:
    staff: List[StaffMember]

    @property
    def total_staff(self) -> int:
        return len(self.staff)

    @property
    def tasks_completed(self) -> int:
        return sum(member.total_completed_tasks for member in self.staff)

    @property
    def tasks_remaining(self) -> int:
        return sum(member.total_remaining_tasks for member in self.staff)

    @property
    def average_tasks_per_staff(self) -> int:
        if not self.staff:
            return 0
        return round_half_up((self.tasks_completed + self.tasks_remaining) / self.total_staff)

    def get(self, name: str) -> Optional[StaffMember]:
        for member in self.staff:
            if member.name == name:
                return member
        return None


def split_names(value: str | None) -> List[str]:
    return [name.strip() for name in (value or "").split(",") if name.strip()]


def build_staff_workload(projects: Iterable[Project]) -> StaffWorkload:
    """Count completed and remaining checklist steps per assigned staff member.

    Staff are keyed by name alone; someone listed under two roles keeps the
    role they were first seen with and collects assignments from both.
    """

    members: Dict[str, StaffMember] = {}
    for project in projects:
        for role, assignment_field, phase in STAFF_ROLES:
            names = split_names(getattr(project, assignment_field))
            if not names:
                continue
            value = checklist_value(project, phase)
            completed = step_index(value, phase)
            total = step_count(phase)
            for name in names:
                member = members.setdefault(name, StaffMember(name=name, role=role))
                member.assignments.append(
                    StaffAssignment(
                        project_id=project.id,
                        project_name=project.opportunity_name,
                        stage=project.stage,
                        phase=phase,
                        checklist_value=value,
                        completed_tasks=completed,
                        total_tasks=total,
                    )
                )

    staff = sorted(members.values(), key=lambda m: m.total_remaining_tasks, reverse=True)
    return StaffWorkload(staff=staff)


# Admin analytics ---------------------------------------------------------------


@dataclass(slots=True)
class InspectionResultsTally:
    approved: int = 0
    denied: int = 0
    partial: int = 0

    @property
    def total(self) -> int:
        return self.approved + self.denied + self.partial

    def share(self, count: int) -> int:
        return round_half_up(count / self.total * 100) if self.total else 0


@dataclass(slots=True)
class ProposalsTally:
    total_in_proposal_stage: int = 0
    proposals_sent: int = 0
    proposals_signed: int = 0
    stuck: int = 0

    @property
    def signed_rate(self) -> int:
        if not self.proposals_sent:
            return 0
        return round_half_up(self.proposals_signed / self.proposals_sent * 100)


@dataclass(slots=True)
class WeeklyCount:
    week: str
    count: int


@dataclass(slots=True)
class AdminAnalytics:
    total_projects: int
    completed_projects: int
    completion_percentage: int
    projects_by_stage: Dict[str, int]
    inspector_workload: Dict[str, int]
    permit_tech_workload: Dict[str, int]
    plans_examiner_workload: Dict[str, int]
    total_inspections_in_range: int
    inspections_by_status: Dict[str, int]
    inspections_by_type: Dict[str, int]
    weekly_trend: List[WeeklyCount]
    inspection_results: InspectionResultsTally
    proposals: ProposalsTally
    start: datetime
    end: datetime


def parse_inspection_result(text: str | None) -> Optional[str]:
    if not text:
        return None
    lower = text.lower()
    for outcome in ("approved", "denied", "partial"):
        if outcome in lower:
            return outcome
    return None


def _is_yes(value: str | None) -> bool:
    return (value or "").strip().lower() == "yes"


def _workload(projects: Sequence[Project], attribute: str) -> Dict[str, int]:
    return dict(Counter(getattr(p, attribute) or UNASSIGNED for p in projects))


def build_admin_analytics(
    projects: Iterable[Project],
    inspections: Iterable[Inspection],
    start: datetime | None = None,
    end: datetime | None = None,
    *,
    now: datetime | None = None,
) -> AdminAnalytics:
    projects = list(projects)
    inspections = list(inspections)
    now = now or datetime.now()
    if start is None:
        start = datetime(now.year, now.month, now.day) - timedelta(days=7)
    end = end or now

    completed_projects = sum(
        1
        for p in projects
        if any(marker in (p.stage or "").lower() for marker in COMPLETED_STAGE_MARKERS)
    )
    completion_percentage = (
        round_half_up(completed_projects / len(projects) * 100) if projects else 0
    )

    in_range = [
        i for i in inspections if i.created_at is not None and start <= i.created_at <= end
    ]

    weekly_trend: List[WeeklyCount] = []
    for weeks_back in range(3, -1, -1):
        week_start = now - timedelta(days=(weeks_back + 1) * 7)
        week_end = now - timedelta(days=weeks_back * 7)
        count = sum(
            1
            for i in inspections
            if i.created_at is not None and week_start <= i.created_at < week_end
        )
        weekly_trend.append(WeeklyCount(week=f"Week {4 - weeks_back}", count=count))

    results = InspectionResultsTally()
    for project in projects:
        for text in project.inspection_results:
            outcome = parse_inspection_result(text)
            if outcome:
                setattr(results, outcome, getattr(results, outcome) + 1)

    proposal_projects = [p for p in projects if "proposal" in (p.stage or "").lower()]
    proposals = ProposalsTally(
        total_in_proposal_stage=len(proposal_projects),
        proposals_sent=sum(1 for p in projects if _is_yes(p.proposal_sent)),
        proposals_signed=sum(1 for p in projects if _is_yes(p.proposal_signed)),
        # Stuck: sent but not signed, or never sent.
        stuck=sum(
            1
            for p in proposal_projects
            if not (_is_yes(p.proposal_sent) and _is_yes(p.proposal_signed))
        ),
    )

    return AdminAnalytics(
        total_projects=len(projects),
        completed_projects=completed_projects,
        completion_percentage=completion_percentage,
        projects_by_stage=dict(Counter(p.stage or UNKNOWN_STAGE for p in projects)),
        inspector_workload=_workload(projects, "assigned_inspector"),
        permit_tech_workload=_workload(projects, "assigned_permit_tech"),
        plans_examiner_workload=_workload(projects, "assigned_plans_examiner"),
        total_inspections_in_range=len(in_range),
        inspections_by_status=dict(Counter(i.status or "pending" for i in in_range)),
        inspections_by_type=dict(Counter(i.inspection_type or "Unknown" for i in in_range)),
        weekly_trend=weekly_trend,
        inspection_results=results,
        proposals=proposals,
        start=start,
        end=end,
    )
