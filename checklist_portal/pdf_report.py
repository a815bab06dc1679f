"""PDF exports of the dashboard reports, laid out like the HTML versions."""

from __future__ import annotations

import io
from datetime import datetime
from html import escape
from typing import List, Mapping, Sequence

from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Flowable, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .analytics import AdminAnalytics, ProgressReport, StaffWorkload
from .progress import PHASE_RULES, progress_status

_PAGE_SIZE = landscape(letter)
_MARGIN = 0.5 * inch
# Frames pad their content by 6pt on each side.
_FRAME_WIDTH = _PAGE_SIZE[0] - 2 * _MARGIN - 12
_HEADER_BG = colors.HexColor("#f1f5f9")
_GRID = colors.HexColor("#e2e8f0")
_STATUS_HEX = {
    "green": "#16a34a",
    "blue": "#2563eb",
    "yellow": "#ca8a04",
    "gray": "#64748b",
}


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle("ReportTitle", parent=styles["Title"], fontSize=18, spaceAfter=4))
    styles.add(
        ParagraphStyle(
            "SectionHead",
            parent=styles["Heading2"],
            fontSize=13,
            textColor=colors.HexColor("#0f172a"),
            spaceBefore=14,
            spaceAfter=6,
        )
    )
    styles.add(ParagraphStyle("SmallText", parent=styles["Normal"], fontSize=8, textColor=colors.grey))
    styles.add(ParagraphStyle("Cell", parent=styles["Normal"], fontSize=8, leading=10))
    return styles


def _cell(value: object, styles) -> Flowable:
    if isinstance(value, Flowable):
        return value
    # Paragraph text is markup, so user values must be escaped.
    return Paragraph(escape(str(value)), styles["Cell"])


def _status_cell(percentage: float, styles) -> Paragraph:
    status = progress_status(percentage)
    color = _STATUS_HEX[status.color]
    return Paragraph(f'<font color="{color}">{escape(status.label)}</font>', styles["Cell"])


def _table(headers: Sequence[str], rows: Sequence[Sequence[object]], styles) -> Table:
    data: List[List[object]] = [[_cell(h, styles) for h in headers]]
    data.extend([_cell(value, styles) for value in row] for row in rows)
    table = Table(data, colWidths=[_FRAME_WIDTH / len(headers)] * len(headers), repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
                ("GRID", (0, 0), (-1, -1), 0.5, _GRID),
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _stats(items: Sequence[tuple[str, object]]) -> Table:
    table = Table(
        [[label for label, _ in items], [str(value) for _, value in items]],
        colWidths=[1.6 * inch] * len(items),
    )
    table.setStyle(
        TableStyle(
            [
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, 0), 8),
                ("FONTSIZE", (0, 1), (-1, 1), 16),
                ("TOPPADDING", (0, 1), (-1, 1), 8),
                ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
                ("GRID", (0, 0), (-1, -1), 0.5, _GRID),
            ]
        )
    )
    return table


def _count_rows(counts: Mapping[str, int], skip: str | None = None) -> List[tuple[str, int]]:
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [(name, count) for name, count in ordered if name != skip]


def _build(title: str, story: List[Flowable], generated: datetime | None, styles) -> bytes:
    generated = generated or datetime.now()
    header: List[Flowable] = [
        Paragraph(escape(title), styles["ReportTitle"]),
        Paragraph(f"Generated on {generated.strftime('%Y-%m-%d %H:%M')}", styles["SmallText"]),
        Spacer(1, 12),
    ]
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=_PAGE_SIZE,
        title=title,
        topMargin=_MARGIN,
        bottomMargin=_MARGIN,
        leftMargin=_MARGIN,
        rightMargin=_MARGIN,
    )
    doc.build(header + story)
    return buf.getvalue()


def _section(title: str, styles) -> Paragraph:
    return Paragraph(escape(title), styles["SectionHead"])


def render_progress_report_pdf(report: ProgressReport, generated: datetime | None = None) -> bytes:
    styles = _styles()
    phase = report.phase
    story: List[Flowable] = [
        _stats(
            (
                ("Total Projects", report.total),
                ("Completed", report.completed),
                ("In Progress", report.in_progress),
                ("Not Started", report.not_started),
                ("Average Progress", f"{report.average_progress}%"),
            )
        ),
        _section(f"{phase.display_name} Checklist Steps", styles),
        _table(
            ("Step", "Progress"),
            [
                (step.label.capitalize(), f"{step.percentage:g}%")
                for step in sorted(PHASE_RULES[phase].steps, key=lambda s: s.percentage)
            ],
            styles,
        ),
        _section("Projects", styles),
    ]

    if report.projects:
        table = _table(
            ("Project", "Address", "Stage", "Planning", "Permitting", "Inspections",
             f"Current {phase.display_name} Task", "Status"),
            [
                (
                    entry.project.opportunity_name,
                    entry.project.address or "No address provided",
                    entry.project.stage or "",
                    f"{entry.planning:g}%",
                    f"{entry.permitting:g}%",
                    f"{entry.inspection:g}%",
                    entry.current_value or "Not started",
                    _status_cell(entry.current, styles),
                )
                for entry in report.projects
            ],
            styles,
        )
        story.append(table)
    else:
        story.append(Paragraph("No projects found", styles["SmallText"]))

    story.append(_section("Projects by Stage", styles))
    story.append(
        _table(
            ("Stage", "Projects", "Average Progress"),
            [(s.stage, s.project_count, f"{s.average_progress}%") for s in report.stages],
            styles,
        )
    )
    return _build(f"Project Progress Report - {phase.display_name} Checklist", story, generated, styles)


def render_staff_workload_pdf(workload: StaffWorkload, generated: datetime | None = None) -> bytes:
    styles = _styles()
    story: List[Flowable] = [
        _stats(
            (
                ("Total Staff", workload.total_staff),
                ("Tasks Completed", workload.tasks_completed),
                ("Tasks Remaining", workload.tasks_remaining),
                ("Avg Tasks/Staff", workload.average_tasks_per_staff),
            )
        ),
        _section("Staff Workload Details", styles),
        _table(
            ("Name", "Role", "Projects", "Completed", "Remaining"),
            [
                (m.name, m.role, m.total_projects, m.total_completed_tasks, m.total_remaining_tasks)
                for m in workload.staff
            ],
            styles,
        ),
    ]
    for member in workload.staff:
        story.append(_section(f"{member.name} ({member.role})", styles))
        story.append(
            _table(
                ("Project", "Stage", "Checklist", "Current Task", "Steps"),
                [
                    (
                        a.project_name,
                        a.stage or "",
                        a.phase.display_name,
                        a.checklist_value or "Not started",
                        f"{a.completed_tasks}/{a.total_tasks}",
                    )
                    for a in member.assignments
                ],
                styles,
            )
        )
    return _build("Staff Workload Report", story, generated, styles)


def render_admin_analytics_pdf(analytics: AdminAnalytics, generated: datetime | None = None) -> bytes:
    styles = _styles()
    results = analytics.inspection_results
    proposals = analytics.proposals
    period = f"{analytics.start.strftime('%Y-%m-%d')} to {analytics.end.strftime('%Y-%m-%d')}"

    story: List[Flowable] = [
        _stats(
            (
                ("Total Projects", analytics.total_projects),
                ("Completed", analytics.completed_projects),
                ("Completion", f"{analytics.completion_percentage}%"),
                ("Inspections", analytics.total_inspections_in_range),
            )
        ),
        Paragraph(f"Inspections counted from {period}", styles["SmallText"]),
        _section("Inspection Results", styles),
        _stats(
            (
                ("Approved", f"{results.approved} ({results.share(results.approved)}%)"),
                ("Denied", f"{results.denied} ({results.share(results.denied)}%)"),
                ("Partial", f"{results.partial} ({results.share(results.partial)}%)"),
                ("Total Results", results.total),
            )
        ),
        _section("Proposal Status", styles),
        _stats(
            (
                ("In Proposal Stage", proposals.total_in_proposal_stage),
                ("Sent", proposals.proposals_sent),
                ("Signed", proposals.proposals_signed),
                ("Stuck", proposals.stuck),
                ("Signed Rate", f"{proposals.signed_rate}%"),
            )
        ),
        _section("Projects by Stage", styles),
        _table(("Stage", "Projects"), _count_rows(analytics.projects_by_stage), styles),
    ]
    for heading, counts in (
        ("Inspector", analytics.inspector_workload),
        ("Permit Tech", analytics.permit_tech_workload),
        ("Plans Examiner", analytics.plans_examiner_workload),
    ):
        rows = _count_rows(counts, skip="Unassigned")
        story.append(_section(f"{heading} Workload", styles))
        if rows:
            story.append(_table((heading, "Projects"), rows, styles))
        else:
            story.append(Paragraph("No data", styles["SmallText"]))

    story.append(_section("Weekly Inspection Trend", styles))
    story.append(
        _table(("Week", "Inspections"), [(w.week, w.count) for w in analytics.weekly_trend], styles)
    )
    return _build("Admin Analytics Report", story, generated, styles)
