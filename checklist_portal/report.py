"""Printable HTML exports of the dashboard reports."""

from __future__ import annotations

from datetime import date, datetime
from html import escape
from textwrap import dedent
from typing import Iterable, Mapping, Sequence

from .analytics import AdminAnalytics, ProgressReport, StaffWorkload
from .progress import PHASE_RULES, Phase, bar_color

_BAR_HEX = {
    "green": "#16a34a",
    "blue": "#2563eb",
    "yellow": "#eab308",
    "orange": "#f97316",
    "light-orange": "#fb923c",
    "slate": "#cbd5e1",
}

_PAGE = dedent(
    """
    <!DOCTYPE html>
    <html lang="en">
    <head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>
      body {{ font-family: system-ui, -apple-system, sans-serif; padding: 20px; color: #0f172a; }}
      h1 {{ font-size: 24px; margin-bottom: 8px; }}
      h2 {{ font-size: 18px; margin-bottom: 12px; }}
      .muted {{ color: #666; }}
      section {{ margin-bottom: 24px; padding: 16px; border: 1px solid #e2e8f0; border-radius: 8px; }}
      .stats {{ display: flex; gap: 40px; flex-wrap: wrap; }}
      .stat-value {{ font-size: 32px; font-weight: bold; }}
      table {{ width: 100%; border-collapse: collapse; }}
      th, td {{ padding: 8px; text-align: left; border-bottom: 1px solid #e2e8f0; }}
      .bar {{ background: #e2e8f0; border-radius: 4px; height: 8px; width: 160px; }}
      .bar > div {{ height: 8px; border-radius: 4px; }}
    </style>
    </head>
    <body>
    <h1>{title}</h1>
    <p class="muted">Generated on {generated}</p>
    {body}
    </body>
    </html>
    """
).strip()


def _page(title: str, sections: Iterable[str], generated: datetime | None = None) -> str:
    generated = generated or datetime.now()
    return _PAGE.format(
        title=escape(title),
        generated=escape(generated.strftime("%Y-%m-%d %H:%M")),
        body="\n".join(sections),
    )


def _format_percentage(value: float) -> str:
    return f"{value:g}%"


def _bar(percentage: float) -> str:
    width = max(0.0, min(percentage, 100.0))
    color = _BAR_HEX[bar_color(percentage)]
    return f'<div class="bar"><div style="width: {width:g}%; background: {color};"></div></div>'


def _stats(items: Sequence[tuple[str, object]]) -> str:
    cells = "".join(
        f'<div><div class="stat-value">{escape(str(value))}</div>'
        f'<div class="muted">{escape(label)}</div></div>'
        for label, value in items
    )
    return f'<div class="stats">{cells}</div>'


def _table(headers: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Build a table; cells must already be escaped HTML."""

    head = "".join(f"<th>{escape(h)}</th>" for h in headers)
    body = "".join("<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>" for row in rows)
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def _section(title: str, content: str) -> str:
    return f"<section><h2>{escape(title)}</h2>{content}</section>"


def _count_table(heading: str, counts: Mapping[str, int]) -> str:
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    rows = [(escape(name), str(count)) for name, count in ordered]
    if not rows:
        return "<p class='muted'>No data</p>"
    return _table((heading, "Projects"), rows)


def render_progress_report(report: ProgressReport, generated: datetime | None = None) -> str:
    phase = report.phase
    title = f"Project Progress Report - {phase.display_name} Checklist"

    summary = _section(
        "Summary",
        _stats(
            (
                ("Total Projects", report.total),
                ("Completed", report.completed),
                ("In Progress", report.in_progress),
                ("Not Started", report.not_started),
                ("Average Progress", f"{report.average_progress}%"),
            )
        ),
    )

    legend_rows = [
        (escape(step.label.capitalize()), _format_percentage(step.percentage))
        for step in sorted(PHASE_RULES[phase].steps, key=lambda s: s.percentage)
    ]
    legend = _section(f"{phase.display_name} Checklist Steps", _table(("Step", "Progress"), legend_rows))

    project_rows = [
        (
            escape(entry.project.opportunity_name),
            escape(entry.project.address or "No address provided"),
            escape(entry.project.stage or ""),
            _format_percentage(entry.planning),
            _format_percentage(entry.permitting),
            _format_percentage(entry.inspection),
            escape(entry.current_value or "Not started"),
            escape(entry.status_label),
        )
        for entry in report.projects
    ]
    projects = _section(
        "Projects",
        _table(
            (
                "Project",
                "Address",
                "Stage",
                "Planning",
                "Permitting",
                "Inspections",
                f"Current {phase.display_name} Task",
                "Status",
            ),
            project_rows,
        )
        if project_rows
        else "<p class='muted'>No projects found</p>",
    )

    stage_rows = [
        (
            escape(stage.stage),
            str(stage.project_count),
            f"{stage.average_progress}%",
            _bar(stage.average_progress),
        )
        for stage in report.stages
    ]
    stages = _section(
        "Projects by Stage",
        _table(("Stage", "Projects", "Average Progress", ""), stage_rows),
    )

    return _page(title, (summary, legend, projects, stages), generated)


def render_staff_workload(workload: StaffWorkload, generated: datetime | None = None) -> str:
    summary = _section(
        "Summary",
        _stats(
            (
                ("Total Staff", workload.total_staff),
                ("Tasks Completed", workload.tasks_completed),
                ("Tasks Remaining", workload.tasks_remaining),
                ("Avg Tasks/Staff", workload.average_tasks_per_staff),
            )
        ),
    )

    staff_rows = [
        (
            escape(member.name),
            escape(member.role),
            str(member.total_projects),
            str(member.total_completed_tasks),
            str(member.total_remaining_tasks),
        )
        for member in workload.staff
    ]
    details = _section(
        "Staff Workload Details",
        _table(("Name", "Role", "Projects", "Completed", "Remaining"), staff_rows),
    )

    member_sections = []
    for member in workload.staff:
        rows = [
            (
                escape(assignment.project_name),
                escape(assignment.stage or ""),
                escape(assignment.phase.display_name),
                escape(assignment.checklist_value or "Not started"),
                f"{assignment.completed_tasks}/{assignment.total_tasks}",
            )
            for assignment in member.assignments
        ]
        member_sections.append(
            _section(
                f"{member.name} ({member.role})",
                _table(("Project", "Stage", "Checklist", "Current Task", "Steps"), rows),
            )
        )

    return _page("Staff Workload Report", (summary, details, *member_sections), generated)


def render_admin_analytics(analytics: AdminAnalytics, generated: datetime | None = None) -> str:
    results = analytics.inspection_results
    proposals = analytics.proposals
    period = (
        f"{analytics.start.strftime('%Y-%m-%d')} to {analytics.end.strftime('%Y-%m-%d')}"
    )

    overview = _section(
        "Overview",
        _stats(
            (
                ("Total Projects", analytics.total_projects),
                ("Completed Projects", analytics.completed_projects),
                ("Completion", f"{analytics.completion_percentage}%"),
                (f"Inspections ({period})", analytics.total_inspections_in_range),
            )
        ),
    )
    inspection_results = _section(
        "Inspection Results",
        _stats(
            (
                (f"Approved ({results.share(results.approved)}% of total)", results.approved),
                (f"Denied ({results.share(results.denied)}% of total)", results.denied),
                (f"Partial ({results.share(results.partial)}% of total)", results.partial),
                ("Total Results", results.total),
            )
        ),
    )
    proposal_status = _section(
        "Proposal Status",
        _stats(
            (
                ("In Proposal Stage", proposals.total_in_proposal_stage),
                ("Proposals Sent", proposals.proposals_sent),
                ("Proposals Signed", proposals.proposals_signed),
                ("Stuck", proposals.stuck),
                ("Signed Rate", f"{proposals.signed_rate}%"),
            )
        ),
    )
    trend = _section(
        "Weekly Inspection Trend",
        _table(
            ("Week", "Inspections"),
            [(escape(w.week), str(w.count)) for w in analytics.weekly_trend],
        ),
    )

    def _without_unassigned(counts: Mapping[str, int]) -> Mapping[str, int]:
        return {name: count for name, count in counts.items() if name != "Unassigned"}

    sections = (
        overview,
        inspection_results,
        proposal_status,
        _section("Projects by Stage", _count_table("Stage", analytics.projects_by_stage)),
        _section(
            "Inspector Workload",
            _count_table("Inspector", _without_unassigned(analytics.inspector_workload)),
        ),
        _section(
            "Permit Tech Workload",
            _count_table("Permit Tech", _without_unassigned(analytics.permit_tech_workload)),
        ),
        _section(
            "Plans Examiner Workload",
            _count_table(
                "Plans Examiner", _without_unassigned(analytics.plans_examiner_workload)
            ),
        ),
        trend,
    )
    return _page("Admin Analytics Report", sections, generated)


def default_report_name(
    kind: str,
    phase: Phase | None = None,
    today: date | None = None,
    extension: str = "html",
) -> str:
    today = today or date.today()
    if phase is not None:
        return f"{kind}-{phase.value}-{today.isoformat()}.{extension}"
    return f"{kind}-{today.isoformat()}.{extension}"

