"""Tabular projections of a report for CSV sinks.

Each projection returns ``(headers, rows)``; column orders are part of the
public contract.
"""

import csv
import io

from pm_analytics.aggregations import non_compliant_issues
from pm_analytics.criteria import CRITERIA
from pm_analytics.dod import dod_violations
from pm_analytics.exceptions import UnknownTableError
from pm_analytics.models import Report

NON_COMPLIANT_HEADERS = [
    "Issue ID",
    "Title",
    "State",
    "Compliance Score",
    "Violations",
    *(criterion.column for criterion in CRITERIA),
    "Created At",
    "Updated At",
    "Author",
    "Current Assignees",
    "Epic",
    "Milestone",
    "URL",
]

DOD_VIOLATION_HEADERS = [
    "Issue ID",
    "Title",
    "Type",
    "State",
    "DoD Template",
    "Compliance %",
    "Missing Items",
    "URL",
]

AUTHOR_ROLLUP_HEADERS = [
    "Author",
    "Issue Count",
    "Total Violations",
    "High Severity",
    "Medium Severity",
    "Low Severity",
    "Violations By Criterion",
]

TEAM_ATTRIBUTION_HEADERS = [
    "Initiative",
    "Primary Team",
    "Team Count",
    "Is Multi-Team",
    "Unassigned Issues",
    "Team",
    "Issue Count",
    "Open Issues",
    "Closed Issues",
    "Completion Rate %",
    "Story Points",
    "Member Count",
    "Percentage of Initiative",
]

TEAM_CAPACITY_HEADERS = [
    "Team",
    "Member Count",
    "Total Initiatives",
    "Active Initiatives",
    "Open Issues",
    "Total Issues",
    "Completion Rate %",
    "Capacity Status",
    "Capacity Score",
    "Initiative List",
]

CONTENTION_HEADERS = [
    "Name",
    "Username",
    "Initiative Count",
    "Total Open Issues",
    "High Priority Issues",
    "Teams",
    "Contention Level",
    "Status",
]

DEPENDENCY_HEADERS = [
    "Initiative",
    "Status",
    "Progress %",
    "Depends On Initiative",
    "Dependency Status",
    "Dependency Progress %",
    "Total Dependencies",
    "Open Dependencies",
    "Severity",
    "Is Blocking",
]

FORECAST_HEADERS = [
    "Initiative",
    "Status",
    "Progress %",
    "Due Date",
    "Forecast Date",
    "Gap (Weeks)",
    "Forecast Status",
    "Weeks Remaining",
    "Confidence %",
    "Optimistic (Weeks)",
    "Pessimistic (Weeks)",
    "Weekly Velocity",
    "Sample Weeks",
    "Remaining Issues",
]


def _yes_no(flag: bool) -> str:
    return "YES" if flag else "NO"


def _weeks(value: float | None) -> str:
    return "-" if value is None else f"{value:.1f}"


def non_compliant_table(report: Report) -> tuple[list[str], list[list]]:
    rows = []
    for result in non_compliant_issues(report.compliance_results):
        issue = result.issue
        failed = {violation.criterion for violation in result.violations}
        rows.append([
            issue.iid,
            issue.title,
            issue.state,
            f"{result.compliance_score}%",
            len(result.violations),
            *(_yes_no(criterion.key in failed) for criterion in CRITERIA),
            issue.created_at.date().isoformat(),
            issue.updated_at.date().isoformat() if issue.updated_at else "",
            issue.author.display_name if issue.author else "Unknown",
            "; ".join(a.display_name for a in issue.assignees) or "None",
            issue.epic.title if issue.epic else "None",
            issue.milestone.title if issue.milestone else "None",
            issue.web_url,
        ])
    return NON_COMPLIANT_HEADERS, rows


def dod_violations_table(report: Report) -> tuple[list[str], list[list]]:
    rows = [
        [
            result.issue.iid,
            result.issue.title,
            result.issue_type,
            result.issue.state,
            result.template,
            f"{result.compliance_percentage}%",
            "; ".join(item.label for item in result.missing_items),
            result.issue.web_url,
        ]
        for result in dod_violations(report.dod_results)
    ]
    return DOD_VIOLATION_HEADERS, rows


def author_rollup_table(report: Report) -> tuple[list[str], list[list]]:
    rows = [
        [
            author.name,
            author.issue_count,
            author.total_violations,
            author.high,
            author.medium,
            author.low,
            "; ".join(f"{c.name}: {c.count}" for c in author.by_criterion),
        ]
        for author in report.author_rollup
    ]
    return AUTHOR_ROLLUP_HEADERS, rows


def team_attribution_table(report: Report) -> tuple[list[str], list[list]]:
    rows = []
    for attribution in report.initiative_attributions:
        primary = next(
            (s.name for s in attribution.teams if s.team == attribution.primary_team),
            attribution.primary_team,
        )
        lead = [
            attribution.initiative_name,
            primary,
            attribution.team_count,
            "Yes" if attribution.is_multi_team else "No",
            attribution.unassigned_issues,
        ]
        if not attribution.teams:
            rows.append(lead + ["No teams assigned"] + ["-"] * 7)
            continue
        for index, share in enumerate(attribution.teams):
            rows.append((lead if index == 0 else [""] * len(lead)) + [
                share.name,
                share.issue_count,
                share.open_issues,
                share.closed_issues,
                f"{share.completion_rate}%",
                share.story_points,
                share.member_count,
                f"{share.percentage}%",
            ])
    return TEAM_ATTRIBUTION_HEADERS, rows


def team_capacity_table(report: Report) -> tuple[list[str], list[list]]:
    rows = [
        [
            team.name,
            team.member_count,
            team.initiative_count,
            team.active_initiative_count,
            team.open_issue_count,
            team.total_issue_count,
            f"{team.completion_rate}%",
            team.capacity_status,
            team.capacity_score,
            "; ".join(f"{i.name} ({i.progress}%)" for i in team.initiatives),
        ]
        for team in report.team_capacity
    ]
    return TEAM_CAPACITY_HEADERS, rows


def contention_table(report: Report) -> tuple[list[str], list[list]]:
    rows = [
        [
            person.name,
            person.username,
            person.initiative_count,
            person.total_issues,
            person.high_priority_count,
            ", ".join(person.teams),
            person.contention_level,
            person.level_label,
        ]
        for person in report.contention
    ]
    return CONTENTION_HEADERS, rows


def dependencies_table(report: Report) -> tuple[list[str], list[list]]:
    by_slug = {initiative.slug: initiative for initiative in report.initiatives}
    rows = []
    previous = None
    for edge in report.dependencies:
        source, target = by_slug[edge.source], by_slug[edge.target]
        if edge.source != previous:
            lead = [source.name, source.status, source.progress]
        else:
            lead = ["", "", ""]
        previous = edge.source
        rows.append(lead + [
            target.name,
            target.status,
            target.progress,
            edge.count,
            edge.open_count,
            edge.severity,
            "Yes" if edge.open_count > 0 else "No",
        ])
    return DEPENDENCY_HEADERS, rows


def forecasts_table(report: Report) -> tuple[list[str], list[list]]:
    by_slug = {initiative.slug: initiative for initiative in report.initiatives}
    rows = []
    for forecast in report.forecasts:
        initiative = by_slug[forecast.initiative]
        comparison = forecast.comparison
        rows.append([
            forecast.initiative_name,
            initiative.status,
            initiative.progress,
            forecast.due_date.isoformat() if forecast.due_date else "No due date",
            forecast.forecast_date.date().isoformat() if forecast.forecast_date else "Cannot forecast",
            comparison.weeks_gap if comparison.weeks_gap is not None else "-",
            comparison.status,
            _weeks(forecast.weeks_to_done),
            forecast.confidence,
            _weeks(forecast.variance.optimistic_weeks),
            _weeks(forecast.variance.pessimistic_weeks),
            f"{forecast.velocity.weekly_average:.1f}",
            forecast.velocity.sample_size,
            forecast.remaining_issues,
        ])
    return FORECAST_HEADERS, rows


TABLES = {
    "non-compliant": non_compliant_table,
    "dod-violations": dod_violations_table,
    "author-rollup": author_rollup_table,
    "team-attribution": team_attribution_table,
    "team-capacity": team_capacity_table,
    "contention": contention_table,
    "dependencies": dependencies_table,
    "forecasts": forecasts_table,
}


def to_csv(headers: list[str], rows: list[list]) -> str:
    """Encode a table as CSV text with ``\\n`` line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def export_table(report: Report, table: str) -> str:
    """CSV text for a named projection.

    Raises:
        UnknownTableError: If ``table`` is not a known projection
    """
    projection = TABLES.get(table)
    if projection is None:
        raise UnknownTableError(
            f"Unknown table '{table}'. Choose one of: {', '.join(sorted(TABLES))}"
        )
    return to_csv(*projection(report))
