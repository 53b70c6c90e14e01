"""Initiative inference.

Initiatives are synthesised from ``initiative::<slug>`` labels on epics and
issues. An initiative owns the epics carrying its label, every issue under
those epics (including child epics), and every issue carrying the label
directly.
"""

from dataclasses import replace
from datetime import datetime

from pm_analytics.config import EffectiveConfig
from pm_analytics.forecast import closed_within_window, forecast_initiative
from pm_analytics.labels import has_blocker_label, humanize_slug, initiative_slugs, priority_level
from pm_analytics.mathutil import percentage
from pm_analytics.models import Epic, Initiative, Snapshot


def _descendant_epic_ids(root_ids: set[int], epics) -> set[int]:
    """``root_ids`` plus every epic whose parent chain reaches one of them."""
    children: dict[int, list[int]] = {}
    for epic in epics:
        if epic.parent_id is not None:
            children.setdefault(epic.parent_id, []).append(epic.id)

    found = set(root_ids)
    stack = list(root_ids)
    while stack:
        for child in children.get(stack.pop(), []):
            if child not in found:
                found.add(child)
                stack.append(child)
    return found


def derive_status(initiative: Initiative, comparison_status: str | None,
                  config: EffectiveConfig, now: datetime) -> str:
    """complete > blocked > at-risk > in-progress > not-started."""
    if initiative.total_issues > 0 and initiative.open_issues == 0:
        return "complete"
    if any(issue.is_open and has_blocker_label(issue.labels) for issue in initiative.issues):
        return "blocked"
    if initiative.due_date is not None and comparison_status == "at-risk":
        return "at-risk"
    if closed_within_window(initiative.issues, now, config.forecast_window_weeks):
        return "in-progress"
    return "not-started"


def _build(slug: str, epics: list[Epic], snapshot: Snapshot) -> Initiative:
    epic_ids = _descendant_epic_ids({epic.id for epic in epics}, snapshot.epics)
    issues = tuple(sorted(
        (
            issue for issue in snapshot.issues
            if slug in initiative_slugs(issue.labels)
            or (issue.epic is not None and issue.epic.id in epic_ids)
        ),
        key=lambda issue: issue.id,
    ))

    total = len(issues)
    closed = sum(1 for issue in issues if not issue.is_open)

    start_dates = [epic.start_date for epic in epics if epic.start_date]
    due_dates = [epic.end_date for epic in epics if epic.end_date]
    if not due_dates:
        due_dates = [issue.due_date for issue in issues if issue.due_date]

    labels = [label for epic in epics for label in epic.labels]
    labels += [label for issue in issues for label in issue.labels]

    return Initiative(
        slug=slug,
        name=humanize_slug(slug),
        epics=tuple(sorted(epics, key=lambda epic: epic.id)),
        issues=issues,
        total_issues=total,
        closed_issues=closed,
        open_issues=total - closed,
        progress=percentage(closed, total),
        status="not-started",
        priority=priority_level(labels),
        start_date=min(start_dates) if start_dates else None,
        due_date=max(due_dates) if due_dates else None,
    )


def infer_initiatives(snapshot: Snapshot, config: EffectiveConfig, now: datetime) -> list[Initiative]:
    """Group epics and issues into initiatives, ordered by slug."""
    epics_by_slug: dict[str, list[Epic]] = {}
    for epic in snapshot.epics:
        for slug in initiative_slugs(epic.labels):
            epics_by_slug.setdefault(slug, []).append(epic)
    for issue in snapshot.issues:
        for slug in initiative_slugs(issue.labels):
            epics_by_slug.setdefault(slug, [])

    initiatives = []
    for slug in sorted(epics_by_slug):
        initiative = _build(slug, epics_by_slug[slug], snapshot)
        comparison = None
        if initiative.open_issues > 0:
            comparison = forecast_initiative(initiative, config, now).comparison.status
        initiatives.append(
            replace(initiative, status=derive_status(initiative, comparison, config, now))
        )
    return initiatives
