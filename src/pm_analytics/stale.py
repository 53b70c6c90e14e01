"""Stale clock: classifies how long an open issue has been waiting."""

from datetime import datetime

from pm_analytics.models import Issue, StaleStatus
from pm_analytics.timeutil import as_utc

NOT_STALE = StaleStatus(is_stale=False, days_open=None, severity=None)


def days_open(issue: Issue, now: datetime) -> int | None:
    """Whole days since creation for open issues; None for closed ones."""
    if not issue.is_open:
        return None
    elapsed = as_utc(now) - as_utc(issue.created_at)
    return int(elapsed.total_seconds() // 86400)


def stale_status(issue: Issue, now: datetime, warning_days: int, critical_days: int) -> StaleStatus:
    days = days_open(issue, now)
    if days is None:
        return NOT_STALE
    if days >= critical_days:
        return StaleStatus(is_stale=True, days_open=days, severity="critical")
    if days >= warning_days:
        return StaleStatus(is_stale=True, days_open=days, severity="warning")
    return StaleStatus(is_stale=False, days_open=days, severity=None)
