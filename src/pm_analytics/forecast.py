"""Velocity-based completion forecasts.

Velocity is the number of issues closed per ISO week over the trailing
window. Only weeks with at least one closure are sampled.
"""

from collections import Counter
from datetime import date, datetime, timedelta

from pm_analytics.config import EffectiveConfig
from pm_analytics.mathutil import clamp, round_half_up
from pm_analytics.models import Forecast, ForecastComparison, Initiative, Variance, Velocity
from pm_analytics.timeutil import as_utc, iso_week_key, start_of_day

PESSIMISTIC_FLOOR = 0.5

NO_COMPARISON = ForecastComparison(
    has_due_date=False, has_forecast=False, weeks_gap=None, is_late=False, status="no-data"
)


def closed_within_window(issues, now: datetime, window_weeks: int) -> list[datetime]:
    """Closure timestamps inside ``(now - window, now]``."""
    now = as_utc(now)
    start = now - timedelta(weeks=window_weeks)
    return sorted(
        issue.closed_at
        for issue in issues
        if issue.closed_at is not None and start < issue.closed_at <= now
    )


def weekly_closures(issues, now: datetime, window_weeks: int) -> list[int]:
    """Issues closed per ISO week, oldest week first."""
    counts = Counter(iso_week_key(ts) for ts in closed_within_window(issues, now, window_weeks))
    return [counts[week] for week in sorted(counts)]


def compare_to_due_date(forecast_date: datetime | None, due_date: date | None) -> ForecastComparison:
    """Signed gap in weeks between forecast and due date (positive is late)."""
    if forecast_date is None or due_date is None:
        return ForecastComparison(
            has_due_date=due_date is not None,
            has_forecast=forecast_date is not None,
            weeks_gap=None,
            is_late=False,
            status="no-data",
        )

    gap = round_half_up((forecast_date - start_of_day(due_date)) / timedelta(weeks=1))
    if gap <= 0:
        status = "on-track"
    elif gap <= 2:
        status = "warning"
    else:
        status = "at-risk"
    return ForecastComparison(
        has_due_date=True, has_forecast=True, weeks_gap=gap, is_late=gap > 0, status=status
    )


def forecast_initiative(initiative: Initiative, config: EffectiveConfig, now: datetime) -> Forecast:
    """Project the completion date of an initiative's remaining open issues."""
    now = as_utc(now)
    remaining = sum(1 for issue in initiative.issues if issue.is_open)
    samples = weekly_closures(initiative.issues, now, config.forecast_window_weeks)
    average = sum(samples) / len(samples) if samples else 0.0
    velocity = Velocity(weekly_average=average, sample_size=len(samples))

    if remaining == 0 or len(samples) < config.forecast_min_samples or average <= 0:
        return Forecast(
            initiative=initiative.slug,
            initiative_name=initiative.name,
            remaining_issues=remaining,
            velocity=velocity,
            forecast_date=None,
            weeks_to_done=None,
            variance=Variance(optimistic_weeks=None, pessimistic_weeks=None),
            confidence=0,
            comparison=compare_to_due_date(None, initiative.due_date),
            due_date=initiative.due_date,
        )

    weeks_to_done = remaining / average
    forecast_date = now + timedelta(weeks=weeks_to_done)
    optimistic = remaining / max(samples)
    pessimistic = remaining / max(min(samples), PESSIMISTIC_FLOOR)
    confidence = int(clamp(round_half_up(100 - (pessimistic - optimistic) / weeks_to_done * 50)))

    return Forecast(
        initiative=initiative.slug,
        initiative_name=initiative.name,
        remaining_issues=remaining,
        velocity=velocity,
        forecast_date=forecast_date,
        weeks_to_done=weeks_to_done,
        variance=Variance(optimistic_weeks=optimistic, pessimistic_weeks=pessimistic),
        confidence=confidence,
        comparison=compare_to_due_date(forecast_date, initiative.due_date),
        due_date=initiative.due_date,
    )


def forecast_initiatives(initiatives, config: EffectiveConfig, now: datetime) -> list[Forecast]:
    """Forecasts for every initiative with open work, ordered by slug."""
    forecasts = [
        forecast_initiative(initiative, config, now)
        for initiative in initiatives
        if initiative.open_issues > 0
    ]
    return sorted(forecasts, key=lambda f: f.initiative)
