"""Per-issue evaluation of the enabled quality criteria."""

from datetime import datetime

from pm_analytics.config import EffectiveConfig
from pm_analytics.criteria import CRITERIA_BY_KEY
from pm_analytics.mathutil import round_half_up
from pm_analytics.models import ComplianceResult, Issue, Violation
from pm_analytics.stale import stale_status


def evaluate_issue(issue: Issue, config: EffectiveConfig, now: datetime) -> ComplianceResult:
    """Run every enabled criterion against one issue.

    The score denominator is the number of enabled criteria, so disabling a
    rule can only raise an issue's score.
    """
    stale = stale_status(issue, now, config.stale_warning_days, config.stale_critical_days)
    enabled = config.enabled_criteria

    violations: list[Violation] = []
    passed: list[str] = []
    for settings in enabled:
        criterion = CRITERIA_BY_KEY[settings.key]
        if criterion.check(issue, settings, stale):
            passed.append(settings.key)
            continue
        payload = criterion.payload(issue, stale) if criterion.payload else {}
        violations.append(Violation(
            criterion=settings.key,
            name=criterion.name,
            severity=settings.severity,
            payload=payload,
        ))

    score = round_half_up(len(passed) / len(enabled) * 100) if enabled else 100

    return ComplianceResult(
        issue=issue,
        violations=tuple(violations),
        passed=tuple(passed),
        compliance_score=score,
        is_compliant=not violations,
        stale_status=stale,
        warnings=issue.warnings,
    )


def evaluate_issues(issues, config: EffectiveConfig, now: datetime) -> list[ComplianceResult]:
    """Evaluate all issues, ordered by issue id."""
    results = [evaluate_issue(issue, config, now) for issue in issues]
    return sorted(results, key=lambda r: r.issue.id)
