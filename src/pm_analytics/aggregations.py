"""Aggregations over compliance results."""

from collections import defaultdict

from pm_analytics.criteria import CRITERIA_BY_KEY, canonical_index
from pm_analytics.mathutil import percentage
from pm_analytics.models import (
    AuthorRollup,
    ComplianceResult,
    ComplianceStats,
    CriterionCount,
    StaleBuckets,
)

UNASSIGNED = "Unassigned"

SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}


def highest_severity(result: ComplianceResult) -> str | None:
    if not result.violations:
        return None
    return max((v.severity for v in result.violations), key=lambda s: SEVERITY_RANK.get(s, 0))


def stale_buckets(results) -> StaleBuckets:
    critical = sum(1 for r in results if r.stale_status.severity == "critical")
    warning = sum(1 for r in results if r.stale_status.severity == "warning")
    return StaleBuckets(critical=critical, warning=warning, total=critical + warning)


def compliance_stats(results, enabled_keys) -> ComplianceStats:
    """Totals, per-criterion counts and severity buckets.

    Each non-compliant issue lands in exactly one severity bucket, the one
    of its worst violation.
    """
    results = list(results)
    total = len(results)
    compliant = sum(1 for r in results if r.is_compliant)

    by_criterion = {key: 0 for key in enabled_keys}
    for result in results:
        for violation in result.violations:
            by_criterion[violation.criterion] = by_criterion.get(violation.criterion, 0) + 1

    buckets = {"high": 0, "medium": 0, "low": 0}
    for result in results:
        worst = highest_severity(result)
        if worst in buckets:
            buckets[worst] += 1

    return ComplianceStats(
        total=total,
        compliant=compliant,
        non_compliant=total - compliant,
        compliance_rate=percentage(compliant, total),
        violations_by_criterion=by_criterion,
        high_severity=buckets["high"],
        medium_severity=buckets["medium"],
        low_severity=buckets["low"],
        stale=stale_buckets(results),
    )


def non_compliant_issues(results) -> list[ComplianceResult]:
    """Worst score first, then oldest first."""
    failing = [r for r in results if not r.is_compliant]
    return sorted(
        failing,
        key=lambda r: (r.compliance_score, r.issue.created_at, r.issue.id),
    )


def _responsible_names(result: ComplianceResult) -> list[str]:
    names = {assignee.display_name for assignee in result.issue.assignees}
    return sorted(names) if names else [UNASSIGNED]


def author_rollup(results) -> list[AuthorRollup]:
    """Violations fanned out to every assignee of each non-compliant issue.

    An issue with two assignees counts in full for both; ``issue_count``
    holds the deduplicated number of issues per person.
    """
    violations_by_name = defaultdict(list)
    issues_by_name = defaultdict(dict)

    for result in results:
        if result.is_compliant:
            continue
        for name in _responsible_names(result):
            violations_by_name[name].extend(result.violations)
            issues_by_name[name][result.issue.id] = result.issue

    rollup = []
    for name, violations in violations_by_name.items():
        severity = {"high": 0, "medium": 0, "low": 0}
        per_criterion: dict[str, int] = defaultdict(int)
        for violation in violations:
            if violation.severity in severity:
                severity[violation.severity] += 1
            per_criterion[violation.criterion] += 1

        by_criterion = tuple(
            CriterionCount(criterion=key, name=CRITERIA_BY_KEY[key].name, count=count)
            for key, count in sorted(
                per_criterion.items(), key=lambda item: (-item[1], canonical_index(item[0]))
            )
        )
        issues = tuple(sorted(issues_by_name[name].values(), key=lambda issue: issue.id))
        rollup.append(AuthorRollup(
            name=name,
            total_violations=len(violations),
            high=severity["high"],
            medium=severity["medium"],
            low=severity["low"],
            by_criterion=by_criterion,
            issues=issues,
            issue_count=len(issues),
        ))

    rollup.sort(key=lambda a: (-a.total_violations, a.name))
    return rollup
