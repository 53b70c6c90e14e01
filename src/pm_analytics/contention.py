"""Resource contention: people spread across several initiatives."""

from collections import defaultdict

from pm_analytics.labels import is_high_priority_label, team_slugs
from pm_analytics.mathutil import clamp
from pm_analytics.models import Contention

ISSUE_LOAD_CAP = 20


def contention_level(initiative_count: int, high_priority_count: int, total_issues: int) -> int:
    score = initiative_count * 20 + high_priority_count * 10 + min(total_issues, ISSUE_LOAD_CAP) * 2
    return int(clamp(score))


def analyze_contention(initiatives) -> list[Contention]:
    """Per-assignee load over the open issues of all initiatives.

    An issue shared by two initiatives counts once towards the issue totals
    and once for each initiative.
    """
    names: dict[str, str] = {}
    touched = defaultdict(set)
    open_issues = defaultdict(dict)

    for initiative in initiatives:
        for issue in initiative.issues:
            if not issue.is_open:
                continue
            for assignee in issue.assignees:
                key = assignee.username or assignee.name
                names.setdefault(key, assignee.display_name)
                touched[key].add(initiative.slug)
                open_issues[key][issue.id] = issue

    report = []
    for username, issues_by_id in open_issues.items():
        issues = list(issues_by_id.values())
        high = sum(1 for issue in issues if any(is_high_priority_label(l) for l in issue.labels))
        teams = sorted({slug for issue in issues for slug in team_slugs(issue.labels)})
        report.append(Contention(
            username=username,
            name=names[username],
            initiatives=tuple(sorted(touched[username])),
            initiative_count=len(touched[username]),
            total_issues=len(issues),
            high_priority_count=high,
            teams=tuple(teams),
            contention_level=contention_level(len(touched[username]), high, len(issues)),
        ))

    report.sort(key=lambda c: (-c.contention_level, c.username))
    return report
