"""Team extraction, initiative attribution and capacity scoring.

Teams come from ``team::<slug>`` labels on issues. An issue carrying two
team labels counts for both teams.
"""

from collections import defaultdict

from pm_analytics.labels import humanize_slug, team_slugs
from pm_analytics.mathutil import clamp, percentage, round_half_up
from pm_analytics.models import (
    Initiative,
    InitiativeAttribution,
    InitiativeSummary,
    Team,
    TeamCapacity,
    TeamShare,
)

UNASSIGNED_TEAM = "Unassigned"

CAPACITY_ORDER = {"overloaded": 0, "at-capacity": 1, "healthy": 2}


def capacity_score(active_initiatives: int, open_issues: int, members: int) -> int:
    """100 is idle; lower scores mean more load per head."""
    load = active_initiatives * 15 + open_issues * 2 - members * 5
    return int(clamp(round_half_up(100 - load)))


def capacity_status(score: int) -> str:
    if score < 40:
        return "overloaded"
    if score < 70:
        return "at-capacity"
    return "healthy"


def _members(issues) -> set[str]:
    return {a.username or a.name for issue in issues for a in issue.assignees}


def extract_teams(issues, initiatives) -> list[Team]:
    """All teams found on issue labels, ordered by slug."""
    issues_by_team = defaultdict(dict)
    for issue in issues:
        for slug in team_slugs(issue.labels):
            issues_by_team[slug][issue.id] = issue

    teams = []
    for slug in sorted(issues_by_team):
        team_issues = list(issues_by_team[slug].values())
        members = _members(team_issues)
        open_count = sum(1 for issue in team_issues if issue.is_open)
        closed_count = len(team_issues) - open_count

        involved = [
            initiative for initiative in initiatives
            if any(slug in team_slugs(issue.labels) for issue in initiative.issues)
        ]
        active = sum(1 for initiative in involved if initiative.progress < 100)
        score = capacity_score(active, open_count, len(members))

        teams.append(Team(
            slug=slug,
            name=humanize_slug(slug),
            members=tuple(sorted(members)),
            member_count=len(members),
            issue_count=len(team_issues),
            open_issue_count=open_count,
            closed_issue_count=closed_count,
            completion_rate=percentage(closed_count, len(team_issues)),
            initiatives=tuple(initiative.slug for initiative in involved),
            active_initiative_count=active,
            capacity_score=score,
            capacity_status=capacity_status(score),
        ))
    return teams


def team_capacity(teams, initiatives) -> list[TeamCapacity]:
    """Capacity overview, most loaded first."""
    by_slug = {initiative.slug: initiative for initiative in initiatives}
    overview = []
    for team in teams:
        involved = [by_slug[slug] for slug in team.initiatives if slug in by_slug]
        overview.append(TeamCapacity(
            team=team.slug,
            name=team.name,
            member_count=team.member_count,
            initiative_count=len(involved),
            active_initiative_count=team.active_initiative_count,
            open_issue_count=team.open_issue_count,
            total_issue_count=team.issue_count,
            completion_rate=team.completion_rate,
            capacity_status=team.capacity_status,
            capacity_score=team.capacity_score,
            initiatives=tuple(
                InitiativeSummary(i.slug, i.name, i.progress, i.status) for i in involved
            ),
        ))
    overview.sort(key=lambda t: (CAPACITY_ORDER[t.capacity_status], t.capacity_score, t.name))
    return overview


def attribute_initiative(initiative: Initiative) -> InitiativeAttribution:
    issues_by_team = defaultdict(list)
    unassigned = 0
    for issue in initiative.issues:
        slugs = team_slugs(issue.labels)
        if not slugs:
            unassigned += 1
        for slug in slugs:
            issues_by_team[slug].append(issue)

    shares = []
    for slug, issues in issues_by_team.items():
        closed = sum(1 for issue in issues if not issue.is_open)
        shares.append(TeamShare(
            team=slug,
            name=humanize_slug(slug),
            issue_count=len(issues),
            open_issues=len(issues) - closed,
            closed_issues=closed,
            completion_rate=percentage(closed, len(issues)),
            story_points=sum(issue.weight or 0 for issue in issues),
            member_count=len(_members(issues)),
            percentage=percentage(len(issues), initiative.total_issues),
        ))
    shares.sort(key=lambda s: (-s.issue_count, s.team))

    return InitiativeAttribution(
        initiative=initiative.slug,
        initiative_name=initiative.name,
        teams=tuple(shares),
        primary_team=shares[0].team if shares else UNASSIGNED_TEAM,
        is_multi_team=len(shares) > 1,
        team_count=len(shares),
        unassigned_issues=unassigned,
    )


def attribute_initiatives(initiatives) -> list[InitiativeAttribution]:
    return [attribute_initiative(initiative) for initiative in initiatives]
