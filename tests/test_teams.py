"""Tests for team extraction, capacity and initiative attribution."""

from datetime import datetime, timedelta, timezone

from pm_analytics.config import resolve_config
from pm_analytics.initiatives import infer_initiatives
from pm_analytics.models import Issue, Snapshot, User
from pm_analytics.teams import (
    attribute_initiatives,
    capacity_score,
    capacity_status,
    extract_teams,
    team_capacity,
)

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)

PEOPLE = [User(name=n.title(), username=n) for n in ("ana", "ben", "cy", "dee")]


def _make_issue(issue_id, labels, assignees=(), closed=False, weight=None):
    return Issue(
        id=issue_id,
        iid=issue_id,
        title=f"Issue {issue_id}",
        state="closed" if closed else "opened",
        created_at=NOW - timedelta(days=30),
        labels=tuple(labels),
        assignees=tuple(assignees),
        weight=weight,
        closed_at=NOW - timedelta(days=2) if closed else None,
    )


def _build(issues):
    snapshot = Snapshot(issues=tuple(issues))
    initiatives = infer_initiatives(snapshot, resolve_config(), NOW)
    return initiatives, extract_teams(snapshot.issues, initiatives)


class TestCapacityScore:
    """Tests for capacity_score and capacity_status."""

    def test_payments_example(self):
        score = capacity_score(active_initiatives=2, open_issues=12, members=3)
        assert score == 61
        assert capacity_status(score) == "at-capacity"

    def test_clamped(self):
        assert capacity_score(10, 50, 0) == 0
        assert capacity_score(0, 0, 10) == 100

    def test_status_thresholds(self):
        assert capacity_status(39) == "overloaded"
        assert capacity_status(40) == "at-capacity"
        assert capacity_status(70) == "healthy"


class TestExtractTeams:
    """Tests for extract_teams."""

    def test_team_across_two_initiatives(self):
        issues = [
            _make_issue(i, ["team::payments", "initiative::a" if i <= 6 else "initiative::b"],
                        assignees=[PEOPLE[i % 3]])
            for i in range(1, 13)
        ]
        _, teams = _build(issues)

        assert len(teams) == 1
        payments = teams[0]
        assert payments.slug == "payments"
        assert payments.member_count == 3
        assert payments.open_issue_count == 12
        assert payments.initiatives == ("a", "b")
        assert payments.active_initiative_count == 2
        assert payments.capacity_score == 61
        assert payments.capacity_status == "at-capacity"

    def test_completed_initiative_not_active(self):
        _, teams = _build([
            _make_issue(1, ["team::web", "initiative::done"], closed=True),
            _make_issue(2, ["team::web", "initiative::live"]),
        ])
        web = teams[0]
        assert web.initiatives == ("done", "live")
        assert web.active_initiative_count == 1
        assert web.completion_rate == 50

    def test_issue_with_two_team_labels_counts_for_both(self):
        _, teams = _build([_make_issue(1, ["team::web", "team::api"], assignees=[PEOPLE[0]])])
        assert [t.slug for t in teams] == ["api", "web"]
        assert all(t.issue_count == 1 for t in teams)

    def test_capacity_overview_sorted_most_loaded_first(self):
        issues = [_make_issue(i, ["team::busy", f"initiative::i{i}"]) for i in range(1, 5)]
        issues.append(_make_issue(10, ["team::calm", "initiative::i1"], assignees=PEOPLE))
        initiatives, teams = _build(issues)
        overview = team_capacity(teams, initiatives)

        assert [t.team for t in overview] == ["busy", "calm"]
        assert overview[0].capacity_status == "overloaded"
        assert overview[0].capacity_score == 32
        assert [s.slug for s in overview[0].initiatives] == ["i1", "i2", "i3", "i4"]
        assert overview[1].capacity_status == "healthy"


class TestAttribution:
    """Tests for attribute_initiatives."""

    def test_multi_team_initiative(self):
        initiatives, _ = _build([
            _make_issue(1, ["initiative::x", "team::web"], [PEOPLE[0]], closed=True, weight=3),
            _make_issue(2, ["initiative::x", "team::web"], [PEOPLE[1]], weight=2),
            _make_issue(3, ["initiative::x", "team::api"], [PEOPLE[2]], weight=5),
            _make_issue(4, ["initiative::x"]),
        ])
        attribution = attribute_initiatives(initiatives)[0]

        assert attribution.primary_team == "web"
        assert attribution.is_multi_team
        assert attribution.team_count == 2
        assert attribution.unassigned_issues == 1

        web, api = attribution.teams
        assert (web.issue_count, web.open_issues, web.closed_issues) == (2, 1, 1)
        assert web.completion_rate == 50
        assert web.story_points == 5
        assert web.member_count == 2
        assert web.percentage == 50
        assert (api.team, api.percentage) == ("api", 25)

    def test_no_teams(self):
        initiatives, _ = _build([_make_issue(1, ["initiative::x"])])
        attribution = attribute_initiatives(initiatives)[0]
        assert attribution.primary_team == "Unassigned"
        assert attribution.teams == ()
        assert not attribution.is_multi_team
