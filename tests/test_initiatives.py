"""Tests for initiative inference and status derivation."""

from datetime import date, datetime, timedelta, timezone

from pm_analytics.config import resolve_config
from pm_analytics.initiatives import infer_initiatives
from pm_analytics.models import Epic, EpicRef, Issue, Snapshot

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def _make_issue(issue_id, labels=(), closed_days_ago=None, epic=None, due_date=None):
    closed_at = NOW - timedelta(days=closed_days_ago) if closed_days_ago is not None else None
    return Issue(
        id=issue_id,
        iid=issue_id,
        title=f"Issue {issue_id}",
        state="closed" if closed_at else "opened",
        created_at=NOW - timedelta(days=200),
        labels=tuple(labels),
        epic=EpicRef(epic, f"Epic {epic}") if epic is not None else None,
        due_date=due_date,
        closed_at=closed_at,
    )


def _infer(issues=(), epics=()):
    snapshot = Snapshot(issues=tuple(issues), epics=tuple(epics))
    return {i.slug: i for i in infer_initiatives(snapshot, resolve_config(), NOW)}


class TestInitiativeMembership:
    """Tests for grouping epics and issues."""

    def test_issues_by_label_and_by_epic(self):
        initiatives = _infer(
            issues=[
                _make_issue(1, epic=10),
                _make_issue(2, labels=["initiative::checkout"]),
                _make_issue(3, epic=99),
            ],
            epics=[Epic(10, "Cart", labels=("initiative::checkout",))],
        )
        checkout = initiatives["checkout"]
        assert [issue.id for issue in checkout.issues] == [1, 2]
        assert [epic.id for epic in checkout.epics] == [10]
        assert checkout.name == "Checkout"

    def test_child_epic_issues_included(self):
        initiatives = _infer(
            issues=[_make_issue(1, epic=11)],
            epics=[
                Epic(10, "Parent", labels=("initiative::search",)),
                Epic(11, "Child", parent_id=10),
            ],
        )
        assert [issue.id for issue in initiatives["search"].issues] == [1]

    def test_sorted_by_slug(self):
        snapshot = Snapshot(issues=(
            _make_issue(1, labels=["initiative::zeta"]),
            _make_issue(2, labels=["initiative::alpha"]),
        ))
        slugs = [i.slug for i in infer_initiatives(snapshot, resolve_config(), NOW)]
        assert slugs == ["alpha", "zeta"]

    def test_empty_initiative_has_zero_progress(self):
        initiative = _infer(epics=[Epic(10, "Empty", labels=("initiative::idle",))])["idle"]
        assert initiative.total_issues == 0
        assert initiative.progress == 0
        assert initiative.status == "not-started"

    def test_counts_and_progress(self):
        issues = [_make_issue(i, ["initiative::x"], closed_days_ago=3 if i <= 2 else None)
                  for i in range(1, 4)]
        initiative = _infer(issues)["x"]
        assert (initiative.total_issues, initiative.closed_issues, initiative.open_issues) == (3, 2, 1)
        assert initiative.progress == 67


class TestInitiativeDates:
    """Tests for start/due dates and priority."""

    def test_due_date_is_latest_epic_end(self):
        initiative = _infer(epics=[
            Epic(1, "A", labels=("initiative::x",), start_date=date(2025, 1, 1), end_date=date(2025, 3, 1)),
            Epic(2, "B", labels=("initiative::x",), start_date=date(2024, 12, 1), end_date=date(2025, 5, 1)),
        ])["x"]
        assert initiative.start_date == date(2024, 12, 1)
        assert initiative.due_date == date(2025, 5, 1)

    def test_due_date_falls_back_to_issues(self):
        initiative = _infer([
            _make_issue(1, ["initiative::x"], due_date=date(2025, 2, 1)),
            _make_issue(2, ["initiative::x"], due_date=date(2025, 4, 1)),
        ])["x"]
        assert initiative.due_date == date(2025, 4, 1)

    def test_priority(self):
        initiatives = _infer([
            _make_issue(1, ["initiative::hot", "p1"]),
            _make_issue(2, ["initiative::cold", "p3"]),
            _make_issue(3, ["initiative::plain"]),
        ])
        assert initiatives["hot"].priority == "high"
        assert initiatives["cold"].priority == "low"
        assert initiatives["plain"].priority == "medium"


class TestInitiativeStatus:
    """Tests for status precedence."""

    def test_complete_when_all_closed(self):
        initiative = _infer([
            _make_issue(1, ["initiative::x", "blocked"], closed_days_ago=1),
            _make_issue(2, ["initiative::x"], closed_days_ago=300),
        ])["x"]
        assert initiative.status == "complete"
        assert initiative.progress == 100

    def test_blocked(self):
        initiative = _infer([
            _make_issue(1, ["initiative::x", "Blocker"]),
            _make_issue(2, ["initiative::x"], closed_days_ago=1),
        ])["x"]
        assert initiative.status == "blocked"

    def test_at_risk_when_forecast_far_past_due(self):
        closed = [_make_issue(i, ["initiative::x"], closed_days_ago=d)
                  for i, d in ((1, 1), (2, 8), (3, 15))]
        open_issues = [_make_issue(i, ["initiative::x"]) for i in range(4, 14)]
        initiative = _infer(
            closed + open_issues,
            epics=[Epic(1, "E", labels=("initiative::x",), end_date=NOW.date())],
        )["x"]
        assert initiative.status == "at-risk"

    def test_blocked_dominates_at_risk(self):
        closed = [_make_issue(i, ["initiative::x"], closed_days_ago=d)
                  for i, d in ((1, 1), (2, 8), (3, 15))]
        open_issues = [_make_issue(i, ["initiative::x", "blocked"]) for i in range(4, 14)]
        initiative = _infer(
            closed + open_issues,
            epics=[Epic(1, "E", labels=("initiative::x",), end_date=NOW.date())],
        )["x"]
        assert initiative.status == "blocked"

    def test_in_progress_with_recent_closure(self):
        initiative = _infer([
            _make_issue(1, ["initiative::x"], closed_days_ago=10),
            _make_issue(2, ["initiative::x"]),
        ])["x"]
        assert initiative.status == "in-progress"

    def test_not_started_without_recent_closure(self):
        initiative = _infer([
            _make_issue(1, ["initiative::x"], closed_days_ago=120),
            _make_issue(2, ["initiative::x"]),
        ])["x"]
        assert initiative.status == "not-started"
