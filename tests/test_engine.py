"""Tests for the report pipeline and its serialisation."""

import json
import random
from datetime import datetime, timezone

from pm_analytics import compute, report_to_dict
from pm_analytics.config import resolve_config
from pm_analytics.snapshot import parse_snapshot

NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)

REPORT_KEYS = {
    "complianceResults", "stats", "authorRollup", "dodResults", "initiatives",
    "teams", "teamCapacity", "initiativeAttributions", "contention", "dependencies",
    "dependencyMatrix", "blockingRoots", "forecasts", "shapeErrors",
}


def _make_issue(iid, labels, assignees=(), closed_at=None, links=(), **extra):
    record = {
        "id": 1000 + iid,
        "iid": iid,
        "title": f"Issue {iid}",
        "state": "closed" if closed_at else "opened",
        "created_at": "2024-11-01T08:00:00Z",
        "updated_at": "2025-01-10T08:00:00Z",
        "closed_at": closed_at,
        "labels": list(labels),
        "assignees": [{"name": name.title(), "username": name} for name in assignees],
        "web_url": f"https://gitlab.example.com/p/-/issues/{iid}",
        "links": [{"target_iid": target, "relation": relation} for target, relation in links],
    }
    record.update(extra)
    return record


def _make_snapshot():
    return {
        "issues": [
            _make_issue(1, ["initiative::checkout", "team::web", "feature", "p1"], ["ana"],
                        links=[(4, "blocked_by")], weight=3, epic={"id": 1, "title": "Cart"}),
            _make_issue(2, ["initiative::checkout", "team::web", "bug"], ["ana", "ben"],
                        closed_at="2025-01-08T10:00:00Z",
                        description="- [x] Root cause documented\n- [ ] Code reviewed"),
            _make_issue(3, ["initiative::checkout", "team::api"], [],
                        closed_at="2024-12-20T10:00:00Z"),
            _make_issue(4, ["initiative::payments", "team::api", "blocker"], ["ben"],
                        links=[(1, "blocks")]),
            _make_issue(5, ["initiative::payments"], ["cy"], closed_at="2024-12-30T10:00:00Z"),
            {**_make_issue(6, []), "labels": "not-a-list"},
        ],
        "epics": [
            {"id": 1, "title": "Cart", "labels": ["initiative::checkout"], "end_date": "2025-03-01"},
        ],
        "milestones": [{"id": 1, "title": "Q1", "due_date": "2025-03-31"}],
    }


class TestCompute:
    """Tests for compute."""

    def test_all_sections_populated(self):
        report = compute(_make_snapshot(), now=NOW)

        assert len(report.compliance_results) == 5
        assert [i.slug for i in report.initiatives] == ["checkout", "payments"]
        assert [t.slug for t in report.teams] == ["api", "web"]
        assert [(e.source, e.target, e.count) for e in report.dependencies] == [
            ("checkout", "payments", 1),
        ]
        assert [r.initiative for r in report.blocking_roots] == ["payments"]
        assert report.critical_path == ("checkout", "payments")
        assert [e.entity_id for e in report.shape_errors] == [1006]
        assert report.dod_stats.total_issues == 3

    def test_statuses(self):
        report = compute(_make_snapshot(), now=NOW)
        statuses = {i.slug: i.status for i in report.initiatives}
        assert statuses == {"checkout": "in-progress", "payments": "blocked"}

    def test_config_overrides_and_warnings(self):
        report = compute(
            _make_snapshot(),
            {"criteria.stale.enabled": False, "criteria.weight.severity": "urgent"},
            now=NOW,
        )
        assert "stale" not in report.stats.violations_by_criterion
        assert [w.kind for w in report.warnings] == ["config"]

    def test_accepts_parsed_snapshot_and_resolved_config(self):
        snapshot, _, _ = parse_snapshot(_make_snapshot())
        report = compute(snapshot, resolve_config(), now=NOW)
        assert len(report.compliance_results) == 5
        assert report.shape_errors == ()

    def test_parsed_snapshot_keeps_temporal_warnings(self):
        raw = _make_snapshot()
        raw["issues"][0]["due_date"] = "next sprint"
        snapshot, _, temporal = parse_snapshot(raw)

        report = compute(snapshot, now=NOW)
        assert [(w.kind, w.entity_id) for w in report.warnings] == [("temporal", 1001)]
        assert report.warnings == tuple(temporal)

    def test_naive_now_taken_as_utc(self):
        naive = compute(_make_snapshot(), now=datetime(2025, 1, 15))
        aware = compute(_make_snapshot(), now=NOW)
        assert report_to_dict(naive) == report_to_dict(aware)

    def test_empty_snapshot(self):
        report = compute({}, now=NOW)
        assert report.stats.total == 0
        assert report.stats.compliance_rate == 0
        assert report.initiatives == ()
        assert report.dependency_matrix.cells == ()
        assert report.critical_path == ()

    def test_idempotent(self):
        first = json.dumps(report_to_dict(compute(_make_snapshot(), now=NOW)), sort_keys=True)
        second = json.dumps(report_to_dict(compute(_make_snapshot(), now=NOW)), sort_keys=True)
        assert first == second

    def test_permutation_does_not_change_report(self):
        baseline = report_to_dict(compute(_make_snapshot(), now=NOW))

        shuffled = _make_snapshot()
        rng = random.Random(7)
        rng.shuffle(shuffled["issues"])
        for issue in shuffled["issues"]:
            if isinstance(issue.get("links"), list):
                rng.shuffle(issue["links"])

        assert report_to_dict(compute(shuffled, now=NOW)) == baseline


class TestReportToDict:
    """Tests for report_to_dict."""

    def test_stable_keys(self):
        data = report_to_dict(compute(_make_snapshot(), now=NOW))
        assert REPORT_KEYS <= set(data)
        assert {"dodStats", "criticalPath", "warnings"} <= set(data)

    def test_json_serialisable_camel_case(self):
        data = report_to_dict(compute(_make_snapshot(), now=NOW))
        json.dumps(data)

        result = data["complianceResults"][0]
        assert result["issue"] == {
            "id": 1001, "iid": 1, "title": "Issue 1",
            "webUrl": "https://gitlab.example.com/p/-/issues/1",
        }
        assert "complianceScore" in result
        assert data["initiatives"][0]["dueDate"] == "2025-03-01"
        assert data["shapeErrors"][0]["entityId"] == 1006
