"""HTTP route handlers for the PM analytics web interface."""

import logging
from datetime import datetime, timedelta, timezone

from flask import Blueprint, Response, jsonify, request

from pm_analytics.config import config_exists, load_overrides, resolve_config, save_overrides
from pm_analytics.engine import compute, report_to_dict
from pm_analytics.exceptions import (
    ConfigError,
    ConfigNotFoundError,
    InvalidConfigError,
    UnknownTableError,
)
from pm_analytics.exports import export_table
from pm_analytics.timeutil import parse_datetime

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)


def _persisted_overrides() -> dict | None:
    """Overrides saved on disk, or None when no config file exists.

    Raises:
        InvalidConfigError: If the file exists but cannot be parsed
    """
    if not config_exists():
        return None
    try:
        return load_overrides()
    except ValueError as e:
        raise InvalidConfigError(f"Invalid configuration file: {e}") from e


def _parse_report_request() -> tuple[dict, dict | None, datetime]:
    """Validate a ``{snapshot, config?, now?}`` body.

    Raises:
        ValueError: If the body is malformed
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValueError("Request body must be a JSON object.")
    snapshot = body.get("snapshot")
    if not isinstance(snapshot, dict):
        raise ValueError("'snapshot' must be an object.")

    config = body.get("config")
    if config is not None and not isinstance(config, dict):
        raise ValueError("'config' must be an object.")

    try:
        now = parse_datetime(body.get("now"))
    except ValueError as e:
        raise ValueError(f"'now' is not an ISO-8601 timestamp: {e}") from e
    if now is None:
        now = datetime.now(timezone.utc)

    return snapshot, config, now


def _compute_from_request():
    snapshot, config, now = _parse_report_request()
    if config is None:
        config = _persisted_overrides()
    return compute(snapshot, config, now=now)


@bp.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok", "config_loaded": config_exists()})


@bp.route("/api/report", methods=["POST"])
def api_report():
    """Compute a full report over the posted snapshot."""
    try:
        report = _compute_from_request()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidConfigError as e:
        return jsonify({"error": str(e)}), 503

    return jsonify(report_to_dict(report))


@bp.route("/api/export/<table>", methods=["POST"])
def api_export(table):
    """Compute a report and return one of its tables as CSV."""
    try:
        report = _compute_from_request()
        body = export_table(report, table)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidConfigError as e:
        return jsonify({"error": str(e)}), 503
    except UnknownTableError as e:
        return jsonify({"error": str(e)}), 404

    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={table}.csv"},
    )


@bp.route("/api/config")
def api_get_config():
    """Return the persisted overrides and any problems resolving them."""
    try:
        overrides = _persisted_overrides()
        if overrides is None:
            raise ConfigNotFoundError("Configuration not found")
    except ConfigNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InvalidConfigError as e:
        return jsonify({"error": str(e)}), 503

    resolved = resolve_config(overrides)
    return jsonify({
        "overrides": overrides,
        "errors": [error.message for error in resolved.errors],
    })


@bp.route("/api/config", methods=["PUT"])
def api_put_config():
    """Replace the persisted overrides; invalid options are rejected, not saved."""
    overrides = request.get_json(silent=True)
    if not isinstance(overrides, dict):
        return jsonify({"error": "Request body must be a JSON object."}), 400

    try:
        resolve_config(overrides, strict=True)
    except ConfigError as e:
        return jsonify({"error": str(e)}), 400

    save_overrides(overrides)
    logger.info("Saved configuration overrides")
    return jsonify({"overrides": overrides, "errors": []})


@bp.route("/demo")
def demo():
    """Report over built-in demo data (no snapshot needed)."""
    now = datetime.now(timezone.utc)
    report = compute(demo_snapshot(now), now=now)
    return jsonify(report_to_dict(report))


def demo_snapshot(now: datetime) -> dict:
    """A small project with three initiatives, two teams and cross-initiative blockers."""

    def ts(offset_days):
        return (now + timedelta(days=offset_days)).isoformat()

    def d(offset_days):
        return (now + timedelta(days=offset_days)).date().isoformat()

    alice = {"name": "Alice Martin", "username": "alice"}
    bob = {"name": "Bob Chen", "username": "bob"}
    carol = {"name": "Carol Diaz", "username": "carol"}

    def issue(iid, title, labels, assignees, created, closed=None, **extra):
        record = {
            "id": 1000 + iid,
            "iid": iid,
            "title": title,
            "state": "closed" if closed is not None else "opened",
            "created_at": ts(created),
            "updated_at": ts(closed if closed is not None else -1),
            "closed_at": ts(closed) if closed is not None else None,
            "labels": labels,
            "assignees": assignees,
            "author": alice,
            "web_url": f"https://gitlab.example.com/demo/-/issues/{iid}",
        }
        record.update(extra)
        return record

    checklist = "Adds search.\n\n- [x] Code reviewed\n- [x] Tests added\n- [ ] Documentation updated"

    issues = [
        issue(1, "Search index schema", ["initiative::search", "team::platform", "feature", "p1"],
              [alice], -90, closed=-40, weight=3, epic={"id": 1, "title": "Search backend"},
              description=checklist),
        issue(2, "Query parser", ["initiative::search", "team::platform", "feature", "p2"],
              [alice, bob], -80, closed=-26, weight=5, epic={"id": 1, "title": "Search backend"}),
        issue(3, "Ranking tweaks", ["initiative::search", "team::platform", "feature"],
              [bob], -60, closed=-12, weight=2, epic={"id": 1, "title": "Search backend"}),
        issue(4, "Search results page", ["initiative::search", "team::web", "feature", "p1"],
              [carol], -50, weight=3, epic={"id": 1, "title": "Search backend"},
              links=[{"target_iid": 7, "relation": "blocked_by"}]),
        issue(5, "Autocomplete", ["initiative::search", "team::web"],
              [], -45, epic={"id": 1, "title": "Search backend"}),
        issue(6, "Fix pagination crash", ["initiative::billing", "team::web", "bug", "p1"],
              [carol], -70, closed=-5, weight=1, epic={"id": 2, "title": "Invoices v2"},
              description="- [x] Root cause identified\n- [x] Regression test added"),
        issue(7, "Invoice export API", ["initiative::billing", "team::platform", "feature", "blocker"],
              [alice], -65, weight=8, epic={"id": 2, "title": "Invoices v2"}, due_date=d(14),
              links=[{"target_iid": 10, "relation": "blocked_by"}]),
        issue(8, "Tax rules", ["initiative::billing", "team::platform", "feature"],
              [bob], -100, closed=-33, weight=3, epic={"id": 2, "title": "Invoices v2"}),
        issue(9, "Currency rounding", ["initiative::billing", "team::platform", "bug", "p2"],
              [bob], -95, closed=-19, weight=2, epic={"id": 2, "title": "Invoices v2"}),
        issue(10, "Single sign-on", ["initiative::identity", "team::platform", "feature", "p1"],
              [alice], -30, weight=5, epic={"id": 3, "title": "SSO"}),
        issue(11, "Audit log", ["initiative::identity", "team::platform"],
              [bob], -200, weight=2, epic={"id": 3, "title": "SSO"}),
    ]
    epics = [
        {"id": 1, "title": "Search backend", "labels": ["initiative::search"],
         "start_date": d(-90), "end_date": d(30)},
        {"id": 2, "title": "Invoices v2", "labels": ["initiative::billing"],
         "start_date": d(-100), "end_date": d(21)},
        {"id": 3, "title": "SSO", "labels": ["initiative::identity"],
         "start_date": d(-30), "end_date": d(90)},
    ]
    milestones = [
        {"id": 1, "title": "Q-next", "state": "active", "start_date": d(-30), "due_date": d(60)},
    ]
    return {"issues": issues, "epics": epics, "milestones": milestones}
