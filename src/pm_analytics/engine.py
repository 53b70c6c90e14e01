"""Report computation.

``compute`` is the single entry point: it takes a snapshot, a configuration
and the current time, and returns a frozen ``Report``. The clock is only
ever read from the ``now`` argument so that repeated runs over the same
input produce identical output.
"""

import dataclasses
import logging
from datetime import date, datetime

from pm_analytics.aggregations import author_rollup, compliance_stats
from pm_analytics.compliance import evaluate_issues
from pm_analytics.config import EffectiveConfig, resolve_config
from pm_analytics.contention import analyze_contention
from pm_analytics.dependencies import (
    build_dependency_graph,
    dependency_matrix,
    find_blocking_roots,
    find_critical_path,
)
from pm_analytics.dod import dod_stats, evaluate_dod
from pm_analytics.forecast import forecast_initiatives
from pm_analytics.initiatives import infer_initiatives
from pm_analytics.models import Epic, Issue, Report, Snapshot
from pm_analytics.snapshot import parse_snapshot, temporal_warnings
from pm_analytics.teams import attribute_initiatives, extract_teams, team_capacity
from pm_analytics.timeutil import as_utc

logger = logging.getLogger(__name__)


def compute(snapshot: Snapshot | dict, config: EffectiveConfig | dict | None = None,
            *, now: datetime) -> Report:
    """Derive every report section from one snapshot.

    Args:
        snapshot: A parsed ``Snapshot`` or the raw snapshot document
        config: Resolved config, a mapping of overrides, or None for defaults
        now: Current time; naive values are taken as UTC

    Returns:
        Report with all sections populated (possibly empty)
    """
    now = as_utc(now)
    if not isinstance(config, EffectiveConfig):
        config = resolve_config(config)

    if isinstance(snapshot, Snapshot):
        shape_errors, temporal = [], temporal_warnings(snapshot)
    else:
        snapshot, shape_errors, temporal = parse_snapshot(snapshot)

    logger.debug("Evaluating %d issues against %d criteria", len(snapshot.issues),
                 len(config.enabled_criteria))
    results = evaluate_issues(snapshot.issues, config, now)
    dod_results = sorted(
        (evaluate_dod(issue, config.dod_templates) for issue in snapshot.issues),
        key=lambda r: r.issue.id,
    )

    initiatives = infer_initiatives(snapshot, config, now)
    teams = extract_teams(snapshot.issues, initiatives)
    edges = build_dependency_graph(initiatives)
    critical_path, critical_path_ambiguous = find_critical_path(edges, initiatives)

    report = Report(
        compliance_results=tuple(results),
        stats=compliance_stats(results, config.enabled_keys),
        author_rollup=tuple(author_rollup(results)),
        dod_results=tuple(dod_results),
        initiatives=tuple(initiatives),
        teams=tuple(teams),
        team_capacity=tuple(team_capacity(teams, initiatives)),
        initiative_attributions=tuple(attribute_initiatives(initiatives)),
        contention=tuple(analyze_contention(initiatives)),
        dependencies=tuple(edges),
        dependency_matrix=dependency_matrix(edges, initiatives),
        blocking_roots=tuple(find_blocking_roots(edges, initiatives)),
        forecasts=tuple(forecast_initiatives(initiatives, config, now)),
        shape_errors=tuple(shape_errors),
        dod_stats=dod_stats(dod_results),
        critical_path=tuple(critical_path),
        critical_path_ambiguous=critical_path_ambiguous,
        warnings=tuple(config.errors) + tuple(temporal),
    )
    logger.debug(
        "Report ready: %d initiatives, %d teams, %d dependency edges",
        len(initiatives), len(teams), len(edges),
    )
    return report


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _issue_ref(issue: Issue) -> dict:
    return {"id": issue.id, "iid": issue.iid, "title": issue.title, "webUrl": issue.web_url}


def _to_jsonable(value):
    if isinstance(value, Issue):
        return _issue_ref(value)
    if isinstance(value, Epic):
        return {"id": value.id, "title": value.title}
    if dataclasses.is_dataclass(value):
        return {
            _camel(f.name): _to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


def report_to_dict(report: Report) -> dict:
    """Convert a Report to a JSON-serializable dict with camelCase keys.

    Issues nested in report sections are emitted as references
    (id, iid, title, webUrl) rather than full records.
    """
    return _to_jsonable(report)
