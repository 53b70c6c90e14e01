"""Snapshot parsing.

Turns the raw snapshot document delivered by the data-fetch layer into
models. A record that violates the schema is dropped and reported as a
single shape error; unparseable or contradictory dates are dropped from
the record and reported as temporal warnings.
"""

import logging

from pm_analytics.exceptions import ShapeError, TemporalInconsistency
from pm_analytics.models import (
    DataIssue,
    Epic,
    EpicRef,
    Issue,
    IssueLink,
    Milestone,
    MilestoneRef,
    Snapshot,
    User,
)
from pm_analytics.timeutil import parse_date, parse_datetime

logger = logging.getLogger(__name__)

ISSUE_STATES = ("opened", "closed")
LINK_RELATIONS = ("blocks", "blocked_by", "relates_to")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require_int(record: dict, key: str, entity: str, entity_id) -> int:
    value = record.get(key)
    if not _is_int(value):
        raise ShapeError(entity, entity_id, f"'{key}' must be an integer, got {value!r}")
    return value


def _optional_str(record: dict, key: str, entity: str, entity_id) -> str:
    value = record.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ShapeError(entity, entity_id, f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _labels(record: dict, entity: str, entity_id) -> tuple[str, ...]:
    labels = record.get("labels")
    if labels is None:
        return ()
    if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
        raise ShapeError(entity, entity_id, "'labels' must be a list of strings")
    return tuple(labels)


def _user(value, field: str, entity_id) -> User:
    if not isinstance(value, dict):
        raise ShapeError("issue", entity_id, f"'{field}' must be an object with name/username")
    name = value.get("name") or ""
    username = value.get("username") or ""
    if not isinstance(name, str) or not isinstance(username, str):
        raise ShapeError("issue", entity_id, f"'{field}' name/username must be strings")
    return User(name=name, username=username)


def _reference_id(value, field: str, entity_id) -> tuple[int, str]:
    if not isinstance(value, dict) or not _is_int(value.get("id")):
        raise ShapeError("issue", entity_id, f"'{field}' must be an object with an integer id")
    title = value.get("title") or ""
    if not isinstance(title, str):
        raise ShapeError("issue", entity_id, f"'{field}.title' must be a string")
    return value["id"], title


def _lenient_date(value, field: str, warnings: list[str]):
    """Parse an optional date, downgrading bad values to a warning."""
    try:
        return parse_date(value)
    except ValueError:
        warnings.append(str(TemporalInconsistency(f"{field} {value!r} is not a valid date; ignored")))
        return None


def _lenient_datetime(value, field: str, warnings: list[str]):
    try:
        return parse_datetime(value)
    except ValueError:
        warnings.append(str(TemporalInconsistency(
            f"{field} {value!r} is not a valid timestamp; ignored"
        )))
        return None


def _links(record: dict, entity_id) -> tuple[IssueLink, ...]:
    raw_links = record.get("links")
    if raw_links is None:
        return ()
    if not isinstance(raw_links, list):
        raise ShapeError("issue", entity_id, "'links' must be a list")

    links = []
    for link in raw_links:
        if not isinstance(link, dict) or not _is_int(link.get("target_iid")):
            raise ShapeError("issue", entity_id, "each link needs an integer 'target_iid'")
        relation = str(link.get("relation", "")).lower().replace("-", "_")
        if relation not in LINK_RELATIONS:
            raise ShapeError(
                "issue", entity_id, f"link relation {link.get('relation')!r} is not recognised"
            )
        links.append(IssueLink(target_iid=link["target_iid"], relation=relation))
    return tuple(links)


def parse_issue(record) -> Issue:
    """Build an Issue from a raw record.

    Raises:
        ShapeError: If the record does not match the issue schema
    """
    if not isinstance(record, dict):
        raise ShapeError("issue", None, "issue record must be an object")

    entity_id = record.get("id")
    issue_id = _require_int(record, "id", "issue", entity_id)
    iid = _require_int(record, "iid", "issue", entity_id)

    title = record.get("title")
    if not isinstance(title, str):
        raise ShapeError("issue", issue_id, "'title' must be a string")

    state = record.get("state")
    if state not in ISSUE_STATES:
        raise ShapeError("issue", issue_id, f"'state' must be 'opened' or 'closed', got {state!r}")

    try:
        created_at = parse_datetime(record.get("created_at"))
    except ValueError:
        created_at = None
    if created_at is None:
        raise ShapeError("issue", issue_id, "'created_at' must be an ISO-8601 timestamp")

    author = record.get("author")
    author = _user(author, "author", issue_id) if author is not None else None

    raw_assignees = record.get("assignees")
    if raw_assignees is None:
        raw_assignees = []
    if not isinstance(raw_assignees, list):
        raise ShapeError("issue", issue_id, "'assignees' must be a list")
    assignees = tuple(_user(a, "assignees", issue_id) for a in raw_assignees)

    epic = None
    if record.get("epic") is not None:
        epic = EpicRef(*_reference_id(record["epic"], "epic", issue_id))

    warnings: list[str] = []

    milestone = None
    if record.get("milestone") is not None:
        milestone_id, milestone_title = _reference_id(record["milestone"], "milestone", issue_id)
        milestone = MilestoneRef(
            id=milestone_id,
            title=milestone_title,
            due_date=_lenient_date(record["milestone"].get("due_date"), "milestone.due_date", warnings),
        )

    weight = record.get("weight")
    if weight is not None and (not _is_int(weight) or weight < 0):
        raise ShapeError("issue", issue_id, f"'weight' must be a nonnegative integer, got {weight!r}")

    due_date = _lenient_date(record.get("due_date"), "due_date", warnings)
    updated_at = _lenient_datetime(record.get("updated_at"), "updated_at", warnings)
    closed_at = _lenient_datetime(record.get("closed_at"), "closed_at", warnings)
    if closed_at is not None and closed_at < created_at:
        warnings.append(str(TemporalInconsistency(
            f"closed_at {closed_at.isoformat()} precedes created_at; ignored"
        )))
        closed_at = None

    return Issue(
        id=issue_id,
        iid=iid,
        title=title,
        state=state,
        created_at=created_at,
        description=_optional_str(record, "description", "issue", issue_id),
        author=author,
        assignees=assignees,
        labels=_labels(record, "issue", issue_id),
        epic=epic,
        milestone=milestone,
        weight=weight,
        due_date=due_date,
        updated_at=updated_at,
        closed_at=closed_at,
        web_url=_optional_str(record, "web_url", "issue", issue_id),
        links=_links(record, issue_id),
        warnings=tuple(warnings),
    )


def parse_epic(record) -> Epic:
    """Build an Epic from a raw record.

    Epic dates are optional; an unparseable date is treated as absent.

    Raises:
        ShapeError: If the record does not match the epic schema
    """
    if not isinstance(record, dict):
        raise ShapeError("epic", None, "epic record must be an object")

    epic_id = _require_int(record, "id", "epic", record.get("id"))
    title = record.get("title")
    if not isinstance(title, str):
        raise ShapeError("epic", epic_id, "'title' must be a string")

    parent_id = record.get("parent_id")
    if parent_id is None and isinstance(record.get("parent"), dict):
        parent_id = record["parent"].get("id")
    if parent_id is not None and not _is_int(parent_id):
        raise ShapeError("epic", epic_id, f"parent id must be an integer, got {parent_id!r}")

    ignored: list[str] = []
    end = record.get("end_date") if record.get("end_date") is not None else record.get("due_date")
    return Epic(
        id=epic_id,
        title=title,
        labels=_labels(record, "epic", epic_id),
        start_date=_lenient_date(record.get("start_date"), "start_date", ignored),
        end_date=_lenient_date(end, "end_date", ignored),
        parent_id=parent_id,
        web_url=_optional_str(record, "web_url", "epic", epic_id),
    )


def parse_milestone(record) -> Milestone:
    """Build a Milestone from a raw record.

    Raises:
        ShapeError: If the record does not match the milestone schema
    """
    if not isinstance(record, dict):
        raise ShapeError("milestone", None, "milestone record must be an object")

    milestone_id = _require_int(record, "id", "milestone", record.get("id"))
    title = record.get("title")
    if not isinstance(title, str):
        raise ShapeError("milestone", milestone_id, "'title' must be a string")

    ignored: list[str] = []
    return Milestone(
        id=milestone_id,
        title=title,
        state=str(record.get("state") or "active"),
        start_date=_lenient_date(record.get("start_date"), "start_date", ignored),
        due_date=_lenient_date(record.get("due_date"), "due_date", ignored),
    )


def _parse_all(records, parser, entity: str, errors: list[DataIssue]) -> tuple:
    if records is None:
        return ()
    if not isinstance(records, list):
        errors.append(DataIssue("shape", "snapshot", entity, f"'{entity}s' must be a list"))
        return ()

    parsed = []
    for record in records:
        try:
            parsed.append(parser(record))
        except ShapeError as e:
            logger.warning("Excluding %s %s: %s", e.entity, e.entity_id, e)
            errors.append(DataIssue(
                kind="shape", entity=e.entity, entity_id=e.entity_id, message=str(e),
            ))
    return tuple(parsed)


def parse_snapshot(data) -> tuple[Snapshot, list[DataIssue], list[DataIssue]]:
    """Parse a raw snapshot document.

    Returns:
        (snapshot, shape_errors, temporal_warnings)
    """
    shape_errors: list[DataIssue] = []
    if not isinstance(data, dict):
        shape_errors.append(DataIssue("shape", "snapshot", None, "snapshot must be an object"))
        return Snapshot(), shape_errors, []

    snapshot = Snapshot(
        issues=_parse_all(data.get("issues"), parse_issue, "issue", shape_errors),
        epics=_parse_all(data.get("epics"), parse_epic, "epic", shape_errors),
        milestones=_parse_all(data.get("milestones"), parse_milestone, "milestone", shape_errors),
    )

    temporal = temporal_warnings(snapshot)
    logger.debug(
        "Parsed snapshot: %d issues, %d epics, %d milestones, %d excluded",
        len(snapshot.issues), len(snapshot.epics), len(snapshot.milestones), len(shape_errors),
    )
    return snapshot, shape_errors, temporal


def temporal_warnings(snapshot: Snapshot) -> list[DataIssue]:
    """Dropped-date warnings carried by the parsed issues."""
    return [
        DataIssue(kind="temporal", entity="issue", entity_id=issue.id, message=warning)
        for issue in snapshot.issues
        for warning in issue.warnings
    ]
