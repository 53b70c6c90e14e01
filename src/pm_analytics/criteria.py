"""Quality criteria registry.

Each criterion is a plain record; the evaluator walks the registry in its
canonical order, so report tie-breaks follow the order below. Adding a rule
means adding a record here.
"""

from collections.abc import Callable
from dataclasses import dataclass

from pm_analytics.labels import (
    assignee_present,
    description_present,
    has_priority_label,
    has_type_label,
    weight_present,
)
from pm_analytics.models import CriterionSettings, Issue, StaleStatus


@dataclass(frozen=True)
class Criterion:
    key: str
    name: str
    description: str
    severity: str  # default severity
    column: str  # CSV column title
    check: Callable[[Issue, CriterionSettings, StaleStatus], bool]  # True when passing
    payload: Callable[[Issue, StaleStatus], dict] | None = None
    threshold: int | None = None  # default threshold, where the rule has one


CRITERIA: tuple[Criterion, ...] = (
    Criterion(
        key="assignee",
        name="Assignee",
        description="Issue must be assigned to a team member",
        severity="high",
        column="Missing Assignee",
        check=lambda issue, settings, stale: assignee_present(issue.assignees),
    ),
    Criterion(
        key="weight",
        name="Weight/Estimation",
        description="Issue must have story points or time estimate",
        severity="high",
        column="Missing Weight",
        check=lambda issue, settings, stale: weight_present(issue.weight),
    ),
    Criterion(
        key="epic",
        name="Epic Assignment",
        description="Issue must be assigned to an epic",
        severity="medium",
        column="Missing Epic",
        check=lambda issue, settings, stale: issue.epic is not None,
    ),
    Criterion(
        key="description",
        name="Description",
        description="Issue must have a meaningful description",
        severity="high",
        column="Missing Description",
        check=lambda issue, settings, stale: description_present(
            issue.description, settings.threshold or 0
        ),
        threshold=20,
    ),
    Criterion(
        key="labels",
        name="Type Label",
        description="Issue must have a type label (Bug, Feature, etc.)",
        severity="high",
        column="Missing Type Label",
        check=lambda issue, settings, stale: has_type_label(issue.labels),
    ),
    Criterion(
        key="milestone",
        name="Milestone",
        description="Issue should be assigned to a milestone",
        severity="medium",
        column="Missing Milestone",
        check=lambda issue, settings, stale: issue.milestone is not None,
    ),
    Criterion(
        key="dueDate",
        name="Due Date",
        description="Issue should have a due date (for tracking)",
        severity="low",
        column="Missing Due Date",
        check=lambda issue, settings, stale: issue.due_date is not None,
    ),
    Criterion(
        key="priority",
        name="Priority",
        description="Issue should have a priority label",
        severity="medium",
        column="Missing Priority",
        check=lambda issue, settings, stale: has_priority_label(issue.labels),
    ),
    Criterion(
        key="stale",
        name="Stale Issue",
        description="Issue has been open too long",
        severity="low",
        column="Stale",
        check=lambda issue, settings, stale: not stale.is_stale,
        payload=lambda issue, stale: {"daysOpen": stale.days_open},
    ),
)

CRITERIA_BY_KEY: dict[str, Criterion] = {c.key: c for c in CRITERIA}
CRITERION_KEYS: tuple[str, ...] = tuple(c.key for c in CRITERIA)


def canonical_index(key: str) -> int:
    """Position of ``key`` in the canonical order (unknown keys sort last)."""
    try:
        return CRITERION_KEYS.index(key)
    except ValueError:
        return len(CRITERION_KEYS)
