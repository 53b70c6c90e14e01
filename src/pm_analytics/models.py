"""Data models for PM analytics.

Snapshot entities are parsed once per invocation and never mutated; report
values are frozen so a computed ``Report`` can be shared freely.
"""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class User:
    """An author or assignee on the source platform."""

    name: str
    username: str

    @property
    def display_name(self) -> str:
        return self.name or self.username or "Unknown"


@dataclass(frozen=True)
class IssueLink:
    """A typed link from one issue to another issue in the same project."""

    target_iid: int
    relation: str  # "blocks" | "blocked_by" | "relates_to"


@dataclass(frozen=True)
class EpicRef:
    id: int
    title: str


@dataclass(frozen=True)
class MilestoneRef:
    id: int
    title: str
    due_date: date | None = None


@dataclass(frozen=True)
class Issue:
    """A unit of work tracked by the source platform."""

    id: int
    iid: int
    title: str
    state: str  # "opened" | "closed"
    created_at: datetime
    description: str = ""
    author: User | None = None
    assignees: tuple[User, ...] = ()
    labels: tuple[str, ...] = ()
    epic: EpicRef | None = None
    milestone: MilestoneRef | None = None
    weight: int | None = None
    due_date: date | None = None
    updated_at: datetime | None = None
    closed_at: datetime | None = None
    web_url: str = ""
    links: tuple[IssueLink, ...] = ()
    warnings: tuple[str, ...] = ()  # temporal problems found while parsing

    @property
    def is_open(self) -> bool:
        return self.state == "opened"


@dataclass(frozen=True)
class Epic:
    """A container grouping related issues."""

    id: int
    title: str
    labels: tuple[str, ...] = ()
    start_date: date | None = None
    end_date: date | None = None
    parent_id: int | None = None
    web_url: str = ""


@dataclass(frozen=True)
class Milestone:
    id: int
    title: str
    state: str = "active"
    start_date: date | None = None
    due_date: date | None = None


@dataclass(frozen=True)
class Snapshot:
    """Normalised input delivered by the data-fetch layer."""

    issues: tuple[Issue, ...] = ()
    epics: tuple[Epic, ...] = ()
    milestones: tuple[Milestone, ...] = ()


@dataclass(frozen=True)
class DataIssue:
    """A data-quality problem reported alongside the report."""

    kind: str  # "shape" | "temporal" | "config"
    entity: str  # "issue" | "epic" | "milestone" | "snapshot" | "config"
    entity_id: int | str | None
    message: str


@dataclass(frozen=True)
class CriterionSettings:
    """Effective settings for a single quality criterion."""

    key: str
    enabled: bool
    severity: str  # "high" | "medium" | "low"
    threshold: int | None = None


# --- Compliance -----------------------------------------------------------


@dataclass(frozen=True)
class StaleStatus:
    is_stale: bool
    days_open: int | None
    severity: str | None  # "warning" | "critical"


@dataclass(frozen=True)
class Violation:
    criterion: str
    name: str
    severity: str
    payload: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ComplianceResult:
    issue: Issue
    violations: tuple[Violation, ...]
    passed: tuple[str, ...]
    compliance_score: int
    is_compliant: bool
    stale_status: StaleStatus
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class StaleBuckets:
    critical: int = 0
    warning: int = 0
    total: int = 0


@dataclass(frozen=True)
class ComplianceStats:
    total: int
    compliant: int
    non_compliant: int
    compliance_rate: int
    violations_by_criterion: dict[str, int]
    high_severity: int
    medium_severity: int
    low_severity: int
    stale: StaleBuckets


@dataclass(frozen=True)
class CriterionCount:
    criterion: str
    name: str
    count: int


@dataclass(frozen=True)
class AuthorRollup:
    """Violations attributed to one assignee (or "Unassigned")."""

    name: str
    total_violations: int
    high: int
    medium: int
    low: int
    by_criterion: tuple[CriterionCount, ...]
    issues: tuple[Issue, ...]
    issue_count: int


# --- Definition of done ---------------------------------------------------


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    label: str
    required: bool = True
    checked: bool = False


@dataclass(frozen=True)
class DoDTemplate:
    key: str
    name: str
    items: tuple[ChecklistItem, ...]


@dataclass(frozen=True)
class DoDResult:
    issue: Issue
    issue_type: str  # "bug" | "feature" | "task"
    template: str
    checklist_items: tuple[ChecklistItem, ...]
    missing_items: tuple[ChecklistItem, ...]
    checked_items: tuple[ChecklistItem, ...]
    required_count: int
    checked_required_count: int
    compliance_percentage: int
    is_compliant: bool


@dataclass(frozen=True)
class DoDStats:
    total_issues: int
    compliant_issues: int
    violating_issues: int
    compliance_rate: int
    avg_compliance_percentage: int


# --- Initiatives and teams ------------------------------------------------


@dataclass(frozen=True)
class Initiative:
    """A cross-epic grouping identified by an ``initiative::<slug>`` label."""

    slug: str
    name: str
    epics: tuple[Epic, ...]
    issues: tuple[Issue, ...]
    total_issues: int
    closed_issues: int
    open_issues: int
    progress: int
    status: str  # "not-started" | "in-progress" | "at-risk" | "blocked" | "complete"
    priority: str  # "high" | "medium" | "low"
    start_date: date | None = None
    due_date: date | None = None


@dataclass(frozen=True)
class InitiativeSummary:
    slug: str
    name: str
    progress: int
    status: str


@dataclass(frozen=True)
class Team:
    slug: str
    name: str
    members: tuple[str, ...]
    member_count: int
    issue_count: int
    open_issue_count: int
    closed_issue_count: int
    completion_rate: int
    initiatives: tuple[str, ...]
    active_initiative_count: int
    capacity_score: int
    capacity_status: str  # "healthy" | "at-capacity" | "overloaded"


@dataclass(frozen=True)
class TeamCapacity:
    team: str
    name: str
    member_count: int
    initiative_count: int
    active_initiative_count: int
    open_issue_count: int
    total_issue_count: int
    completion_rate: int
    capacity_status: str
    capacity_score: int
    initiatives: tuple[InitiativeSummary, ...]


@dataclass(frozen=True)
class TeamShare:
    """One team's share of an initiative."""

    team: str
    name: str
    issue_count: int
    open_issues: int
    closed_issues: int
    completion_rate: int
    story_points: int
    member_count: int
    percentage: int


@dataclass(frozen=True)
class InitiativeAttribution:
    initiative: str
    initiative_name: str
    teams: tuple[TeamShare, ...]
    primary_team: str
    is_multi_team: bool
    team_count: int
    unassigned_issues: int


@dataclass(frozen=True)
class Contention:
    username: str
    name: str
    initiatives: tuple[str, ...]
    initiative_count: int
    total_issues: int
    high_priority_count: int
    teams: tuple[str, ...]
    contention_level: int

    @property
    def level_label(self) -> str:
        if self.contention_level >= 70:
            return "Critical"
        if self.contention_level >= 40:
            return "High"
        return "Medium"


# --- Dependencies ---------------------------------------------------------


@dataclass(frozen=True)
class DependencyPair:
    blocked_iid: int
    blocking_iid: int
    relation: str
    is_open: bool  # blocking-side issue is still open


@dataclass(frozen=True)
class DependencyEdge:
    """``source`` depends on (is blocked by) ``target``."""

    source: str
    target: str
    pairs: tuple[DependencyPair, ...]
    count: int
    open_count: int
    severity: str


@dataclass(frozen=True)
class BlockingRoot:
    initiative: str
    name: str
    severity: str
    blocked_initiatives: tuple[str, ...]
    total_blocked_issues: int
    cascade_impact: tuple[str, ...]
    ambiguous: bool


@dataclass(frozen=True)
class DependencyMatrix:
    initiatives: tuple[str, ...]
    cells: tuple[tuple[int | str, ...], ...]


# --- Forecasts ------------------------------------------------------------


@dataclass(frozen=True)
class Velocity:
    weekly_average: float
    sample_size: int


@dataclass(frozen=True)
class Variance:
    optimistic_weeks: float | None
    pessimistic_weeks: float | None


@dataclass(frozen=True)
class ForecastComparison:
    has_due_date: bool
    has_forecast: bool
    weeks_gap: int | None
    is_late: bool
    status: str  # "on-track" | "warning" | "at-risk" | "no-data"


@dataclass(frozen=True)
class Forecast:
    initiative: str
    initiative_name: str
    remaining_issues: int
    velocity: Velocity
    forecast_date: datetime | None
    weeks_to_done: float | None
    variance: Variance
    confidence: int
    comparison: ForecastComparison
    due_date: date | None = None


@dataclass(frozen=True)
class Report:
    """Complete, frozen result of one engine invocation."""

    compliance_results: tuple[ComplianceResult, ...]
    stats: ComplianceStats
    author_rollup: tuple[AuthorRollup, ...]
    dod_results: tuple[DoDResult, ...]
    initiatives: tuple[Initiative, ...]
    teams: tuple[Team, ...]
    team_capacity: tuple[TeamCapacity, ...]
    initiative_attributions: tuple[InitiativeAttribution, ...]
    contention: tuple[Contention, ...]
    dependencies: tuple[DependencyEdge, ...]
    dependency_matrix: DependencyMatrix
    blocking_roots: tuple[BlockingRoot, ...]
    forecasts: tuple[Forecast, ...]
    shape_errors: tuple[DataIssue, ...]
    dod_stats: DoDStats | None = None
    critical_path: tuple[str, ...] = ()
    critical_path_ambiguous: bool = False
    warnings: tuple[DataIssue, ...] = ()
