"""Definition of Done (DoD) evaluation.

Templates are chosen by the issue type inferred from labels. An item counts
as done when a checked checklist line in the description mentions its label.
"""

import re

from pm_analytics.labels import infer_issue_type
from pm_analytics.mathutil import round_half_up
from pm_analytics.models import ChecklistItem, DoDResult, DoDStats, DoDTemplate, Issue

DEFAULT_DOD_TEMPLATES: dict[str, DoDTemplate] = {
    "feature": DoDTemplate(
        key="feature",
        name="Feature",
        items=(
            ChecklistItem("acceptance-criteria", "Acceptance criteria met", required=True),
            ChecklistItem("code-review", "Code reviewed", required=True),
            ChecklistItem("unit-tests", "Unit tests written", required=True),
            ChecklistItem("documentation", "Documentation updated", required=True),
            ChecklistItem("demo", "Demoed to Product Owner", required=False),
        ),
    ),
    "bug": DoDTemplate(
        key="bug",
        name="Bug Fix",
        items=(
            ChecklistItem("root-cause", "Root cause documented", required=True),
            ChecklistItem("code-review", "Code reviewed", required=True),
            ChecklistItem("test-case", "Regression test added", required=True),
            ChecklistItem("fix-verified", "Fix verified in staging", required=True),
        ),
    ),
    "task": DoDTemplate(
        key="task",
        name="Task",
        items=(
            ChecklistItem("code-review", "Code reviewed", required=True),
            ChecklistItem("acceptance-criteria", "Acceptance criteria met", required=True),
            ChecklistItem("documentation", "Documentation updated", required=False),
        ),
    ),
}

_CHECKLIST_LINE = re.compile(r"^\s*-\s*\[([ xX])\]\s*(.*?)\s*$")


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


def parse_checklist(description: str | None) -> list[tuple[bool, str]]:
    """Return ``(checked, text)`` for every ``- [ ]`` / ``- [x]`` line."""
    entries = []
    for line in (description or "").splitlines():
        match = _CHECKLIST_LINE.match(line)
        if match:
            entries.append((match.group(1).lower() == "x", _normalize(match.group(2))))
    return entries


def select_template(issue_type: str, templates: dict[str, DoDTemplate]) -> DoDTemplate:
    if issue_type in templates:
        return templates[issue_type]
    if "task" in templates:
        return templates["task"]
    return DEFAULT_DOD_TEMPLATES.get(issue_type, DEFAULT_DOD_TEMPLATES["task"])


def evaluate_dod(issue: Issue, templates: dict[str, DoDTemplate] | None = None) -> DoDResult:
    """Check an issue's description against the DoD template for its type."""
    templates = templates or DEFAULT_DOD_TEMPLATES
    issue_type = infer_issue_type(issue.labels)
    template = select_template(issue_type, templates)
    entries = parse_checklist(issue.description)

    items = []
    for item in template.items:
        label = _normalize(item.label)
        checked = any(is_checked and label in text for is_checked, text in entries)
        items.append(ChecklistItem(item.id, item.label, item.required, checked))

    required = [item for item in items if item.required]
    checked_required = [item for item in required if item.checked]
    missing = tuple(item for item in required if not item.checked)
    if required:
        pct = round_half_up(len(checked_required) / len(required) * 100)
    else:
        pct = 100

    return DoDResult(
        issue=issue,
        issue_type=issue_type,
        template=template.name,
        checklist_items=tuple(items),
        missing_items=missing,
        checked_items=tuple(item for item in items if item.checked),
        required_count=len(required),
        checked_required_count=len(checked_required),
        compliance_percentage=pct,
        is_compliant=not missing,
    )


def needs_dod_review(issue: Issue) -> bool:
    """Closed issues and issues labelled for review are held to the DoD."""
    return not issue.is_open or any("review" in label.lower() for label in issue.labels)


def dod_violations(results) -> list[DoDResult]:
    """Non-compliant reviewed issues, worst first."""
    violating = [r for r in results if needs_dod_review(r.issue) and not r.is_compliant]
    return sorted(violating, key=lambda r: (r.compliance_percentage, r.issue.iid))


def dod_stats(results) -> DoDStats:
    relevant = [r for r in results if needs_dod_review(r.issue)]
    if not relevant:
        return DoDStats(
            total_issues=0,
            compliant_issues=0,
            violating_issues=0,
            compliance_rate=100,
            avg_compliance_percentage=100,
        )

    compliant = sum(1 for r in relevant if r.is_compliant)
    return DoDStats(
        total_issues=len(relevant),
        compliant_issues=compliant,
        violating_issues=len(relevant) - compliant,
        compliance_rate=round_half_up(compliant / len(relevant) * 100),
        avg_compliance_percentage=round_half_up(
            sum(r.compliance_percentage for r in relevant) / len(relevant)
        ),
    )
