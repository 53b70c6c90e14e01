"""Label and field predicates.

All label matching is case-insensitive. Scoped labels follow the
``scope::value`` convention of the source platform.
"""

import re

TEAM_PREFIX = "team::"
INITIATIVE_PREFIX = "initiative::"
TYPE_PREFIX = "type::"

_PRIORITY_TOKEN = re.compile(r"p([1-3])")
_TYPE_KEYWORDS = ("bug", "feature", "enhancement")


def is_blocker_label(label: str) -> bool:
    lower = label.lower()
    return "blocker" in lower or "blocked" in lower


def has_blocker_label(labels) -> bool:
    return any(is_blocker_label(label) for label in labels)


def is_type_label(label: str) -> bool:
    lower = label.lower()
    return lower.startswith(TYPE_PREFIX) or any(word in lower for word in _TYPE_KEYWORDS)


def has_type_label(labels) -> bool:
    return any(is_type_label(label) for label in labels)


def is_priority_label(label: str) -> bool:
    lower = label.lower()
    return "priority" in lower or _PRIORITY_TOKEN.search(lower) is not None


def has_priority_label(labels) -> bool:
    return any(is_priority_label(label) for label in labels)


def priority_token(label: str) -> int | None:
    """Numeric priority (1-3) carried by a ``p1``..``p3`` token, if any."""
    match = _PRIORITY_TOKEN.search(label.lower())
    return int(match.group(1)) if match else None


def is_high_priority_label(label: str) -> bool:
    """P1/P2 tokens and priority labels naming ``high`` or ``critical``."""
    if not is_priority_label(label):
        return False
    lower = label.lower()
    token = priority_token(lower)
    if token is not None and token <= 2:
        return True
    return "high" in lower or "critical" in lower


def is_low_priority_label(label: str) -> bool:
    if not is_priority_label(label) or is_high_priority_label(label):
        return False
    return priority_token(label) == 3 or "low" in label.lower()


def priority_level(labels) -> str:
    """Collapse priority labels into ``high``, ``medium`` or ``low``.

    Labels without any priority token leave the level at ``medium``.
    """
    labels = list(labels)
    if any(is_high_priority_label(label) for label in labels):
        return "high"
    priority_labels = [label for label in labels if is_priority_label(label)]
    if priority_labels and all(is_low_priority_label(label) for label in priority_labels):
        return "low"
    return "medium"


def _scoped_slug(label: str, prefix: str) -> str | None:
    lower = label.strip().lower()
    if not lower.startswith(prefix):
        return None
    value = lower[len(prefix):].split("::")[0].strip()
    slug = "-".join(value.split())
    return slug or None


def team_slug(label: str) -> str | None:
    return _scoped_slug(label, TEAM_PREFIX)


def team_slugs(labels) -> tuple[str, ...]:
    """Distinct team slugs carried by ``labels``, sorted."""
    return tuple(sorted({slug for slug in map(team_slug, labels) if slug}))


def initiative_slug(label: str) -> str | None:
    return _scoped_slug(label, INITIATIVE_PREFIX)


def initiative_slugs(labels) -> tuple[str, ...]:
    return tuple(sorted({slug for slug in map(initiative_slug, labels) if slug}))


def humanize_slug(slug: str) -> str:
    """``checkout-revamp`` -> ``Checkout Revamp``."""
    words = slug.replace("_", " ").replace("-", " ").split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def infer_issue_type(labels) -> str:
    """Pick the DoD issue type from labels: bug over feature over task."""
    type_labels = [label.lower() for label in labels if is_type_label(label)]
    if any("bug" in label for label in type_labels):
        return "bug"
    if any("feature" in label or "enhancement" in label for label in type_labels):
        return "feature"
    return "task"


def description_present(description: str | None, threshold: int) -> bool:
    return len((description or "").strip()) >= threshold


def assignee_present(assignees) -> bool:
    return len(assignees) > 0


def weight_present(weight: int | None) -> bool:
    return weight is not None and weight > 0
