"""Configuration management for PM analytics.

User overrides are merged onto the defaults by ``resolve_config``. Invalid
values fall back to their default and are recorded on the effective config
instead of raising. Persistence of overrides is a TOML file under the user's
home directory.
"""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from pm_analytics.criteria import CRITERIA, CRITERIA_BY_KEY
from pm_analytics.dod import DEFAULT_DOD_TEMPLATES
from pm_analytics.exceptions import ConfigError
from pm_analytics.models import ChecklistItem, CriterionSettings, DataIssue, DoDTemplate

logger = logging.getLogger(__name__)

SEVERITIES = ("high", "medium", "low")

DEFAULT_STALE_WARNING_DAYS = 30
DEFAULT_STALE_CRITICAL_DAYS = 60
DEFAULT_FORECAST_WINDOW_WEEKS = 12
DEFAULT_FORECAST_MIN_SAMPLES = 3


@dataclass(frozen=True)
class EffectiveConfig:
    """Resolved ruleset handed to the engine."""

    criteria: tuple[CriterionSettings, ...]
    stale_warning_days: int = DEFAULT_STALE_WARNING_DAYS
    stale_critical_days: int = DEFAULT_STALE_CRITICAL_DAYS
    forecast_window_weeks: int = DEFAULT_FORECAST_WINDOW_WEEKS
    forecast_min_samples: int = DEFAULT_FORECAST_MIN_SAMPLES
    dod_templates: dict[str, DoDTemplate] = field(
        default_factory=lambda: dict(DEFAULT_DOD_TEMPLATES)
    )
    errors: tuple[DataIssue, ...] = ()

    @property
    def enabled_criteria(self) -> tuple[CriterionSettings, ...]:
        """Enabled criteria in canonical order."""
        return tuple(c for c in self.criteria if c.enabled)

    @property
    def enabled_keys(self) -> tuple[str, ...]:
        return tuple(c.key for c in self.enabled_criteria)

    def settings(self, key: str) -> CriterionSettings:
        for criterion in self.criteria:
            if criterion.key == key:
                return criterion
        raise KeyError(key)


def _merge(target: dict, source: dict) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value


def _expand_dotted(overrides: dict) -> dict:
    """Turn ``{"a.b.c": 1}`` into ``{"a": {"b": {"c": 1}}}``, merging nested input."""
    expanded: dict = {}
    for key, value in overrides.items():
        if isinstance(value, dict):
            value = _expand_dotted(value)
        head, *rest = str(key).split(".")
        for part in reversed(rest):
            value = {part: value}
        _merge(expanded, {head: value})
    return expanded


def _positive_int(value, default: int, option: str, errors: list[DataIssue]) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        errors.append(DataIssue(
            kind="config",
            entity="config",
            entity_id=option,
            message=f"{option} must be a positive integer, got {value!r}; using {default}",
        ))
        return default
    return value


def _null_options(value, option: str = "") -> list[str]:
    """Dotted paths of null values, which TOML cannot store."""
    if value is None:
        return [option]
    if isinstance(value, dict):
        items = [(str(key), item) for key, item in value.items()]
    elif isinstance(value, list):
        items = [(str(index), item) for index, item in enumerate(value)]
    else:
        return []
    found = []
    for key, item in items:
        found.extend(_null_options(item, f"{option}.{key}" if option else key))
    return found


def _section(data: dict, name: str, errors: list[DataIssue]) -> dict:
    value = data.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(DataIssue("config", "config", name, f"{name} must be a table"))
        return {}
    return value


def _resolve_criteria(section, errors: list[DataIssue]) -> tuple[CriterionSettings, ...]:
    if not isinstance(section, dict):
        if section is not None:
            errors.append(DataIssue("config", "config", "criteria", "criteria must be a table"))
        section = {}

    for key in section:
        if key not in CRITERIA_BY_KEY:
            errors.append(DataIssue(
                "config", "config", f"criteria.{key}", f"Unknown criterion '{key}' ignored"
            ))

    resolved = []
    for criterion in CRITERIA:
        option = f"criteria.{criterion.key}"
        raw = section.get(criterion.key)
        if raw is None:
            raw = {}
        elif not isinstance(raw, dict):
            errors.append(DataIssue("config", "config", option, f"{option} must be a table"))
            raw = {}

        enabled = raw.get("enabled", True)
        if not isinstance(enabled, bool):
            errors.append(DataIssue(
                "config", "config", f"{option}.enabled",
                f"{option}.enabled must be true or false, got {enabled!r}; using true",
            ))
            enabled = True

        severity = raw.get("severity", criterion.severity)
        if severity not in SEVERITIES:
            errors.append(DataIssue(
                "config", "config", f"{option}.severity",
                f"{option}.severity must be one of {', '.join(SEVERITIES)}, "
                f"got {severity!r}; using {criterion.severity}",
            ))
            severity = criterion.severity

        threshold = criterion.threshold
        if criterion.threshold is not None:
            threshold = _positive_int(
                raw.get("threshold"), criterion.threshold, f"{option}.threshold", errors
            )

        resolved.append(CriterionSettings(
            key=criterion.key, enabled=enabled, severity=severity, threshold=threshold,
        ))
    return tuple(resolved)


def _resolve_templates(section, errors: list[DataIssue]) -> dict[str, DoDTemplate]:
    templates = dict(DEFAULT_DOD_TEMPLATES)
    if not isinstance(section, dict):
        return templates

    for key, raw in _section(section, "templates", errors).items():
        option = f"dod.templates.{key}"
        try:
            items = tuple(
                ChecklistItem(
                    id=str(item.get("id") or item["label"]),
                    label=str(item["label"]),
                    required=bool(item.get("required", True)),
                )
                for item in raw["items"]
            )
        except (KeyError, TypeError, AttributeError):
            errors.append(DataIssue(
                "config", "config", option,
                f"{option} must have items with a label; keeping the default template",
            ))
            continue
        templates[key] = DoDTemplate(key=key, name=str(raw.get("name") or key.title()), items=items)
    return templates


def resolve_config(overrides: dict | None = None, strict: bool = False) -> EffectiveConfig:
    """Merge user overrides onto the defaults.

    By default never raises for bad values: each invalid option falls back
    to its default and is listed in ``EffectiveConfig.errors``. Null values
    mean "use the default" unless ``strict`` is set, where they are rejected
    so the overrides stay storable as TOML.

    Raises:
        ConfigError: If ``strict`` is set and any option is invalid
    """
    data = _expand_dotted(overrides or {})
    errors: list[DataIssue] = []

    criteria = _resolve_criteria(data.get("criteria"), errors)

    stale = _section(data, "staleThresholds", errors)
    warning = _positive_int(
        stale.get("warning"), DEFAULT_STALE_WARNING_DAYS, "staleThresholds.warning", errors
    )
    critical = _positive_int(
        stale.get("critical"), DEFAULT_STALE_CRITICAL_DAYS, "staleThresholds.critical", errors
    )
    if warning > critical:
        errors.append(DataIssue(
            "config", "config", "staleThresholds",
            f"staleThresholds.warning ({warning}) exceeds critical ({critical}); using defaults",
        ))
        warning, critical = DEFAULT_STALE_WARNING_DAYS, DEFAULT_STALE_CRITICAL_DAYS

    forecast = _section(data, "forecast", errors)
    window = _positive_int(
        forecast.get("windowWeeks"), DEFAULT_FORECAST_WINDOW_WEEKS, "forecast.windowWeeks", errors
    )
    min_samples = _positive_int(
        forecast.get("minSamples"), DEFAULT_FORECAST_MIN_SAMPLES, "forecast.minSamples", errors
    )

    templates = _resolve_templates(data.get("dod"), errors)

    if strict:
        for option in _null_options(data):
            errors.append(DataIssue("config", "config", option, f"{option} must not be null"))
    if strict and errors:
        raise ConfigError("; ".join(error.message for error in errors))

    for error in errors:
        logger.warning("Config fallback: %s", error.message)

    return EffectiveConfig(
        criteria=criteria,
        stale_warning_days=warning,
        stale_critical_days=critical,
        forecast_window_weeks=window,
        forecast_min_samples=min_samples,
        dod_templates=templates,
        errors=tuple(errors),
    )


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".pm-analytics"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def load_overrides() -> dict:
    """Load user overrides from the TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If the file is not valid TOML
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.pm-analytics/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        return tomllib.load(f)


def load_config() -> EffectiveConfig:
    """Load and resolve the persisted overrides; defaults when no file exists."""
    if not config_exists():
        return resolve_config()
    return resolve_config(load_overrides())


def save_overrides(overrides: dict) -> None:
    """Save user overrides to the TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    with open(get_config_path(), "wb") as f:
        tomli_w.dump(_expand_dotted(overrides), f)
