"""Tests for configuration resolution and persistence."""

from unittest.mock import patch

import pytest

from pm_analytics.config import (
    DEFAULT_STALE_CRITICAL_DAYS,
    DEFAULT_STALE_WARNING_DAYS,
    config_exists,
    load_config,
    load_overrides,
    resolve_config,
    save_overrides,
)
from pm_analytics.criteria import CRITERION_KEYS
from pm_analytics.exceptions import ConfigError


def _error_ids(config):
    return [error.entity_id for error in config.errors]


class TestResolveConfig:
    """Tests for resolve_config."""

    def test_defaults(self):
        config = resolve_config()
        assert config.enabled_keys == CRITERION_KEYS
        assert config.settings("description").threshold == 20
        assert config.stale_warning_days == 30
        assert config.stale_critical_days == 60
        assert config.forecast_window_weeks == 12
        assert config.forecast_min_samples == 3
        assert config.errors == ()

    def test_dotted_override(self):
        config = resolve_config({"criteria.stale.enabled": False})
        assert "stale" not in config.enabled_keys
        assert len(config.enabled_criteria) == 8

    def test_nested_and_dotted_merge(self):
        config = resolve_config({
            "criteria.weight.enabled": False,
            "criteria": {"weight": {"severity": "low"}},
        })
        weight = config.settings("weight")
        assert weight.enabled is False
        assert weight.severity == "low"

    def test_enabled_order_is_canonical(self):
        config = resolve_config({"criteria": {"epic": {"enabled": False}}})
        keys = list(CRITERION_KEYS)
        keys.remove("epic")
        assert list(config.enabled_keys) == keys

    def test_invalid_severity_falls_back(self):
        config = resolve_config({"criteria.assignee.severity": "urgent"})
        assert config.settings("assignee").severity == "high"
        assert _error_ids(config) == ["criteria.assignee.severity"]
        assert config.errors[0].kind == "config"

    def test_non_positive_threshold_falls_back(self):
        config = resolve_config({"criteria.description.threshold": 0})
        assert config.settings("description").threshold == 20
        assert _error_ids(config) == ["criteria.description.threshold"]

    def test_boolean_threshold_rejected(self):
        config = resolve_config({"criteria.description.threshold": True})
        assert config.settings("description").threshold == 20
        assert len(config.errors) == 1

    def test_non_boolean_enabled_rejected(self):
        config = resolve_config({"criteria.epic.enabled": "no"})
        assert config.settings("epic").enabled is True
        assert _error_ids(config) == ["criteria.epic.enabled"]

    def test_unknown_criterion_reported(self):
        config = resolve_config({"criteria": {"colour": {"enabled": True}}})
        assert _error_ids(config) == ["criteria.colour"]
        assert config.enabled_keys == CRITERION_KEYS

    def test_warning_above_critical_reverts_both(self):
        config = resolve_config({"staleThresholds": {"warning": 90, "critical": 45}})
        assert config.stale_warning_days == DEFAULT_STALE_WARNING_DAYS
        assert config.stale_critical_days == DEFAULT_STALE_CRITICAL_DAYS
        assert _error_ids(config) == ["staleThresholds"]

    def test_custom_stale_thresholds(self):
        config = resolve_config({"staleThresholds.warning": 10, "staleThresholds.critical": 20})
        assert (config.stale_warning_days, config.stale_critical_days) == (10, 20)

    def test_forecast_options_must_be_integers(self):
        config = resolve_config({"forecast": {"windowWeeks": "8", "minSamples": 2}})
        assert config.forecast_window_weeks == 12
        assert config.forecast_min_samples == 2
        assert _error_ids(config) == ["forecast.windowWeeks"]

    def test_section_must_be_table(self):
        config = resolve_config({"staleThresholds": 30})
        assert config.stale_warning_days == DEFAULT_STALE_WARNING_DAYS
        assert _error_ids(config) == ["staleThresholds"]

    @pytest.mark.parametrize("value", [0, "", False])
    def test_falsy_criterion_value_must_be_table(self, value):
        config = resolve_config({"criteria": {"weight": value}})
        assert config.settings("weight").enabled
        assert _error_ids(config) == ["criteria.weight"]

    def test_null_means_default_when_lenient(self):
        config = resolve_config({"forecast": {"windowWeeks": None}})
        assert config.forecast_window_weeks == 12
        assert config.errors == ()

    def test_strict_rejects_null(self):
        with pytest.raises(ConfigError, match="forecast.windowWeeks must not be null"):
            resolve_config({"forecast": {"windowWeeks": None}}, strict=True)

    def test_strict_raises(self):
        with pytest.raises(ConfigError, match="urgent"):
            resolve_config({"criteria.assignee.severity": "urgent"}, strict=True)

    def test_strict_accepts_valid(self):
        config = resolve_config({"criteria.stale.enabled": False}, strict=True)
        assert config.errors == ()


class TestDoDTemplateOverrides:
    """Tests for dod.templates overrides."""

    def test_replaces_template_for_type(self):
        config = resolve_config({
            "dod": {"templates": {"feature": {
                "name": "Lean Feature",
                "items": [{"id": "tests", "label": "Tests"}, {"label": "Docs", "required": False}],
            }}},
        })
        template = config.dod_templates["feature"]
        assert template.name == "Lean Feature"
        assert [item.id for item in template.items] == ["tests", "Docs"]
        assert [item.required for item in template.items] == [True, False]
        assert config.dod_templates["bug"].name == "Bug Fix"

    def test_malformed_template_keeps_default(self):
        config = resolve_config({"dod.templates.bug": {"items": [{"id": "x"}]}})
        assert config.dod_templates["bug"].name == "Bug Fix"
        assert _error_ids(config) == ["dod.templates.bug"]


class TestConfigPersistence:
    """Tests for TOML load/save of overrides."""

    def test_load_overrides_missing_file(self, tmp_path):
        with patch("pm_analytics.config.get_config_dir", return_value=tmp_path / "cfg"):
            assert not config_exists()
            with pytest.raises(FileNotFoundError):
                load_overrides()

    def test_load_config_defaults_without_file(self, tmp_path):
        with patch("pm_analytics.config.get_config_dir", return_value=tmp_path / "cfg"):
            config = load_config()
        assert config.enabled_keys == CRITERION_KEYS

    def test_save_then_load(self, tmp_path):
        with patch("pm_analytics.config.get_config_dir", return_value=tmp_path / "cfg"):
            save_overrides({"criteria.stale.enabled": False, "staleThresholds": {"warning": 10}})
            assert config_exists()
            assert load_overrides() == {
                "criteria": {"stale": {"enabled": False}},
                "staleThresholds": {"warning": 10},
            }
            config = load_config()
        assert "stale" not in config.enabled_keys
        assert config.stale_warning_days == 10

    def test_malformed_toml_raises_value_error(self, tmp_path):
        config_dir = tmp_path / "cfg"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text("criteria = [unclosed")
        with patch("pm_analytics.config.get_config_dir", return_value=config_dir):
            with pytest.raises(ValueError):
                load_overrides()
