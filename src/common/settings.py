# ABOUTME: Loads and validates per-institution risk thresholds and study plan defaults.
# ABOUTME: Reads YAML config files and merges partial updates with validation.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import InvalidInput


@dataclass(frozen=True)
class RiskThresholds:
    """Three ascending cut points gating the four risk tiers."""

    low: float = 25.0
    medium: float = 50.0
    high: float = 75.0


@dataclass(frozen=True)
class InstitutionSettings:
    low_risk_threshold: float = 25.0
    medium_risk_threshold: float = 50.0
    high_risk_threshold: float = 75.0
    default_weekly_hours: float = 20.0
    default_daily_hours_cap: float = 4.0
    accommodations_multiplier: float = 0.75
    disclaimer_text: Optional[str] = None
    enable_auto_alerts: bool = True
    enable_study_plan_engine: bool = True
    custom_settings: Mapping[str, Any] = field(default_factory=dict)

    @property
    def thresholds(self) -> RiskThresholds:
        return RiskThresholds(
            low=self.low_risk_threshold,
            medium=self.medium_risk_threshold,
            high=self.high_risk_threshold,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


SETTING_KEYS = tuple(f.name for f in fields(InstitutionSettings))


def validate_thresholds(low: float, medium: float, high: float) -> RiskThresholds:
    """
    Check that thresholds are strictly ascending and inside [0, 100].
    """

    if low >= medium or medium >= high:
        raise InvalidInput("Risk thresholds must be in ascending order: low < medium < high")
    for value in (low, medium, high):
        if value < 0 or value > 100:
            raise InvalidInput("Risk thresholds must be between 0 and 100")
    return RiskThresholds(low=float(low), medium=float(medium), high=float(high))


def validate_settings(settings: InstitutionSettings) -> InstitutionSettings:
    validate_thresholds(
        settings.low_risk_threshold,
        settings.medium_risk_threshold,
        settings.high_risk_threshold,
    )
    if settings.default_weekly_hours <= 0:
        raise InvalidInput("Default weekly hours must be greater than 0")
    if settings.default_daily_hours_cap <= 0:
        raise InvalidInput("Default daily hours cap must be greater than 0")
    if settings.accommodations_multiplier <= 0 or settings.accommodations_multiplier > 1:
        raise InvalidInput("Accommodations multiplier must be between 0 and 1")
    return settings


def _check_keys(values: Mapping[str, Any]) -> None:
    unknown = sorted(set(values) - set(SETTING_KEYS))
    if unknown:
        raise InvalidInput(f"Unknown institution setting(s): {', '.join(unknown)}")


def settings_from_mapping(
    values: Optional[Mapping[str, Any]],
    defaults: Optional[InstitutionSettings] = None,
) -> InstitutionSettings:
    """Validated settings from a mapping; missing keys come from defaults."""
    if values is None:
        values = {}
    if not isinstance(values, Mapping):
        raise InvalidInput(f"Expected a mapping of institution settings, got {type(values).__name__}")
    return apply_settings_update(defaults or InstitutionSettings(), values)


def _read_yaml_mapping(config_path: Path) -> Dict[str, Any]:
    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise InvalidInput(f"Expected a mapping of settings in {config_path}")
    return cfg


def load_institution_settings(config_path: Path) -> InstitutionSettings:
    """
    Read institution settings from a YAML file; missing keys keep their defaults.
    """

    cfg = _read_yaml_mapping(config_path)
    return settings_from_mapping(cfg.get("institution", cfg))


def load_settings_by_institution(
    config_path: Path,
    defaults: Optional[InstitutionSettings] = None,
) -> Dict[str, InstitutionSettings]:
    """
    Read a YAML mapping of institution id to settings overrides.

    Each entry is merged over defaults; an entry that is not a mapping raises
    InvalidInput naming the institution.
    """

    settings: Dict[str, InstitutionSettings] = {}
    for institution_id, values in _read_yaml_mapping(config_path).items():
        if values is not None and not isinstance(values, Mapping):
            raise InvalidInput(f"{config_path}: settings for institution '{institution_id}' must be a mapping")
        settings[str(institution_id)] = settings_from_mapping(values, defaults)
    return settings


def apply_settings_update(current: InstitutionSettings, updates: Mapping[str, Any]) -> InstitutionSettings:
    """
    Merge a partial update over current settings and validate the result.

    Thresholds not present in the update fall back to the current values, so a
    single threshold can be moved as long as the ordering still holds.
    """

    _check_keys(updates)
    return validate_settings(replace(current, **dict(updates)))


def apply_accommodations_multiplier(
    base_value: float,
    has_accommodations: bool,
    settings: InstitutionSettings,
) -> float:
    if not has_accommodations:
        return base_value
    return base_value * settings.accommodations_multiplier
