from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from step_pipeline.config.models import PipelineSettings
from step_pipeline.kernel.errors import ConfigurationError

SETTINGS_SECTION = "step_pipeline"


def load_yaml_config(path: Path) -> dict[str, object]:
    # YAML loader; returns a raw mapping for validation.
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Config root must be a mapping")
    return raw


def settings_from_mapping(raw: dict[str, object]) -> PipelineSettings:
    # Settings may sit at the root or under a dedicated section of a shared file.
    section = raw.get(SETTINGS_SECTION, raw)
    if not isinstance(section, dict):
        raise ConfigurationError(f"{SETTINGS_SECTION} must be a mapping")
    try:
        return PipelineSettings.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid pipeline settings: {exc}") from exc


def load_settings(path: Path) -> PipelineSettings:
    return settings_from_mapping(load_yaml_config(Path(path)))
