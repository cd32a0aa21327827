from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, field_validator

# Settings map the step_pipeline YAML section to a typed, immutable structure.


class PipelineSettings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    # When true, continue_ also stops once halt() has set the flag, not only when a halt check fires.
    honor_halt_flag: bool = False
    # Minimum level accepted by capture_logging; NOTSET captures everything.
    log_capture_level: int = logging.NOTSET
    # execute() raises collected soft-expectation failures after the run.
    verify_expectations: bool = True

    @field_validator("log_capture_level", mode="before")
    @classmethod
    def _normalize_level(cls, value: object) -> object:
        # Level names ("debug", "WARNING") are normalized to their numeric value.
        if isinstance(value, str):
            level = logging.getLevelName(value.strip().upper())
            if not isinstance(level, int):
                raise ValueError(f"unknown logging level: {value!r}")
            return level
        return value
