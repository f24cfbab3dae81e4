"""Configuration for the automation engine.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Settings for the workflow engine.

    Environment variables:
    - LOG_LEVEL                      (optional)
    - LOG_FORMAT                     (optional: json | text)
    - KENNEL_WORKFLOWS_PATH          (optional)
    - KENNEL_ENROLLMENTS_PATH        (optional)
    - KENNEL_STEP_DELAY_SECONDS      (optional)
    - KENNEL_VALIDATE_BEFORE_ENROLL  (optional)
    - KENNEL_RESUME_POLL_SECONDS     (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `EngineSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        validation_alias="LOG_FORMAT",
        description="json: one object per line. text: message followed by key=value pairs.",
    )

    workflows_path: Path = Field(
        default=Path("automation/workflows.json"),
        validation_alias="KENNEL_WORKFLOWS_PATH",
        description="JSON file holding workflow records (as exported by the facility API)",
    )
    enrollments_path: Path = Field(
        default=Path("automation/enrollments.json"),
        validation_alias="KENNEL_ENROLLMENTS_PATH",
        description="JSON file where enrollments are persisted",
    )

    step_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        validation_alias="KENNEL_STEP_DELAY_SECONDS",
        description="Pause between steps of a run. Pacing only; carries no meaning.",
    )
    validate_before_enroll: bool = Field(
        default=True,
        validation_alias="KENNEL_VALIDATE_BEFORE_ENROLL",
        description="Drop events for workflows whose graph fails validation",
    )
    resume_poll_seconds: float = Field(
        default=60.0,
        gt=0.0,
        validation_alias="KENNEL_RESUME_POLL_SECONDS",
        description="Polling interval (seconds) for resuming waiting enrollments.",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )
