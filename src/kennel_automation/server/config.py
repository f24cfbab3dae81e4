"""Configuration for the REST server."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from kennel_automation.engine.config import EngineSettings


class ServerSettings(EngineSettings):
    """Engine settings plus the REST-server specifics.

    The resume scheduler is off by default so that several server processes
    sharing one enrollment file do not resume the same enrollment twice.
    """

    scheduler_enabled: bool = Field(
        default=False,
        validation_alias="KENNEL_SCHEDULER_ENABLED",
        description=(
            "If true, the server polls for waiting enrollments every "
            "KENNEL_RESUME_POLL_SECONDS and resumes those whose delay has elapsed."
        ),
    )

    # Dev-friendly CORS for the admin console. Override via KENNEL_CORS_ORIGINS=...
    cors_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        validation_alias="KENNEL_CORS_ORIGINS",
        description="Comma-separated list of allowed CORS origins.",
    )

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    def parsed_cors_origins(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
