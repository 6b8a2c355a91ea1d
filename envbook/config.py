from __future__ import annotations

import logging
import os
import zoneinfo

from pydantic import BaseModel, ConfigDict, field_validator


class Settings(BaseModel):
    model_config = ConfigDict(extra="ignore", validate_default=True)

    slack_signing_secret: str = os.getenv("SLACK_SIGNING_SECRET", "")
    signature_max_age: int = int(os.getenv("SLACK_SIGNATURE_MAX_AGE", 300))

    google_calendar_id: str = os.getenv("GCAL_CALENDAR_ID", "") or "primary"
    google_application_credentials: str = os.getenv(
        "GOOGLE_APPLICATION_CREDENTIALS", ""
    )
    google_token_json: str = os.getenv("GOOGLE_TOKEN_JSON", "")
    google_creds_json: str = os.getenv("GOOGLE_CREDS_JSON", "")

    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "") or "UTC"
    port: int = int(os.getenv("PORT", 8080))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    sqlite_db_path: str = os.getenv("SQLITE_DB_PATH", "envbook.db")

    @field_validator("default_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            zoneinfo.ZoneInfo(value)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"invalid DEFAULT_TIMEZONE: {value}") from exc
        return value

    def model_post_init(self, __context: dict[str, object]) -> None:
        logger = logging.getLogger(__name__)
        if not self.slack_signing_secret:
            logger.warning(
                "SLACK_SIGNING_SECRET is not configured. Every Slack request will be rejected."
            )


settings = Settings()
