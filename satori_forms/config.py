"""
Runtime configuration for SATORI Forms.

Configuration is environment-driven and read-only once loaded. It controls
presentation details of notifications and how inbound request data is
normalized; it never changes which submissions are accepted, beyond the
un-slashing switch for request pipelines that do not escape their input.
"""

import os
from datetime import tzinfo
from typing import Optional

from dateutil import tz
from pydantic import BaseModel, Field, field_validator


class FormsConfig(BaseModel):
    """
    Runtime configuration for the forms engine.
    """

    # ------------------------------------------------------------------
    # Request normalization
    # ------------------------------------------------------------------

    UNSLASH_INPUT: bool = Field(
        True,
        description=(
            "Reverse the backslash-escaping applied by the inbound request "
            "pipeline to submitted values and saved schema text"
        ),
    )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    TIMEZONE: str = Field(
        "UTC",
        description="Time zone used to render {submission_date}",
    )

    DATE_FORMAT: str = Field(
        "%Y-%m-%d %H:%M:%S",
        description="strftime format used to render {submission_date}",
    )

    DEFAULT_SUBJECT: str = Field(
        "New submission for {form_title}",
        description="Subject template used when a form configures none",
    )

    MAIL_CONTENT_TYPE: str = Field(
        "text/plain; charset=UTF-8",
        description="Content-Type header of notification emails",
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        if tz.gettz(v) is None:
            raise ValueError(f"Unknown TIMEZONE '{v}'.")
        return v

    @field_validator("DEFAULT_SUBJECT")
    @classmethod
    def validate_default_subject(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("DEFAULT_SUBJECT must not be empty.")
        return v

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def zone(self) -> Optional[tzinfo]:
        """The configured time zone."""
        return tz.gettz(self.TIMEZONE)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "FormsConfig":
        """
        Load configuration from SATORI_FORMS_* environment variables.
        """

        def env_bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.lower() in {"1", "true", "yes", "on"}

        return cls(
            UNSLASH_INPUT=env_bool("SATORI_FORMS_UNSLASH_INPUT", True),
            TIMEZONE=os.getenv("SATORI_FORMS_TIMEZONE", "UTC"),
            DATE_FORMAT=os.getenv("SATORI_FORMS_DATE_FORMAT", "%Y-%m-%d %H:%M:%S"),
            DEFAULT_SUBJECT=os.getenv(
                "SATORI_FORMS_DEFAULT_SUBJECT", "New submission for {form_title}"
            ),
            MAIL_CONTENT_TYPE=os.getenv(
                "SATORI_FORMS_MAIL_CONTENT_TYPE", "text/plain; charset=UTF-8"
            ),
        )

    model_config = {
        "frozen": True,
    }


__all__ = [
    "FormsConfig",
]
