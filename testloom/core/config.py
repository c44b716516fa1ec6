"""Runtime settings.

Read from the environment (``.env`` files are loaded through python-dotenv)
and validated with pydantic.  CLI flags override these values.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import DEFAULT_PROFILE, DEFAULT_WORKERS, DELEGATE_STRATEGIES
from .diagnostics import ProfileError

logger = logging.getLogger(__name__)


class ConverterSettings(BaseModel):
    profile: str = DEFAULT_PROFILE
    workers: int = Field(default=DEFAULT_WORKERS, ge=1, le=64)
    log_level: str = "INFO"
    delegate_strategy: Optional[str] = None  # None: use the profile's own strategy

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"unknown log level '{v}'")
        return v

    @field_validator("delegate_strategy")
    @classmethod
    def _check_strategy(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in DELEGATE_STRATEGIES:
            raise ValueError(f"delegate strategy must be one of {DELEGATE_STRATEGIES}")
        return v


def get_settings(env_file: Optional[str] = None) -> ConverterSettings:
    """Build settings from ``TESTLOOM_*`` environment variables.

    Raises:
        ProfileError: a variable holds an invalid value
    """
    load_dotenv(env_file)

    raw = {
        "profile": os.getenv("TESTLOOM_PROFILE"),
        "workers": os.getenv("TESTLOOM_WORKERS"),
        "log_level": os.getenv("TESTLOOM_LOG_LEVEL"),
        "delegate_strategy": os.getenv("TESTLOOM_DELEGATE_STRATEGY"),
    }
    try:
        return ConverterSettings(**{k: v for k, v in raw.items() if v})
    except ValidationError as e:
        raise ProfileError(f"Invalid TESTLOOM_* settings: {e}") from e
