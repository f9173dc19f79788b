"""
Runtime settings resolved from the process environment.
"""
import os
from dataclasses import dataclass
from typing import Optional

from fndeploy.internal import constants
from fndeploy.kernel.errors import ValidationError


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError([f"{name} must be a number, got {raw!r}"]) from None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError([f"{name} must be an integer, got {raw!r}"]) from None


@dataclass(frozen=True)
class Settings:
    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_wait_seconds: float = constants.DEFAULT_MAX_WAIT_SECONDS
    poll_interval_seconds: float = constants.DEFAULT_POLL_INTERVAL_SECONDS
    read_retries: int = constants.DEFAULT_READ_RETRIES
    retry_backoff_seconds: float = constants.DEFAULT_RETRY_BACKOFF_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            region=os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION"),
            profile=os.environ.get("AWS_PROFILE") or None,
            endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
            max_wait_seconds=_env_float("FNDEPLOY_MAX_WAIT_SECONDS", constants.DEFAULT_MAX_WAIT_SECONDS),
            poll_interval_seconds=_env_float(
                "FNDEPLOY_POLL_INTERVAL_SECONDS", constants.DEFAULT_POLL_INTERVAL_SECONDS
            ),
            read_retries=_env_int("FNDEPLOY_READ_RETRIES", constants.DEFAULT_READ_RETRIES),
            retry_backoff_seconds=_env_float(
                "FNDEPLOY_RETRY_BACKOFF_SECONDS", constants.DEFAULT_RETRY_BACKOFF_SECONDS
            ),
        )
        if settings.poll_interval_seconds <= 0:
            raise ValidationError(["FNDEPLOY_POLL_INTERVAL_SECONDS must be greater than zero"])
        return settings
