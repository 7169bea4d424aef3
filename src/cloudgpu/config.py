"""XDG config loading."""

from __future__ import annotations

import os
import sys
from contextlib import suppress
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

from cloudgpu.retry import PollPolicy

DEFAULT_CONFIG_PATH = Path("~/.config/cloudgpu/config.toml").expanduser()
DEFAULT_API_URL = "https://colab.research.google.com"
DEFAULT_VARIANT: Literal["gpu", "tpu", "cpu"] = "gpu"
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_POLL_MAX_INTERVAL = 10.0
DEFAULT_ACQUISITION_TIMEOUT = 600.0
API_URL_ENV = "CLOUDGPU_API_URL"

_VALID_VARIANTS = {"gpu", "tpu", "cpu"}


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    api_url: str = DEFAULT_API_URL
    access_token: str = ""
    default_variant: Literal["gpu", "tpu", "cpu"] = DEFAULT_VARIANT
    poll_interval_seconds: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0, le=60)
    poll_max_interval_seconds: float = Field(default=DEFAULT_POLL_MAX_INTERVAL, gt=0, le=300)
    acquisition_timeout_seconds: float = Field(default=DEFAULT_ACQUISITION_TIMEOUT, gt=0, le=3600)
    startup_command: str = ""

    @field_validator("api_url")
    @classmethod
    def _validate_api_url(cls, value: str) -> str:
        stripped = value.strip().rstrip("/")
        if not stripped.startswith(("https://", "http://")):
            raise ValueError(f"Invalid API url: {value}")
        return stripped

    def poll_policy(self) -> PollPolicy:
        return PollPolicy(
            initial_interval_seconds=self.poll_interval_seconds,
            max_interval_seconds=max(self.poll_max_interval_seconds, self.poll_interval_seconds),
            timeout_seconds=self.acquisition_timeout_seconds,
        )


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _positive_number(value: object, *, upper: float) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if 0 < value <= upper:
        return float(value)
    return None


def _sanitize(raw: dict[str, object], env: dict[str, str]) -> AppConfig:
    cfg = AppConfig()

    api_url = raw.get("api_url", cfg.api_url)
    if isinstance(api_url, str):
        with suppress(ValueError):
            cfg.api_url = api_url
    env_url = env.get(API_URL_ENV, "").strip()
    if env_url:
        with suppress(ValueError):
            cfg.api_url = env_url

    access_token = raw.get("access_token", cfg.access_token)
    if isinstance(access_token, str):
        cfg.access_token = access_token.strip()

    default_variant = raw.get("default_variant", cfg.default_variant)
    if isinstance(default_variant, str) and default_variant.lower() in _VALID_VARIANTS:
        cfg.default_variant = cast(Literal["gpu", "tpu", "cpu"], default_variant.lower())

    interval = _positive_number(raw.get("poll_interval_seconds"), upper=60)
    if interval is not None:
        cfg.poll_interval_seconds = interval

    max_interval = _positive_number(raw.get("poll_max_interval_seconds"), upper=300)
    if max_interval is not None:
        cfg.poll_max_interval_seconds = max_interval

    timeout = _positive_number(raw.get("acquisition_timeout_seconds"), upper=3600)
    if timeout is not None:
        cfg.acquisition_timeout_seconds = timeout

    startup_command = raw.get("startup_command", cfg.startup_command)
    if isinstance(startup_command, str):
        cfg.startup_command = startup_command

    return cfg


def load_config(path: str | Path | None = None, *, env: dict[str, str] | None = None) -> AppConfig:
    environ = dict(os.environ) if env is None else env
    resolved = get_config_path(path)
    raw: object = {}
    if resolved.exists():
        try:
            with resolved.open("rb") as handle:
                raw = tomllib.load(handle)
        except (tomllib.TOMLDecodeError, OSError):
            raw = {}
    if not isinstance(raw, dict):
        raw = {}
    return _sanitize(cast(dict[str, object], raw), environ)
