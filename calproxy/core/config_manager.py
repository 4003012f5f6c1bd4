"""Configuration management for calproxy.

Values come from the environment, optionally seeded from a ``.env`` file, and
are validated into a ``ProxyConfig``. Missing or invalid required values raise
``ConfigurationError``; the process must not start serving without them.
"""

from __future__ import annotations

import getpass
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, ValidationError, field_validator

from calproxy.origin.fetcher import validate_origin_url

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_SECS = 60 * 16
DEFAULT_FB_TITLE = "Busy"
ORIGIN_PROMPT = "CALPROXY_ORIGIN not set, enter origin URL (will not be shown): "

# Environment variable -> ProxyConfig field
ENV_KEYS: dict[str, str] = {
    "CALPROXY_ORIGIN": "origin_url",
    "CALPROXY_ORIGIN_TOKEN": "origin_bearer_token",
    "CALPROXY_SECRET": "secret",
    "CALPROXY_FB_TITLE": "fb_title",
    "CALPROXY_PORT": "port",
    "CALPROXY_BIND": "bind",
    "CALPROXY_UPDATE_SECS": "update_secs",
    "CALPROXY_REQUEST_TIMEOUT": "request_timeout",
    "CALPROXY_MAX_RETRIES": "max_retries",
    "CALPROXY_RETRY_BACKOFF_FACTOR": "retry_backoff_factor",
    "CALPROXY_LOG_LEVEL": "log_level",
}

SENSITIVE_FIELDS = ("secret", "origin_bearer_token")


def parse_env_file(path: Path) -> dict[str, str]:
    """Read ``KEY=VALUE`` pairs from a .env file.

    Blank lines, ``#`` comments and lines without ``=`` are ignored. A leading
    ``export`` is allowed and one layer of matching quotes around the value is
    removed. A missing or unreadable file yields an empty mapping.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        logger.warning("Could not read %s, ignoring it", path, exc_info=True)
        return {}

    pairs: dict[str, str] = {}
    for line in (raw.strip() for raw in content.splitlines()):
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.removeprefix("export ").strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        if key:
            pairs[key] = value
    return pairs


class ProxyConfig(BaseModel):
    """Validated runtime configuration."""

    origin_url: str = Field(..., description="Origin ICS URL, may carry user:password@")
    origin_bearer_token: Optional[str] = Field(default=None, description="Bearer credential")
    secret: str = Field(..., min_length=1, description="Shared secret for the raw-feed token")
    fb_title: str = Field(default=DEFAULT_FB_TITLE, description="Placeholder event title")
    port: int = Field(..., description="Listen port")
    bind: str = Field(default="0.0.0.0", description="Listen address")  # nosec B104 - serving is the point
    update_secs: int = Field(default=DEFAULT_UPDATE_SECS, description="Refresh interval in seconds")
    request_timeout: float = Field(default=30.0, description="Origin read timeout in seconds")
    max_retries: int = Field(default=0, ge=0, description="Retries on transport errors")
    retry_backoff_factor: float = Field(default=1.5, gt=0, description="Backoff base")
    log_level: str = Field(default="INFO")
    debug_logging: bool = Field(default=False)

    @field_validator("origin_url")
    @classmethod
    def validate_origin(cls, v: str) -> str:
        v = v.strip()
        if not validate_origin_url(v):
            raise ValueError("must be an http(s) URL with a hostname")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 0 < v < 65536:
            raise ValueError("must be between 1 and 65535")
        return v

    @field_validator("update_secs")
    @classmethod
    def validate_update_secs(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    def diagnostic_summary(self) -> dict[str, Any]:
        """Config for startup logs: secrets redacted, origin reduced to scheme and host."""
        summary = self.model_dump()
        for key in SENSITIVE_FIELDS:
            if summary.get(key):
                summary[key] = "<redacted>"
        parts = urlsplit(self.origin_url)
        summary["origin_url"] = f"{parts.scheme}://{parts.hostname}/..."
        return summary


class ConfigManager:
    """Builds ``ProxyConfig`` from environment variables and .env files."""

    def __init__(
        self,
        env_file_path: Path | None = None,
        prompt: Callable[[str], str] = getpass.getpass,
    ):
        """Create a manager reading from the environment and an optional .env file.

        Args:
            env_file_path: .env file to seed the environment from (default: ./.env)
            prompt: Reads the origin URL without echo when CALPROXY_ORIGIN is unset
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.prompt = prompt

    def load_env_file(self) -> list[str]:
        """Copy .env values into os.environ; variables already set win.

        Returns:
            The keys that were taken from the file
        """
        values = parse_env_file(self.env_file_path)
        loaded = [key for key in values if key not in os.environ]
        for key in loaded:
            os.environ[key] = values[key]
        if loaded:
            logger.debug("Using %s from %s", ", ".join(loaded), self.env_file_path)
        return loaded

    def build_config_from_env(self) -> dict[str, Any]:
        """Collect raw configuration values from ``CALPROXY_*`` variables.

        An unparsable CALPROXY_UPDATE_SECS falls back to the default interval;
        every other value is validated later by ``ProxyConfig``.
        """
        cfg: dict[str, Any] = {}
        for env_key, field_name in ENV_KEYS.items():
            value = os.environ.get(env_key)
            if value or (value is not None and field_name == "fb_title"):
                cfg[field_name] = value

        update_secs = cfg.get("update_secs")
        if update_secs is not None:
            try:
                cfg["update_secs"] = int(update_secs)
                if cfg["update_secs"] <= 0:
                    raise ValueError(update_secs)
            except ValueError:
                logger.warning(
                    "Could not read CALPROXY_UPDATE_SECS=%r, defaulting to update every %d seconds",
                    update_secs,
                    DEFAULT_UPDATE_SECS,
                )
                cfg["update_secs"] = DEFAULT_UPDATE_SECS

        debug_env = os.environ.get("CALPROXY_DEBUG", "")
        if debug_env.strip().lower() in ("1", "true", "yes", "on"):
            cfg["debug_logging"] = True

        return cfg

    def _prompt_for_origin(self) -> str:
        try:
            value = self.prompt(ORIGIN_PROMPT)
        except (EOFError, KeyboardInterrupt) as e:
            raise ConfigurationError("CALPROXY_ORIGIN not set and no origin URL entered") from e
        if not value or not value.strip():
            raise ConfigurationError("CALPROXY_ORIGIN not set and no origin URL entered")
        return value.strip()

    def load_config(self, overrides: Optional[dict[str, Any]] = None) -> ProxyConfig:
        """Load .env, read the environment, apply overrides and validate.

        Args:
            overrides: Values taking precedence over the environment (CLI flags)

        Returns:
            Validated configuration

        Raises:
            ConfigurationError: If a required value is missing or invalid
        """
        self.load_env_file()
        cfg = self.build_config_from_env()
        for key, value in (overrides or {}).items():
            if value is not None:
                cfg[key] = value

        if "origin_url" not in cfg:
            cfg["origin_url"] = self._prompt_for_origin()

        for required, env_key in (("secret", "CALPROXY_SECRET"), ("port", "CALPROXY_PORT")):
            if required not in cfg:
                raise ConfigurationError(f"{env_key} is required")

        try:
            return ProxyConfig(**cfg)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigurationError(f"Invalid configuration: {problems}") from e
