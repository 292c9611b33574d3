"""Client configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import urlparse

from scei.utils.env import default_env_path, load_env_file

_DEFAULT_API_BASE_URL = "https://scei-api.azurewebsites.net/api"
_KNOWN_DOMAINS = {"scei", "scei-he"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the SCEI generation client."""

  environment: str
  api_base_url: str
  api_token: str | None
  api_domain: str | None
  http_timeout_seconds: float
  poll_base_interval_seconds: float
  poll_max_interval_seconds: float
  poll_backoff_factor: float
  poll_stall_threshold: int
  max_polling_seconds: float
  default_estimated_duration: str
  log_level: str
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _parse_positive_float(name: str, default: str) -> float:
  raw = os.getenv(name, default)
  try:
    value = float(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be a number.") from exc
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _parse_int(name: str, default: str, *, minimum: int) -> int:
  raw = os.getenv(name, default)
  try:
    value = int(raw)
  except ValueError as exc:
    raise ValueError(f"{name} must be an integer.") from exc
  if value < minimum:
    raise ValueError(f"{name} must be at least {minimum}.")
  return value


def _parse_base_url(raw: str | None) -> str:
  value = _optional_str(raw) or _DEFAULT_API_BASE_URL
  parsed = urlparse(value)
  if parsed.scheme not in {"http", "https"} or not parsed.netloc:
    raise ValueError("SCEI_API_BASE_URL must be an absolute http(s) URL.")
  return value.rstrip("/")


def _parse_domain(raw: str | None) -> str | None:
  value = _optional_str(raw)
  if value is None:
    return None
  value = value.lower()
  if value not in _KNOWN_DOMAINS:
    raise ValueError(f"SCEI_API_DOMAIN must be one of: {', '.join(sorted(_KNOWN_DOMAINS))}.")
  return value


def load_settings() -> Settings:
  """Build settings from the current environment without caching."""

  environment = os.getenv("SCEI_ENV", "development").strip().lower()

  poll_base_interval_seconds = _parse_positive_float("SCEI_POLL_BASE_INTERVAL_SECONDS", "2.0")
  poll_max_interval_seconds = _parse_positive_float("SCEI_POLL_MAX_INTERVAL_SECONDS", "10.0")
  if poll_max_interval_seconds < poll_base_interval_seconds:
    raise ValueError("SCEI_POLL_MAX_INTERVAL_SECONDS must not be lower than SCEI_POLL_BASE_INTERVAL_SECONDS.")

  poll_backoff_factor = _parse_positive_float("SCEI_POLL_BACKOFF_FACTOR", "1.5")
  if poll_backoff_factor < 1:
    raise ValueError("SCEI_POLL_BACKOFF_FACTOR must be at least 1.")

  # The timeout ceiling is expressed in minutes to match the backend's duration estimates.
  max_polling_minutes = _parse_positive_float("SCEI_MAX_POLLING_MINUTES", "45")

  log_level = (os.getenv("SCEI_LOG_LEVEL") or "INFO").strip().upper()
  if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    raise ValueError("SCEI_LOG_LEVEL must be a standard logging level name.")

  return Settings(
    environment=environment,
    api_base_url=_parse_base_url(os.getenv("SCEI_API_BASE_URL")),
    api_token=_optional_str(os.getenv("SCEI_API_TOKEN")),
    api_domain=_parse_domain(os.getenv("SCEI_API_DOMAIN")),
    http_timeout_seconds=_parse_positive_float("SCEI_HTTP_TIMEOUT_SECONDS", "30"),
    poll_base_interval_seconds=poll_base_interval_seconds,
    poll_max_interval_seconds=poll_max_interval_seconds,
    poll_backoff_factor=poll_backoff_factor,
    poll_stall_threshold=_parse_int("SCEI_POLL_STALL_THRESHOLD", "3", minimum=0),
    max_polling_seconds=max_polling_minutes * 60,
    default_estimated_duration=_optional_str(os.getenv("SCEI_DEFAULT_ESTIMATED_DURATION")) or "10-25 minutes",
    log_level=log_level,
    log_dir=_optional_str(os.getenv("SCEI_LOG_DIR")),
    log_max_bytes=_parse_int("SCEI_LOG_MAX_BYTES", "5242880", minimum=1),
    log_backup_count=_parse_int("SCEI_LOG_BACKUP_COUNT", "10", minimum=0),
  )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  load_env_file(default_env_path(), override=False)
  return load_settings()
