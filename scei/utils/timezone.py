"""Local IANA timezone detection."""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_LOCALTIME = Path("/etc/localtime")
_TIMEZONE_FILE = Path("/etc/timezone")


def _is_valid_zone(name: str) -> bool:
  try:
    ZoneInfo(name)
  except (ZoneInfoNotFoundError, ValueError):
    return False
  return True


def _zone_from_symlink(path: Path) -> str | None:
  # /etc/localtime -> /usr/share/zoneinfo/Australia/Sydney
  try:
    target = str(path.resolve())
  except OSError:
    return None
  marker = "zoneinfo/"
  if marker not in target:
    return None
  return target.split(marker, 1)[1]


def local_timezone_name(default: str = "UTC") -> str:
  """Best-effort IANA name of the host's local timezone."""
  candidates: list[str | None] = [os.getenv("TZ", "").lstrip(":") or None]

  if _TIMEZONE_FILE.is_file():
    try:
      candidates.append(_TIMEZONE_FILE.read_text(encoding="utf-8").strip() or None)
    except OSError:
      candidates.append(None)

  if _LOCALTIME.is_symlink():
    candidates.append(_zone_from_symlink(_LOCALTIME))

  for candidate in candidates:
    if candidate and _is_valid_zone(candidate):
      return candidate
  return default
