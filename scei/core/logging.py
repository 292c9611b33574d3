"""Logging setup for scripts and host applications embedding the client."""

import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from scei.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

_LOGGING_INITIALIZED = False
_LOG_FILE_PATH: Path | None = None


class TruncatedFormatter(logging.Formatter):
  """Formatter that truncates the stack trace to the last few lines."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _build_file_handler(settings: Settings) -> tuple[logging.Handler, Path]:
  """Create a rotating file handler under the configured log directory."""
  log_dir = Path(settings.log_dir or ".").expanduser()
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"scei_client_{time.strftime('%Y%m%d_%H%M%S')}.log"
  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)

  # Rotated files become name.log-1 instead of name.log.1
  def _namer(default_name: str) -> str:
    base, _, num = default_name.rpartition(".")
    if num.isdigit():
      return f"{base}-{num}"
    return default_name

  file_handler.namer = _namer
  file_handler.setFormatter(logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return file_handler, log_path


def setup_logging(settings: Settings) -> Path | None:
  """Route all loggers through the client's handlers; returns the log file path if any."""
  global _LOGGING_INITIALIZED, _LOG_FILE_PATH
  if _LOGGING_INITIALIZED:
    return _LOG_FILE_PATH

  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  handlers: list[logging.Handler] = [stream]

  log_path: Path | None = None
  if settings.log_dir:
    file_handler, log_path = _build_file_handler(settings)
    handlers.append(file_handler)

  logging.basicConfig(level=settings.log_level, handlers=handlers, force=True)

  # httpx logs every request at INFO, which drowns out poll progress.
  for noisy in ("httpx", "httpcore"):
    logging.getLogger(noisy).setLevel(logging.WARNING)

  _LOGGING_INITIALIZED = True
  _LOG_FILE_PATH = log_path
  logger = logging.getLogger("scei.core.logging")
  if log_path is not None:
    logger.info("Logging initialized. Writing to %s", log_path)
  else:
    logger.debug("Logging initialized (console only).")
  return log_path
