"""Exception hierarchy for the generation client."""

from __future__ import annotations

from typing import Any


class GenerationError(Exception):
  """Base class for all generation client failures."""

  def __init__(self, message: str, *, status_code: int | None = None) -> None:
    super().__init__(message)
    self.message = message
    self.status_code = status_code


class ApiError(GenerationError):
  """Raised when the backend rejects a request or cannot be reached.

  `status_code` is None for transport failures (DNS, connect, timeout).
  """

  def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
    super().__init__(message, status_code=status_code)
    self.body = body

  @property
  def is_network_error(self) -> bool:
    return self.status_code is None


class SubmissionError(GenerationError):
  """Raised when a generation job could not be started."""


class StatusCheckError(GenerationError):
  """Raised when a job status request fails or returns a malformed payload."""


class ResultFetchError(GenerationError):
  """Raised when a completed job's content could not be retrieved."""
