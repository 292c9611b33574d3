"""Pydantic models for backend job payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from scei.jobs.models import JobStatusValue


def _optional_text(value: Any) -> str | None:
  """Coerce scalar metadata to text; anything else is treated as absent."""
  if value is None or isinstance(value, str):
    return value
  if isinstance(value, (int, float)) and not isinstance(value, bool):
    return str(value)
  return None


class SubmissionPayload(BaseModel):
  """Body of a 202 Accepted submission response."""

  job_id: StrictStr = Field(min_length=1)
  estimated_duration: str | None = None
  model_config = ConfigDict(extra="ignore")

  @field_validator("estimated_duration", mode="before")
  @classmethod
  def stringify_estimate(cls, value: Any) -> Any:
    # The estimate is informational; numbers (seconds) are kept as text.
    return _optional_text(value)


class StatusPayload(BaseModel):
  """Body of a generation-status response."""

  status: JobStatusValue
  job_id: StrictStr | None = None
  progress: int = 0
  current_step: str = ""
  error_message: str | None = None
  created_at: str | None = None
  started_at: str | None = None
  completed_at: str | None = None
  model_config = ConfigDict(extra="ignore")

  @field_validator("progress", mode="before")
  @classmethod
  def default_missing_progress(cls, value: Any) -> Any:
    # Queued jobs report progress as null on some backend versions.
    if value is None:
      return 0
    return value

  @field_validator("current_step", mode="before")
  @classmethod
  def default_missing_step(cls, value: Any) -> Any:
    if value is None:
      return ""
    return value


class ContentPayload(BaseModel):
  """Body of the study guide / presentation content endpoints.

  Only the kind-specific content field is checked strictly (by the result
  fetcher); metadata is coerced to text or dropped.
  """

  id: str = Field(default="", alias="_id")
  unit_code: str | None = None
  latex_content: str | None = None
  beamer_content: str | None = None
  content_analysis: Any = None
  page_estimate: Any = None
  slide_estimate: Any = None
  validation_issues: list[str] | None = None
  generation_method: str | None = None
  generated_at: str | None = None
  model_config = ConfigDict(extra="ignore", populate_by_name=True)

  @field_validator("id", mode="before")
  @classmethod
  def default_missing_id(cls, value: Any) -> Any:
    return _optional_text(value) or ""

  @field_validator("unit_code", "generation_method", "generated_at", mode="before")
  @classmethod
  def coerce_metadata(cls, value: Any) -> Any:
    return _optional_text(value)

  @field_validator("validation_issues", mode="before")
  @classmethod
  def stringify_issues(cls, value: Any) -> Any:
    # Issues sometimes arrive as objects; keep a readable string per entry.
    if isinstance(value, list):
      return [item if isinstance(item, str) else str(item) for item in value]
    if isinstance(value, str):
      return [value]
    return None
