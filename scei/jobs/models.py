"""Domain models for asynchronous content generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

JobStatusValue = Literal["queued", "started", "processing", "completed", "failed", "error"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "error"})
FAILURE_STATUSES: frozenset[str] = frozenset({"failed", "error"})


class JobKind(str, Enum):
  """Kinds of generated artifacts."""

  STUDY_GUIDE = "study_guide"
  PRESENTATION = "presentation"


class FailureReason(str, Enum):
  """Why a job ended on the failed channel."""

  GENERATION = "generation"
  RESULT_FETCH = "result_fetch"


@dataclass(frozen=True)
class GenerationOptions:
  """Caller-supplied generation options; unset fields take kind defaults."""

  generation_method: str | None = None
  theme: str | None = None
  color_scheme: str | None = None
  timezone: str | None = None


@dataclass(frozen=True)
class JobSubmission:
  """Accepted submission as reported by the backend."""

  job_id: str
  estimated_duration: str | None = None


@dataclass(frozen=True)
class JobHandle:
  """Identifies one in-flight generation request."""

  job_id: str
  kind: JobKind
  subject_id: str
  started_at: datetime
  estimated_duration: str | None = None

  @property
  def key(self) -> tuple[JobKind, str, str]:
    return (self.kind, self.subject_id, self.job_id)


@dataclass(frozen=True)
class JobStatus:
  """One status snapshot returned by the status endpoint."""

  job_id: str
  status: JobStatusValue
  progress: int = 0
  current_step: str = ""
  error_message: str | None = None
  created_at: str | None = None
  started_at: str | None = None
  completed_at: str | None = None

  @property
  def is_terminal(self) -> bool:
    return self.status in TERMINAL_STATUSES

  @property
  def is_failure(self) -> bool:
    return self.status in FAILURE_STATUSES


@dataclass(frozen=True)
class JobResult:
  """Generated artifact, normalized across study guides and presentations."""

  subject_id: str
  content_type: Literal["latex", "beamer"]
  generation_method: str
  generated_at: str
  document_id: str = ""
  latex_content: str | None = None
  beamer_content: str | None = None
  content_analysis: Any = None
  page_estimate: Any = None
  slide_estimate: Any = None
  validation_issues: list[str] = field(default_factory=list)

  @property
  def content(self) -> str:
    """Return the LaTeX or Beamer source for this artifact."""
    if self.content_type == "latex":
      return self.latex_content or ""
    return self.beamer_content or ""

  @property
  def size_estimate(self) -> Any:
    """Return the page estimate for study guides or the slide estimate for presentations."""
    return self.page_estimate if self.content_type == "latex" else self.slide_estimate


@dataclass(frozen=True)
class GenerationResult:
  """Result delivered with the completed event."""

  job_id: str
  kind: JobKind
  subject_id: str
  result: JobResult
  processing_stats: dict[str, Any] = field(default_factory=dict)
