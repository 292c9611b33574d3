"""Client for SCEI asynchronous study guide and presentation generation."""

from scei.core.exceptions import ApiError, GenerationError, ResultFetchError, StatusCheckError, SubmissionError
from scei.jobs.manager import JobManager
from scei.jobs.models import FailureReason, GenerationOptions, GenerationResult, JobHandle, JobKind, JobResult, JobStatus
from scei.jobs.session import GenerationProgress, GenerationSession, GenerationState

__version__ = "0.1.0"

__all__ = [
  "ApiError",
  "FailureReason",
  "GenerationError",
  "GenerationOptions",
  "GenerationProgress",
  "GenerationResult",
  "GenerationSession",
  "GenerationState",
  "JobHandle",
  "JobKind",
  "JobManager",
  "JobResult",
  "JobStatus",
  "ResultFetchError",
  "StatusCheckError",
  "SubmissionError",
]
