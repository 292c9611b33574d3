"""Observable generation state for a single consumer (page, CLI, worker)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace

from scei.core.exceptions import GenerationError
from scei.jobs.events import JobCancelledEvent, JobCompletedEvent, JobErrorEvent, JobEvent, JobFailedEvent, JobProgressEvent, JobTimeoutEvent
from scei.jobs.manager import JobManager
from scei.jobs.models import FailureReason, GenerationOptions, GenerationResult, JobHandle, JobKind

logger = logging.getLogger(__name__)

_UNSET = object()


@dataclass(frozen=True)
class GenerationProgress:
  """Progress as presented to the consumer."""

  job_id: str
  status: str
  progress: int
  current_step: str
  estimated_duration: str | None = None
  error: str | None = None
  failure_reason: FailureReason | None = None


@dataclass(frozen=True)
class GenerationState:
  """Snapshot of the observable progress/result/is_generating triple."""

  progress: GenerationProgress | None
  result: GenerationResult | None
  is_generating: bool


StateObserver = Callable[[GenerationState], None]


class GenerationSession:
  """Translates job events into one observable progress/result pair.

  The session attaches itself as the manager's only event consumer on each
  `start`, and ignores events for any job other than the one it started last.
  """

  def __init__(self, manager: JobManager) -> None:
    self._manager = manager
    self._handle: JobHandle | None = None
    self._progress: GenerationProgress | None = None
    self._result: GenerationResult | None = None
    self._is_generating = False
    self._observers: list[StateObserver] = []
    self._closed = False
    self._handlers: dict[type, Callable[[JobEvent], None]] = {
      JobProgressEvent: self._on_progress,
      JobCompletedEvent: self._on_completed,
      JobFailedEvent: self._on_failed,
      JobTimeoutEvent: self._on_timeout,
      JobErrorEvent: self._on_error,
      JobCancelledEvent: self._on_cancelled,
    }

  @property
  def manager(self) -> JobManager:
    return self._manager

  @property
  def handle(self) -> JobHandle | None:
    return self._handle

  @property
  def progress(self) -> GenerationProgress | None:
    return self._progress

  @property
  def result(self) -> GenerationResult | None:
    return self._result

  @property
  def is_generating(self) -> bool:
    return self._is_generating

  @property
  def state(self) -> GenerationState:
    return GenerationState(progress=self._progress, result=self._result, is_generating=self._is_generating)

  @property
  def is_completed(self) -> bool:
    return self._progress is not None and self._progress.status == "completed"

  @property
  def is_failed(self) -> bool:
    return self._progress is not None and self._progress.status in {"failed", "error"}

  @property
  def has_error(self) -> bool:
    return self._progress is not None and bool(self._progress.error)

  def subscribe(self, observer: StateObserver) -> Callable[[], None]:
    """Register a state observer; returns a callable that unsubscribes it."""
    self._observers.append(observer)

    def _unsubscribe() -> None:
      if observer in self._observers:
        self._observers.remove(observer)

    return _unsubscribe

  def _update(self, *, progress: object = _UNSET, result: object = _UNSET, is_generating: object = _UNSET) -> None:
    if progress is not _UNSET:
      self._progress = progress  # type: ignore[assignment]
    if result is not _UNSET:
      self._result = result  # type: ignore[assignment]
    if is_generating is not _UNSET:
      self._is_generating = bool(is_generating)

    snapshot = self.state
    for observer in list(self._observers):
      try:
        observer(snapshot)
      except Exception:  # noqa: BLE001
        logger.exception("Generation state observer %r failed", observer)

  async def start(self, kind: JobKind | str, subject_id: str, options: GenerationOptions | None = None) -> JobHandle:
    """Start a generation; failures land in `progress` and are re-raised."""
    if self._closed:
      raise RuntimeError("GenerationSession is closed.")

    self._handle = None
    self._update(progress=None, result=None, is_generating=True)
    self._manager.events.attach(self._on_event)

    try:
      handle = await self._manager.start_generation(kind, subject_id, options)
    except Exception as exc:
      message = exc.message if isinstance(exc, GenerationError) else (str(exc) or type(exc).__name__)
      logger.error("Failed to start generation for %s: %s", subject_id, message)
      self._update(progress=GenerationProgress(job_id="error", status="error", progress=0, current_step="Failed to start generation", error=message), is_generating=False)
      raise

    self._handle = handle
    # Polling has not yielded yet, so no event for this job can precede the initial snapshot.
    if self._progress is None:
      self._update(progress=GenerationProgress(job_id=handle.job_id, status="queued", progress=0, current_step="Starting generation...", estimated_duration=handle.estimated_duration))
    return handle

  def _on_event(self, event: JobEvent) -> None:
    if self._handle is None or event.handle != self._handle:
      logger.debug("Ignoring %s for job %s (not the session's current job)", type(event).__name__, event.handle.job_id)
      return
    self._handlers[type(event)](event)

  def _on_progress(self, event: JobProgressEvent) -> None:
    status = event.status
    value = status.progress
    previous = self._progress

    # Regressions are clamped so the displayed progress never moves backwards.
    if previous is not None and previous.job_id == event.handle.job_id and value < previous.progress:
      logger.warning("Progress for job %s went backwards (%s -> %s); keeping %s", event.handle.job_id, previous.progress, value, previous.progress)
      value = previous.progress

    self._update(progress=GenerationProgress(job_id=event.handle.job_id, status=status.status, progress=value, current_step=status.current_step or "Starting...", estimated_duration=event.handle.estimated_duration))

  def _on_completed(self, event: JobCompletedEvent) -> None:
    base = self._progress or GenerationProgress(job_id=event.handle.job_id, status="completed", progress=100, current_step="", estimated_duration=event.handle.estimated_duration)
    progress = replace(base, status="completed", progress=100, current_step="Generation completed successfully!", error=None, failure_reason=None)
    self._update(result=event.result, progress=progress, is_generating=False)

  def _terminal(self, event: JobEvent, *, status: str, message: str, step: str, reason: FailureReason | None = None) -> None:
    if self._progress is not None:
      progress = replace(self._progress, status=status, error=message, failure_reason=reason)
    else:
      progress = GenerationProgress(job_id=event.handle.job_id, status=status, progress=0, current_step=step, estimated_duration=event.handle.estimated_duration, error=message, failure_reason=reason)
    self._update(progress=progress, is_generating=False)

  def _on_failed(self, event: JobFailedEvent) -> None:
    step = "Generation result unavailable" if event.reason is FailureReason.RESULT_FETCH else "Generation failed"
    self._terminal(event, status="failed", message=event.message or "Generation failed", step=step, reason=event.reason)

  def _on_timeout(self, event: JobTimeoutEvent) -> None:
    self._terminal(event, status="failed", message=event.message, step="Generation timed out")

  def _on_error(self, event: JobErrorEvent) -> None:
    self._terminal(event, status="error", message=event.message or "Generation error", step="Generation error")

  def _on_cancelled(self, event: JobCancelledEvent) -> None:
    self._handle = None
    self._update(progress=None, result=None, is_generating=False)

  def cancel(self) -> bool:
    """Cancel the current job, if any, and clear local state."""
    handle = self._handle
    if handle is None:
      return False

    cancelled = self._manager.cancel(handle)
    self._handle = None
    self._update(progress=None, result=None, is_generating=False)
    return cancelled

  def reset(self) -> None:
    """Clear local state; the manager keeps polling whatever it is tracking."""
    self._handle = None
    self._update(progress=None, result=None, is_generating=False)

  def close(self) -> None:
    """Synchronous teardown: stop all polling owned by the manager."""
    self._closed = True
    self._observers.clear()
    self._manager.cleanup()

  async def aclose(self) -> None:
    self._closed = True
    self._observers.clear()
    await self._manager.aclose()

  async def __aenter__(self) -> GenerationSession:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()
