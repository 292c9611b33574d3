"""Orchestrates submission, status polling, result retrieval and event delivery."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from scei.config import Settings
from scei.core.exceptions import GenerationError
from scei.jobs.events import JobCancelledEvent, JobCompletedEvent, JobErrorEvent, JobEventChannel, JobFailedEvent, JobProgressEvent, JobTimeoutEvent, TerminalEvent
from scei.jobs.models import FailureReason, GenerationOptions, JobHandle, JobKind
from scei.jobs.polling import AdaptiveInterval, PollingPolicy
from scei.jobs.results import ResultFetcher
from scei.jobs.status import StatusClient
from scei.jobs.submission import SubmissionClient
from scei.services.api_client import SceiApiClient, UnauthorizedHook

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
JobKey = tuple[JobKind, str, str]


@dataclass
class _ActiveJob:
  """Registry entry: the job handle plus the task polling it."""

  handle: JobHandle
  started_monotonic: float
  task: asyncio.Task[None] | None = None


def _error_message(exc: BaseException) -> str:
  if isinstance(exc, GenerationError):
    return exc.message
  return str(exc) or type(exc).__name__


def _current_task() -> asyncio.Task | None:
  try:
    return asyncio.current_task()
  except RuntimeError:
    return None


class JobManager:
  """Owns the active-job registry and one polling task per job.

  Status and result failures are reported only through the event channel;
  only submission failures propagate to the caller of `start_generation`.
  """

  def __init__(
    self,
    api: SceiApiClient,
    *,
    policy: PollingPolicy | None = None,
    default_estimated_duration: str | None = None,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
    owns_api: bool = False,
  ) -> None:
    self._api = api
    self._owns_api = owns_api
    self._policy = policy or PollingPolicy()
    self._clock = clock
    self._sleep = sleep
    self._submission = SubmissionClient(api, default_estimated_duration=default_estimated_duration)
    self._status = StatusClient(api)
    self._results = ResultFetcher(api)
    self._events = JobEventChannel()
    self._active: dict[JobKey, _ActiveJob] = {}
    self._tasks: set[asyncio.Task[None]] = set()

  @classmethod
  def from_settings(cls, settings: Settings, *, http_client: httpx.AsyncClient | None = None, on_unauthorized: UnauthorizedHook | None = None) -> JobManager:
    """Build a manager (and the API client it owns) from settings."""
    api = SceiApiClient.from_settings(settings, http_client=http_client, on_unauthorized=on_unauthorized)
    return cls(api, policy=PollingPolicy.from_settings(settings), default_estimated_duration=settings.default_estimated_duration, owns_api=True)

  @property
  def events(self) -> JobEventChannel:
    return self._events

  @property
  def policy(self) -> PollingPolicy:
    return self._policy

  async def start_generation(self, kind: JobKind | str, subject_id: str, options: GenerationOptions | None = None) -> JobHandle:
    """Submit a job and begin polling it before returning its handle.

    Raises SubmissionError when the backend does not accept the job.
    """
    kind = JobKind(kind)
    submission = await self._submission.start(kind, subject_id, options)
    handle = JobHandle(job_id=submission.job_id, kind=kind, subject_id=subject_id, started_at=datetime.now(timezone.utc), estimated_duration=submission.estimated_duration)
    self._register(handle)
    return handle

  def _register(self, handle: JobHandle) -> None:
    if handle.key in self._active:
      logger.warning("Job %s is already being polled; ignoring duplicate registration", handle.job_id)
      return

    entry = _ActiveJob(handle=handle, started_monotonic=self._clock())
    self._active[handle.key] = entry
    task = asyncio.get_running_loop().create_task(self._poll(entry), name=f"scei-poll-{handle.job_id}")
    entry.task = task
    self._tasks.add(task)
    task.add_done_callback(self._on_task_done)
    logger.info("Polling started for %s job %s (unit %s)", handle.kind.value, handle.job_id, handle.subject_id)

  def _is_active(self, handle: JobHandle) -> bool:
    entry = self._active.get(handle.key)
    return entry is not None and entry.handle is handle

  def _finish(self, handle: JobHandle, event: TerminalEvent) -> bool:
    """Deregister and publish the terminal event; no-op if already gone."""
    if not self._is_active(handle):
      logger.debug("Dropping %s for deregistered job %s", type(event).__name__, handle.job_id)
      return False
    del self._active[handle.key]
    self._events.publish(event)
    return True

  async def _poll(self, entry: _ActiveJob) -> None:
    handle = entry.handle
    interval = AdaptiveInterval(self._policy)

    while True:
      try:
        status = await self._status.fetch(handle)
      except Exception as exc:  # noqa: BLE001
        # A single failed status check ends the job; there is no retry.
        logger.error("Polling error for job %s: %s", handle.job_id, _error_message(exc))
        self._finish(handle, JobErrorEvent(handle=handle, message=_error_message(exc)))
        return

      # The job may have been cancelled while the request was in flight.
      if not self._is_active(handle):
        logger.debug("Discarding status for deregistered job %s", handle.job_id)
        return

      delay = interval.observe(status.progress)
      self._events.publish(JobProgressEvent(handle=handle, status=status))
      if not self._is_active(handle):
        return

      if status.status == "completed":
        await self._complete(handle)
        return

      if status.is_failure:
        logger.warning("Generation failed for job %s: %s", handle.job_id, status.error_message)
        self._finish(handle, JobFailedEvent(handle=handle, message=status.error_message or "Generation failed"))
        return

      elapsed = self._clock() - entry.started_monotonic
      if elapsed > self._policy.max_duration:
        logger.warning("Generation timed out after %.0f minutes for job %s", elapsed / 60, handle.job_id)
        self._finish(handle, JobTimeoutEvent(handle=handle))
        return

      logger.debug("Continuing to poll job %s in %.1fs. Status: %s, Progress: %s%%", handle.job_id, delay, status.status, status.progress)
      await self._sleep(delay)

      if not self._is_active(handle):
        return

  async def _complete(self, handle: JobHandle) -> None:
    """Fetch the artifact once for a completed job and publish the outcome."""
    logger.info("Generation completed for job %s, fetching result", handle.job_id)
    try:
      result = await self._results.fetch(handle)
    except Exception as exc:  # noqa: BLE001
      logger.error("Result fetch failed for completed job %s: %s", handle.job_id, _error_message(exc))
      self._finish(handle, JobFailedEvent(handle=handle, message=_error_message(exc), reason=FailureReason.RESULT_FETCH))
      return

    self._finish(handle, JobCompletedEvent(handle=handle, result=result))

  def _on_task_done(self, task: asyncio.Task[None]) -> None:
    self._tasks.discard(task)
    if task.cancelled():
      return

    exc = task.exception()
    if exc is None:
      return

    logger.error("Poll task %s crashed: %s", task.get_name(), exc, exc_info=exc)
    # Surface the crash as an error event if the job is still registered.
    for entry in list(self._active.values()):
      if entry.task is task:
        self._finish(entry.handle, JobErrorEvent(handle=entry.handle, message=_error_message(exc)))

  def cancel_job(self, kind: JobKind | str, subject_id: str, job_id: str) -> bool:
    """Stop tracking a job; returns False if it was not registered."""
    try:
      kind = JobKind(kind)
    except ValueError:
      logger.debug("Cancel ignored for unknown job kind %r", kind)
      return False

    entry = self._active.pop((kind, subject_id, job_id), None)
    if entry is None:
      return False

    # A job cancelling itself from inside an event consumer exits on the registry check instead.
    if entry.task is not None and not entry.task.done() and entry.task is not _current_task():
      entry.task.cancel()

    logger.info("Cancelled %s job %s", entry.handle.kind.value, job_id)
    self._events.publish(JobCancelledEvent(handle=entry.handle))
    return True

  def cancel(self, handle: JobHandle) -> bool:
    """Cancel using a handle returned by `start_generation`."""
    return self.cancel_job(handle.kind, handle.subject_id, handle.job_id)

  def get_active_jobs(self) -> list[JobHandle]:
    """Snapshot of currently registered jobs."""
    return [entry.handle for entry in self._active.values()]

  def cleanup(self) -> None:
    """Deregister every job, cancel all poll tasks and detach the consumer."""
    if self._active:
      logger.info("Cleaning up %d active job(s)", len(self._active))
    self._active.clear()
    current = _current_task()
    for task in list(self._tasks):
      if task is not current:
        task.cancel()
    self._events.detach()

  async def wait_until_idle(self) -> None:
    """Wait for every scheduled poll task to finish."""
    current = _current_task()
    while True:
      pending = [task for task in self._tasks if task is not current]
      if not pending:
        return
      await asyncio.gather(*pending, return_exceptions=True)

  async def aclose(self) -> None:
    """Cleanup, wait for cancelled tasks to unwind, and close an owned API client."""
    self.cleanup()
    await self.wait_until_idle()
    if self._owns_api:
      await self._api.aclose()

  async def __aenter__(self) -> JobManager:
    return self

  async def __aexit__(self, *exc_info: object) -> None:
    await self.aclose()
