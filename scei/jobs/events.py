"""Job lifecycle events and the single-consumer channel that carries them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

from scei.jobs.models import FailureReason, GenerationResult, JobHandle, JobStatus

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Generation timeout - please try again"


@dataclass(frozen=True)
class JobProgressEvent:
  handle: JobHandle
  status: JobStatus


@dataclass(frozen=True)
class JobCompletedEvent:
  handle: JobHandle
  result: GenerationResult


@dataclass(frozen=True)
class JobFailedEvent:
  """The backend reported failure, or the finished result could not be retrieved."""

  handle: JobHandle
  message: str
  reason: FailureReason = FailureReason.GENERATION


@dataclass(frozen=True)
class JobTimeoutEvent:
  handle: JobHandle
  message: str = TIMEOUT_MESSAGE


@dataclass(frozen=True)
class JobErrorEvent:
  """A status check failed; the job is abandoned without retry."""

  handle: JobHandle
  message: str


@dataclass(frozen=True)
class JobCancelledEvent:
  handle: JobHandle


JobEvent = Union[JobProgressEvent, JobCompletedEvent, JobFailedEvent, JobTimeoutEvent, JobErrorEvent, JobCancelledEvent]
TerminalEvent = Union[JobCompletedEvent, JobFailedEvent, JobTimeoutEvent, JobErrorEvent]
JobEventConsumer = Callable[[JobEvent], None]

TERMINAL_EVENT_TYPES: tuple[type, ...] = (JobCompletedEvent, JobFailedEvent, JobTimeoutEvent, JobErrorEvent)


class JobEventChannel:
  """Delivers job events to exactly one consumer.

  Attaching a consumer replaces the previous one; events published while no
  consumer is attached are dropped.
  """

  def __init__(self) -> None:
    self._consumer: JobEventConsumer | None = None

  @property
  def attached(self) -> bool:
    return self._consumer is not None

  def attach(self, consumer: JobEventConsumer) -> None:
    if self._consumer is not None and self._consumer is not consumer:
      logger.debug("Replacing job event consumer %r with %r", self._consumer, consumer)
    self._consumer = consumer

  def detach(self) -> None:
    self._consumer = None

  def publish(self, event: JobEvent) -> bool:
    """Deliver an event; returns False when nobody is listening."""
    consumer = self._consumer
    if consumer is None:
      logger.debug("Dropping %s for job %s: no consumer attached", type(event).__name__, event.handle.job_id)
      return False

    try:
      consumer(event)
    except Exception:  # noqa: BLE001
      # Consumer errors are logged; the publishing poll loop keeps running.
      logger.exception("Job event consumer failed on %s for job %s", type(event).__name__, event.handle.job_id)
    return True
