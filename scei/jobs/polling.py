"""Polling policy and adaptive interval calculation."""

from __future__ import annotations

from dataclasses import dataclass

from scei.config import Settings


@dataclass(frozen=True)
class PollingPolicy:
  """Timing knobs for the status poll loop, in seconds."""

  base_interval: float = 2.0
  max_interval: float = 10.0
  backoff_factor: float = 1.5
  stall_threshold: int = 3
  max_duration: float = 45 * 60

  @classmethod
  def from_settings(cls, settings: Settings) -> PollingPolicy:
    return cls(
      base_interval=settings.poll_base_interval_seconds,
      max_interval=settings.poll_max_interval_seconds,
      backoff_factor=settings.poll_backoff_factor,
      stall_threshold=settings.poll_stall_threshold,
      max_duration=settings.max_polling_seconds,
    )

  @property
  def stalled_interval(self) -> float:
    """Interval used once progress has stalled past the threshold."""
    return min(self.base_interval * self.backoff_factor, self.max_interval)


class AdaptiveInterval:
  """Picks the delay before the next poll from observed progress.

  Progress that moved since the previous poll resets the delay to the base
  interval; more than `stall_threshold` consecutive unchanged polls switch to
  the stalled interval. The first observation always counts as a change.
  """

  def __init__(self, policy: PollingPolicy) -> None:
    self._policy = policy
    self._last_progress: int | None = None
    self._stalled_polls = 0

  @property
  def stalled_polls(self) -> int:
    return self._stalled_polls

  def observe(self, progress: int) -> float:
    """Record one poll's progress value and return the next delay."""
    changed = progress != self._last_progress
    self._last_progress = progress

    if changed:
      self._stalled_polls = 0
      return self._policy.base_interval

    self._stalled_polls += 1
    if self._stalled_polls > self._policy.stall_threshold:
      return self._policy.stalled_interval
    return self._policy.base_interval
