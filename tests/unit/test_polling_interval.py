"""Unit tests for the adaptive poll interval."""

from __future__ import annotations

import pytest

from scei.config import load_settings
from scei.jobs.polling import AdaptiveInterval, PollingPolicy


def test_interval_stays_at_base_while_progress_increases() -> None:
  interval = AdaptiveInterval(PollingPolicy())
  delays = [interval.observe(progress) for progress in range(0, 100, 7)]
  assert delays == [2.0] * len(delays)


def test_stalled_progress_backs_off_after_threshold_and_stays_capped() -> None:
  interval = AdaptiveInterval(PollingPolicy())
  # First observation always counts as a change.
  assert interval.observe(40) == 2.0
  # Stalled polls 1-3 keep the base interval.
  assert [interval.observe(40) for _ in range(3)] == [2.0, 2.0, 2.0]
  # From the fourth stalled poll on the interval is min(base * 1.5, cap), no compounding.
  later = [interval.observe(40) for _ in range(50)]
  assert later == [3.0] * 50
  assert interval.stalled_polls == 53


def test_stalled_interval_respects_cap() -> None:
  policy = PollingPolicy(base_interval=8.0, max_interval=10.0)
  interval = AdaptiveInterval(policy)
  delays = [interval.observe(5) for _ in range(20)]
  assert max(delays) == 10.0
  assert delays[-1] == 10.0


def test_progress_change_after_stall_resets_interval() -> None:
  interval = AdaptiveInterval(PollingPolicy())
  for _ in range(6):
    interval.observe(10)
  assert interval.observe(10) == 3.0
  assert interval.observe(11) == 2.0
  assert interval.stalled_polls == 0


def test_regressing_progress_counts_as_change() -> None:
  interval = AdaptiveInterval(PollingPolicy())
  for _ in range(6):
    interval.observe(50)
  assert interval.observe(45) == 2.0


def test_policy_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCEI_POLL_BASE_INTERVAL_SECONDS", "1")
  monkeypatch.setenv("SCEI_POLL_MAX_INTERVAL_SECONDS", "4")
  monkeypatch.setenv("SCEI_POLL_BACKOFF_FACTOR", "2")
  monkeypatch.setenv("SCEI_POLL_STALL_THRESHOLD", "1")
  monkeypatch.setenv("SCEI_MAX_POLLING_MINUTES", "2")
  policy = PollingPolicy.from_settings(load_settings())
  assert policy == PollingPolicy(base_interval=1.0, max_interval=4.0, backoff_factor=2.0, stall_threshold=1, max_duration=120.0)
  assert policy.stalled_interval == 2.0
