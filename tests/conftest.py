"""Shared fixtures: a scripted fake backend, a fake clock, and wired-up clients."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from scei.jobs.manager import JobManager
from scei.services.api_client import SceiApiClient

BASE_URL = "http://scei.test/api"
LATEX = "\\documentclass{article}\\begin{document}Unit U1\\end{document}"

Scripted = Any  # dict -> 200 JSON, (status, body) tuple, or an exception to raise


def _resolve(item: Scripted, request: httpx.Request) -> httpx.Response:
  if isinstance(item, BaseException):
    raise item
  if isinstance(item, tuple):
    status_code, body = item
    if isinstance(body, str | bytes):
      return httpx.Response(status_code, content=body)
    return httpx.Response(status_code, json=body)
  return httpx.Response(200, json=item)


class FakeBackend:
  """Scripted stand-in for the SCEI REST API, served through httpx.MockTransport."""

  def __init__(self) -> None:
    self.submit: Scripted = (202, {"job_id": "J1", "estimated_duration": "10-25 minutes"})
    # Consumed in order; the last entry repeats forever.
    self.statuses: list[Scripted] = [{"status": "completed", "progress": 100, "current_step": "Done"}]
    # Per-job scripts keyed by job id; jobs without one use `statuses`.
    self.statuses_by_job: dict[str, list[Scripted]] = {}
    self.content: Scripted = {"latex_content": LATEX, "generation_method": "dynamic_chapters", "generated_at": "2024-01-01T00:00:00Z"}
    self.requests: list[httpx.Request] = []
    self.status_calls = 0
    self.content_calls = 0
    # When set, status requests block until the gate opens.
    self.status_gate: asyncio.Event | None = None
    self.status_started = asyncio.Event()

  async def handler(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    path = request.url.path

    if request.method == "POST":
      return _resolve(self.submit, request)

    if "/generation-status/" in path:
      self.status_calls += 1
      self.status_started.set()
      if self.status_gate is not None:
        await self.status_gate.wait()
      script = self.statuses_by_job.get(path.rsplit("/", 1)[-1], self.statuses)
      item = script.pop(0) if len(script) > 1 else script[0]
      return _resolve(item, request)

    if path.endswith("/latex") or path.endswith("/beamer"):
      self.content_calls += 1
      return _resolve(self.content, request)

    return httpx.Response(404, json={"message": "Not found"})


class FakeClock:
  """Monotonic clock whose sleep advances time instantly."""

  def __init__(self) -> None:
    self.now = 0.0
    self.sleeps: list[float] = []
    self.sleeps_by_task: dict[str, list[float]] = {}

  def __call__(self) -> float:
    return self.now

  async def sleep(self, delay: float) -> None:
    self.sleeps.append(delay)
    task = asyncio.current_task()
    if task is not None:
      self.sleeps_by_task.setdefault(task.get_name(), []).append(delay)
    self.now += delay
    await asyncio.sleep(0)


class EventRecorder:
  """Job event consumer that keeps everything it receives."""

  def __init__(self) -> None:
    self.events: list[Any] = []

  def __call__(self, event: Any) -> None:
    self.events.append(event)

  @property
  def names(self) -> list[str]:
    return [type(event).__name__ for event in self.events]


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def backend() -> FakeBackend:
  return FakeBackend()


@pytest.fixture
def clock() -> FakeClock:
  return FakeClock()


@pytest.fixture
async def http_client(backend):
  async with httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)) as client:
    yield client


@pytest.fixture
async def api_client(http_client):
  return SceiApiClient(base_url=BASE_URL, token="secret-token", domain="scei", http_client=http_client)


@pytest.fixture
async def manager(api_client, clock):
  manager = JobManager(api_client, clock=clock, sleep=clock.sleep, default_estimated_duration="10-25 minutes")
  yield manager
  await manager.aclose()


@pytest.fixture
def recorder(manager) -> EventRecorder:
  recorder = EventRecorder()
  manager.events.attach(recorder)
  return recorder
