"""Starts generation jobs on the backend."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from scei.core.exceptions import ApiError, SubmissionError
from scei.jobs.endpoints import DEFAULT_PRESENTATION_COLOR_SCHEME, DEFAULT_PRESENTATION_THEME, routes_for
from scei.jobs.models import GenerationOptions, JobKind, JobSubmission
from scei.jobs.schemas import SubmissionPayload
from scei.services.api_client import SceiApiClient
from scei.utils.timezone import local_timezone_name

logger = logging.getLogger(__name__)

_ACCEPTED = 202


def build_submission_payload(kind: JobKind, options: GenerationOptions) -> dict[str, Any]:
  """Merge caller options over the kind-specific defaults."""
  routes = routes_for(kind)
  payload: dict[str, Any] = {"generation_method": options.generation_method or routes.default_method, "timezone": options.timezone or local_timezone_name()}

  # Presentations always carry a theme; study guides only when the caller asks.
  if kind is JobKind.PRESENTATION:
    payload["theme"] = options.theme or DEFAULT_PRESENTATION_THEME
    payload["color_scheme"] = options.color_scheme or DEFAULT_PRESENTATION_COLOR_SCHEME
  else:
    if options.theme:
      payload["theme"] = options.theme
    if options.color_scheme:
      payload["color_scheme"] = options.color_scheme

  return payload


def _failure(status_code: int | None, message: str) -> SubmissionError:
  label = status_code if status_code is not None else "Network Error"
  return SubmissionError(f"Generation start failed ({label}): {message}", status_code=status_code)


class SubmissionClient:
  """Issues the start-generation request and extracts the job id."""

  def __init__(self, api: SceiApiClient, *, default_estimated_duration: str | None = None) -> None:
    self._api = api
    self._default_estimated_duration = default_estimated_duration

  async def start(self, kind: JobKind | str, subject_id: str, options: GenerationOptions | None = None) -> JobSubmission:
    """Submit a generation request; only a 202 carrying a job id is accepted."""
    kind = JobKind(kind)
    if not isinstance(subject_id, str) or not subject_id.strip():
      raise SubmissionError("Generation start failed: subject id must be a non-empty string")

    path = routes_for(kind).submit(subject_id)
    payload = build_submission_payload(kind, options or GenerationOptions())

    try:
      response = await self._api.post(path, json=payload)
    except ApiError as exc:
      logger.error("Failed to start %s generation for %s: status=%s message=%s", kind.value, subject_id, exc.status_code, exc.message)
      raise _failure(exc.status_code, exc.message) from exc

    logger.debug("Generation submit response status=%s body=%s", response.status_code, response.body)

    if response.status_code != _ACCEPTED:
      raise _failure(response.status_code, f"Unexpected response status: {response.status_code}")

    body = response.body
    # Some deployments nest the job details under `data`.
    if isinstance(body, dict) and "job_id" not in body and isinstance(body.get("data"), dict):
      body = body["data"]

    try:
      accepted = SubmissionPayload.model_validate(body)
    except ValidationError as exc:
      logger.error("No job_id found in 202 response: %s", response.body)
      raise _failure(response.status_code, "Invalid response format - missing job_id") from exc

    estimated = accepted.estimated_duration or self._default_estimated_duration
    logger.info("Started %s generation for %s job_id=%s estimated=%s", kind.value, subject_id, accepted.job_id, estimated)
    return JobSubmission(job_id=accepted.job_id, estimated_duration=estimated)
