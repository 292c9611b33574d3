"""Single status checks for a running job."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from scei.core.exceptions import ApiError, StatusCheckError
from scei.jobs.endpoints import routes_for
from scei.jobs.models import JobHandle, JobStatus
from scei.jobs.schemas import StatusPayload
from scei.services.api_client import SceiApiClient, unwrap_envelope

logger = logging.getLogger(__name__)


def _translate(exc: ApiError) -> StatusCheckError:
  """Map transport and HTTP failures to user-facing status errors."""
  if exc.status_code == 404:
    return StatusCheckError("Job not found - it may have expired or been cancelled", status_code=404)
  if exc.status_code is not None and exc.status_code >= 500:
    return StatusCheckError("Server error - please try again later", status_code=exc.status_code)
  return StatusCheckError(exc.message or "Status check failed", status_code=exc.status_code)


class StatusClient:
  """Fetches and validates one status snapshot."""

  def __init__(self, api: SceiApiClient) -> None:
    self._api = api

  async def fetch(self, handle: JobHandle) -> JobStatus:
    path = routes_for(handle.kind).status(handle.subject_id, handle.job_id)

    try:
      response = await self._api.get(path)
      body = unwrap_envelope(response.body)
    except ApiError as exc:
      logger.error("Status check failed path=%s status=%s message=%s", path, exc.status_code, exc.message)
      raise _translate(exc) from exc

    if not isinstance(body, dict) or not body.get("status"):
      logger.error("Invalid status response format: %s", body)
      raise StatusCheckError("Invalid status response - missing status field")

    try:
      payload = StatusPayload.model_validate(body)
    except ValidationError as exc:
      logger.error("Malformed status response for job %s: %s", handle.job_id, exc)
      raise StatusCheckError(f"Invalid status response - {exc.error_count()} invalid field(s)") from exc

    return JobStatus(
      job_id=payload.job_id or handle.job_id,
      status=payload.status,
      progress=payload.progress,
      current_step=payload.current_step,
      error_message=payload.error_message,
      created_at=payload.created_at,
      started_at=payload.started_at,
      completed_at=payload.completed_at,
    )
