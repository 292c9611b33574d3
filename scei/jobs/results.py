"""Retrieves generated content once a job has completed."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from scei.core.exceptions import ApiError, ResultFetchError
from scei.jobs.endpoints import routes_for
from scei.jobs.models import GenerationResult, JobHandle, JobResult
from scei.jobs.schemas import ContentPayload
from scei.services.api_client import SceiApiClient, unwrap_envelope

logger = logging.getLogger(__name__)


def _translate(exc: ApiError) -> ResultFetchError:
  if exc.status_code == 404:
    return ResultFetchError("Generation result not found - content may not be ready yet", status_code=404)
  if exc.status_code is not None and exc.status_code >= 500:
    return ResultFetchError("Server error while fetching result - please try again later", status_code=exc.status_code)
  return ResultFetchError(exc.message or "Failed to get generation result", status_code=exc.status_code)


def _utc_now_iso() -> str:
  return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ResultFetcher:
  """Loads the artifact from the kind-specific content endpoint."""

  def __init__(self, api: SceiApiClient) -> None:
    self._api = api

  async def fetch(self, handle: JobHandle) -> GenerationResult:
    """Fetch and normalize the artifact for a completed job."""
    routes = routes_for(handle.kind)
    path = routes.content(handle.subject_id)

    try:
      response = await self._api.get(path)
      body = unwrap_envelope(response.body)
    except ApiError as exc:
      logger.error("Result fetch failed path=%s status=%s message=%s", path, exc.status_code, exc.message)
      raise _translate(exc) from exc

    try:
      content = ContentPayload.model_validate(body)
    except ValidationError as exc:
      raise ResultFetchError("Malformed generation result payload") from exc

    # The content field name differs per kind; the other one is expected to be absent.
    text = getattr(content, routes.content_field)
    if not isinstance(text, str):
      raise ResultFetchError(f"Generation result is missing {routes.content_field}")

    result = JobResult(
      subject_id=handle.subject_id,
      content_type=routes.content_type,
      generation_method=content.generation_method or "",
      generated_at=content.generated_at or _utc_now_iso(),
      document_id=content.id,
      latex_content=content.latex_content,
      beamer_content=content.beamer_content,
      content_analysis=content.content_analysis,
      page_estimate=content.page_estimate,
      slide_estimate=content.slide_estimate,
      validation_issues=list(content.validation_issues or []),
    )
    logger.info("Fetched %s result for %s (%d chars, %d validation issues)", handle.kind.value, handle.subject_id, len(text), len(result.validation_issues))
    return GenerationResult(job_id=handle.job_id, kind=handle.kind, subject_id=handle.subject_id, result=result, processing_stats={"unit_code": content.unit_code, "generation_method": content.generation_method})
