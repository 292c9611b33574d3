"""Unit tests for result retrieval and normalization."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from scei.core.exceptions import ResultFetchError
from scei.jobs.models import JobHandle, JobKind
from scei.jobs.results import ResultFetcher


def _handle(kind: JobKind) -> JobHandle:
  return JobHandle(job_id="J1", kind=kind, subject_id="U1", started_at=datetime.now(timezone.utc))


@pytest.mark.anyio
async def test_study_guide_result_is_normalized(api_client, backend) -> None:
  backend.content = {
    "success": True,
    "data": {
      "_id": "doc-1",
      "unit_code": "BSBWHS211",
      "latex_content": "\\section{Hazards}",
      "page_estimate": {"pages": 14},
      "validation_issues": ["Missing bibliography", {"line": 3}],
      "generation_method": "dynamic_chapters",
      "generated_at": "2024-01-01T00:00:00Z",
    },
  }
  generated = await ResultFetcher(api_client).fetch(_handle(JobKind.STUDY_GUIDE))

  assert backend.requests[-1].url.path == "/api/study-guides/U1/latex"
  assert generated.job_id == "J1"
  assert generated.kind is JobKind.STUDY_GUIDE
  result = generated.result
  assert result.document_id == "doc-1"
  assert result.content_type == "latex"
  assert result.content == "\\section{Hazards}"
  assert result.latex_content == "\\section{Hazards}"
  assert result.beamer_content is None
  assert result.size_estimate == {"pages": 14}
  assert result.validation_issues == ["Missing bibliography", "{'line': 3}"]
  assert generated.processing_stats == {"unit_code": "BSBWHS211", "generation_method": "dynamic_chapters"}


@pytest.mark.anyio
async def test_presentation_result_uses_beamer_fields(api_client, backend) -> None:
  backend.content = {"beamer_content": "\\begin{frame}\\end{frame}", "slide_estimate": 22}
  generated = await ResultFetcher(api_client).fetch(_handle(JobKind.PRESENTATION))

  assert backend.requests[-1].url.path == "/api/presentations/U1/beamer"
  result = generated.result
  assert result.content_type == "beamer"
  assert result.content == "\\begin{frame}\\end{frame}"
  assert result.size_estimate == 22
  assert result.validation_issues == []
  assert result.generation_method == ""
  # generated_at falls back to the fetch time.
  assert result.generated_at.endswith("Z")


@pytest.mark.anyio
async def test_missing_kind_specific_content_is_malformed(api_client, backend) -> None:
  backend.content = {"beamer_content": "wrong field for a study guide"}
  with pytest.raises(ResultFetchError, match="missing latex_content"):
    await ResultFetcher(api_client).fetch(_handle(JobKind.STUDY_GUIDE))


@pytest.mark.anyio
async def test_not_found_result(api_client, backend) -> None:
  backend.content = (404, {"message": "nope"})
  with pytest.raises(ResultFetchError) as exc:
    await ResultFetcher(api_client).fetch(_handle(JobKind.STUDY_GUIDE))
  assert exc.value.status_code == 404
  assert exc.value.message == "Generation result not found - content may not be ready yet"


@pytest.mark.anyio
async def test_server_error_result(api_client, backend) -> None:
  backend.content = (500, {})
  with pytest.raises(ResultFetchError, match="Server error while fetching result"):
    await ResultFetcher(api_client).fetch(_handle(JobKind.PRESENTATION))


@pytest.mark.anyio
async def test_loose_metadata_is_coerced(api_client, backend) -> None:
  backend.content = {"data": {"_id": None, "unit_code": 4021, "latex_content": "X", "generation_method": None, "generated_at": 1704067200, "validation_issues": "Missing title"}}
  generated = await ResultFetcher(api_client).fetch(_handle(JobKind.STUDY_GUIDE))

  result = generated.result
  assert result.content == "X"
  assert result.document_id == ""
  assert result.generation_method == ""
  assert result.generated_at == "1704067200"
  assert result.validation_issues == ["Missing title"]
  assert generated.processing_stats == {"unit_code": "4021", "generation_method": None}


@pytest.mark.anyio
async def test_non_scalar_metadata_is_dropped(api_client, backend) -> None:
  backend.content = {"_id": {"$oid": "abc"}, "unit_code": ["U1"], "beamer_content": "\\begin{frame}\\end{frame}", "generated_at": {"date": "2024"}}
  generated = await ResultFetcher(api_client).fetch(_handle(JobKind.PRESENTATION))

  assert generated.result.document_id == ""
  assert generated.processing_stats["unit_code"] is None
  assert generated.result.generated_at.endswith("Z")
