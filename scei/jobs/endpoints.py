"""Backend routes used by the job client, per artifact kind."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from scei.jobs.models import JobKind


@dataclass(frozen=True)
class KindRoutes:
  """Route templates and defaults for one artifact kind."""

  collection: str
  submit_action: str
  content_action: str
  content_field: str
  content_type: str
  default_method: str

  def submit(self, subject_id: str) -> str:
    return f"/{self.collection}/{quote(subject_id, safe='')}/{self.submit_action}"

  def status(self, subject_id: str, job_id: str) -> str:
    return f"/{self.collection}/{quote(subject_id, safe='')}/generation-status/{quote(job_id, safe='')}"

  def content(self, subject_id: str) -> str:
    return f"/{self.collection}/{quote(subject_id, safe='')}/{self.content_action}"


ROUTES: dict[JobKind, KindRoutes] = {
  JobKind.STUDY_GUIDE: KindRoutes(collection="study-guides", submit_action="generate-latex", content_action="latex", content_field="latex_content", content_type="latex", default_method="dynamic_chapters"),
  JobKind.PRESENTATION: KindRoutes(collection="presentations", submit_action="generate-beamer", content_action="beamer", content_field="beamer_content", content_type="beamer", default_method="dynamic_slides"),
}

DEFAULT_PRESENTATION_THEME = "madrid"
DEFAULT_PRESENTATION_COLOR_SCHEME = "default"


def routes_for(kind: JobKind | str) -> KindRoutes:
  """Return the routes for a kind, accepting the raw string value."""
  return ROUTES[JobKind(kind)]
