"""Start a study guide or presentation generation and follow it until it ends."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure repo root is on sys.path so local imports work when invoked directly.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from scei.config import get_settings
from scei.core.exceptions import GenerationError
from scei.core.logging import setup_logging
from scei.jobs.manager import JobManager
from scei.jobs.models import GenerationOptions, JobKind
from scei.jobs.session import GenerationSession, GenerationState

logger = logging.getLogger("scripts.run_generation")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Run one SCEI generation job and log its progress.")
  parser.add_argument("kind", choices=[kind.value for kind in JobKind], help="Artifact to generate.")
  parser.add_argument("unit_id", help="Unit identifier to generate for.")
  parser.add_argument("--method", dest="generation_method", help="Generation method override.")
  parser.add_argument("--theme", help="Presentation theme (presentations default to madrid).")
  parser.add_argument("--color-scheme", dest="color_scheme", help="Presentation color scheme.")
  parser.add_argument("--timezone", help="IANA timezone sent with the request (defaults to the local zone).")
  parser.add_argument("--output", type=Path, help="Write the generated LaTeX/Beamer source to this file.")
  return parser.parse_args(argv)


def _log_state(state: GenerationState) -> None:
  progress = state.progress
  if progress is None:
    return
  if progress.error:
    logger.error("Job %s %s: %s", progress.job_id, progress.status, progress.error)
    return
  logger.info("Job %s %s %s%% - %s", progress.job_id, progress.status, progress.progress, progress.current_step)


async def _run(args: argparse.Namespace) -> int:
  settings = get_settings()
  options = GenerationOptions(generation_method=args.generation_method, theme=args.theme, color_scheme=args.color_scheme, timezone=args.timezone)

  async with GenerationSession(JobManager.from_settings(settings)) as session:
    session.subscribe(_log_state)
    try:
      handle = await session.start(args.kind, args.unit_id, options)
    except GenerationError as exc:
      logger.error("Failed to start generation: %s", exc.message)
      return 1

    logger.info("Generation started job_id=%s estimated=%s", handle.job_id, handle.estimated_duration)
    await session.manager.wait_until_idle()

    if session.result is None:
      return 1

    result = session.result.result
    logger.info("Generated %s for %s via %s (%d validation issues)", result.content_type, result.subject_id, result.generation_method or "unknown method", len(result.validation_issues))
    for issue in result.validation_issues:
      logger.warning("Validation issue: %s", issue)

    if args.output:
      args.output.write_text(result.content, encoding="utf-8")
      logger.info("Wrote %d characters to %s", len(result.content), args.output)
    return 0


def main(argv: list[str] | None = None) -> None:
  """Run the generation and exit non-zero unless it completed."""
  args = _parse_args(argv)
  setup_logging(get_settings())
  try:
    exit_code = asyncio.run(_run(args))
  except KeyboardInterrupt:
    logger.warning("Interrupted; active polling was cancelled.")
    exit_code = 130
  sys.exit(exit_code)


if __name__ == "__main__":
  main()
