"""Stage executors for the research pipeline."""

from research.executors.base import run_stage_with_status

__all__ = ["run_stage_with_status"]
