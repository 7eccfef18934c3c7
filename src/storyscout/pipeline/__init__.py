"""Pipeline components."""

from .analyze import AnalysisPipeline, is_fatal_error
from .budget import BudgetCheck, BudgetGuard
from .enrich import EnrichmentPipeline
from .events import EventChannel, ProgressEvent
from .jobs import JobHandle, start_analysis_job, start_enrichment_job
from .merge import MergeState
from .press_score import calculate_press_score

__all__ = [
    "AnalysisPipeline",
    "is_fatal_error",
    "BudgetCheck",
    "BudgetGuard",
    "EnrichmentPipeline",
    "EventChannel",
    "ProgressEvent",
    "JobHandle",
    "start_analysis_job",
    "start_enrichment_job",
    "MergeState",
    "calculate_press_score",
]
