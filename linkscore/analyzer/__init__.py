"""
Analysis pipeline: orchestration, progress reporting and stuck-job recovery.
"""

from .progress import ProgressData, ProgressReporter, ProgressSnapshot, ProgressStep
from .orchestrator import AnalysisOrchestrator, default_client_factory, describe_status
from .reaper import ReaperScheduler, StuckJobReaper

__all__ = [
    "AnalysisOrchestrator",
    "default_client_factory",
    "describe_status",
    "ProgressData",
    "ProgressReporter",
    "ProgressSnapshot",
    "ProgressStep",
    "ReaperScheduler",
    "StuckJobReaper",
]
