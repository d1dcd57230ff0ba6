"""Output formatting for completed analyses."""

from .results import format_results, lead_summary, score_breakdown

__all__ = ["format_results", "lead_summary", "score_breakdown"]
