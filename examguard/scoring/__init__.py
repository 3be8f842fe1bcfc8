"""Scoring modules"""

from .exam_scorer import (
    ExamScorer,
    compute_score,
    penalty,
    adjusted_score,
    attempt_logs,
    round_half_up,
)
from .flag_generator import FlagGenerator
from .report import build_result, export_results_csv, score_breakdown

__all__ = [
    "ExamScorer",
    "FlagGenerator",
    "compute_score",
    "penalty",
    "adjusted_score",
    "attempt_logs",
    "round_half_up",
    "build_result",
    "export_results_csv",
    "score_breakdown",
]
