"""Exam session: randomized views, timer and lifecycle"""

from .randomizer import SeededRandom, SessionView, build_view, seed_hash
from .timer import AutoSubmitScheduler, is_expired, remaining_seconds
from .service import ExamSessionService

__all__ = [
    "SeededRandom",
    "SessionView",
    "build_view",
    "seed_hash",
    "AutoSubmitScheduler",
    "is_expired",
    "remaining_seconds",
    "ExamSessionService",
]
