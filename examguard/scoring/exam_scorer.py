"""
Exam Scorer - Computes the final exam score and the negative-marking penalty

Formula:
    score = round_half_up(100 * correct / total), 0 when nothing answered

    displayed_score = max(0, score - penalty_per_violation * high_severity_events)
                      (negative_marking mode only)

The penalty is never stored; every view that shows a score calls the
same functions here so the numbers cannot drift apart.
"""

import logging
import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from ..models import ProctorLog, ProctoringMode, Response, Severity

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (12.5 -> 13)"""
    return int(math.floor(value + 0.5))


def compute_score(responses: Sequence[Response]) -> int:
    """
    Percentage of correct responses.

    Correctness was frozen when each response was written; it is not
    re-evaluated here.
    """
    total = len(responses)
    if total == 0:
        return 0
    correct = sum(1 for r in responses if r.is_correct)
    return round_half_up(100 * correct / total)


def attempt_logs(logs: Iterable[ProctorLog], started_at: Optional[datetime]) -> List[ProctorLog]:
    """Logs belonging to the attempt that started at started_at"""
    if started_at is None:
        return list(logs)
    return [log for log in logs if log.timestamp >= started_at]


def count_violations(logs: Iterable[ProctorLog], severity: Severity = Severity.HIGH) -> int:
    return sum(1 for log in logs if log.severity == severity)


def penalty(
    logs: Iterable[ProctorLog],
    mode: ProctoringMode,
    per_violation: int = 1
) -> int:
    """
    Points deducted for confirmed high-severity violations.

    Args:
        logs: Candidate's proctor logs for the attempt
        mode: Exam proctoring mode
        per_violation: Flat deduction per high-severity event

    Returns:
        Penalty in points (0 in standard mode)
    """
    if mode != ProctoringMode.NEGATIVE_MARKING:
        return 0
    return count_violations(logs, Severity.HIGH) * per_violation


def adjusted_score(
    score: int,
    logs: Iterable[ProctorLog],
    mode: ProctoringMode,
    per_violation: int = 1
) -> int:
    """Score after penalty, clamped to 0-100"""
    deducted = penalty(logs, mode, per_violation)
    final_score = max(0, min(100, score - deducted))

    logger.debug(f"Adjusted score: raw={score}, penalty={deducted}, final={final_score}")
    return final_score


class ExamScorer:
    """
    Bundles the scoring functions with the configured penalty size.
    """

    def __init__(self, per_violation: int = 1, pass_mark: int = 70):
        self.per_violation = per_violation
        self.pass_mark = pass_mark

    def score(self, responses: Sequence[Response]) -> int:
        score = compute_score(responses)
        logger.info(f"Computed exam score: {score} ({len(responses)} responses)")
        return score

    def penalty(self, logs: Iterable[ProctorLog], mode: ProctoringMode) -> int:
        return penalty(logs, mode, self.per_violation)

    def final_score(self, score: int, logs: Iterable[ProctorLog], mode: ProctoringMode) -> int:
        return adjusted_score(score, logs, mode, self.per_violation)

    def passed(self, final_score: int) -> bool:
        return final_score >= self.pass_mark
