"""
Result views and CSV export.

Both go through ExamScorer so the score a candidate sees and the score in
an exported report are always the same number.
"""

import csv
import io
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models import Candidate, Exam, ProctorLog, ShowResults
from .exam_scorer import ExamScorer, attempt_logs
from .flag_generator import FlagGenerator

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "candidate_id",
    "user_id",
    "status",
    "raw_score",
    "penalty",
    "final_score",
    "passed",
    "high_violations",
    "medium_violations",
    "low_violations",
    "review_required",
]


def score_breakdown(
    candidate: Candidate,
    exam: Exam,
    logs: Iterable[ProctorLog],
    scorer: ExamScorer,
    flagger: FlagGenerator
) -> Dict[str, Any]:
    """Raw score, penalty, final score and violation summary for one attempt"""
    current = attempt_logs(logs, candidate.started_at)
    raw = candidate.score
    deducted = scorer.penalty(current, exam.proctoring_mode)
    final = scorer.final_score(raw, current, exam.proctoring_mode) if raw is not None else None

    return {
        "raw_score": raw,
        "penalty": deducted,
        "final_score": final,
        "passed": scorer.passed(final) if final is not None else None,
        "violations": flagger.summarize(current),
    }


def build_result(
    candidate: Candidate,
    exam: Exam,
    logs: Iterable[ProctorLog],
    scorer: ExamScorer,
    flagger: FlagGenerator,
    is_admin: bool = False
) -> Dict[str, Any]:
    """
    Results view for a candidate attempt.

    Candidates only see their score when the exam shows results
    immediately; admins always see everything.
    """
    visible = is_admin or exam.show_results == ShowResults.IMMEDIATE
    finished = candidate.status.is_finished

    result = {
        "candidate_id": candidate.id,
        "exam_id": exam.id,
        "exam_title": exam.title,
        "status": candidate.status.value,
        "completed_at": candidate.completed_at.isoformat() if candidate.completed_at else None,
        "show_results": exam.show_results.value,
        "score_visible": visible and finished,
    }

    if visible and finished:
        result.update(score_breakdown(candidate, exam, logs, scorer, flagger))
        result["proctoring_mode"] = exam.proctoring_mode.value

    return result


def export_results_csv(
    exam: Exam,
    rows: List[Tuple[Candidate, List[ProctorLog]]],
    scorer: ExamScorer,
    flagger: FlagGenerator
) -> str:
    """
    Export every candidate of an exam as CSV.

    Args:
        exam: The exam being reported
        rows: (candidate, that candidate's proctor logs) pairs
    """
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()

    for candidate, logs in rows:
        breakdown = score_breakdown(candidate, exam, logs, scorer, flagger)
        by_severity = breakdown["violations"]["by_severity"]
        writer.writerow({
            "candidate_id": candidate.id,
            "user_id": candidate.user_id,
            "status": candidate.status.value,
            "raw_score": _blank(breakdown["raw_score"]),
            "penalty": breakdown["penalty"],
            "final_score": _blank(breakdown["final_score"]),
            "passed": _blank(breakdown["passed"]),
            "high_violations": by_severity["high"],
            "medium_violations": by_severity["medium"],
            "low_violations": by_severity["low"],
            "review_required": breakdown["violations"]["review_required"],
        })

    logger.info(f"Exported results for exam {exam.id}: {len(rows)} candidates")
    return buffer.getvalue()


def _blank(value: Optional[Any]) -> Any:
    return "" if value is None else value
