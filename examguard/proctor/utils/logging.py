"""
Proctoring Logger - Logs proctoring events, lifecycle and observer churn
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    candidate_id: int,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        candidate_id: Candidate whose session produced the event
        event_type: Type of event (exam_start, face_absent, observer_join, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] candidate={candidate_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    logger.log(getattr(logging, level.upper(), logging.INFO), message)


def log_session_start(candidate_id: int, exam_id: int, user_id: str):
    """Log exam start"""
    log_proctor_event(
        candidate_id=candidate_id,
        event_type="session_start",
        details={
            "exam_id": exam_id,
            "user_id": user_id
        }
    )


def log_session_end(candidate_id: int, status: str, score: int, responses: int):
    """Log exam submission"""
    log_proctor_event(
        candidate_id=candidate_id,
        event_type="session_end",
        details={
            "status": status,
            "score": score,
            "responses": responses
        }
    )


def log_violation(candidate_id: int, event_type: str, severity: str):
    """Log a confirmed violation. High severity logs at WARNING."""
    log_proctor_event(
        candidate_id=candidate_id,
        event_type=event_type,
        details={"severity": severity},
        level="warning" if severity == "high" else "info"
    )


def log_detector_degraded(candidate_id: int, detector: str, reason: str):
    """Log a detector that lost its sensor"""
    log_proctor_event(
        candidate_id=candidate_id,
        event_type="detector_degraded",
        details={
            "detector": detector,
            "reason": reason
        },
        level="warning"
    )


def log_observer_change(action: str, client_type: str, observers: int, candidate_id: Optional[int] = None):
    """Log an observer joining or leaving the live channel"""
    logger.info(
        f"[LIVE] {action} client_type={client_type} "
        f"candidate={candidate_id if candidate_id is not None else '-'} observers={observers}"
    )
