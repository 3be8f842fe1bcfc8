"""
Flag Generator - Summarizes a candidate's proctor log for human review
"""

import logging
from collections import Counter
from typing import Any, Dict, Iterable, List

from ..models import LIFECYCLE_EVENTS, ProctorLog, Severity

logger = logging.getLogger(__name__)


class FlagGenerator:
    """
    Builds violation counts and decides whether an attempt needs review.

    Review is required when any high-severity violation was confirmed,
    or when the total number of violations reaches the threshold.
    """

    # Minimum violations (any severity) for review
    DEFAULT_REVIEW_THRESHOLD = 5

    def __init__(self, review_threshold: int = DEFAULT_REVIEW_THRESHOLD):
        self.review_threshold = review_threshold

    @staticmethod
    def violations(logs: Iterable[ProctorLog]) -> List[ProctorLog]:
        """Logs minus lifecycle markers"""
        return [log for log in logs if log.event_type not in LIFECYCLE_EVENTS]

    def summarize(self, logs: Iterable[ProctorLog]) -> Dict[str, Any]:
        """
        Summarize violations.

        Returns:
            Dict with total, by_type, by_severity, flags and review_required
        """
        violations = self.violations(logs)

        by_type = Counter(log.event_type.value for log in violations)
        by_severity = Counter(log.severity.value for log in violations)

        flags = sorted(
            {log.event_type.value for log in violations if log.severity == Severity.HIGH}
        )
        review_required = self.requires_review(violations)

        if review_required:
            logger.info(f"Review required: {len(violations)} violations, flags={flags}")

        return {
            "total": len(violations),
            "by_type": dict(by_type),
            "by_severity": {
                s.value: by_severity.get(s.value, 0) for s in Severity
            },
            "flags": flags,
            "review_required": review_required,
        }

    def requires_review(self, violations: List[ProctorLog]) -> bool:
        if any(log.severity == Severity.HIGH for log in violations):
            return True
        return len(violations) >= self.review_threshold
