"""
Session Randomizer - deterministic per-candidate question/option order

The candidate's stored seed drives a small linear congruential generator,
so reloading the page mid-exam (or restarting the server) shows exactly
the same questions in the same order with the same option order.
"""
from dataclasses import dataclass
from typing import Dict, List, Sequence

from ..errors import ConfigurationError
from ..models import Question

# LCG constants (period <= MODULUS)
MULTIPLIER = 9301
INCREMENT = 49297
MODULUS = 233280


def seed_hash(seed: str) -> int:
    """32-bit signed string hash (h = h*31 + code point)"""
    h = 0
    for ch in seed:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


class SeededRandom:
    """
    Linear congruential generator seeded from a string.

    Only integer arithmetic is used, so results are identical on every
    platform and interpreter.
    """

    def __init__(self, seed: str):
        self.state = seed_hash(seed) % MODULUS

    def _step(self) -> int:
        self.state = (self.state * MULTIPLIER + INCREMENT) % MODULUS
        return self.state

    def random(self) -> float:
        """Next value in [0, 1)"""
        return self._step() / MODULUS

    def below(self, bound: int) -> int:
        """Next integer in [0, bound)"""
        return self._step() * bound // MODULUS

    def shuffle(self, items: list) -> list:
        """Fisher-Yates shuffle in place; returns items"""
        for i in range(len(items) - 1, 0, -1):
            j = self.below(i + 1)
            items[i], items[j] = items[j], items[i]
        return items


@dataclass
class SessionView:
    """Personalized exam view for one candidate"""
    questions: List[Question]
    option_orders: Dict[int, List[str]]

    @property
    def question_ids(self) -> List[int]:
        return [q.id for q in self.questions]

    def contains(self, question_id: int) -> bool:
        return question_id in self.option_orders

    def to_payload(self, include_answers: bool = False) -> List[dict]:
        """Questions with their options in display order"""
        payload = []
        for question in self.questions:
            item = question.to_dict(include_answer=include_answers)
            item["options"] = list(self.option_orders[question.id])
            payload.append(item)
        return payload


def build_view(seed: str, pool: Sequence[Question], question_count: int) -> SessionView:
    """
    Select and order questions for a candidate.

    Args:
        seed: Candidate's random seed
        pool: All questions available to the exam (any order)
        question_count: Number of questions to serve

    Returns:
        SessionView with selected questions and per-question option order

    Raises:
        ConfigurationError: empty pool or non-positive question count
    """
    if not pool:
        raise ConfigurationError("Exam question pool is empty")
    if question_count < 1:
        raise ConfigurationError(f"Invalid question count: {question_count}")

    rng = SeededRandom(seed)

    # Store iteration order must not leak into the result
    ordered = sorted(pool, key=lambda q: q.id)
    selected = rng.shuffle(list(ordered))[:question_count]

    option_orders = {
        question.id: rng.shuffle(list(question.options))
        for question in selected
    }

    return SessionView(questions=selected, option_orders=option_orders)
