"""
Domain types for Computerized Adaptive Testing sessions.

Item parameters and response records are immutable once created. A
TestSession is mutated only by CATSessionManager, once per submitted
response, and is frozen (by convention) after it reaches COMPLETED.
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

# Calibrated parameter ranges accepted from the item bank
MAX_DISCRIMINATION = 3.0
DIFFICULTY_RANGE = (-4.0, 4.0)
MAX_GUESSING = 0.35

# Difficulty bands used for the difficulty distribution summary
EASY_DIFFICULTY_CUTOFF = -0.5
HARD_DIFFICULTY_CUTOFF = 0.5


class SessionStatus(str, enum.Enum):
    """CAT session status enumeration."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TestResult(str, enum.Enum):
    """Final verdict of a CAT session."""

    __test__ = False  # not a pytest test class

    PASS = "pass"
    FAIL = "fail"
    UNDETERMINED = "undetermined"


class StopReason(str, enum.Enum):
    """Stopping rule that terminated a CAT session."""

    MAXIMUM_QUESTIONS = "maximum_questions"
    TIME_LIMIT = "time_limit"
    CONFIDENCE_PASS = "confidence_pass"
    CONFIDENCE_FAIL = "confidence_fail"
    PRECISION_REACHED = "precision_reached"
    ITEM_POOL_EXHAUSTED = "item_pool_exhausted"


class EstimationMethod(str, enum.Enum):
    """Ability estimation strategy."""

    EAP = "eap"
    MLE = "mle"


@dataclass(frozen=True)
class ItemParameters:
    """Calibrated 3PL parameters for a single item."""

    discrimination: float  # a
    difficulty: float  # b
    guessing: float = 0.0  # c

    def __post_init__(self) -> None:
        if not all(
            math.isfinite(v) for v in (self.discrimination, self.difficulty, self.guessing)
        ):
            raise ValueError(f"IRT parameters must be finite, got {self}")
        if not 0.0 < self.discrimination <= MAX_DISCRIMINATION:
            raise ValueError(
                f"Discrimination must be in (0, {MAX_DISCRIMINATION}], "
                f"got {self.discrimination}"
            )
        low, high = DIFFICULTY_RANGE
        if not low <= self.difficulty <= high:
            raise ValueError(
                f"Difficulty must be in [{low}, {high}], got {self.difficulty}"
            )
        if not 0.0 <= self.guessing <= MAX_GUESSING:
            raise ValueError(
                f"Guessing must be in [0, {MAX_GUESSING}], got {self.guessing}"
            )


@dataclass(frozen=True)
class BankItem:
    """An item from the item bank with its calibrated parameters."""

    id: str
    params: ItemParameters
    category_id: str
    item_type: str = "multiple_choice"
    answer_key: Any = None


@dataclass(frozen=True)
class ResponseRecord:
    """Single graded response. Append-only; never mutated once written."""

    item_id: str
    is_correct: bool
    time_spent_seconds: float
    theta_before: float
    theta_after: float
    se_before: float
    se_after: float
    question_number: int
    category_id: str
    params: ItemParameters


@dataclass
class CategoryPerformance:
    """Correct/total counts for one content category."""

    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0


def difficulty_band(difficulty: float) -> str:
    """Map an IRT difficulty to the easy/medium/hard band."""
    if difficulty < EASY_DIFFICULTY_CUTOFF:
        return "easy"
    if difficulty > HARD_DIFFICULTY_CUTOFF:
        return "hard"
    return "medium"


@dataclass
class TestSession:
    """State of one adaptive test session."""

    __test__ = False  # not a pytest test class

    session_id: str
    candidate_id: str
    min_questions: int
    max_questions: int
    time_limit_seconds: float
    passing_theta: float
    started_at: datetime
    status: SessionStatus = SessionStatus.IN_PROGRESS
    theta: float = 0.0
    standard_error: float = 1.0
    passing_probability: float = 0.5
    questions_answered: int = 0
    questions_correct: int = 0
    time_spent_seconds: float = 0.0
    category_performance: Dict[str, CategoryPerformance] = field(default_factory=dict)
    difficulty_distribution: Dict[str, int] = field(
        default_factory=lambda: {"easy": 0, "medium": 0, "hard": 0}
    )
    answered_item_ids: Set[str] = field(default_factory=set)
    responses: List[ResponseRecord] = field(default_factory=list)
    current_item_id: Optional[str] = None
    result: Optional[TestResult] = None
    stop_reason: Optional[StopReason] = None
    completed_at: Optional[datetime] = None
    version: int = 0

    def __post_init__(self) -> None:
        if self.min_questions < 1:
            raise ValueError(f"min_questions must be >= 1, got {self.min_questions}")
        if self.min_questions > self.max_questions:
            raise ValueError(
                f"min_questions ({self.min_questions}) must not exceed "
                f"max_questions ({self.max_questions})"
            )
        if not self.time_limit_seconds > 0:
            raise ValueError(
                f"time_limit_seconds must be positive, got {self.time_limit_seconds}"
            )

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    def category_counts(self) -> Dict[str, int]:
        """Items answered per category."""
        return {cat: perf.total for cat, perf in self.category_performance.items()}
