"""
End-of-test report for a completed CAT session.

Summarizes per-category accuracy, strengths and weaknesses, study
recommendations, the ability trajectory and response timing.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from haven_cat.core.cat.models import TestResult, TestSession, difficulty_band

# Category accuracy thresholds (fractions)
STRENGTH_ACCURACY = 0.70
WEAKNESS_ACCURACY = 0.50

# Proficiency labels, checked in order
PROFICIENCY_LEVELS: Tuple[Tuple[float, str], ...] = (
    (0.85, "mastered"),
    (0.70, "proficient"),
    (0.50, "developing"),
)
LOWEST_PROFICIENCY = "needs_improvement"

# Performance relative to the passing standard
ABOVE_STANDARD_ACCURACY = 0.60
AT_STANDARD_ACCURACY = 0.40

# Slow incorrect responses are flagged as time struggles
SLOW_RESPONSE_SECONDS = 90.0


@dataclass
class CategoryReport:
    category_id: str
    correct: int
    total: int
    accuracy: float
    proficiency: str
    performance: str


@dataclass
class TrajectoryPoint:
    question_number: int
    item_id: str
    difficulty: float
    difficulty_band: str
    is_correct: bool
    theta_after: float
    se_after: float


@dataclass
class TimingSummary:
    total_seconds: float
    average_seconds: float
    fastest_seconds: Optional[float]
    slowest_seconds: Optional[float]
    slow_incorrect_questions: List[int] = field(default_factory=list)


@dataclass
class SessionReport:
    session_id: str
    candidate_id: str
    passed: bool
    result: Optional[TestResult]
    stop_reason: Optional[str]
    questions_answered: int
    questions_correct: int
    theta: float
    standard_error: float
    ci_lower: float
    ci_upper: float
    passing_probability: float
    categories: List[CategoryReport]
    strengths: List[str]
    weaknesses: List[str]
    recommendations: List[str]
    difficulty_distribution: Dict[str, int]
    trajectory: List[TrajectoryPoint]
    timing: TimingSummary


def proficiency_level(accuracy: float) -> str:
    """Map a category accuracy (0-1) to a proficiency label."""
    for threshold, label in PROFICIENCY_LEVELS:
        if accuracy >= threshold:
            return label
    return LOWEST_PROFICIENCY


def performance_level(correct: int, total: int) -> str:
    """Map category results to above/at/below the passing standard."""
    if total <= 0:
        return "at"
    accuracy = correct / total
    if accuracy >= ABOVE_STANDARD_ACCURACY:
        return "above"
    if accuracy >= AT_STANDARD_ACCURACY:
        return "at"
    return "below"


def _display_name(category_id: str) -> str:
    return category_id.replace("_", " ")


def _timing_summary(session: TestSession) -> TimingSummary:
    times = [r.time_spent_seconds for r in session.responses]
    positive = [t for t in times if t > 0]
    return TimingSummary(
        total_seconds=session.time_spent_seconds,
        average_seconds=sum(times) / len(times) if times else 0.0,
        fastest_seconds=min(positive) if positive else None,
        slowest_seconds=max(times) if times else None,
        slow_incorrect_questions=[
            r.question_number
            for r in session.responses
            if r.time_spent_seconds > SLOW_RESPONSE_SECONDS and not r.is_correct
        ],
    )


def build_session_report(session: TestSession, confidence_z: float = 1.96) -> SessionReport:
    """
    Build the report for a session.

    Args:
        session: Session to summarize, normally completed.
        confidence_z: Multiplier for the reported confidence interval.

    Returns:
        SessionReport with categories sorted by category id.
    """
    categories: List[CategoryReport] = []
    strengths: List[str] = []
    weaknesses: List[str] = []
    recommendations: List[str] = []

    for category_id in sorted(session.category_performance):
        perf = session.category_performance[category_id]
        accuracy = perf.accuracy
        categories.append(
            CategoryReport(
                category_id=category_id,
                correct=perf.correct,
                total=perf.total,
                accuracy=accuracy,
                proficiency=proficiency_level(accuracy),
                performance=performance_level(perf.correct, perf.total),
            )
        )
        name = _display_name(category_id)
        if accuracy >= STRENGTH_ACCURACY:
            strengths.append(name)
        elif accuracy < WEAKNESS_ACCURACY:
            weaknesses.append(name)
            recommendations.append(f"Focus more on {name} topics")

    if session.result == TestResult.FAIL:
        recommendations.append("Schedule additional CAT practice sessions")
        recommendations.append("Review rationales for missed questions")

    trajectory = [
        TrajectoryPoint(
            question_number=r.question_number,
            item_id=r.item_id,
            difficulty=r.params.difficulty,
            difficulty_band=difficulty_band(r.params.difficulty),
            is_correct=r.is_correct,
            theta_after=r.theta_after,
            se_after=r.se_after,
        )
        for r in session.responses
    ]

    return SessionReport(
        session_id=session.session_id,
        candidate_id=session.candidate_id,
        passed=session.result == TestResult.PASS,
        result=session.result,
        stop_reason=session.stop_reason.value if session.stop_reason else None,
        questions_answered=session.questions_answered,
        questions_correct=session.questions_correct,
        theta=session.theta,
        standard_error=session.standard_error,
        ci_lower=session.theta - confidence_z * session.standard_error,
        ci_upper=session.theta + confidence_z * session.standard_error,
        passing_probability=session.passing_probability,
        categories=categories,
        strengths=strengths,
        weaknesses=weaknesses,
        recommendations=recommendations,
        difficulty_distribution=dict(session.difficulty_distribution),
        trajectory=trajectory,
        timing=_timing_summary(session),
    )
