"""
Stopping rules for Computerized Adaptive Testing (CAT).

Decides after every response whether a session should terminate and with
what verdict. This is a pass/fail mastery test, so besides the length and
precision rules it uses a confidence-interval classification rule
(Kingsbury & Weiss, 1983): once the 95% interval around theta lies entirely
on one side of the cut score, the verdict cannot change meaningfully.

Stopping Rules (evaluated in priority order):
    1. Maximum questions: stop at max_questions (overrides everything)
    2. Time limit: stop once accumulated time reaches the limit
    3. Minimum questions: never stop before min_questions
    4. Confidence interval: stop when the CI excludes the passing threshold
    5. Precision: stop when SE(theta) < SE_THRESHOLD
    6. Otherwise: continue, verdict undetermined

For rules 1, 2 and 5 the verdict is pass iff theta >= passing_theta.

References:
    - Kingsbury, G. G., & Weiss, D. J. (1983). A comparison of IRT-based
      adaptive mastery testing and a sequential mastery testing procedure.
    - Spray, J. A., & Reckase, M. D. (1996). Comparison of SPRT and sequential
      Bayes procedures for classifying examinees into two categories using a
      computerized test.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from haven_cat.core.cat.models import StopReason, TestResult

logger = logging.getLogger(__name__)

# Precision criterion. SE = 0.30 corresponds to reliability ~0.91
SE_THRESHOLD = 0.30

# Question-count bounds
MIN_QUESTIONS = 60
MAX_QUESTIONS = 145

# Five hours
TIME_LIMIT_SECONDS = 18000.0

# Cut score on the logit scale
PASSING_THETA = 0.0

# 95% two-sided confidence interval
CONFIDENCE_Z = 1.96


@dataclass
class StoppingDecision:
    """
    Result of evaluating stopping criteria for a CAT session.

    Attributes:
        should_stop: Whether the test should terminate.
        reason: Rule that terminated the test, or None when continuing.
        result: PASS/FAIL when stopping, UNDETERMINED when continuing.
        details: Diagnostic information (se, ci bounds, counts, thresholds).
    """

    should_stop: bool
    reason: Optional[StopReason]
    result: TestResult
    details: Dict[str, Any] = field(default_factory=dict)


def classify(theta: float, passing_theta: float) -> TestResult:
    """Pass iff theta is at or above the cut score."""
    return TestResult.PASS if theta >= passing_theta else TestResult.FAIL


def check_stopping_criteria(
    theta: float,
    se: float,
    num_answered: int,
    elapsed_seconds: float = 0.0,
    min_questions: int = MIN_QUESTIONS,
    max_questions: int = MAX_QUESTIONS,
    time_limit_seconds: float = TIME_LIMIT_SECONDS,
    passing_theta: float = PASSING_THETA,
    se_threshold: float = SE_THRESHOLD,
    confidence_z: float = CONFIDENCE_Z,
) -> StoppingDecision:
    """
    Evaluate all stopping criteria and determine whether the CAT session should stop.

    Args:
        theta: Current ability estimate.
        se: Current standard error of the ability estimate.
        num_answered: Number of items answered so far.
        elapsed_seconds: Accumulated response time for the session.
        min_questions: No stop (other than max/time) before this many items.
        max_questions: Hard cap on test length.
        time_limit_seconds: Hard cap on accumulated time.
        passing_theta: Cut score.
        se_threshold: Target SE for the precision rule.
        confidence_z: Multiplier for the confidence-interval rule.

    Returns:
        StoppingDecision with should_stop flag, reason, verdict and details.

    Raises:
        ValueError: If se or num_answered is negative, elapsed_seconds is
            negative or not finite, or min_questions exceeds max_questions.
    """
    if se < 0:
        raise ValueError(f"Standard error must be non-negative, got {se}")
    if num_answered < 0:
        raise ValueError(f"Number of items must be non-negative, got {num_answered}")
    if not math.isfinite(elapsed_seconds) or elapsed_seconds < 0:
        raise ValueError(
            f"Elapsed time must be finite and non-negative, got {elapsed_seconds}"
        )
    if min_questions > max_questions:
        raise ValueError(
            f"min_questions ({min_questions}) must not exceed "
            f"max_questions ({max_questions})"
        )

    ci_lower = theta - confidence_z * se
    ci_upper = theta + confidence_z * se

    details: Dict[str, Any] = {
        "theta": theta,
        "se": se,
        "ci_lower": ci_lower,
        "ci_upper": ci_upper,
        "num_answered": num_answered,
        "elapsed_seconds": elapsed_seconds,
        "passing_theta": passing_theta,
        "se_threshold": se_threshold,
        "min_questions_met": num_answered >= min_questions,
        "at_max_questions": num_answered >= max_questions,
    }

    # -------------------------------------------------------------------------
    # Stopping decision logic (priority order)
    # -------------------------------------------------------------------------

    # Rule 1: Maximum questions overrides every other rule
    if num_answered >= max_questions:
        logger.info(
            f"Stopping: reached maximum questions ({num_answered}/{max_questions})"
        )
        return StoppingDecision(
            should_stop=True,
            reason=StopReason.MAXIMUM_QUESTIONS,
            result=classify(theta, passing_theta),
            details=details,
        )

    # Rule 2: Time limit
    if elapsed_seconds >= time_limit_seconds:
        logger.info(
            f"Stopping: time limit reached ({elapsed_seconds:.0f}s >= "
            f"{time_limit_seconds:.0f}s) after {num_answered} questions"
        )
        return StoppingDecision(
            should_stop=True,
            reason=StopReason.TIME_LIMIT,
            result=classify(theta, passing_theta),
            details=details,
        )

    # Rule 3: Minimum questions
    if num_answered < min_questions:
        logger.debug(
            f"Continuing: {num_answered}/{min_questions} questions answered "
            "(below minimum)"
        )
        return StoppingDecision(
            should_stop=False,
            reason=None,
            result=TestResult.UNDETERMINED,
            details=details,
        )

    # Rule 4: Confidence interval excludes the cut score
    if ci_lower > passing_theta:
        logger.info(
            f"Stopping: CI lower bound {ci_lower:.3f} above passing theta "
            f"{passing_theta:.3f} after {num_answered} questions"
        )
        return StoppingDecision(
            should_stop=True,
            reason=StopReason.CONFIDENCE_PASS,
            result=TestResult.PASS,
            details=details,
        )
    if ci_upper < passing_theta:
        logger.info(
            f"Stopping: CI upper bound {ci_upper:.3f} below passing theta "
            f"{passing_theta:.3f} after {num_answered} questions"
        )
        return StoppingDecision(
            should_stop=True,
            reason=StopReason.CONFIDENCE_FAIL,
            result=TestResult.FAIL,
            details=details,
        )

    # Rule 5: Precision
    if se < se_threshold:
        logger.info(
            f"Stopping: SE threshold met (SE={se:.4f} < {se_threshold:.4f}) "
            f"after {num_answered} questions"
        )
        return StoppingDecision(
            should_stop=True,
            reason=StopReason.PRECISION_REACHED,
            result=classify(theta, passing_theta),
            details=details,
        )

    logger.debug(
        f"Continuing: SE={se:.4f} (threshold={se_threshold:.4f}), "
        f"CI=[{ci_lower:.3f}, {ci_upper:.3f}], questions={num_answered}"
    )
    return StoppingDecision(
        should_stop=False,
        reason=None,
        result=TestResult.UNDETERMINED,
        details=details,
    )
