"""
Tests for CAT stopping rules.

Tests cover:
- Priority order: max > time > min > CI > precision > continue
- Maximum questions stop regardless of SE, with the theta-based verdict
- Never stopping below the minimum except on max or time
- Confidence-interval pass/fail classification
- Precision rule and the undetermined continue case
- Input validation and decision details
"""

import pytest

from haven_cat.core.cat.models import StopReason, TestResult
from haven_cat.core.cat.stopping_rules import (
    CONFIDENCE_Z,
    MAX_QUESTIONS,
    MIN_QUESTIONS,
    SE_THRESHOLD,
    TIME_LIMIT_SECONDS,
    check_stopping_criteria,
    classify,
)


class TestClassify:
    def test_at_cut_score_passes(self):
        assert classify(0.0, 0.0) == TestResult.PASS

    def test_above_and_below(self):
        assert classify(0.4, 0.2) == TestResult.PASS
        assert classify(0.1, 0.2) == TestResult.FAIL


class TestDefaults:
    def test_default_constants(self):
        assert MIN_QUESTIONS == 60
        assert MAX_QUESTIONS == 145
        assert TIME_LIMIT_SECONDS == 18000.0
        assert SE_THRESHOLD == pytest.approx(0.30)
        assert CONFIDENCE_Z == pytest.approx(1.96)


# ── Rule 1: maximum questions ────────────────────────────────────────────────


class TestMaximumQuestions:
    def test_stops_at_max_regardless_of_se(self):
        decision = check_stopping_criteria(theta=0.1, se=0.9, num_answered=145)
        assert decision.should_stop is True
        assert decision.reason == StopReason.MAXIMUM_QUESTIONS
        assert decision.result == TestResult.PASS

    def test_fail_verdict_at_max(self):
        decision = check_stopping_criteria(theta=-0.05, se=0.9, num_answered=145)
        assert decision.reason == StopReason.MAXIMUM_QUESTIONS
        assert decision.result == TestResult.FAIL

    def test_max_takes_precedence_over_time_and_ci(self):
        decision = check_stopping_criteria(
            theta=2.0,
            se=0.1,
            num_answered=5,
            elapsed_seconds=99999,
            min_questions=3,
            max_questions=5,
        )
        assert decision.reason == StopReason.MAXIMUM_QUESTIONS

    def test_max_overrides_minimum_when_equal(self):
        decision = check_stopping_criteria(
            theta=0.0, se=1.0, num_answered=4, min_questions=4, max_questions=4
        )
        assert decision.reason == StopReason.MAXIMUM_QUESTIONS


# ── Rule 2: time limit ───────────────────────────────────────────────────────


class TestTimeLimit:
    def test_stops_when_time_exhausted_even_below_minimum(self):
        decision = check_stopping_criteria(
            theta=-0.3, se=0.8, num_answered=10, elapsed_seconds=18000.0
        )
        assert decision.should_stop is True
        assert decision.reason == StopReason.TIME_LIMIT
        assert decision.result == TestResult.FAIL

    def test_time_takes_precedence_over_ci(self):
        decision = check_stopping_criteria(
            theta=2.0,
            se=0.1,
            num_answered=80,
            elapsed_seconds=60.0,
            time_limit_seconds=60.0,
        )
        assert decision.reason == StopReason.TIME_LIMIT
        assert decision.result == TestResult.PASS

    def test_under_time_limit_continues(self):
        decision = check_stopping_criteria(
            theta=0.0, se=0.8, num_answered=80, elapsed_seconds=17999.0
        )
        assert decision.should_stop is False


# ── Rule 3: minimum questions ────────────────────────────────────────────────


class TestMinimumQuestions:
    @pytest.mark.parametrize("num_answered", [0, 1, 30, 59])
    def test_never_stops_below_minimum(self, num_answered):
        decision = check_stopping_criteria(theta=3.5, se=0.05, num_answered=num_answered)
        assert decision.should_stop is False
        assert decision.reason is None
        assert decision.result == TestResult.UNDETERMINED
        assert decision.details["min_questions_met"] is False

    def test_can_stop_at_minimum(self):
        decision = check_stopping_criteria(theta=3.5, se=0.05, num_answered=60)
        assert decision.should_stop is True
        assert decision.details["min_questions_met"] is True


# ── Rule 4: confidence interval ──────────────────────────────────────────────


class TestConfidenceInterval:
    def test_confident_pass(self):
        """CI = 0.8 +/- 1.96 * 0.35 = [0.114, 1.486] lies above 0."""
        decision = check_stopping_criteria(theta=0.8, se=0.35, num_answered=70)
        assert decision.should_stop is True
        assert decision.reason == StopReason.CONFIDENCE_PASS
        assert decision.result == TestResult.PASS

    def test_confident_fail(self):
        decision = check_stopping_criteria(theta=-0.8, se=0.35, num_answered=70)
        assert decision.should_stop is True
        assert decision.reason == StopReason.CONFIDENCE_FAIL
        assert decision.result == TestResult.FAIL

    def test_ci_checked_before_precision(self):
        decision = check_stopping_criteria(theta=1.0, se=0.1, num_answered=70)
        assert decision.reason == StopReason.CONFIDENCE_PASS

    def test_respects_custom_passing_theta(self):
        decision = check_stopping_criteria(
            theta=0.8, se=0.35, num_answered=70, passing_theta=0.5
        )
        assert decision.should_stop is False

    def test_ci_touching_cut_score_does_not_stop(self):
        decision = check_stopping_criteria(
            theta=0.98, se=0.5, num_answered=70, confidence_z=1.96
        )
        # ci_lower = 0.98 - 0.98 = 0.0, not strictly above the cut score
        assert decision.details["ci_lower"] == pytest.approx(0.0)
        assert decision.reason != StopReason.CONFIDENCE_PASS


# ── Rule 5: precision ────────────────────────────────────────────────────────


class TestPrecision:
    def test_precision_reached_with_ci_straddling_cut(self):
        decision = check_stopping_criteria(theta=0.2, se=0.25, num_answered=70)
        assert decision.should_stop is True
        assert decision.reason == StopReason.PRECISION_REACHED
        assert decision.result == TestResult.PASS

    def test_precision_fail_verdict(self):
        decision = check_stopping_criteria(theta=-0.1, se=0.25, num_answered=70)
        assert decision.reason == StopReason.PRECISION_REACHED
        assert decision.result == TestResult.FAIL

    def test_se_at_threshold_continues(self):
        decision = check_stopping_criteria(theta=0.2, se=0.30, num_answered=70)
        assert decision.should_stop is False
        assert decision.result == TestResult.UNDETERMINED


class TestContinue:
    def test_undetermined_between_min_and_max(self):
        decision = check_stopping_criteria(theta=0.1, se=0.5, num_answered=100)
        assert decision.should_stop is False
        assert decision.reason is None
        assert decision.result == TestResult.UNDETERMINED

    def test_details_populated(self):
        decision = check_stopping_criteria(
            theta=0.1, se=0.5, num_answered=100, elapsed_seconds=1200.0
        )
        details = decision.details
        assert details["ci_lower"] == pytest.approx(0.1 - 1.96 * 0.5)
        assert details["ci_upper"] == pytest.approx(0.1 + 1.96 * 0.5)
        assert details["num_answered"] == 100
        assert details["elapsed_seconds"] == 1200.0
        assert details["at_max_questions"] is False


class TestValidation:
    def test_negative_se_raises(self):
        with pytest.raises(ValueError, match="Standard error"):
            check_stopping_criteria(theta=0.0, se=-0.1, num_answered=5)

    def test_negative_count_raises(self):
        with pytest.raises(ValueError, match="non-negative"):
            check_stopping_criteria(theta=0.0, se=0.5, num_answered=-1)

    def test_negative_elapsed_raises(self):
        with pytest.raises(ValueError, match="Elapsed"):
            check_stopping_criteria(
                theta=0.0, se=0.5, num_answered=1, elapsed_seconds=-1.0
            )

    @pytest.mark.parametrize("elapsed", [float("nan"), float("inf")])
    def test_non_finite_elapsed_raises(self, elapsed):
        with pytest.raises(ValueError, match="finite"):
            check_stopping_criteria(
                theta=0.0, se=0.5, num_answered=1, elapsed_seconds=elapsed
            )

    def test_min_above_max_raises(self):
        with pytest.raises(ValueError, match="must not exceed"):
            check_stopping_criteria(
                theta=0.0, se=0.5, num_answered=1, min_questions=10, max_questions=5
            )
