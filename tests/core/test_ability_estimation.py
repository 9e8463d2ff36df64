"""
Tests for EAP/MLE ability estimation and standard error.

Tests cover:
- EAP with empty, all-correct, all-incorrect and mixed histories
- Prior influence and symmetry of the quadrature
- MLE convergence, degenerate short-circuits and clamping
- Fallback from MLE to EAP on non-convergence
- Standard error from test information, including the sentinel
- Dropping of malformed history records
- Determinism for a fixed history
"""

import math
from unittest.mock import patch

import pytest

from haven_cat.core.cat.ability_estimation import (
    DEGENERATE_SHIFT,
    SE_SENTINEL,
    THETA_BOUNDS,
    AbilityEstimate,
    confidence_interval,
    estimate_ability,
    estimate_ability_eap,
    estimate_ability_mle,
    sanitize_responses,
    standard_error,
)
from haven_cat.core.cat.models import EstimationMethod


# ── EAP ──────────────────────────────────────────────────────────────────────


class TestEAP:
    def test_empty_history_returns_prior_mean_exactly(self):
        assert estimate_ability_eap([]) == 0.0

    def test_empty_history_with_custom_prior(self):
        assert estimate_ability_eap([], prior_mean=0.7) == 0.7

    def test_single_correct_moves_up(self):
        theta = estimate_ability_eap([(1.0, 0.0, 0.0, True)])
        assert 0.0 < theta < 1.0

    def test_single_incorrect_moves_down(self):
        theta = estimate_ability_eap([(1.0, 0.0, 0.0, False)])
        assert -1.0 < theta < 0.0

    def test_symmetric_responses_give_symmetric_estimates(self):
        up = estimate_ability_eap([(1.2, 0.0, 0.0, True)])
        down = estimate_ability_eap([(1.2, 0.0, 0.0, False)])
        assert up == pytest.approx(-down, abs=1e-9)

    def test_all_correct_strictly_upward_and_bounded(self):
        responses = [(1.5, b, 0.2, True) for b in (-1.0, 0.0, 1.0, 2.0, 3.0)]
        theta = estimate_ability_eap(responses)
        assert theta > 0.0
        assert THETA_BOUNDS[0] <= theta <= THETA_BOUNDS[1]

    def test_all_incorrect_strictly_downward_and_bounded(self):
        responses = [(1.5, b, 0.2, False) for b in (1.0, 0.0, -1.0, -2.0, -3.0)]
        theta = estimate_ability_eap(responses)
        assert theta < 0.0
        assert THETA_BOUNDS[0] <= theta <= THETA_BOUNDS[1]

    def test_many_correct_hard_items_stays_within_bounds(self):
        responses = [(3.0, 4.0, 0.0, True)] * 60
        theta = estimate_ability_eap(responses)
        assert 2.0 < theta <= 4.0

    def test_increasing_sequence_for_correct_answers_on_harder_items(self):
        history = []
        thetas = []
        for b in (0.0, 1.0, 2.0):
            history.append((1.0, b, 0.0, True))
            thetas.append(estimate_ability_eap(history))
        assert thetas[0] < thetas[1] < thetas[2]

    def test_tighter_prior_shrinks_toward_mean(self):
        responses = [(1.0, 0.0, 0.0, True), (1.0, 0.5, 0.0, True)]
        wide = estimate_ability_eap(responses, prior_sd=1.0)
        tight = estimate_ability_eap(responses, prior_sd=0.5)
        assert 0.0 < tight < wide

    def test_guessing_weakens_evidence_from_correct_answers(self):
        no_guess = estimate_ability_eap([(1.0, 0.0, 0.0, True)])
        with_guess = estimate_ability_eap([(1.0, 0.0, 0.3, True)])
        assert 0.0 < with_guess < no_guess

    def test_non_positive_prior_sd_raises(self):
        with pytest.raises(ValueError, match="prior_sd"):
            estimate_ability_eap([(1.0, 0.0, 0.0, True)], prior_sd=0.0)


# ── MLE ──────────────────────────────────────────────────────────────────────


class TestMLE:
    def test_symmetric_mixed_pattern_converges_to_zero(self):
        responses = [(1.0, -1.0, 0.0, True), (1.0, 1.0, 0.0, False)]
        theta, converged = estimate_ability_mle(responses)
        assert converged is True
        assert theta == pytest.approx(0.0, abs=1e-3)

    def test_converges_from_distant_start(self):
        responses = [(1.0, -1.0, 0.0, True), (1.0, 1.0, 0.0, False)]
        theta, converged = estimate_ability_mle(responses, start_theta=2.5)
        assert converged is True
        assert theta == pytest.approx(0.0, abs=1e-3)

    def test_mle_score_is_zero_at_estimate(self):
        responses = [
            (1.2, -0.5, 0.0, True),
            (0.8, 0.3, 0.0, True),
            (1.5, 0.9, 0.0, False),
            (1.0, -1.2, 0.0, False),
        ]
        theta, converged = estimate_ability_mle(responses)
        assert converged is True
        score = 0.0
        for a, b, _, u in responses:
            p = 1.0 / (1.0 + math.exp(-a * (theta - b)))
            score += a * ((1.0 if u else 0.0) - p)
        assert score == pytest.approx(0.0, abs=1e-2)

    def test_all_correct_short_circuits_above_prior(self):
        theta, converged = estimate_ability_mle(
            [(1.0, 0.0, 0.0, True), (1.0, 1.0, 0.0, True)], prior_theta=0.0
        )
        assert converged is True
        assert theta == pytest.approx(DEGENERATE_SHIFT)

    def test_all_incorrect_short_circuits_below_prior(self):
        theta, _ = estimate_ability_mle([(1.0, 0.0, 0.0, False)], prior_theta=0.5)
        assert theta == pytest.approx(0.5 - DEGENERATE_SHIFT)

    def test_degenerate_shift_is_clamped(self):
        theta, _ = estimate_ability_mle([(1.0, 0.0, 0.0, True)], prior_theta=3.5)
        assert theta == THETA_BOUNDS[1]
        theta, _ = estimate_ability_mle([(1.0, 0.0, 0.0, False)], prior_theta=-3.0)
        assert theta == THETA_BOUNDS[0]

    def test_empty_history_returns_prior(self):
        assert estimate_ability_mle([], prior_theta=0.3) == (0.3, True)

    def test_iteration_budget_exhausted_reports_non_convergence(self):
        responses = [(1.0, -1.0, 0.0, True), (1.0, 1.0, 0.0, False)]
        _, converged = estimate_ability_mle(
            responses, start_theta=3.0, max_iterations=1
        )
        assert converged is False

    def test_estimate_stays_within_bounds(self):
        responses = [(2.0, 3.9, 0.0, True)] * 10 + [(0.3, -3.9, 0.0, False)]
        theta, _ = estimate_ability_mle(responses)
        assert THETA_BOUNDS[0] <= theta <= THETA_BOUNDS[1]


# ── Standard error ───────────────────────────────────────────────────────────


class TestStandardError:
    def test_single_item_at_difficulty(self):
        """I = a^2 / 4 = 0.25 for a = 1, so SE = 2."""
        assert standard_error(0.0, [(1.0, 0.0, 0.0, True)]) == pytest.approx(2.0)

    def test_sentinel_for_empty_history(self):
        assert standard_error(0.0, []) == SE_SENTINEL

    def test_sentinel_when_information_is_zero(self):
        assert standard_error(-4.0, [(200.0, 4.0, 0.2, False)]) == SE_SENTINEL

    def test_decreases_as_items_are_added(self):
        history = []
        previous = SE_SENTINEL * 10
        for b in (-0.5, 0.0, 0.5, 0.2, -0.2):
            history.append((1.5, b, 0.0, True))
            se = standard_error(0.0, history)
            assert se < previous
            previous = se

    def test_response_direction_does_not_affect_se(self):
        assert standard_error(0.3, [(1.0, 0.0, 0.1, True)]) == standard_error(
            0.3, [(1.0, 0.0, 0.1, False)]
        )


class TestConfidenceInterval:
    def test_bounds(self):
        lower, upper = confidence_interval(0.5, 0.2)
        assert lower == pytest.approx(0.5 - 1.96 * 0.2)
        assert upper == pytest.approx(0.5 + 1.96 * 0.2)

    def test_ability_estimate_properties(self):
        estimate = AbilityEstimate(
            theta=1.0, standard_error=0.25, method=EstimationMethod.EAP
        )
        assert estimate.ci_lower == pytest.approx(0.51)
        assert estimate.ci_upper == pytest.approx(1.49)


# ── Malformed history ────────────────────────────────────────────────────────


class TestMalformedHistory:
    MALFORMED = [
        ("x", 0.0, 0.0, True),
        (1.0, float("nan"), 0.0, True),
        (0.0, 0.0, 0.0, True),
        (1.0, 0.0, 1.0, True),
        (1.0, 0.0, 0.0, "yes"),
        (1.0, 0.0, 0.0),
        None,
    ]

    def test_all_malformed_returns_prior_defaults(self):
        with patch("haven_cat.core.cat.ability_estimation.logger") as mock_logger:
            estimate = estimate_ability(self.MALFORMED)
        assert estimate.theta == 0.0
        assert estimate.standard_error == SE_SENTINEL
        assert mock_logger.warning.call_count == 1
        assert "malformed" in mock_logger.warning.call_args[0][0]

    def test_malformed_records_are_ignored(self):
        valid = [(1.0, 0.0, 0.0, True), (1.3, 0.5, 0.2, False)]
        mixed = valid[:1] + self.MALFORMED + valid[1:]
        assert estimate_ability(mixed) == estimate_ability(valid)

    def test_sanitize_keeps_order(self):
        valid = [(1.0, 0.0, 0.0, True), (1.3, 0.5, 0.2, False)]
        assert sanitize_responses([valid[0], None, valid[1]]) == valid

    def test_none_history(self):
        assert sanitize_responses(None) == []


# ── Dispatch ─────────────────────────────────────────────────────────────────


class TestEstimateAbility:
    HISTORY = [
        (1.2, -0.5, 0.2, True),
        (0.9, 0.4, 0.0, False),
        (1.6, 0.0, 0.15, True),
        (1.1, 1.2, 0.0, False),
    ]

    def test_empty_history(self):
        estimate = estimate_ability([])
        assert estimate.theta == 0.0
        assert estimate.standard_error == SE_SENTINEL
        assert estimate.method == EstimationMethod.EAP

    def test_eap_default(self):
        estimate = estimate_ability(self.HISTORY)
        assert estimate.method == EstimationMethod.EAP
        assert estimate.theta == estimate_ability_eap(self.HISTORY)
        assert estimate.standard_error == standard_error(estimate.theta, self.HISTORY)
        assert estimate.standard_error > 0

    def test_mle_method(self):
        estimate = estimate_ability(self.HISTORY, method=EstimationMethod.MLE)
        assert estimate.method == EstimationMethod.MLE
        assert estimate.converged is True
        assert THETA_BOUNDS[0] <= estimate.theta <= THETA_BOUNDS[1]

    def test_method_accepts_plain_string(self):
        assert estimate_ability(self.HISTORY, method="mle").method == EstimationMethod.MLE

    def test_mle_non_convergence_falls_back_to_eap(self):
        with patch(
            "haven_cat.core.cat.ability_estimation.estimate_ability_mle",
            return_value=(float("nan"), False),
        ):
            estimate = estimate_ability(self.HISTORY, method=EstimationMethod.MLE)
        assert estimate.method == EstimationMethod.EAP
        assert estimate.converged is False
        assert estimate.theta == estimate_ability_eap(self.HISTORY)
        assert math.isfinite(estimate.theta)

    @pytest.mark.parametrize("method", [EstimationMethod.EAP, EstimationMethod.MLE])
    def test_deterministic_for_fixed_history(self, method):
        first = estimate_ability(self.HISTORY, method=method, start_theta=0.2)
        second = estimate_ability(self.HISTORY, method=method, start_theta=0.2)
        assert first == second

    def test_all_correct_upward_all_incorrect_downward(self):
        up = estimate_ability([(1.0, b, 0.0, True) for b in (0.0, 0.5, 1.0)])
        down = estimate_ability([(1.0, b, 0.0, False) for b in (0.0, -0.5, -1.0)])
        assert up.theta > 0.0 > down.theta
