"""
Ability (theta) estimation for Computerized Adaptive Testing.

Two interchangeable strategies over the 3PL IRT model:

EAP (Expected A Posteriori, the default) integrates the posterior over a
discretized normal prior (Bock & Mislevy, 1982). It always produces a finite
estimate, including for all-correct and all-incorrect response patterns:

    theta_hat = sum(theta_i * L(theta_i) * prior(theta_i)) / sum(L(theta_i) * prior(theta_i))

MLE (Maximum Likelihood) uses Fisher-scoring Newton-Raphson iterations

    theta <- theta + score(theta) / information(theta)

and is useful once an estimate has already converged mid-test. MLE has no
finite maximum for all-correct or all-incorrect patterns; those short-circuit
to a bounded shift from the prior, and any other non-convergence falls back
to EAP.

Standard error is derived from test information at the estimate:

    SE(theta) = 1 / sqrt(sum(I_i(theta)))

Response histories are sequences of ``(a, b, c, is_correct)`` tuples.
Malformed entries are dropped with a warning rather than raised, so a
corrupted history degrades to the prior instead of failing the session.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from haven_cat.core.cat.irt_model import (
    fisher_information_3pl,
    logistic,
    probability_3pl,
)
from haven_cat.core.cat.models import EstimationMethod

logger = logging.getLogger(__name__)

# Quadrature configuration
QUADRATURE_POINTS = 41
QUADRATURE_RANGE = (-4.0, 4.0)

# All ability estimates are clamped to this range
THETA_BOUNDS = (-4.0, 4.0)

# Reported when total information is zero (no responses or degenerate items)
SE_SENTINEL = 1.0

# Newton-Raphson configuration
MLE_MAX_ITERATIONS = 30
MLE_TOLERANCE = 0.001
MLE_MIN_INFORMATION = 1e-10

# Shift from the prior for all-correct / all-incorrect histories under MLE
DEGENERATE_SHIFT = 1.5

# 95% confidence interval multiplier
CONFIDENCE_Z = 1.96

Response = Tuple[float, float, float, bool]


@dataclass(frozen=True)
class AbilityEstimate:
    """Point estimate of ability with its uncertainty."""

    theta: float
    standard_error: float
    method: EstimationMethod
    converged: bool = True
    confidence_z: float = CONFIDENCE_Z

    @property
    def ci_lower(self) -> float:
        return self.theta - self.confidence_z * self.standard_error

    @property
    def ci_upper(self) -> float:
        return self.theta + self.confidence_z * self.standard_error


def _clamp_theta(theta: float) -> float:
    low, high = THETA_BOUNDS
    return max(low, min(high, theta))


def _is_valid_response(response: object) -> bool:
    try:
        a, b, c, is_correct = response  # type: ignore[misc]
    except (TypeError, ValueError):
        return False
    if not isinstance(is_correct, bool):
        return False
    try:
        values = (float(a), float(b), float(c))
    except (TypeError, ValueError):
        return False
    if not all(math.isfinite(v) for v in values):
        return False
    return values[0] > 0 and 0.0 <= values[2] < 1.0


def sanitize_responses(responses: Optional[Sequence[Response]]) -> List[Response]:
    """
    Drop malformed entries from a response history.

    An entry is kept only if it is an ``(a, b, c, is_correct)`` tuple with
    finite numbers, ``a > 0`` and ``0 <= c < 1``.

    Args:
        responses: Raw response history (may be None).

    Returns:
        The valid responses, in their original order.
    """
    if not responses:
        return []

    valid = [r for r in responses if _is_valid_response(r)]
    dropped = len(responses) - len(valid)
    if dropped:
        logger.warning(
            f"Dropped {dropped} malformed response(s) out of {len(responses)} "
            "before ability estimation"
        )
    return [(float(a), float(b), float(c), bool(u)) for a, b, c, u in valid]


def _log_sigmoid(x: float) -> float:
    if x >= 0:
        return -math.log1p(math.exp(-x))
    return x - math.log1p(math.exp(x))


def _log_likelihood(theta: float, responses: Sequence[Response]) -> float:
    """Log-likelihood of the response vector at theta under the 3PL model."""
    log_lik = 0.0
    for a, b, c, is_correct in responses:
        logit = a * (theta - b)
        if is_correct:
            if c == 0.0:
                log_lik += _log_sigmoid(logit)
            else:
                log_lik += math.log(c + (1.0 - c) * logistic(logit))
        else:
            # 1 - P = (1 - c) * (1 - sigmoid(logit)) = (1 - c) * sigmoid(-logit)
            log_lik += math.log1p(-c) + _log_sigmoid(-logit)
    return log_lik


def estimate_ability_eap(
    responses: Sequence[Response],
    prior_mean: float = 0.0,
    prior_sd: float = 1.0,
) -> float:
    """
    Estimate ability using Expected A Posteriori (EAP) with numerical quadrature.

    Args:
        responses: List of (discrimination, difficulty, guessing, is_correct)
            tuples.
        prior_mean: Mean of the Gaussian prior on theta.
        prior_sd: Standard deviation of the Gaussian prior on theta.

    Returns:
        Posterior mean of theta. With no valid responses this is exactly
        ``prior_mean``.

    Raises:
        ValueError: If prior_sd is not positive.
    """
    if prior_sd <= 0:
        raise ValueError(f"prior_sd must be positive, got {prior_sd}")

    responses = sanitize_responses(responses)
    if not responses:
        return prior_mean

    theta_min, theta_max = QUADRATURE_RANGE
    step = (theta_max - theta_min) / (QUADRATURE_POINTS - 1)
    theta_points = [theta_min + step * i for i in range(QUADRATURE_POINTS)]

    # Normalizing constants cancel, so the log-prior keeps only the kernel
    variance = prior_sd**2
    log_posteriors = [
        _log_likelihood(theta, responses) - (theta - prior_mean) ** 2 / (2.0 * variance)
        for theta in theta_points
    ]

    # Log-sum-exp normalization
    max_log_post = max(log_posteriors)
    weights = [math.exp(lp - max_log_post) for lp in log_posteriors]
    total_weight = sum(weights)

    if total_weight == 0.0 or not math.isfinite(total_weight):
        logger.warning(
            "Posterior collapsed at all quadrature points. Returning prior mean."
        )
        return prior_mean

    theta_hat = sum(theta * w for theta, w in zip(theta_points, weights)) / total_weight
    return _clamp_theta(theta_hat)


def estimate_ability_mle(
    responses: Sequence[Response],
    prior_theta: float = 0.0,
    start_theta: Optional[float] = None,
    max_iterations: int = MLE_MAX_ITERATIONS,
    tolerance: float = MLE_TOLERANCE,
) -> Tuple[float, bool]:
    """
    Estimate ability by maximum likelihood using Newton-Raphson (Fisher scoring).

    Args:
        responses: List of (discrimination, difficulty, guessing, is_correct)
            tuples.
        prior_theta: Reference ability for degenerate response patterns and
            for an empty history.
        start_theta: Starting point for the iteration, typically the previous
            estimate. Defaults to ``prior_theta``.
        max_iterations: Iteration budget.
        tolerance: Convergence threshold on the absolute step size.

    Returns:
        Tuple of (theta, converged). ``converged`` is False when the
        iteration failed; callers should then fall back to EAP.
    """
    responses = sanitize_responses(responses)
    if not responses:
        return (_clamp_theta(prior_theta), True)

    # No finite maximum exists for uniform response patterns
    if all(r[3] for r in responses):
        return (_clamp_theta(prior_theta + DEGENERATE_SHIFT), True)
    if not any(r[3] for r in responses):
        return (_clamp_theta(prior_theta - DEGENERATE_SHIFT), True)

    theta = _clamp_theta(prior_theta if start_theta is None else start_theta)

    for iteration in range(max_iterations):
        score = 0.0
        information = 0.0
        for a, b, c, is_correct in responses:
            p = probability_3pl(theta, a, b, c)
            if p <= 0.0:
                continue
            u = 1.0 if is_correct else 0.0
            w = a * (p - c) / ((1.0 - c) * p)
            score += w * (u - p)
            information += fisher_information_3pl(theta, a, b, c)

        if information < MLE_MIN_INFORMATION or not math.isfinite(score):
            logger.debug(
                f"MLE information collapsed at iteration {iteration} "
                f"(theta={theta:.3f}, information={information:.2e})"
            )
            return (theta, False)

        delta = score / information
        theta = _clamp_theta(theta + delta)

        if abs(delta) < tolerance:
            return (theta, True)

    logger.debug(
        f"MLE did not converge within {max_iterations} iterations (theta={theta:.3f})"
    )
    return (theta, False)


def standard_error(theta: float, responses: Sequence[Response]) -> float:
    """
    Standard error of an ability estimate from total test information.

    Args:
        theta: Ability estimate.
        responses: Administered items as (a, b, c, is_correct) tuples.

    Returns:
        ``1 / sqrt(sum(I_i(theta)))``, or SE_SENTINEL if total information is 0.
    """
    total_information = sum(
        fisher_information_3pl(theta, a, b, c)
        for a, b, c, _ in sanitize_responses(responses)
    )
    if total_information <= 0.0 or not math.isfinite(total_information):
        return SE_SENTINEL
    return 1.0 / math.sqrt(total_information)


def confidence_interval(
    theta: float, se: float, z: float = CONFIDENCE_Z
) -> Tuple[float, float]:
    """Return the (lower, upper) confidence bounds ``theta -/+ z * se``."""
    return (theta - z * se, theta + z * se)


def estimate_ability(
    responses: Sequence[Response],
    method: EstimationMethod = EstimationMethod.EAP,
    prior_mean: float = 0.0,
    prior_sd: float = 1.0,
    start_theta: Optional[float] = None,
    confidence_z: float = CONFIDENCE_Z,
) -> AbilityEstimate:
    """
    Estimate ability and its standard error from a full response history.

    The result depends only on the history and the arguments, so repeated
    calls on the same history return identical estimates.

    Args:
        responses: List of (discrimination, difficulty, guessing, is_correct)
            tuples in administration order.
        method: EAP (default) or MLE. MLE falls back to EAP on non-convergence.
        prior_mean: Prior mean for EAP and reference point for MLE.
        prior_sd: Prior standard deviation for EAP.
        start_theta: MLE starting point (usually the previous estimate).
        confidence_z: Multiplier for the reported confidence interval.

    Returns:
        AbilityEstimate with theta in THETA_BOUNDS and a positive SE.
    """
    responses = sanitize_responses(responses)

    if not responses:
        return AbilityEstimate(
            theta=prior_mean,
            standard_error=SE_SENTINEL,
            method=EstimationMethod(method),
            confidence_z=confidence_z,
        )

    method = EstimationMethod(method)
    converged = True

    if method == EstimationMethod.MLE:
        theta, converged = estimate_ability_mle(
            responses, prior_theta=prior_mean, start_theta=start_theta
        )
        if not converged or not math.isfinite(theta):
            logger.info(
                f"MLE failed to converge after {len(responses)} responses; "
                "falling back to EAP"
            )
            theta = estimate_ability_eap(responses, prior_mean, prior_sd)
            method = EstimationMethod.EAP
    else:
        theta = estimate_ability_eap(responses, prior_mean, prior_sd)

    se = standard_error(theta, responses)

    return AbilityEstimate(
        theta=theta,
        standard_error=se,
        method=method,
        converged=converged,
        confidence_z=confidence_z,
    )
