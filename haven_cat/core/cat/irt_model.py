"""
Three-parameter logistic (3PL) IRT model.

    P(theta) = c + (1 - c) / (1 + exp(-a * (theta - b)))

Fisher information for the 3PL model (Lord, 1980):

    I(theta) = a^2 * (P - c)^2 * (1 - P) / ((1 - c)^2 * P)

Both functions are pure and side-effect free.
"""

import math


def logistic(x: float) -> float:
    """Numerically stable logistic sigmoid."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    exp_x = math.exp(x)
    return exp_x / (1.0 + exp_x)


def probability_3pl(
    theta: float,
    discrimination: float,
    difficulty: float,
    guessing: float = 0.0,
) -> float:
    """
    Probability of a correct response under the 3PL model.

    Args:
        theta: Ability level.
        discrimination: Item discrimination (a). Must be > 0.
        difficulty: Item difficulty (b).
        guessing: Lower asymptote (c) in [0, 1).

    Returns:
        P(correct | theta), bounded in [c, 1).

    Raises:
        ValueError: If discrimination is not positive or guessing is outside [0, 1).
    """
    if discrimination <= 0:
        raise ValueError(
            f"Discrimination parameter must be positive, got {discrimination}"
        )
    if not 0.0 <= guessing < 1.0:
        raise ValueError(f"Guessing parameter must be in [0, 1), got {guessing}")

    return guessing + (1.0 - guessing) * logistic(discrimination * (theta - difficulty))


def fisher_information_3pl(
    theta: float,
    discrimination: float,
    difficulty: float,
    guessing: float = 0.0,
) -> float:
    """
    Fisher information of a 3PL item at a given ability level.

    Returns 0 whenever P <= c or P >= 1, where the closed form divides by a
    vanishing quantity.

    Args:
        theta: Ability level.
        discrimination: Item discrimination (a). Must be > 0.
        difficulty: Item difficulty (b).
        guessing: Lower asymptote (c) in [0, 1).

    Returns:
        Fisher information value (non-negative).
    """
    a = discrimination
    c = guessing
    p = probability_3pl(theta, a, difficulty, c)
    q = 1.0 - p

    if p <= c or q <= 0.0:
        return 0.0

    denominator = (1.0 - c) ** 2 * p
    if denominator <= 0.0:
        return 0.0

    return (a**2) * (p - c) ** 2 * q / denominator
