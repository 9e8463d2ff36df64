"""
Probability that a candidate's true ability is at or above the cut score.

    P(pass) = 1 - Phi((passing_theta - theta) / SE)

Reported alongside theta and SE after every response. It is informational
only and never gates the stopping decision.
"""

from scipy.stats import norm


def passing_probability(theta: float, se: float, passing_theta: float = 0.0) -> float:
    """
    Probability of passing given the current estimate and its uncertainty.

    Args:
        theta: Current ability estimate.
        se: Standard error of the estimate.
        passing_theta: Cut score.

    Returns:
        Probability in [0, 1]. With a non-positive SE the estimate is treated
        as exact: 1.0 if theta >= passing_theta, else 0.0.
    """
    if se <= 0:
        return 1.0 if theta >= passing_theta else 0.0
    return float(1.0 - norm.cdf((passing_theta - theta) / se))
