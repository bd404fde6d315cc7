"""
Sample Ratio Mismatch (SRM) chi-square test.

Detects if observed impressions per variant deviate significantly from the
configured relative weights.
"""

from typing import Sequence, Tuple

import numpy as np
from scipy import stats


def srm_chi_square(
    observed: Sequence[int],
    weights: Sequence[float],
) -> Tuple[float, float]:
    """
    Chi-square goodness-of-fit test for sample ratio mismatch.
    
    H0: traffic split matches the weights
    H1: traffic split differs from the weights
    
    Args:
        observed: Impressions (or unique visitors) per variant
        weights: Relative variant weights, same order
        
    Returns:
        Tuple of (chi2_statistic, p_value)
    """
    observed_arr = np.asarray(observed, dtype=float)
    weights_arr = np.asarray(weights, dtype=float)
    if len(observed_arr) != len(weights_arr):
        raise ValueError("observed and weights must have the same length")

    n_total = observed_arr.sum()
    if n_total == 0 or len(observed_arr) < 2:
        return 0.0, 1.0

    expected = n_total * weights_arr / weights_arr.sum()
    chi2, p_value = stats.chisquare(observed_arr, f_exp=expected)
    return float(chi2), float(p_value)


def check_srm(
    observed: Sequence[int],
    weights: Sequence[float],
    alpha: float = 0.01,
) -> Tuple[bool, float, float]:
    """
    Check for sample ratio mismatch.
    
    Args:
        observed: Counts per variant
        weights: Relative variant weights
        alpha: Significance threshold (default 0.01)
        
    Returns:
        Tuple of (srm_passed, chi2_statistic, p_value)
    """
    chi2, p_value = srm_chi_square(observed, weights)
    srm_passed = p_value >= alpha
    return srm_passed, chi2, p_value
