"""Experiment statistics module."""

from .srm import srm_chi_square, check_srm
from .hypothesis_tests import proportions_z_test, compare_to_control

__all__ = [
    "srm_chi_square",
    "check_srm",
    "proportions_z_test",
    "compare_to_control",
]
