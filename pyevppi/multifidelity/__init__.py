"""The :mod:`pyevppi.multifidelity` module implements multilevel Monte Carlo
estimators of the expected value of partial perfect information.
"""
from pyevppi.multifidelity.evppi import (
    EVPPILevelEstimator, estimate_evppi, generate_nested_payoffs,
    antithetic_evppi_differences, accumulate_level_moments)
from pyevppi.multifidelity.mlmc import mlmc, mlmc_test, MLMCTestResult

__all__ = ["EVPPILevelEstimator", "estimate_evppi",
           "generate_nested_payoffs", "antithetic_evppi_differences",
           "accumulate_level_moments", "mlmc", "mlmc_test",
           "MLMCTestResult"]
