"""The :mod:`pyevppi.benchmarks` module implements decision models with known
value of information.
"""

from pyevppi.benchmarks.benchmarks import (
    Benchmark, setup_benchmark, list_benchmarks,
    setup_linear_two_decision_benchmark
)
from pyevppi.benchmarks.evppi_benchmarks import (
    linear_two_decision_net_benefit, gaussian_linear_evppi,
    gaussian_linear_evpi, monte_carlo_evpi
)

__all__ = ["Benchmark", "setup_benchmark", "list_benchmarks",
           "setup_linear_two_decision_benchmark",
           "linear_two_decision_net_benefit", "gaussian_linear_evppi",
           "gaussian_linear_evpi", "monte_carlo_evpi"]
