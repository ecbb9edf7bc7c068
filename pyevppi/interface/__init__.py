"""The :mod:`pyevppi.interface` module implements tools for evaluating
net benefit models in batches
"""

from pyevppi.interface.wrappers import (
    run_batches_in_parallel, evaluate_net_benefit_model, TimerModel
)

__all__ = ["run_batches_in_parallel", "evaluate_net_benefit_model",
           "TimerModel"]
