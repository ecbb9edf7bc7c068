"""The :mod:`pyevppi.variables` module provides tools for sampling the
uncertain parameters of a decision model.
"""

from pyevppi.variables.joint import (
    IndependentMarginalsVariable, JointVariable
)

__all__ = ["IndependentMarginalsVariable", "JointVariable"]
