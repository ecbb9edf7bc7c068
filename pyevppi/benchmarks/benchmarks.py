from functools import partial

import numpy as np
from scipy.optimize import OptimizeResult

from pyevppi.benchmarks.evppi_benchmarks import (
    linear_two_decision_net_benefit,
    define_linear_two_decision_random_variables, gaussian_linear_evppi,
    gaussian_linear_evpi)


class Benchmark(OptimizeResult):
    """
    Contains functions and results needed to implement known
    benchmarks.

    A benchmark can be created with any attribute.
    Only fun and variable are required. Below are these two required attributes
    and other optional attributes used in different benchmarks

    Attributes
    ----------
    fun : callable
        The net benefit model being analyzed

    variable : :py:class:`~pyevppi.variables.JointVariable`
        Class containing information about each of the nvars inputs to fun

    evpi : float
        The expected value of perfect information

    evppi : dict
        The expected value of partial perfect information keyed by the
        label of the parameter of interest

    reference_evppi : dict
        Published regression based estimates of the EVPPI

    Notes
    -----
    Use the `keys()` method to see a list of the available
    attributes for a specific benchmark
    """
    def __repr__(self):
        return "Benchmark("+", ".join(
            [str(key) for key, item in self.items()]) + ")"


def setup_linear_two_decision_benchmark(coefs=(400., 200.)):
    r"""
    Setup the two treatment model with net benefits
    :math:`f_0=0`, :math:`f_1=c_0x+c_1y` where
    :math:`x\sim N(0, 2)` and :math:`y\sim N(2, 4)` are parameterized by
    their variance.

    Parameters
    ----------
    coefs : iterable
        The coefficients of the incremental net benefit

    Returns
    -------
    benchmark : :py:class:`~pyevppi.benchmarks.Benchmark`
        Object containing the benchmark attributes documented below

    fun : callable
        The net benefit model with signature

        ``fun(samples) -> np.ndarray (nsamples, 2)``

    variable : :py:class:`~pyevppi.variables.IndependentMarginalsVariable`
        The variables x and y

    evpi : float
        The exact EVPI (approximately 121.2 for the default coefficients)

    evppi : dict
        The exact EVPPI of x and of y

    reference_evppi : dict
        Regression based estimates of the EVPPI of x and y for the default
        coefficients
    """
    variable = define_linear_two_decision_random_variables()
    coefs = np.asarray(coefs, dtype=float)
    means = variable.get_statistics("mean")[:, 0]
    stdevs = variable.get_statistics("std")[:, 0]
    evppi = dict(
        (label, gaussian_linear_evppi(coefs, means, stdevs, [ii]))
        for ii, label in enumerate(variable.variable_labels))
    return Benchmark(
        fun=partial(linear_two_decision_net_benefit, coefs=coefs),
        variable=variable, evpi=gaussian_linear_evpi(coefs, means, stdevs),
        evppi=evppi, reference_evppi={"x": 73.6, "y": 32.0})


_benchmarks = {
    "linear_two_decision": setup_linear_two_decision_benchmark,
}


def setup_benchmark(name, **kwargs):
    """
    Setup a benchmark.

    Parameters
    ----------
    name : string
        The name of the benchmark

    kwargs: kwargs
     optional keyword arguments

    Returns
    -------
    benchmark : :py:class:`~pyevppi.benchmarks.Benchmark`
       Object containing the benchmark attributes

    The benchmark object must contain at least the following two attributes

    fun : callable
        A function with signature

        fun(samples) -> np.ndarray(nsamples, ndecisions)

        where samples : np.ndarray(nvars, nsamples)

    variable : :py:class:`~pyevppi.variables.JointVariable`
        Class containing information about each of the nvars inputs to fun

    """
    if name not in _benchmarks:
        msg = f'Benchmark "{name}" not found.\n Available benchmarks are:\n'
        for key in _benchmarks.keys():
            msg += f"\t{key}\n"
        raise ValueError(msg)

    return _benchmarks[name](**kwargs)


def list_benchmarks():
    """
    List the names of all available benchmarks

    Returns
    -------
    names : list
        A list of the name of each benchmark
    """
    return list(_benchmarks.keys())
