import numpy as np
from scipy import stats

from pyevppi.variables.joint import IndependentMarginalsVariable
from pyevppi.interface.wrappers import evaluate_net_benefit_model


def linear_two_decision_net_benefit(samples, coefs=(400., 200.)):
    r"""
    Net benefit of two treatments :math:`f_0=0` and
    :math:`f_1=\sum_i c_i\theta_i`.

    Parameters
    ----------
    samples : np.ndarray (nvars, nsamples)
        The parameter realizations

    coefs : iterable
        The coefficients :math:`c_i` of the incremental net benefit

    Returns
    -------
    values : np.ndarray (nsamples, 2)
        The net benefit of each treatment
    """
    coefs = np.asarray(coefs, dtype=float)
    assert samples.ndim == 2 and samples.shape[0] == coefs.shape[0]
    values = np.zeros((samples.shape[1], 2))
    values[:, 1] = coefs.dot(samples)
    return values


def define_linear_two_decision_random_variables():
    r"""
    Define :math:`x\sim N(0, 2)` and :math:`y\sim N(2, 4)` where the second
    argument is the variance.
    """
    univariate_variables = [stats.norm(0, np.sqrt(2)), stats.norm(2, 2)]
    return IndependentMarginalsVariable(
        univariate_variables, variable_labels=["x", "y"])


def _expected_positive_part(mean, stdev):
    # E[max(Z, 0)] for Z ~ N(mean, stdev**2)
    if stdev == 0:
        return max(mean, 0.)
    ratio = mean/stdev
    return mean*stats.norm.cdf(ratio)+stdev*stats.norm.pdf(ratio)


def gaussian_linear_evppi(coefs, means, stdevs, indices=None):
    r"""
    Compute the exact EVPPI of a two decision model with net benefits
    :math:`f_0=0` and :math:`f_1=\sum_i c_i\theta_i` where the
    :math:`\theta_i\sim N(\mu_i, \sigma_i^2)` are independent.

    Given the parameters of interest :math:`\theta_S`,
    :math:`\mathbb{E}[f_1|\theta_S]\sim N(\mu, s^2)` with
    :math:`\mu=\sum_i c_i\mu_i` and :math:`s^2=\sum_{i\in S}c_i^2\sigma_i^2`
    so the EVPPI is :math:`\mathbb{E}[\max(\mathbb{E}[f_1|\theta_S],0)]-
    \max(\mu, 0)`.

    Parameters
    ----------
    coefs : iterable
        The coefficients :math:`c_i`

    means : iterable
        The means :math:`\mu_i`

    stdevs : iterable
        The standard deviations :math:`\sigma_i`

    indices : iterable
        The indices :math:`S` of the parameters of interest. If None all
        parameters are used and the EVPI is returned

    Returns
    -------
    evppi : float
        The expected value of partial perfect information
    """
    coefs = np.asarray(coefs, dtype=float)
    means = np.asarray(means, dtype=float)
    stdevs = np.asarray(stdevs, dtype=float)
    if indices is None:
        indices = np.arange(coefs.shape[0])
    indices = np.asarray(indices, dtype=int)
    mean = coefs.dot(means)
    stdev = np.sqrt(np.sum((coefs[indices]*stdevs[indices])**2))
    return _expected_positive_part(mean, stdev)-max(mean, 0.)


def gaussian_linear_evpi(coefs, means, stdevs):
    """
    Compute the exact EVPI of the model used by
    :func:`gaussian_linear_evppi`.
    """
    return gaussian_linear_evppi(coefs, means, stdevs, None)


def monte_carlo_evpi(model, variable, nsamples, random_state=None):
    r"""
    Estimate the EVPI
    :math:`\mathbb{E}[\max_d f_d]-\max_d\mathbb{E}[f_d]` with Monte Carlo
    sampling.

    Parameters
    ----------
    model : callable
        The net benefit model with signature

        ``model(samples) -> np.ndarray (nsamples, ndecisions)``

    variable : :py:class:`~pyevppi.variables.JointVariable`
        The uncertain parameters of the model

    nsamples : integer
        The number of samples

    random_state : :class:`numpy.random.Generator`
        The random number generator

    Returns
    -------
    evpi : float
        The estimate of the EVPI
    """
    samples = variable.rvs(nsamples, random_state=random_state)
    values = evaluate_net_benefit_model(model, samples)
    return values.max(axis=1).mean()-values.mean(axis=0).max()
