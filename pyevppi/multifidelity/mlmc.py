r"""
Adaptive multilevel Monte Carlo driver.

The driver implements the algorithm of [GILES2015]_. It is independent of
the quantity being estimated and only requires a level function with
signature

``mlmc_l(level, nsamples) -> np.ndarray (7)``

returning :math:`\sum Y^k, k=1,\ldots,4` of the level difference
:math:`Y=P_l-P_{l-1}`, :math:`\sum P_l`, :math:`\sum P_l^2` and the total
cost of the ``nsamples`` samples.

References
----------
.. [GILES2015] `M.B. Giles. Multilevel Monte Carlo methods. Acta Numerica,
   24:259-328, 2015. <https://doi.org/10.1017/S096249291500001X>`_
"""
import warnings

import numpy as np
from scipy.optimize import OptimizeResult


class MLMCTestResult(OptimizeResult):
    """
    The convergence diagnostics of an MLMC level function.

    Attributes
    ----------
    levels : np.ndarray (nlevels)
        The levels tested

    mean_diff, var_diff : np.ndarray (nlevels)
        The mean and variance of :math:`P_l-P_{l-1}`

    mean_fine, var_fine : np.ndarray (nlevels)
        The mean and variance of :math:`P_l`

    kurtosis : np.ndarray (nlevels)
        The kurtosis of :math:`P_l-P_{l-1}`

    consistency : np.ndarray (nlevels)
        The consistency check of each level. Values greater than one
        indicate a possible error in the level function

    cost : np.ndarray (nlevels)
        The cost of one sample of each level

    alpha, beta, gamma : float
        The regression estimates of the rates of decay of the mean and
        variance of the level difference and of the growth of the cost

    eps : np.ndarray (neps)
        The target root mean squared errors

    estimates : np.ndarray (neps)
        The MLMC estimate for each target error

    nsamples_per_level : list
        The number of samples on each level for each target error

    mlmc_cost, std_cost : np.ndarray (neps)
        The cost of the MLMC estimator and of a standard Monte Carlo
        estimator achieving the same error
    """
    def __repr__(self):
        return "MLMCTestResult("+", ".join(
            [str(key) for key, item in self.items()]) + ")"


def _call_level_function(mlmc_l, level, nsamples):
    sums = np.asarray(mlmc_l(int(level), int(nsamples)), dtype=float)
    if sums.shape != (7,):
        msg = "The level function must return an np.ndarray (7) but "
        msg += f"returned shape {sums.shape}"
        raise RuntimeError(msg)
    return sums


def _check_driver_args(nsamples_init, eps, min_level, max_level, theta):
    if nsamples_init < 1:
        raise ValueError("nsamples_init must be a positive integer")
    if eps <= 0:
        raise ValueError("eps must be positive")
    if min_level < 2:
        raise ValueError("min_level must be >= 2")
    if max_level < min_level:
        raise ValueError("max_level must be >= min_level")
    if theta <= 0 or theta >= 1:
        raise ValueError("theta must be in (0, 1)")


def _optimal_nsamples(variances, costs, eps, theta):
    # Lagrange multiplier solution minimizing cost subject to
    # sum(variances/nsamples) <= (1-theta)*eps**2, every level needs a sample
    return np.maximum(1, np.ceil(
        np.sqrt(variances/costs)*np.sum(np.sqrt(variances*costs)) /
        ((1-theta)*eps**2)).astype(int))


def mlmc(mlmc_l, nsamples_init, eps, min_level, max_level, alpha=0,
         beta=0, gamma=0, theta=0.25, refinement_factor=2, verbosity=0):
    r"""
    Estimate :math:`\mathbb{E}[P_L]` with adaptive multilevel Monte Carlo.

    Parameters
    ----------
    mlmc_l : callable
        The level function with signature

        ``mlmc_l(level, nsamples) -> np.ndarray (7)``

    nsamples_init : integer
        The number of samples used to initialize each new level

    eps : float
        The target root mean squared error

    min_level : integer
        The minimum finest level (>= 2)

    max_level : integer
        The maximum finest level

    alpha : float
        The weak error decay rate
        :math:`|\mathbb{E}[P_l-P_{l-1}]|=O(2^{-\alpha l})`. If <= 0 it is
        estimated by linear regression

    beta : float
        The variance decay rate
        :math:`\mathbb{V}[P_l-P_{l-1}]=O(2^{-\beta l})`. If <= 0 it is
        estimated by linear regression

    gamma : float
        The cost growth rate :math:`C_l=O(2^{\gamma l})`. If <= 0 it is
        set to :math:`\log_2` of the refinement_factor

    theta : float
        The fraction of the mean squared error allocated to the squared bias

    refinement_factor : integer
        The factor by which the cost of one sample grows between levels

    verbosity : integer
        Print progress if > 0

    Returns
    -------
    estimate : float
        The MLMC estimate

    nsamples_per_level : np.ndarray (nlevels)
        The number of samples used on each level

    cost_per_level : np.ndarray (nlevels)
        The total cost of each level
    """
    _check_driver_args(nsamples_init, eps, min_level, max_level, theta)
    fit_alpha, fit_beta = alpha <= 0, beta <= 0
    alpha, beta = max(0, alpha), max(0, beta)
    if gamma <= 0:
        gamma = np.log2(refinement_factor)

    nlevels = min_level+1
    nsamples = np.zeros(nlevels, dtype=int)
    sums = np.zeros((2, nlevels))
    costs = np.zeros(nlevels)
    nsamples_new = np.full(nlevels, nsamples_init, dtype=int)

    while np.sum(nsamples_new) > 0:
        for ll in range(nlevels):
            if nsamples_new[ll] > 0:
                level_sums = _call_level_function(
                    mlmc_l, ll, nsamples_new[ll])
                nsamples[ll] += nsamples_new[ll]
                sums[0, ll] += level_sums[0]
                sums[1, ll] += level_sums[1]
                costs[ll] += level_sums[6]

        means = np.abs(sums[0]/nsamples)
        variances = np.maximum(0, sums[1]/nsamples-means**2)
        cost_per_sample = costs/nsamples

        # fix to cope with possible zero values of the mean and variance
        for ll in range(2, nlevels):
            means[ll] = max(means[ll], 0.5*means[ll-1]/2**alpha)
            variances[ll] = max(variances[ll], 0.5*variances[ll-1]/2**beta)

        levels = np.arange(1, nlevels)
        if fit_alpha:
            alpha = max(0.5, -np.polyfit(levels, np.log2(means[1:]), 1)[0])
        if fit_beta:
            beta = max(0.5, -np.polyfit(
                levels, np.log2(variances[1:]), 1)[0])

        nsamples_new = np.maximum(
            0, _optimal_nsamples(variances, cost_per_sample, eps, theta) -
            nsamples)

        if np.all(nsamples_new <= 0.01*nsamples):
            idx = np.arange(min(3, nlevels-1))
            remainder = np.max(
                means[nlevels-1-idx]/2.0**(idx*alpha))/(2**alpha-1)
            if remainder > np.sqrt(theta)*eps:
                if nlevels-1 == max_level:
                    msg = "Failed to achieve weak convergence at "
                    msg += f"max_level={max_level}"
                    warnings.warn(msg, UserWarning)
                else:
                    variances = np.append(
                        variances, variances[-1]/2**beta)
                    cost_per_sample = np.append(
                        cost_per_sample, cost_per_sample[-1]*2**gamma)
                    nsamples = np.append(nsamples, 0)
                    sums = np.hstack((sums, np.zeros((2, 1))))
                    costs = np.append(costs, 0.)
                    nlevels += 1
                    nsamples_new = np.maximum(
                        0, _optimal_nsamples(
                            variances, cost_per_sample, eps, theta) -
                        nsamples)
                    if verbosity > 0:
                        print(f"Adding level {nlevels-1}")

        if verbosity > 1:
            print("Samples added per level", nsamples_new)

    estimate = np.sum(sums[0]/nsamples)
    if verbosity > 0:
        msg = f"MLMC estimate {estimate} using {nlevels} levels and "
        msg += f"{nsamples.sum()} samples"
        print(msg)
    return estimate, nsamples, costs


def _level_statistics(sums, nsamples):
    sums = sums/nsamples
    mean_diff, mean_fine = sums[0], sums[4]
    var_diff = max(sums[1]-sums[0]**2, 1e-10)
    var_fine = max(sums[5]-sums[4]**2, 1e-10)
    kurtosis = (
        sums[3]-4*sums[2]*sums[0]+6*sums[1]*sums[0]**2-3*sums[0]**4)/(
            var_diff**2)
    cost = sums[6]
    return mean_diff, mean_fine, var_diff, var_fine, kurtosis, cost


def mlmc_test(mlmc_l, nsamples, max_level, nsamples_init, eps_list,
              min_level, max_level_adapt, theta=0.25, refinement_factor=2,
              verbosity=0):
    r"""
    Run convergence tests of a level function and then run :func:`mlmc`
    for a list of target errors.

    Parameters
    ----------
    mlmc_l : callable
        The level function with signature

        ``mlmc_l(level, nsamples) -> np.ndarray (7)``

    nsamples : integer
        The number of samples used for the convergence tests of each level

    max_level : integer
        The number of levels used for the convergence tests is
        ``max_level+1``

    nsamples_init : integer
        The number of samples used to initialize each new level of
        :func:`mlmc`

    eps_list : iterable
        The target root mean squared errors

    min_level : integer
        The minimum finest level of :func:`mlmc`

    max_level_adapt : integer
        The maximum finest level of :func:`mlmc`

    theta : float
        The fraction of the mean squared error allocated to the squared bias
        by :func:`mlmc`. Also used to compute the cost of the standard Monte
        Carlo estimator

    refinement_factor : integer
        The factor by which the cost of one sample grows between levels.
        Passed to :func:`mlmc`

    verbosity : integer
        Print the diagnostics if > 0

    Returns
    -------
    result : :class:`MLMCTestResult`
        The convergence diagnostics and the results of each MLMC run
    """
    if max_level < 1:
        raise ValueError("max_level must be >= 1 to fit decay rates")
    if nsamples < 2:
        raise ValueError("nsamples must be >= 2")
    eps_list = np.atleast_1d(np.asarray(eps_list, dtype=float))

    nlevels = max_level+1
    stats = np.empty((6, nlevels))
    consistency = np.zeros(nlevels)
    for ll in range(nlevels):
        level_sums = _call_level_function(mlmc_l, ll, nsamples)
        stats[:, ll] = _level_statistics(level_sums, nsamples)
        if ll > 0:
            mean_diff, mean_fine, var_diff, var_fine = stats[:4, ll]
            consistency[ll] = np.sqrt(nsamples)*abs(
                mean_diff+stats[1, ll-1]-mean_fine)/(
                    3.0*(np.sqrt(var_diff)+np.sqrt(stats[3, ll-1]) +
                         np.sqrt(var_fine)))
    mean_diff, mean_fine, var_diff, var_fine, kurtosis, cost = stats

    if verbosity > 0:
        print("  l   ave(Pf-Pc)    ave(Pf)   var(Pf-Pc)    var(Pf)"
              "    kurtosis     check        cost")
        print("-"*84)
        for ll in range(nlevels):
            print("%3d %11.4e %11.4e %11.4e %11.4e %11.4e %11.4e %11.4e" % (
                ll, mean_diff[ll], mean_fine[ll], var_diff[ll],
                var_fine[ll], kurtosis[ll], consistency[ll], cost[ll]))

    if kurtosis[-1] > 100:
        msg = f"Kurtosis on finest level is {kurtosis[-1]}. This indicates "
        msg += "MLMC correction is dominated by a few rare paths and the "
        msg += "estimated variances are unreliable"
        warnings.warn(msg, UserWarning)
    if np.max(consistency) > 1:
        msg = "The maximum consistency error is "
        msg += f"{np.max(consistency)} > 1. The identity "
        msg += "E[Pf-Pc] = E[Pf] - E[Pc] is not satisfied to within "
        msg += "the Monte Carlo error"
        warnings.warn(msg, UserWarning)

    levels = np.arange(1, nlevels)
    alpha = -np.polyfit(levels, np.log2(np.abs(mean_diff[1:])), 1)[0]
    beta = -np.polyfit(levels, np.log2(var_diff[1:]), 1)[0]
    gamma = np.polyfit(levels, np.log2(cost[1:]), 1)[0]
    if verbosity > 0:
        print(f"alpha = {alpha:.4f}, beta = {beta:.4f}, gamma = {gamma:.4f}")

    estimates, mlmc_costs, std_costs, nsamples_per_level = [], [], [], []
    for eps in eps_list:
        estimate, nsamples_eps, costs_eps = mlmc(
            mlmc_l, nsamples_init, eps, min_level, max_level_adapt,
            alpha=alpha, beta=beta, gamma=gamma, theta=theta,
            refinement_factor=refinement_factor, verbosity=verbosity-1)
        finest = min(nsamples_eps.shape[0], nlevels)-1
        estimates.append(estimate)
        mlmc_costs.append(np.sum(costs_eps))
        std_costs.append(
            var_fine[finest]*cost[finest]/((1.0-theta)*eps**2))
        nsamples_per_level.append(nsamples_eps)
        if verbosity > 0:
            msg = f"eps = {eps:.3e}, estimate = {estimate:.5e}, "
            msg += f"mlmc_cost = {mlmc_costs[-1]:.3e}, "
            msg += f"std_cost = {std_costs[-1]:.3e}, "
            msg += f"nsamples = {nsamples_eps}"
            print(msg)

    return MLMCTestResult(
        levels=np.arange(nlevels), mean_diff=mean_diff, mean_fine=mean_fine,
        var_diff=var_diff, var_fine=var_fine, kurtosis=kurtosis,
        consistency=consistency, cost=cost, alpha=alpha, beta=beta,
        gamma=gamma, eps=eps_list, estimates=np.asarray(estimates),
        nsamples_per_level=nsamples_per_level,
        mlmc_cost=np.asarray(mlmc_costs), std_cost=np.asarray(std_costs))
