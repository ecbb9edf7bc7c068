r"""
Multilevel Monte Carlo estimation of the expected value of partial perfect
information (EVPPI).

Let :math:`\theta=(x, y)` where :math:`x` are the parameters of interest and
:math:`y` the remaining parameters, and let :math:`f_d(\theta)` be the net
benefit of decision :math:`d=1,\ldots,D`. Level :math:`l` of the estimator
draws :math:`N` outer samples :math:`x^{(n)}` and, for each of them,
:math:`M=2^{l+1}` inner samples :math:`y^{(n,m)}`. For each outer sample

.. math::

   P_f = \frac{1}{M}\sum_{m=1}^M\max_d f_d^{(n,m)} -
         \max_d \frac{1}{M}\sum_{m=1}^M f_d^{(n,m)}

and the antithetic coarse estimator :math:`P_c` replaces the second term
by the average of the same quantity computed on the two halves of the
inner samples. The expectation of :math:`P_f` converges to
:math:`\mathrm{EVPI}-\mathrm{EVPPI}` as :math:`M\to\infty` and
:math:`P_c=0` at level zero, so telescoping the level means of
:math:`P_f-P_c` gives :math:`\mathrm{EVPI}-\mathrm{EVPPI}`.
"""
from functools import partial
from multiprocessing import Pool

import numpy as np
from scipy.optimize import OptimizeResult

from pyevppi.interface.wrappers import (
    run_batches_in_parallel, evaluate_net_benefit_model,
    check_omp_num_threads
)
from pyevppi.multifidelity.mlmc import mlmc


NMOMENTS = 7


def get_nsamples_inner(level):
    """
    Return the number of inner samples :math:`M=2^{l+1}` used by a level.
    """
    _check_integer(level, "level", 0)
    return 2**(int(level)+1)


def _check_integer(value, name, lower_bound):
    if (isinstance(value, (bool, np.bool_)) or
            not isinstance(value, (int, np.integer))):
        raise ValueError(f"{name} must be an integer but was {value}")
    if value < lower_bound:
        raise ValueError(f"{name} must be >= {lower_bound} but was {value}")


def _check_nsamples_inner(nsamples_inner):
    _check_integer(nsamples_inner, "nsamples_inner", 2)
    if nsamples_inner & (nsamples_inner-1) != 0:
        msg = "nsamples_inner must be a power of two but was "
        msg += f"{nsamples_inner}"
        raise ValueError(msg)


def _get_batch_size(nsamples_inner, nouter, min_batch_size):
    _check_nsamples_inner(nsamples_inner)
    _check_integer(nouter, "nouter", 1)
    _check_integer(min_batch_size, "min_batch_size", 1)
    batch_size = max(nsamples_inner, min_batch_size)
    return batch_size - batch_size % nsamples_inner


def get_batch_sizes(nsamples_inner, nouter, min_batch_size=128):
    """
    Partition the :math:`MN` rows of a payoff matrix into batches.

    Each batch contains :math:`\\max(M, N_b)` rows, rounded down to a
    multiple of :math:`M` so that batches never split an outer sample. The
    last batch contains the remaining rows.

    Parameters
    ----------
    nsamples_inner : integer
        The number of inner samples :math:`M` per outer sample

    nouter : integer
        The number of outer samples :math:`N`

    min_batch_size : integer
        The smallest batch size :math:`N_b` used when :math:`M<N_b`

    Returns
    -------
    batch_sizes : np.ndarray (nbatches)
        The number of rows in each batch
    """
    batch_size = _get_batch_size(nsamples_inner, nouter, min_batch_size)
    nrows = nsamples_inner*nouter
    batch_sizes = [batch_size]*(nrows//batch_size)
    if nrows % batch_size > 0:
        batch_sizes.append(nrows % batch_size)
    return np.asarray(batch_sizes, dtype=int)


def _get_seed_sequence(seed):
    if isinstance(seed, np.random.SeedSequence):
        return seed
    return np.random.SeedSequence(seed)


def _get_child_seed_sequence(seed_sequence, index):
    # same stream as the index-th child returned by seed_sequence.spawn
    return np.random.SeedSequence(
        seed_sequence.entropy, spawn_key=seed_sequence.spawn_key+(index,),
        pool_size=seed_sequence.pool_size)


def _get_batch_arguments(seed_sequence, first_child, nsamples_inner, nouter,
                         min_batch_size):
    """
    Return the number of batches and a generator of the
    ``(nrows, seed_sequence)`` pair of each batch.

    Only the pair of the batch being submitted is ever created so the cost
    of setting up a call does not depend on the number of batches.
    """
    batch_size = _get_batch_size(nsamples_inner, nouter, min_batch_size)
    nrows = nsamples_inner*nouter
    nbatches = -(-nrows//batch_size)
    batch_args = (
        (min(batch_size, nrows-ii*batch_size),
         _get_child_seed_sequence(seed_sequence, first_child+ii))
        for ii in range(nbatches))
    return nbatches, batch_args


def _generate_payoff_batch(model, variable, hold_constant, nsamples_inner,
                           args):
    nrows, seed_sequence = args
    samples = variable.rvs(
        nrows, random_state=np.random.default_rng(seed_sequence),
        hold_constant=hold_constant, block_size=nsamples_inner)
    return evaluate_net_benefit_model(model, samples)


def generate_nested_payoffs(model, variable, hold_constant, nsamples_inner,
                            nouter, seed=None, max_eval_concurrency=1,
                            min_batch_size=128, assert_omp=True, pool=None):
    """
    Generate the payoffs of each decision for :math:`N` outer samples each
    with :math:`M` nested inner samples.

    Parameters
    ----------
    model : callable
        The net benefit model with signature

        ``model(samples) -> np.ndarray (nsamples, ndecisions)``

        where samples is a np.ndarray (nvars, nsamples)

    variable : :py:class:`~pyevppi.variables.JointVariable`
        The uncertain parameters of the model

    hold_constant : iterable
        The labels or indices of the parameters of interest. These are
        drawn once per outer sample and shared by its inner samples

    nsamples_inner : integer
        The number of inner samples :math:`M`. Must be a power of two

    nouter : integer
        The number of outer samples :math:`N`

    seed : integer or :class:`numpy.random.SeedSequence`
        Seeds the independent random number stream of each batch. The
        streams of a SeedSequence start after the children it has already
        spawned

    max_eval_concurrency : integer
        The number of batches generated in parallel

    min_batch_size : integer
        The smallest number of rows generated by one batch

    assert_omp : boolean
        If True require OMP_NUM_THREADS=1 when max_eval_concurrency > 1

    pool : :class:`multiprocessing.Pool`
        A pool used when max_eval_concurrency > 1. If None a pool is
        created for this call

    Returns
    -------
    payoffs : np.ndarray (nsamples_inner*nouter, ndecisions)
        The payoffs ordered so that the rows of outer sample ``n`` are
        ``payoffs[n*nsamples_inner:(n+1)*nsamples_inner]``
    """
    seed_sequence = _get_seed_sequence(seed)
    nbatches, batch_args = _get_batch_arguments(
        seed_sequence, seed_sequence.n_children_spawned, nsamples_inner,
        nouter, min_batch_size)
    fun = partial(_generate_payoff_batch, model, variable, hold_constant,
                  nsamples_inner)

    payoffs, offset = None, 0
    for values in run_batches_in_parallel(
            fun, max_eval_concurrency, batch_args, pool=pool,
            assert_omp=assert_omp):
        if payoffs is None:
            payoffs = np.empty((nsamples_inner*nouter, values.shape[1]))
        elif values.shape[1] != payoffs.shape[1]:
            raise RuntimeError(
                "model returned a different number of decisions per batch")
        payoffs[offset:offset+values.shape[0]] = values
        offset += values.shape[0]
    return payoffs


def _check_payoffs(payoffs, nsamples_inner):
    _check_nsamples_inner(nsamples_inner)
    if payoffs.ndim != 2 or payoffs.shape[1] < 1:
        msg = "payoffs must be a 2D array with at least one decision but "
        msg += f"had shape {payoffs.shape}"
        raise ValueError(msg)
    if payoffs.shape[0] == 0 or payoffs.shape[0] % nsamples_inner != 0:
        msg = f"The number of rows {payoffs.shape[0]} is not a positive "
        msg += f"multiple of nsamples_inner={nsamples_inner}"
        raise ValueError(msg)


def nested_decision_statistics(payoffs, nsamples_inner):
    """
    Compute the value of deciding with perfect information and the values
    of the fine and antithetic coarse plug-in decisions for each outer
    sample.

    Parameters
    ----------
    payoffs : np.ndarray (nsamples_inner*nouter, ndecisions)
        The payoffs ordered outer sample major, inner sample minor

    nsamples_inner : integer
        The number of inner samples :math:`M`

    Returns
    -------
    perfect_info : np.ndarray (nouter)
        The mean over the inner samples of the largest payoff

    plugin_fine : np.ndarray (nouter)
        The largest of the mean payoffs of each decision

    plugin_coarse : np.ndarray (nouter)
        The average of the largest mean payoffs computed with each half of
        the inner samples
    """
    payoffs = np.asarray(payoffs, dtype=float)
    _check_payoffs(payoffs, nsamples_inner)
    nouter = payoffs.shape[0]//nsamples_inner
    blocks = payoffs.reshape(nouter, nsamples_inner, payoffs.shape[1])

    perfect_info = blocks.max(axis=2).mean(axis=1)
    plugin_fine = blocks.mean(axis=1).max(axis=1)

    half = nsamples_inner//2
    if nsamples_inner == 2:
        plugin_coarse = 0.5*(
            blocks[:, 0, :].max(axis=1)+blocks[:, 1, :].max(axis=1))
    else:
        plugin_coarse = 0.5*(
            blocks[:, :half].mean(axis=1).max(axis=1) +
            blocks[:, half:].mean(axis=1).max(axis=1))
    return perfect_info, plugin_fine, plugin_coarse


def antithetic_evppi_differences(payoffs, nsamples_inner):
    """
    Compute the fine and antithetic coarse level estimators for each outer
    sample.

    Parameters
    ----------
    payoffs : np.ndarray (nsamples_inner*nouter, ndecisions)
        The payoffs ordered outer sample major, inner sample minor

    nsamples_inner : integer
        The number of inner samples :math:`M`

    Returns
    -------
    fine_values : np.ndarray (nouter)
        The fine estimator :math:`P_f` of each outer sample

    coarse_values : np.ndarray (nouter)
        The antithetic coarse estimator :math:`P_c` of each outer sample
    """
    perfect_info, plugin_fine, plugin_coarse = nested_decision_statistics(
        payoffs, nsamples_inner)
    return perfect_info-plugin_fine, perfect_info-plugin_coarse


def accumulate_level_moments(fine_values, coarse_values, nsamples_inner):
    """
    Sum the moments of the level difference needed by the MLMC driver.

    Parameters
    ----------
    fine_values : np.ndarray (nouter)
        The fine estimator :math:`P_f` of each outer sample

    coarse_values : np.ndarray (nouter)
        The coarse estimator :math:`P_c` of each outer sample

    nsamples_inner : integer
        The number of inner samples :math:`M`

    Returns
    -------
    sums : np.ndarray (7)
        :math:`\\sum(P_f-P_c)^k, k=1,\\ldots,4`, :math:`\\sum P_f`,
        :math:`\\sum P_f^2` and the number of model evaluations
        :math:`MN`
    """
    fine_values = np.asarray(fine_values, dtype=float)
    coarse_values = np.asarray(coarse_values, dtype=float)
    if fine_values.ndim != 1 or fine_values.shape != coarse_values.shape:
        raise ValueError("fine and coarse values must be 1D and same size")
    diff = fine_values-coarse_values
    return np.array([
        diff.sum(), (diff**2).sum(), (diff**3).sum(), (diff**4).sum(),
        fine_values.sum(), (fine_values**2).sum(),
        nsamples_inner*fine_values.shape[0]], dtype=float)


def _level_moments_batch(model, variable, hold_constant, nsamples_inner,
                         args):
    payoffs = _generate_payoff_batch(
        model, variable, hold_constant, nsamples_inner, args)
    fine_values, coarse_values = antithetic_evppi_differences(
        payoffs, nsamples_inner)
    return accumulate_level_moments(
        fine_values, coarse_values, nsamples_inner)


class EVPPILevelEstimator(object):
    r"""
    Compute the moments of the MLMC level difference of the EVPPI of a set
    of parameters of interest.

    Instances are the level function consumed by
    :func:`pyevppi.multifidelity.mlmc.mlmc`. Each call generates the payoffs
    one batch at a time so that memory does not grow with the number of
    outer samples. Every call draws new samples, so the moments returned by
    repeated calls for the same level can be summed.
    """

    def __init__(self, model, variable, hold_constant, seed=None,
                 max_eval_concurrency=1, min_batch_size=128,
                 assert_omp=True, pool=None, verbosity=0):
        """
        Parameters
        ----------
        model : callable
            The net benefit model with signature

            ``model(samples) -> np.ndarray (nsamples, ndecisions)``

            where samples is a np.ndarray (nvars, nsamples). Must be
            picklable if max_eval_concurrency > 1

        variable : :py:class:`~pyevppi.variables.JointVariable`
            The uncertain parameters of the model

        hold_constant : iterable
            The labels or indices of the parameters of interest

        seed : integer or :class:`numpy.random.SeedSequence`
            The seed of the random number streams

        max_eval_concurrency : integer
            The number of batches evaluated in parallel with
            multiprocessing.Pool

        min_batch_size : integer
            The smallest number of payoff rows generated by one batch

        assert_omp : boolean
            If True require OMP_NUM_THREADS=1 when max_eval_concurrency > 1

        pool : :class:`multiprocessing.Pool`
            A pool shared by all calls when max_eval_concurrency > 1. If
            None each call creates its own pool. The caller is responsible
            for closing it

        verbosity : integer
            Print the work done by each call if > 1
        """
        if model is None or not callable(model):
            raise ValueError("model must be a callable net benefit function")
        for method in ["rvs", "num_vars", "get_variable_indices"]:
            if not hasattr(variable, method):
                msg = f"variable must implement {method}(). "
                msg += "See pyevppi.variables.JointVariable"
                raise ValueError(msg)
        if hold_constant is None:
            raise ValueError("hold_constant must name at least one parameter")
        if isinstance(hold_constant, (str, int, np.integer)):
            hold_constant = [hold_constant]
        hold_constant = list(hold_constant)
        if len(hold_constant) == 0:
            raise ValueError("hold_constant must name at least one parameter")
        indices = variable.get_variable_indices(hold_constant)
        if indices.shape[0] == variable.num_vars():
            msg = "All parameters are held constant so there are no "
            msg += "inner samples"
            raise ValueError(msg)
        _check_integer(max_eval_concurrency, "max_eval_concurrency", 1)
        _check_integer(min_batch_size, "min_batch_size", 1)
        if assert_omp:
            check_omp_num_threads(max_eval_concurrency)

        self._model = model
        self._variable = variable
        self._hold_constant = hold_constant
        self._seed_sequence = _get_seed_sequence(seed)
        self._nchildren = self._seed_sequence.n_children_spawned
        self._max_eval_concurrency = max_eval_concurrency
        self._min_batch_size = min_batch_size
        self._assert_omp = assert_omp
        self._pool = pool
        self._verbosity = verbosity

    def __call__(self, level, nouter):
        r"""
        Compute the moments of the level difference.

        Parameters
        ----------
        level : integer
            The level :math:`l\ge 0` which uses :math:`M=2^{l+1}` inner
            samples

        nouter : integer
            The number of outer samples :math:`N\ge 1`

        Returns
        -------
        sums : np.ndarray (7)
            See :func:`accumulate_level_moments`
        """
        nsamples_inner = get_nsamples_inner(level)
        nbatches, batch_args = _get_batch_arguments(
            self._seed_sequence, self._nchildren, nsamples_inner, nouter,
            self._min_batch_size)
        # later calls use the streams after the ones of this call
        self._nchildren += nbatches
        fun = partial(
            _level_moments_batch, self._model, self._variable,
            self._hold_constant, nsamples_inner)

        sums = np.zeros(NMOMENTS)
        for batch_sums in run_batches_in_parallel(
                fun, self._max_eval_concurrency, batch_args,
                pool=self._pool, assert_omp=self._assert_omp):
            sums += batch_sums
        if self._verbosity > 1:
            msg = f"Level {level}: {nouter} outer samples, "
            msg += f"{nsamples_inner} inner samples, "
            msg += f"{nbatches} batches"
            print(msg)
        return sums

    def __repr__(self):
        return "{0}(hold_constant={1})".format(
            self.__class__.__name__, self._hold_constant)


def estimate_evppi(model, variable, hold_constant, eps, evpi,
                   nsamples_init=1000, min_level=2, max_level=10,
                   theta=0.25, seed=None, max_eval_concurrency=1,
                   min_batch_size=128, assert_omp=True, pool=None,
                   verbosity=0):
    r"""
    Estimate the EVPPI of a set of parameters with adaptive MLMC.

    Parameters
    ----------
    model : callable
        The net benefit model with signature

        ``model(samples) -> np.ndarray (nsamples, ndecisions)``

    variable : :py:class:`~pyevppi.variables.JointVariable`
        The uncertain parameters of the model

    hold_constant : iterable
        The labels or indices of the parameters of interest

    eps : float
        The target root mean squared error

    evpi : float
        The expected value of perfect information. The EVPPI is
        ``evpi`` minus the MLMC estimate of :math:`\mathrm{EVPI-EVPPI}`

    nsamples_init : integer
        The number of outer samples used to initialize each new level

    min_level : integer
        The minimum finest level used by the driver

    max_level : integer
        The maximum finest level used by the driver

    theta : float
        The fraction of the mean squared error allocated to the bias

    pool : :class:`multiprocessing.Pool`
        A pool used when max_eval_concurrency > 1. If None one pool is
        created and shared by every level of the run

    The remaining arguments are passed to :class:`EVPPILevelEstimator`

    Returns
    -------
    result : :class:`scipy.optimize.OptimizeResult`
        Contains ``evppi``, ``evpi``, ``difference`` (the estimate of
        :math:`\mathrm{EVPI-EVPPI}`), ``nsamples_per_level`` and
        ``cost_per_level``
    """
    if pool is None and max_eval_concurrency > 1:
        if assert_omp:
            check_omp_num_threads(max_eval_concurrency)
        with Pool(max_eval_concurrency) as pool:
            return estimate_evppi(
                model, variable, hold_constant, eps, evpi,
                nsamples_init=nsamples_init, min_level=min_level,
                max_level=max_level, theta=theta, seed=seed,
                max_eval_concurrency=max_eval_concurrency,
                min_batch_size=min_batch_size, assert_omp=assert_omp,
                pool=pool, verbosity=verbosity)

    level_estimator = EVPPILevelEstimator(
        model, variable, hold_constant, seed=seed,
        max_eval_concurrency=max_eval_concurrency,
        min_batch_size=min_batch_size, assert_omp=assert_omp, pool=pool,
        verbosity=verbosity)
    difference, nsamples_per_level, cost_per_level = mlmc(
        level_estimator, nsamples_init, eps, min_level, max_level,
        theta=theta, verbosity=verbosity)
    return OptimizeResult(
        evppi=evpi-difference, evpi=evpi, difference=difference,
        nsamples_per_level=nsamples_per_level,
        cost_per_level=cost_per_level)
