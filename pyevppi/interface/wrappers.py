import os
import time
from itertools import islice
from multiprocessing import Pool

import numpy as np


def check_omp_num_threads(max_eval_concurrency):
    """
    Raise an error if work is to be run on multiple processes without
    restricting each process to a single OpenMP thread.

    Many python packages, e.g. SciPy, NumPy, use multiple threads and this
    can make running multiple evaluations of a function in parallel slow
    because of resource allocation issues.
    """
    if max_eval_concurrency > 1 and (
            'OMP_NUM_THREADS' not in os.environ or
            not int(os.environ['OMP_NUM_THREADS']) == 1):
        msg = 'User set assert_omp=True but OMP_NUM_THREADS has not been '
        msg += 'set to 1. Run script with '
        msg += 'OMP_NUM_THREADS=1 python script.py'
        raise RuntimeError(msg)


def run_batches_in_parallel(function, max_eval_concurrency, batch_args,
                            pool=None, assert_omp=True, window_size=None):
    """
    Evaluate a function on an iterable of independent batches and return
    an iterator over the results in the order of the batches.

    Batches are consumed lazily. When running in parallel at most
    ``window_size`` batch arguments and results are held at once, so memory
    does not grow with the number of batches.

    Parameters
    ----------
    function : callable
        A picklable function with signature

        ``function(args) -> object``

    max_eval_concurrency : integer
        The maximum number of batches evaluated at the same time. If 1 the
        batches are evaluated sequentially in the calling process

    batch_args : iterable
        The argument passed to function for each batch

    pool : :class:`multiprocessing.Pool`
        A pool to use. If None a pool is created and closed once all
        results have been consumed.

    assert_omp : boolean
        If True make sure that OMP_NUM_THREADS=1 when running in parallel

    window_size : integer
        The number of batches submitted to the pool at a time. Defaults to
        ``16*max_eval_concurrency``

    Returns
    -------
    results : iterator
        The output of function for each batch

    Warning
    -------
    pool.map serializes each argument and so if function is a class,
    any of its member variables that are updated in __call__ will not
    persist once each __call__ to pool completes.
    """
    if max_eval_concurrency == 1:
        return map(function, batch_args)

    if assert_omp:
        check_omp_num_threads(max_eval_concurrency)
    if window_size is None:
        window_size = 16*max_eval_concurrency
    if window_size < 1:
        raise ValueError("window_size must be a positive integer")
    return _map_batch_windows(
        function, max_eval_concurrency, iter(batch_args), pool, window_size)


def _map_batch_windows(function, max_eval_concurrency, batch_args, pool,
                       window_size):
    # Pool.imap consumes its whole input up front so submit fixed size
    # windows with pool.map instead
    window = list(islice(batch_args, window_size))
    if len(window) <= 1:
        yield from map(function, window)
        return
    if pool is None:
        with Pool(max_eval_concurrency) as pool:
            yield from _map_windows(
                pool, function, window, batch_args, window_size)
        return
    yield from _map_windows(pool, function, window, batch_args, window_size)


def _map_windows(pool, function, window, batch_args, window_size):
    while len(window) > 0:
        yield from pool.map(function, window)
        window = list(islice(batch_args, window_size))


def evaluate_net_benefit_model(model, samples, ndecisions=None):
    """
    Evaluate a net benefit model and check the shape of its output.

    Parameters
    ----------
    model : callable
        Function with signature

        ``model(samples) -> np.ndarray (nsamples, ndecisions)``

        where samples is a np.ndarray (nvars, nsamples)

    samples : np.ndarray (nvars, nsamples)
        The parameter realizations

    ndecisions : integer
        The expected number of decisions. If None any number >= 1 is
        accepted

    Returns
    -------
    values : np.ndarray (nsamples, ndecisions)
        The payoff of each decision for each sample
    """
    values = np.asarray(model(samples), dtype=float)
    nsamples = samples.shape[1]
    if values.ndim != 2 or values.shape[0] != nsamples:
        msg = f"model returned array with shape {values.shape} but "
        msg += f"expected ({nsamples}, ndecisions)"
        raise RuntimeError(msg)
    if values.shape[1] < 1:
        raise RuntimeError("model must return at least one decision")
    if ndecisions is not None and values.shape[1] != ndecisions:
        msg = f"model returned {values.shape[1]} decisions but "
        msg += f"{ndecisions} were expected"
        raise RuntimeError(msg)
    return values


class TimerModel(object):
    r"""
    Return the wall-time needed to evaluate a net benefit model at each
    call and the number of samples passed to it.

    Counts are only recorded when the model is evaluated in the calling
    process, i.e. not when batches are sent to a multiprocessing.Pool.
    """

    def __init__(self, model):
        """
        Parameters
        ----------
        model : callable
            A function with signature

            ``model(samples) -> np.ndarray (nsamples, ndecisions)``

             where ``samples`` is a np.ndarray of shape (nvars, nsamples).
        """
        self.model = model
        self.num_evaluations = 0
        self.wall_times = []
        self.nsamples_per_call = []

    def __call__(self, samples):
        t0 = time.time()
        values = self.model(samples)
        self.wall_times.append(time.time()-t0)
        self.num_evaluations += samples.shape[1]
        self.nsamples_per_call.append(samples.shape[1])
        return values

    def total_wall_time(self):
        return np.sum(self.wall_times)
