import itertools
import os
import unittest
from multiprocessing import Pool
from unittest.mock import patch

import numpy as np

from pyevppi.interface.wrappers import (
    run_batches_in_parallel, evaluate_net_benefit_model, TimerModel,
    check_omp_num_threads)


def _batch_sum(args):
    nrows, offset = args
    return np.arange(offset, offset+nrows).sum()


def _two_decision_model(samples):
    return np.vstack((np.zeros(samples.shape[1]), samples.sum(axis=0))).T


class TestWrappers(unittest.TestCase):
    def setUp(self):
        np.random.seed(1)

    def test_run_batches_sequential(self):
        batch_args = [(4, 0), (4, 4), (2, 8)]
        results = run_batches_in_parallel(_batch_sum, 1, batch_args)
        assert list(results) == [6, 22, 17]

    def test_run_batches_in_parallel(self):
        batch_args = [(ii+1, 10*ii) for ii in range(7)]
        results = run_batches_in_parallel(
            _batch_sum, 3, batch_args, assert_omp=False, window_size=2)
        assert list(results) == [_batch_sum(args) for args in batch_args]

        # a single batch is evaluated without starting a pool
        with patch("pyevppi.interface.wrappers.Pool") as pool_cls:
            results = run_batches_in_parallel(
                _batch_sum, 3, [(3, 1)], assert_omp=False)
            assert list(results) == [6]
        assert pool_cls.call_count == 0

    def test_run_batches_consumes_arguments_lazily(self):
        nconsumed = []

        def batch_args():
            for ii in itertools.count():
                nconsumed.append(ii)
                yield (1, ii)

        for max_eval_concurrency in [1, 2]:
            del nconsumed[:]
            results = run_batches_in_parallel(
                _batch_sum, max_eval_concurrency, batch_args(),
                assert_omp=False, window_size=4)
            assert list(itertools.islice(results, 6)) == list(range(6))
            # only the windows needed for the first results were created
            assert len(nconsumed) <= 8
            if max_eval_concurrency > 1:
                results.close()

    def test_run_batches_with_user_pool(self):
        batch_args = [(ii+1, 10*ii) for ii in range(5)]
        with Pool(2) as pool:
            with patch("pyevppi.interface.wrappers.Pool") as pool_cls:
                for ii in range(2):
                    results = run_batches_in_parallel(
                        _batch_sum, 2, batch_args, pool=pool,
                        assert_omp=False)
                    assert list(results) == [
                        _batch_sum(args) for args in batch_args]
            assert pool_cls.call_count == 0

        self.assertRaises(
            ValueError, run_batches_in_parallel, _batch_sum, 2, batch_args,
            assert_omp=False, window_size=0)

    def test_check_omp_num_threads(self):
        with patch.dict(os.environ, {"OMP_NUM_THREADS": "4"}):
            self.assertRaises(RuntimeError, check_omp_num_threads, 2)
            self.assertRaises(
                RuntimeError, run_batches_in_parallel, _batch_sum, 2,
                [(1, 0), (1, 1)])
            # a single process never needs the check
            check_omp_num_threads(1)
        with patch.dict(os.environ, {"OMP_NUM_THREADS": "1"}):
            check_omp_num_threads(2)

    def test_evaluate_net_benefit_model(self):
        samples = np.random.normal(0, 1, (2, 5))
        values = evaluate_net_benefit_model(_two_decision_model, samples, 2)
        assert values.shape == (5, 2)
        assert np.allclose(values[:, 1], samples.sum(axis=0))

        self.assertRaises(
            RuntimeError, evaluate_net_benefit_model,
            _two_decision_model, samples, 3)
        self.assertRaises(
            RuntimeError, evaluate_net_benefit_model,
            lambda xx: xx.sum(axis=0), samples)
        self.assertRaises(
            RuntimeError, evaluate_net_benefit_model,
            lambda xx: np.ones((xx.shape[1]+1, 2)), samples)

    def test_timer_model(self):
        model = TimerModel(_two_decision_model)
        for nsamples in [3, 5]:
            model(np.random.normal(0, 1, (2, nsamples)))
        assert model.num_evaluations == 8
        assert model.nsamples_per_call == [3, 5]
        assert len(model.wall_times) == 2
        assert model.total_wall_time() >= 0


if __name__ == "__main__":
    wrappers_test_suite = unittest.TestLoader().loadTestsFromTestCase(
        TestWrappers)
    unittest.TextTestRunner(verbosity=2).run(wrappers_test_suite)
