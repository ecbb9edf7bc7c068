import unittest

import numpy as np

from pyevppi.multifidelity.mlmc import mlmc, mlmc_test, MLMCTestResult
from pyevppi.multifidelity.evppi import accumulate_level_moments


class GaussianLevelFunction(object):
    r"""
    Level function with :math:`P_0\sim N(1/2, 1)` and
    :math:`P_l-P_{l-1}\sim N(2^{-l-1}, 4^{-l})` so that
    :math:`\mathbb{E}[P_l]=1-2^{-l-1}`, :math:`\alpha=1`, :math:`\beta=2`
    and the cost of one sample is :math:`2^l`.
    """
    def __init__(self, seed):
        self._rng = np.random.default_rng(seed)
        self.ncalls = 0

    def __call__(self, level, nsamples):
        self.ncalls += 1
        if level == 0:
            fine_values = self._rng.normal(0.5, 1, nsamples)
            coarse_values = np.zeros(nsamples)
        else:
            coarse_values = self._rng.normal(1-2.0**(-level), 1, nsamples)
            fine_values = coarse_values + self._rng.normal(
                2.0**(-level-1), 2.0**(-level), nsamples)
        return accumulate_level_moments(
            fine_values, coarse_values, 2**level)


class TestMLMC(unittest.TestCase):
    def setUp(self):
        np.random.seed(1)

    def test_mlmc(self):
        eps = 1e-2
        level_fun = GaussianLevelFunction(1)
        estimate, nsamples_per_level, cost_per_level = mlmc(
            level_fun, 1000, eps, 2, 12)
        assert np.allclose(estimate, 1, atol=3*eps)
        nlevels = nsamples_per_level.shape[0]
        assert cost_per_level.shape[0] == nlevels
        assert nlevels >= 7 and nlevels <= 13
        # variance decays faster than cost grows
        assert np.all(np.diff(nsamples_per_level[:4]) < 0)
        assert nsamples_per_level[0] > nsamples_per_level[-1]
        assert np.allclose(
            cost_per_level, nsamples_per_level*2**np.arange(nlevels))

    def test_mlmc_with_given_rates(self):
        eps = 1e-2
        estimate = mlmc(
            GaussianLevelFunction(2), 1000, eps, 2, 12, alpha=1, beta=2,
            gamma=1)[0]
        assert np.allclose(estimate, 1, atol=3*eps)

    def test_mlmc_warns_at_max_level(self):
        with self.assertWarns(UserWarning):
            estimate, nsamples_per_level, cost_per_level = mlmc(
                GaussianLevelFunction(1), 1000, 5e-3, 2, 2)
        assert nsamples_per_level.shape[0] == 3

    def test_mlmc_invalid_arguments(self):
        level_fun = GaussianLevelFunction(1)
        self.assertRaises(ValueError, mlmc, level_fun, 1000, 0., 2, 5)
        self.assertRaises(ValueError, mlmc, level_fun, 1000, 1e-2, 1, 5)
        self.assertRaises(ValueError, mlmc, level_fun, 1000, 1e-2, 3, 2)
        self.assertRaises(ValueError, mlmc, level_fun, 0, 1e-2, 2, 5)
        self.assertRaises(
            ValueError, mlmc, level_fun, 1000, 1e-2, 2, 5, theta=1.)
        self.assertRaises(
            RuntimeError, mlmc, lambda ll, nn: np.zeros(6), 10, 1e-2, 2, 5)

    def test_mlmc_test(self):
        eps_list = [2e-2, 1e-2]
        result = mlmc_test(
            GaussianLevelFunction(1), 20000, 5, 1000, eps_list, 2, 12)
        assert isinstance(result, MLMCTestResult)
        assert np.allclose(result.levels, np.arange(6))
        assert np.allclose(
            result.mean_fine, 1-2.0**(-np.arange(6)-1), atol=3e-2)
        assert np.allclose(result.mean_diff[0], result.mean_fine[0])
        assert np.allclose(
            result.var_diff[1:], 4.0**(-np.arange(1, 6)), rtol=5e-2)
        assert np.allclose(result.kurtosis[1:], 3, atol=0.3)
        assert np.allclose(result.cost, 2**np.arange(6))
        assert np.allclose(result.alpha, 1, atol=0.15)
        assert np.allclose(result.beta, 2, atol=0.15)
        assert np.allclose(result.gamma, 1)
        assert result.consistency[0] == 0
        assert len(result.nsamples_per_level) == len(eps_list)
        assert np.allclose(result.estimates, 1, atol=3*max(eps_list))
        assert np.all(result.mlmc_cost < result.std_cost)

    def test_mlmc_test_invalid_arguments(self):
        level_fun = GaussianLevelFunction(1)
        self.assertRaises(
            ValueError, mlmc_test, level_fun, 1000, 0, 100, [1e-2], 2, 5)
        self.assertRaises(
            ValueError, mlmc_test, level_fun, 1, 3, 100, [1e-2], 2, 5)


if __name__ == "__main__":
    mlmc_test_suite = unittest.TestLoader().loadTestsFromTestCase(
        TestMLMC)
    unittest.TextTestRunner(verbosity=2).run(mlmc_test_suite)
