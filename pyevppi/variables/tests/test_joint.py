import unittest
import numpy as np
from scipy import stats

from pyevppi.variables.joint import (
    IndependentMarginalsVariable, JointVariable)


class TestJoint(unittest.TestCase):
    def setUp(self):
        np.random.seed(1)

    def test_define_mixed_tensor_product_random_variable(self):
        """
        Construct a multivariate random variable from the tensor-product of
        different one-dimensional variables where some marginals are the same
        """
        univariate_variables = [
            stats.norm(0, 1), stats.norm(2, 2), stats.uniform(-1, 2),
            stats.norm(loc=0, scale=1)]
        variable = IndependentMarginalsVariable(univariate_variables)

        assert len(variable.unique_variables) == 3
        assert [list(idx) for idx in variable.unique_variable_indices] == [
            [0, 3], [1], [2]]
        assert variable.num_vars() == 4
        assert len(variable.marginals()) == 4

    def test_get_statistics(self):
        univariate_variables = [
            stats.uniform(2, 4), stats.norm(0, np.sqrt(2)), stats.norm(2, 2)]
        variable = IndependentMarginalsVariable(univariate_variables)
        mean = variable.get_statistics('mean')
        assert np.allclose(mean.squeeze(), [4, 0, 2])
        std = variable.get_statistics('std')
        assert np.allclose(std.squeeze(), [4/np.sqrt(12), np.sqrt(2), 2])

    def test_variable_labels(self):
        variable = IndependentMarginalsVariable(
            [stats.norm(0, 1), stats.uniform()], variable_labels=["x", "y"])
        assert np.allclose(variable.get_variable_indices(["y"]), [1])
        assert np.allclose(variable.get_variable_indices("x"), [0])
        assert np.allclose(variable.get_variable_indices(["y", 0]), [0, 1])
        assert "x" in str(variable) and "norm" in str(variable)
        self.assertRaises(
            ValueError, variable.get_variable_indices, ["z"])
        self.assertRaises(
            ValueError, variable.get_variable_indices, [2])
        self.assertRaises(
            ValueError, IndependentMarginalsVariable,
            [stats.norm(0, 1), stats.uniform()], variable_labels=["x"])
        self.assertRaises(
            ValueError, IndependentMarginalsVariable,
            [stats.norm(0, 1), stats.uniform()], variable_labels=["x", "x"])

    def test_rvs_hold_constant_per_block(self):
        variable = IndependentMarginalsVariable(
            [stats.norm(0, 1), stats.uniform()], variable_labels=["x", "y"])
        nblocks, block_size = 3, 4
        samples = variable.rvs(
            nblocks*block_size, random_state=np.random.default_rng(1),
            hold_constant=["x"], block_size=block_size)
        assert samples.shape == (2, nblocks*block_size)
        blocks = samples[0].reshape(nblocks, block_size)
        assert np.all(blocks == blocks[:, :1])
        assert np.unique(samples[0]).shape[0] == nblocks
        assert np.unique(samples[1]).shape[0] == nblocks*block_size

        # hold by index and use one block
        samples = variable.rvs(
            10, random_state=np.random.default_rng(1), hold_constant=[1])
        assert np.all(samples[1] == samples[1, 0])
        assert np.unique(samples[0]).shape[0] == 10

        # no variables held
        samples = variable.rvs(10)
        assert np.unique(samples[0]).shape[0] == 10

    def test_rvs_invalid_block_size(self):
        variable = IndependentMarginalsVariable(
            [stats.norm(0, 1), stats.uniform()], variable_labels=["x", "y"])
        self.assertRaises(
            ValueError, variable.rvs, 12, hold_constant=["x"], block_size=5)
        self.assertRaises(
            ValueError, variable.rvs, 12, hold_constant=["x"], block_size=0)
        self.assertRaises(ValueError, variable.rvs, 0)

    def test_rvs_reproducible(self):
        variable = IndependentMarginalsVariable(
            [stats.norm(0, 1), stats.norm(2, 2)], variable_labels=["x", "y"])
        samples1 = variable.rvs(
            16, random_state=np.random.default_rng(5), hold_constant=["x"],
            block_size=4)
        samples2 = variable.rvs(
            16, random_state=np.random.default_rng(5), hold_constant=["x"],
            block_size=4)
        assert np.array_equal(samples1, samples2)

    def test_joint_variable_requires_label_lookup(self):
        class SamplerOnlyVariable(JointVariable):
            def rvs(self, num_samples, random_state=None,
                    hold_constant=None, block_size=None):
                return np.zeros((1, num_samples))

        self.assertRaises(TypeError, SamplerOnlyVariable)
        variable = IndependentMarginalsVariable([stats.norm(0, 1)])
        assert isinstance(variable, JointVariable)

    def test_rvs_held_variable_distribution(self):
        variable = IndependentMarginalsVariable(
            [stats.norm(0, np.sqrt(2)), stats.norm(2, 2)],
            variable_labels=["x", "y"])
        nblocks, block_size = 20000, 2
        samples = variable.rvs(
            nblocks*block_size, random_state=np.random.default_rng(1),
            hold_constant=["x"], block_size=block_size)
        xx = samples[0, ::block_size]
        assert np.allclose(xx.mean(), 0, atol=5e-2)
        assert np.allclose(xx.std(), np.sqrt(2), rtol=2e-2)
        assert np.allclose(samples[1].mean(), 2, atol=5e-2)
        assert np.allclose(samples[1].std(), 2, rtol=2e-2)


if __name__ == "__main__":
    joint_test_suite = unittest.TestLoader().loadTestsFromTestCase(
        TestJoint)
    unittest.TextTestRunner(verbosity=2).run(joint_test_suite)
