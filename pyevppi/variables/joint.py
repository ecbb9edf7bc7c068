import numpy as np
from abc import ABC, abstractmethod

from pyevppi.variables.marginals import (
    get_unique_variables, get_distribution_info
)


class JointVariable(ABC):
    r"""
    Base class for multivariate variables.
    """

    @abstractmethod
    def rvs(self, num_samples, random_state=None, hold_constant=None,
            block_size=None):
        """
        Generate samples from a random variable.

        Parameters
        ----------
        num_samples : integer
            The number of samples to generate

        random_state : :class:`numpy.random.Generator`
            The random number generator. If None the global numpy
            random state is used

        hold_constant : iterable
            The labels or indices of the variables that are drawn once per
            block of samples and repeated within that block

        block_size : integer
            The number of consecutive samples that share the values of the
            variables in hold_constant. If None all samples share one value.

        Returns
        -------
        samples : np.ndarray (num_vars, num_samples)
            Samples from the target distribution
        """
        raise NotImplementedError()

    @abstractmethod
    def num_vars(self):
        """
        Return the number of variables.
        """
        raise NotImplementedError()

    @abstractmethod
    def get_variable_indices(self, variables):
        """
        Convert variable labels and/or integer indices into sorted integer
        indices.

        Must raise ValueError if a variable is unknown so that errors are
        caught before any samples are drawn.
        """
        raise NotImplementedError()

    def __str__(self):
        return "JointVariable"


class IndependentMarginalsVariable(JointVariable):
    """
    Class representing independent random variables

    Examples
    --------
    >>> import numpy as np
    >>> from pyevppi.variables.joint import IndependentMarginalsVariable
    >>> from scipy.stats import norm
    >>> marginals = [norm(0, np.sqrt(2)), norm(2, 2)]
    >>> variable = IndependentMarginalsVariable(
    ...     marginals, variable_labels=["x", "y"])
    >>> samples = variable.rvs(4, hold_constant=["x"], block_size=2)
    >>> bool(np.all(samples[0, :2] == samples[0, 0]))
    True
    """
    def __init__(self, unique_variables, unique_variable_indices=None,
                 variable_labels=None):
        if unique_variable_indices is None:
            self.unique_variables, self.unique_variable_indices =\
                get_unique_variables(unique_variables)
        else:
            self.unique_variables = unique_variables.copy()
            self.unique_variable_indices = unique_variable_indices.copy()
        self.nunique_vars = len(self.unique_variables)
        assert self.nunique_vars == len(self.unique_variable_indices)
        self.nvars = 0
        for ii in range(self.nunique_vars):
            self.unique_variable_indices[ii] = np.asarray(
                self.unique_variable_indices[ii])
            self.nvars += self.unique_variable_indices[ii].shape[0]
        if unique_variable_indices is None:
            assert self.nvars == len(unique_variables)
        if variable_labels is not None:
            variable_labels = list(variable_labels)
            if len(variable_labels) != self.nvars:
                msg = f"Number of labels {len(variable_labels)} does not "
                msg += f"match the number of variables {self.nvars}"
                raise ValueError(msg)
            if len(set(variable_labels)) != self.nvars:
                raise ValueError("variable_labels must be unique")
        self.variable_labels = variable_labels

    def num_vars(self):
        """
        Return The number of independent 1D variables

        Returns
        -------
        nvars : integer
            The number of independent 1D variables
        """
        return self.nvars

    def marginals(self):
        """
        Return a list of all the 1D scipy.stats random variables.

        Returns
        -------
        variables : list
            List of :class:`scipy.stats.dist` variables
        """
        all_variables = [None for ii in range(self.nvars)]
        for ii in range(self.nunique_vars):
            for jj in self.unique_variable_indices[ii]:
                all_variables[jj] = self.unique_variables[ii]
        return all_variables

    def get_statistics(self, function_name, *args, **kwargs):
        """
        Get a statistic from each univariate random variable.

        Parameters
        ----------
        function_name : string
            The function name of the scipy random variable statistic of
            interest

        kwargs : kwargs
            The arguments to the scipy statistic function

        Returns
        -------
        stat : np.ndarray
            The output of the stat function
        """
        for ii in range(self.nunique_vars):
            var = self.unique_variables[ii]
            indices = self.unique_variable_indices[ii]
            stats_ii = np.atleast_1d(getattr(var, function_name)(
                *args, **kwargs))
            assert stats_ii.ndim == 1
            if ii == 0:
                stats = np.empty((self.num_vars(), stats_ii.shape[0]))
            stats[indices] = stats_ii
        return stats

    def get_variable_indices(self, variables):
        """
        Convert a collection of variable labels and/or integer indices into
        sorted integer indices.

        Parameters
        ----------
        variables : iterable
            Labels (strings) or indices (integers) of variables

        Returns
        -------
        indices : np.ndarray (nvariables)
            The unique indices of the variables
        """
        if variables is None:
            return np.zeros((0,), dtype=int)
        if isinstance(variables, (str, int, np.integer)):
            variables = [variables]
        indices = []
        for var in variables:
            if isinstance(var, str):
                if (self.variable_labels is None or
                        var not in self.variable_labels):
                    msg = f"Variable label '{var}' not found. "
                    msg += f"Labels are {self.variable_labels}"
                    raise ValueError(msg)
                indices.append(self.variable_labels.index(var))
            elif isinstance(var, (int, np.integer)):
                if var < 0 or var >= self.nvars:
                    raise ValueError(f"Variable index {var} out of range")
                indices.append(int(var))
            else:
                raise ValueError(f"Cannot identify variable with {var}")
        return np.unique(np.asarray(indices, dtype=int))

    def __str__(self):
        variable_labels = self.variable_labels
        if variable_labels is None:
            variable_labels = ["z%d" % ii for ii in range(self.num_vars())]
        string = "Independent Marginal Variable\n"
        string += f"Number of variables: {self.num_vars()}\n"
        string += "Unique variables and global id:\n"
        for ii in range(self.nunique_vars):
            var = self.unique_variables[ii]
            indices = self.unique_variable_indices[ii]
            name, scales, shapes = get_distribution_info(var)
            shape_string = ",".join(
                [f"{name}={val}" for name, val in shapes.items()])
            scales_string = ",".join(
                [f"{name}={val[0]}" for name, val in scales.items()])
            string += "    "+var.dist.name + "("
            if len(shapes) > 0:
                string += ",".join([shape_string, scales_string])
            else:
                string += scales_string
            string += "): "
            string += ", ".join(
                [variable_labels[idx] for idx in indices])
            if ii < self.nunique_vars-1:
                string += "\n"
        return string

    def __repr__(self):
        return self.__str__()

    def rvs(self, num_samples, random_state=None, hold_constant=None,
            block_size=None):
        """
        Generate samples from a tensor-product probability measure.

        Variables listed in ``hold_constant`` are drawn once for each block
        of ``block_size`` consecutive samples and repeated within the block.
        All other variables are drawn independently for every sample.

        Parameters
        ----------
        num_samples : integer
            The number of samples to generate

        random_state : :class:`numpy.random.Generator`
            The random number generator. If None the global numpy
            random state is used

        hold_constant : iterable
            The labels or indices of the held variables

        block_size : integer
            The number of samples in each block. Must divide num_samples.
            If None one block containing all samples is used.

        Returns
        -------
        samples : np.ndarray (num_vars, num_samples)
            Samples from the target distribution
        """
        num_samples = int(num_samples)
        if num_samples < 1:
            raise ValueError("num_samples must be a positive integer")
        if block_size is None:
            block_size = num_samples
        block_size = int(block_size)
        if block_size < 1 or num_samples % block_size != 0:
            msg = f"block_size {block_size} must be a positive divisor of "
            msg += f"num_samples {num_samples}"
            raise ValueError(msg)
        nblocks = num_samples // block_size
        held = self.get_variable_indices(hold_constant)

        samples = np.empty((self.num_vars(), num_samples), dtype=float)
        for ii, var in enumerate(self.marginals()):
            if ii in held:
                samples[ii, :] = np.repeat(
                    var.rvs(size=nblocks, random_state=random_state),
                    block_size)
            else:
                samples[ii, :] = var.rvs(
                    size=num_samples, random_state=random_state)
        return samples
