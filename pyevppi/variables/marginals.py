import numpy as np


def get_distribution_info(rv):
    """
    Get important information from a frozen scipy.stats variable.

    Parameters
    ----------
    rv : :class:`scipy.stats.rv_frozen`
        The frozen univariate variable

    Returns
    -------
    name : string
        The name of the scipy distribution, e.g. "norm"

    scales : dict
        The loc and scale of the variable stored as 1D np.ndarray

    shapes : dict
        The shape parameters of the variable keyed by name

    Notes
    -----
    Shapes and scales can appear in either args of kwargs depending on how
    user initializes frozen object.
    """
    name = rv.dist.name
    shape_names = rv.dist.shapes
    if shape_names is not None:
        shape_names = [name.strip() for name in shape_names.split(",")]
        shape_values = [
            rv.args[ii] for ii in range(min(len(rv.args), len(shape_names)))]
        shape_values += [
            rv.kwds[shape_names[ii]]
            for ii in range(len(rv.args), len(shape_names))]
        shapes = dict(zip(shape_names, shape_values))
    else:
        shapes = dict()

    scale_values = [rv.args[ii] for ii in range(len(shapes), len(rv.args))]
    scale_values += [rv.kwds[key] for key in rv.kwds if key not in shapes]
    if len(scale_values) == 0:
        scale_values = [0, 1]
    elif len(scale_values) == 1 and len(rv.args) > len(shapes):
        scale_values += [1.]
    elif len(scale_values) == 1 and "scale" not in rv.kwds:
        scale_values += [1.]
    elif len(scale_values) == 1 and "loc" not in rv.kwds:
        scale_values = [0]+scale_values
    scales = dict(zip(["loc", "scale"],
                      [np.atleast_1d(s) for s in scale_values]))
    return name, scales, shapes


def variables_equivalent(rv1, rv2):
    """
    Determine if 2 scipy variables are equivalent

    Let
    a = norm(0, 2)
    b = norm(loc=0, scale=2)

    then a==b will return False because .args and .kwds are different
    """
    name1, scales1, shapes1 = get_distribution_info(rv1)
    name2, scales2, shapes2 = get_distribution_info(rv2)
    if name1 != name2:
        return False
    for key in scales1:
        if not np.allclose(scales1[key], scales2[key]):
            return False
    return shapes1 == shapes2


def get_unique_variables(variables):
    """
    Get the unique 1D variables from a list of variables.
    """
    nvars = len(variables)
    unique_variables = [variables[0]]
    unique_var_indices = [[0]]
    for ii in range(1, nvars):
        found = False
        for jj in range(len(unique_variables)):
            if variables_equivalent(variables[ii], unique_variables[jj]):
                unique_var_indices[jj].append(ii)
                found = True
                break
        if not found:
            unique_variables.append(variables[ii])
            unique_var_indices.append([ii])
    return unique_variables, unique_var_indices
