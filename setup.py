import setuptools

setuptools.setup(
    name="pyevppi",
    version="0.1.0",
    description=("Multilevel Monte Carlo estimation of the expected value of "
                 "partial perfect information"),
    packages=setuptools.find_packages(),
    python_requires='>=3.7',
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    setup_requires=['numpy >= 1.17', 'scipy >= 1.0.0'],
    install_requires=[
        'numpy >= 1.17',
        'scipy >= 1.0.0',
        'coverage>=6.4',
        'pytest-cov',
        'pytest>=4.6',
    ],
    extras_require={
        'docs': ['numpydoc', 'sphinx', 'sphinx_automodapi', 'sphinx_rtd_theme']
    },
    license='MIT',
)

# to run all tests use
# python -m unittest discover pyevppi

# run a doctest of a single module
# pytest -v --doctest-modules path/to/module.py

# to install packages needed to compile docs run
# pip install -e .[docs]

# to catch warnings as errors from command, e.g. to run a unittest use
# python -W error -m unittest pyevppi.multifidelity.tests.test_evppi.TestEVPPI

# to run a single test with pytest use
# pytest pyevppi/multifidelity/tests/test_evppi.py -k test_estimate_evppi

# numpy>=1.17 is required for numpy.random.SeedSequence and default_rng

# OMP_NUM_THREADS=1 must be set before numpy is imported when
# max_eval_concurrency > 1, e.g.
# OMP_NUM_THREADS=1 python -m unittest discover pyevppi
