"""
PyEVPPI : Multilevel Monte Carlo estimation of the expected value of
partial perfect information

Sub-packages are not imported here so that importing pyevppi does not
load scipy before it is needed.
"""

name = "pyevppi"
