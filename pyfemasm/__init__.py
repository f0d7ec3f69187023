"""pyfemasm: element-local finite-element assembly with analytic or taped Jacobians."""
__version__ = "0.1.0"
