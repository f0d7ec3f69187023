from .base import LocalKernel
from .poisson import PoissonKernel
from .boussinesq import BoussinesqKernel

__all__ = ["LocalKernel", "PoissonKernel", "BoussinesqKernel"]
