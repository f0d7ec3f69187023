from .boundary_conditions import BoundaryCondition, CallbackBoundaryConditions, RegionBoundaryConditions
from .engine import Assembler
from .global_matrix import GlobalSystem
from .kernels import BoussinesqKernel, PoissonKernel

__all__ = ["Assembler", "GlobalSystem", "BoundaryCondition", "RegionBoundaryConditions",
           "CallbackBoundaryConditions", "PoissonKernel", "BoussinesqKernel"]
