from .mesh import Mesh
from .dofhandler import DofHandler
from .solution import SolutionStore

__all__ = ["Mesh", "DofHandler", "SolutionStore"]
