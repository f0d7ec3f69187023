"""In-memory solution store: current and previous-step nodal vectors."""
import logging
from typing import Callable, Dict, Tuple

import numpy as np

from pyfemasm.core.dofhandler import DofHandler

logger = logging.getLogger(__name__)


class SolutionStore:
    """Global coefficient vectors of all fields, plus the previous time level.

    Reads used by the assembly (``gather``) never modify the store.
    """

    def __init__(self, dof_handler: DofHandler):
        self.dof_handler = dof_handler
        n = dof_handler.total_dofs
        self.current = np.zeros(n)
        self.old = np.zeros(n)

    def __len__(self):
        return len(self.current)

    def gather(self, dofs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """(current, old) coefficients at ``dofs`` (copies)."""
        return self.current[dofs].copy(), self.old[dofs].copy()

    def field_values(self, field: str, old: bool = False) -> np.ndarray:
        vec = self.old if old else self.current
        return vec[self.dof_handler.get_field_slice(field)]

    def set_field(self, field: str, values):
        self.current[self.dof_handler.get_field_slice(field)] = values

    def initialize(self, field: str, func: Callable[[np.ndarray], float], *, old: bool = True):
        """Interpolate ``func(x)`` into ``field`` (and the previous step by default).

        Discontinuous fields receive ``func`` at the element centroid in their
        constant mode and zero elsewhere.
        """
        dh = self.dof_handler
        spec = dh.mixed_element.spec(field)
        if spec.is_lagrange:
            idx = dh.get_field_slice(field)
            X = dh.get_dof_coords(field)
            vals = np.array([float(func(x)) for x in X])
            self.current[idx] = vals
        else:
            for eid, dofs in enumerate(dh.element_maps[field]):
                self.current[dofs] = 0.0
                self.current[dofs[0]] = float(func(dh.mesh.element_centroid(eid)))
            idx = dh.get_field_slice(field)
        if old:
            self.old[idx] = self.current[idx]

    def apply_dirichlet(self, data: Dict[int, float]):
        """Write prescribed values into the current vector."""
        if data:
            dofs = np.fromiter(data.keys(), dtype=int)
            self.current[dofs] = np.fromiter(data.values(), dtype=float)

    def add(self, delta: np.ndarray):
        self.current += delta

    def copy_to_old(self):
        self.old[:] = self.current
        logger.debug("Solution copied to previous time level")
