"""Post-processing quantities evaluated on an assembled state."""
import logging
from typing import Iterable, Optional, Sequence

import numpy as np

from pyfemasm.assembly.local_assembler import ElementContext, gather_snapshot, interpolate
from pyfemasm.integration.quadrature import QuadratureRegistry

logger = logging.getLogger(__name__)


def kinetic_energy(dof_handler, solution, velocity: Sequence[str] = ("U", "V"),
                   registry: Optional[QuadratureRegistry] = None) -> float:
    """∫ ½ |v|² dx over the whole mesh."""
    if registry is None:
        registry = QuadratureRegistry(2 * dof_handler.mixed_element.max_order() + 1)
    mesh = dof_handler.mesh
    energy = 0.0
    for eid in range(mesh.n_elements):
        snap = gather_snapshot(dof_handler, solution, eid)
        ctx = ElementContext(snap, dof_handler.mixed_element, registry, mesh.poly_order,
                             fields=velocity)
        for qp in ctx.volume_points():
            v2 = sum(interpolate(qp.shapes[f].phi, snap.values[f]) ** 2 for f in velocity)
            energy += 0.5 * v2 * qp.geom.weight
    logger.info("Kinetic energy: %.12e", energy)
    return float(energy)


def probe(dof_handler, solution, field: str, x) -> float:
    """Value of ``field`` at the DOF nearest to ``x``."""
    X = dof_handler.get_dof_coords(field)
    k = int(np.argmin(np.linalg.norm(X - np.asarray(x, dtype=float), axis=1)))
    return float(solution.field_values(field)[k])


def free_residual_norm(residual: np.ndarray, constrained: Iterable[int] = ()) -> float:
    """Euclidean norm of the residual restricted to unconstrained DOFs."""
    mask = np.ones(len(residual), dtype=bool)
    idx = np.fromiter((int(d) for d in constrained), dtype=int)
    mask[idx] = False
    return float(np.linalg.norm(np.asarray(residual)[mask]))
