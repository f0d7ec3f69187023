"""pyfemasm.assembly.boundary
Natural-boundary (flux) contributions of one element.

Both loops only add to the local residual; the Jacobian is never touched
because the prescribed flux does not depend on the unknowns. The
boundary-condition capability is queried once per face, at the face
centroid.
"""
import logging
from typing import Sequence

from pyfemasm.core.topology import Boundary
from pyfemasm.fem.reference import face_local_nodes

logger = logging.getLogger(__name__)


def neumann_loop_1d(mesh, snapshot, bcs, fields: Sequence[str], mixed_element, buffers,
                    time: float = 0.0):
    """Point fluxes at the end nodes of a line element."""
    eid = snapshot.elem_id
    for lf in range(mesh.n_faces(eid)):
        adj = mesh.face_adjacency(eid, lf)
        if not isinstance(adj, Boundary):
            continue
        x = mesh.face_centroid(eid, lf)
        for name in fields:
            spec = mixed_element.spec(name)
            if not spec.is_lagrange:
                continue
            is_dir, g = bcs.evaluate(x, name, adj.region, time)
            if is_dir or g == 0.0:
                continue
            i_loc = face_local_nodes(snapshot.element_type, lf, spec.order)[0]
            buffers.residual[buffers.slices[name].start + i_loc] += g
            logger.debug("elem %d face %d: point flux %g on '%s'", eid, lf, g, name)


def neumann_loop(mesh, ctx, bcs, fields: Sequence[str], buffers, time: float = 0.0):
    """Face integrals  Res[i_vol] += w detJ g phi_i  over every non-Dirichlet boundary face."""
    snapshot = ctx.snapshot
    eid = snapshot.elem_id
    for lf in range(mesh.n_faces(eid)):
        adj = mesh.face_adjacency(eid, lf)
        if not isinstance(adj, Boundary):
            continue
        x = mesh.face_centroid(eid, lf)
        active = {}
        for name in fields:
            if not ctx.mixed_element.spec(name).is_lagrange:
                continue
            is_dir, g = bcs.evaluate(x, name, adj.region, time)
            if not is_dir:
                active[name] = g
        if not active:
            continue
        for qp in ctx.face_points(lf, fields=tuple(active)):
            for name, g in active.items():
                i_vol = buffers.slices[name].start + qp.face_dofs[name]
                buffers.residual[i_vol] += qp.geom.weight * g * qp.shapes[name].phi
