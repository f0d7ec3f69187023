"""Global DOF numbering for the fields of a :class:`MixedElement` on one mesh."""
import logging
from typing import Dict, List, Optional

import numpy as np

from pyfemasm.core.mesh import Mesh
from pyfemasm.fem.mixedelement import MixedElement
from pyfemasm.fem.reference import face_local_nodes, get_reference, match_nodes

logger = logging.getLogger(__name__)


class DofHandler:
    """Centralised DOF numbering and boundary-condition helpers.

    Lagrange fields are continuous: their DOFs sit on the geometry nodes their
    lattice shares with the mesh, so a field of order ``p`` needs a mesh whose
    order is ``p`` or a multiple lattice containing it (Q1 fields on a Q2 mesh,
    for instance). Discontinuous fields get element-local DOFs. Global
    numbering is field-blocked: all DOFs of the first field, then the second,
    and so on.
    """

    def __init__(self, mixed_element: MixedElement, mesh: Mesh):
        self.mixed_element = mixed_element
        self.mesh = mesh
        self.field_names: List[str] = list(mixed_element.field_names)
        self.field_offsets: Dict[str, int] = {}
        self.field_num_dofs: Dict[str, int] = {}
        self.element_maps: Dict[str, List[np.ndarray]] = {f: [] for f in self.field_names}
        # CG: {field: {mesh_node_id -> global_dof}}
        self.dof_map: Dict[str, Dict[int, int]] = {f: {} for f in self.field_names}
        self.total_dofs: int = 0
        self._dof_coords: Optional[np.ndarray] = None
        self._build_maps()

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------
    def _geometry_nodes_of_field(self, elem_id: int, name: str) -> np.ndarray:
        """Geometry-local indices of the nodes carrying a Lagrange field."""
        etype = self.mesh.geometry_type(elem_id)
        spec = self.mixed_element.spec(name)
        geom_ref = get_reference(etype, self.mesh.poly_order)
        field_ref = get_reference(etype, spec.order)
        try:
            return match_nodes(field_ref.nodes, geom_ref.nodes)
        except ValueError:
            raise ValueError(f"Field '{name}' of order {spec.order} does not fit the "
                             f"order-{self.mesh.poly_order} {etype} geometry lattice.") from None

    def _build_maps(self) -> None:
        offset = 0
        for name in self.field_names:
            spec = self.mixed_element.spec(name)
            self.field_offsets[name] = offset
            n_field = 0
            if spec.is_lagrange:
                node2dof = self.dof_map[name]
                for eid in range(self.mesh.n_elements):
                    conn = self.mesh.element_nodes(eid)
                    dofs = []
                    for lid in self._geometry_nodes_of_field(eid, name):
                        nid = int(conn[lid])
                        gd = node2dof.get(nid)
                        if gd is None:
                            gd = offset + n_field
                            node2dof[nid] = gd
                            n_field += 1
                        dofs.append(gd)
                    self.element_maps[name].append(np.asarray(dofs, dtype=int))
            else:
                for eid in range(self.mesh.n_elements):
                    n_b = self.mixed_element.n_basis(name, self.mesh.geometry_type(eid))
                    self.element_maps[name].append(np.arange(offset + n_field, offset + n_field + n_b))
                    n_field += n_b
            self.field_num_dofs[name] = n_field
            offset += n_field
        self.total_dofs = offset
        logger.debug("DofHandler: %d DOFs (%s)", self.total_dofs,
                     ", ".join(f"{f}={self.field_num_dofs[f]}" for f in self.field_names))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def element_dofs(self, field: str, eid: int) -> np.ndarray:
        return self.element_maps[field][eid]

    def element_dof_map(self, eid: int) -> Dict[str, np.ndarray]:
        """Per-field DOF map of one element, in field-declaration order."""
        return {f: self.element_maps[f][eid] for f in self.field_names}

    def get_field_slice(self, field: str) -> np.ndarray:
        off = self.field_offsets[field]
        return np.arange(off, off + self.field_num_dofs[field])

    def _ensure_dof_coords(self):
        if self._dof_coords is not None:
            return
        coords = np.zeros((self.total_dofs, self.mesh.space_dim))
        for name in self.field_names:
            if self.mixed_element.spec(name).is_lagrange:
                for nid, gd in self.dof_map[name].items():
                    coords[gd] = self.mesh.nodes_x[nid]
            else:
                for eid, dofs in enumerate(self.element_maps[name]):
                    coords[dofs] = self.mesh.element_centroid(eid)
        self._dof_coords = coords

    def get_dof_coords(self, field: str) -> np.ndarray:
        self._ensure_dof_coords()
        return self._dof_coords[self.get_field_slice(field)]

    def get_all_dof_coords(self) -> np.ndarray:
        self._ensure_dof_coords()
        return self._dof_coords

    def face_dofs(self, field: str, eid: int, local_face: int) -> np.ndarray:
        """Global DOFs of ``field`` on one face of ``eid`` (empty for dg fields)."""
        spec = self.mixed_element.spec(field)
        if not spec.is_lagrange:
            return np.zeros(0, dtype=int)
        lids = face_local_nodes(self.mesh.geometry_type(eid), local_face, spec.order)
        return self.element_maps[field][eid][list(lids)]

    # ------------------------------------------------------------------
    # Boundary conditions
    # ------------------------------------------------------------------
    def get_dirichlet_data(self, bcs, time: float = 0.0) -> Dict[int, float]:
        """
        Build {global_dof -> value} for the Dirichlet part of a boundary-condition
        capability. Every Lagrange DOF on a boundary face is tested at its own
        coordinates against the face region; discontinuous fields are never
        constrained here.
        """
        self._ensure_dof_coords()
        out: Dict[int, float] = {}
        for eid, lf, region in self.mesh.boundary_faces():
            for name in self.field_names:
                for gd in self.face_dofs(name, eid, lf):
                    gd = int(gd)
                    if gd in out:
                        continue
                    is_dir, value = bcs.evaluate(self._dof_coords[gd], name, region, time)
                    if is_dir:
                        out[gd] = float(value)
        return out

    def fix_dof_at_one_point(self, field: str) -> int:
        """Global DOF used to pin ``field`` (e.g. pressure determined up to a constant)."""
        if self.field_num_dofs[field] == 0:
            raise ValueError(f"Field '{field}' has no DOFs to pin.")
        return int(self.field_offsets[field])

    def __repr__(self):
        return f"<DofHandler total_dofs={self.total_dofs} fields={self.field_names}>"
