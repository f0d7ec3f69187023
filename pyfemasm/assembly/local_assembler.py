"""pyfemasm.assembly.local_assembler
Element-local state shared by all kernels: solution snapshot, residual and
Jacobian buffers, and the per-quadrature-point geometry/basis evaluation.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional, Sequence

import numpy as np

from pyfemasm.fem.reference import face_local_nodes, face_map, face_type, get_reference
from pyfemasm.fem.transform import (QPGeometry, ShapeValues, jac_jac_inv,
                                    shape_funcs_current_elem, x_mapping)


@dataclass
class ElementSnapshot:
    """Read-only view of one element: DOF maps, nodal values, coordinates."""
    elem_id: int
    element_type: str
    coords: np.ndarray                      # (n_geom_nodes, space_dim)
    dofs: Dict[str, np.ndarray]
    values: Dict[str, np.ndarray]
    old_values: Dict[str, np.ndarray]


def gather_snapshot(dof_handler, solution, elem_id: int) -> ElementSnapshot:
    mesh = dof_handler.mesh
    dofs = dof_handler.element_dof_map(elem_id)
    values, old_values = {}, {}
    for name, d in dofs.items():
        values[name], old_values[name] = solution.gather(d)
    return ElementSnapshot(elem_id=elem_id,
                           element_type=mesh.geometry_type(elem_id),
                           coords=mesh.element_coords(elem_id),
                           dofs=dofs, values=values, old_values=old_values)


class LocalBuffers:
    """Field-blocked local residual and dense local Jacobian.

    Blocks follow the field order of the DOF map; each block is exactly as
    long as that field's local DOF count.
    """

    def __init__(self):
        self.fields: tuple = ()
        self.slices: Dict[str, slice] = {}
        self.residual = np.zeros(0)
        self.jacobian = np.zeros((0, 0))
        self.dofs = np.zeros(0, dtype=int)

    @property
    def n_local(self) -> int:
        return len(self.residual)

    def reset(self, snapshot: ElementSnapshot, with_jacobian: bool = True):
        start = 0
        self.slices = {}
        for name, d in snapshot.dofs.items():
            self.slices[name] = slice(start, start + len(d))
            start += len(d)
        self.fields = tuple(snapshot.dofs)
        self.dofs = (np.concatenate([snapshot.dofs[f] for f in self.fields])
                     if self.fields else np.zeros(0, dtype=int))
        self.residual = np.zeros(start)
        self.jacobian = np.zeros((start, start)) if with_jacobian else np.zeros((0, 0))

    def block(self, name: str) -> np.ndarray:
        return self.residual[self.slices[name]]

    def size(self, name: str) -> int:
        sl = self.slices[name]
        return sl.stop - sl.start


@dataclass
class QuadraturePoint:
    index: int
    xi: np.ndarray                          # reference coordinates of the cell (or face)
    x: np.ndarray                           # physical coordinates
    geom: QPGeometry
    shapes: Dict[str, ShapeValues]
    # boundary points only: element-local index of every face basis function
    face_dofs: Dict[str, np.ndarray] = field(default_factory=dict)


def interpolate(phi: np.ndarray, coeffs):
    """Value at a point: sum_i phi_i c_i (floats or recorded values)."""
    return phi @ coeffs

def interpolate_grad(phi_x: np.ndarray, coeffs):
    """Gradient at a point, shape (space_dim,)."""
    return coeffs @ phi_x


class ElementContext:
    """Quadrature loops over one element and its faces."""

    def __init__(self, snapshot: ElementSnapshot, mixed_element, registry,
                 geometry_order: int, fields: Optional[Sequence[str]] = None,
                 with_hessian: bool = False):
        self.snapshot = snapshot
        self.mixed_element = mixed_element
        self.registry = registry
        self.geometry_order = geometry_order
        self.fields = tuple(fields) if fields is not None else tuple(snapshot.dofs)
        self.with_hessian = with_hessian
        self.geom_ref = get_reference(snapshot.element_type, geometry_order)

    @property
    def elem_id(self) -> int:
        return self.snapshot.elem_id

    def volume_points(self) -> Iterator[QuadraturePoint]:
        etype = self.snapshot.element_type
        coords = self.snapshot.coords
        refs = {f: self.mixed_element.reference(f, etype) for f in self.fields}
        for q, (xi, w) in enumerate(self.registry.rule(etype)):
            xi_t = tuple(float(c) for c in xi)
            geom = jac_jac_inv(coords, self.geom_ref.grad(*xi_t), w, elem_id=self.elem_id, qp=q)
            x = x_mapping(coords, self.geom_ref.shape(*xi_t))
            shapes = {f: shape_funcs_current_elem(r, xi_t, geom.J_inv, self.with_hessian)
                      for f, r in refs.items()}
            yield QuadraturePoint(index=q, xi=np.asarray(xi), x=x, geom=geom, shapes=shapes)

    def face_points(self, local_face: int, fields: Optional[Sequence[str]] = None
                    ) -> Iterator[QuadraturePoint]:
        """Boundary-mode points of one face: surface geometry, face bases.

        Only continuous fields have a face basis; the returned ``face_dofs``
        map face basis function j to element-local index ``face_dofs[f][j]``.
        """
        etype = self.snapshot.element_type
        ft = face_type(etype)
        fields = self.fields if fields is None else tuple(fields)
        fields = tuple(f for f in fields if self.mixed_element.spec(f).is_lagrange)
        face_geom_ref = get_reference(ft, self.geometry_order)
        geom_lids = face_local_nodes(etype, local_face, self.geometry_order)
        face_coords = self.snapshot.coords[list(geom_lids)]
        A, b = face_map(etype, local_face)
        face_refs, face_dofs = {}, {}
        for f in fields:
            order = self.mixed_element.spec(f).order
            face_refs[f] = get_reference(ft, order)
            face_dofs[f] = np.asarray(face_local_nodes(etype, local_face, order), dtype=int)
        for q, (xi_f, w) in enumerate(self.registry.rule(ft)):
            xi_t = tuple(float(c) for c in xi_f)
            geom = jac_jac_inv(face_coords, face_geom_ref.grad(*xi_t), w, elem_id=self.elem_id, qp=q)
            x = x_mapping(face_coords, face_geom_ref.shape(*xi_t))
            shapes = {f: shape_funcs_current_elem(r, xi_t, geom.J_inv) for f, r in face_refs.items()}
            yield QuadraturePoint(index=q, xi=A @ np.asarray(xi_f) + b, x=x, geom=geom,
                                  shapes=shapes, face_dofs=face_dofs)

