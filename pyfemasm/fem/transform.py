"""pyfemasm.fem.transform
Reference → physical mapping at one quadrature point, for volumes and for
boundary faces embedded in a higher-dimensional space.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from pyfemasm.errors import DegenerateJacobianError

_DET_EPS = 1e-14


@dataclass(slots=True)
class QPGeometry:
    """Geometry of one quadrature point.

    J       : (dim_ref, space_dim) forward Jacobian, J[a, k] = dx_k/dxi_a
    J_inv   : (space_dim, dim_ref) pseudo-inverse Jᵀ (J Jᵀ)⁻¹
    detJ    : det J for square maps, sqrt(det(J Jᵀ)) for surfaces
    weight  : quadrature weight already scaled by detJ
    """
    J: np.ndarray
    J_inv: np.ndarray
    detJ: float
    weight: float


@dataclass(slots=True)
class ShapeValues:
    phi: np.ndarray                       # (n_loc,)
    phi_x: np.ndarray                     # (n_loc, space_dim)
    phi_xx: Optional[np.ndarray] = None   # (n_loc, space_dim, space_dim)


# ---------- small utilities ----------

def x_mapping(coords: np.ndarray, N: np.ndarray) -> np.ndarray:
    """Physical point N @ x_nodes."""
    return N @ coords

def jacobian(coords: np.ndarray, dN_ref: np.ndarray) -> np.ndarray:
    return dN_ref.T @ coords

def det_jacobian(J: np.ndarray) -> float:
    if J.shape[0] == J.shape[1]:
        return float(np.linalg.det(J))
    return float(np.sqrt(np.linalg.det(J @ J.T)))


def jac_jac_inv(coords, dN_ref, w_ref: float = 1.0, *, elem_id=None, qp=None,
                eps: float = _DET_EPS) -> QPGeometry:
    """Forward Jacobian, pseudo-inverse and measure at one point.

    ``coords`` holds the (n_nodes, space_dim) nodal coordinates of the cell or
    face, ``dN_ref`` the (n_nodes, dim_ref) reference gradients of the
    geometric basis.
    """
    coords = np.asarray(coords, dtype=float)
    J = jacobian(coords, np.asarray(dN_ref, dtype=float))
    dim_ref, space_dim = J.shape
    if dim_ref == space_dim:
        detJ = float(np.linalg.det(J))
        if detJ <= eps:
            raise DegenerateJacobianError(
                f"Non-positive Jacobian determinant {detJ:.3e}", elem_id=elem_id, qp=qp)
        J_inv = np.linalg.inv(J)
    elif dim_ref < space_dim:
        G = J @ J.T
        g = float(np.linalg.det(G))
        if g <= eps:
            raise DegenerateJacobianError(
                f"Degenerate surface metric {g:.3e}", elem_id=elem_id, qp=qp)
        detJ = float(np.sqrt(g))
        J_inv = J.T @ np.linalg.inv(G)
    else:
        raise ValueError(f"Reference dimension {dim_ref} exceeds space dimension {space_dim}.")
    return QPGeometry(J=J, J_inv=J_inv, detJ=detJ, weight=float(w_ref) * detJ)


def shape_funcs_current_elem(ref, xi, J_inv: np.ndarray, with_hessian: bool = False) -> ShapeValues:
    """Physical basis values, gradients and (optionally) Hessians of ``ref`` at ``xi``.

    Second derivatives drop the curvature term of the map, which is exact for
    affine cells.
    """
    xi = tuple(float(c) for c in xi)
    phi = ref.shape(*xi)
    phi_x = ref.grad(*xi) @ J_inv.T
    phi_xx = None
    if with_hessian:
        phi_xx = np.einsum('iab,ka,lb->ikl', ref.hess(*xi), J_inv, J_inv, optimize=True)
    return ShapeValues(phi=phi, phi_x=phi_x, phi_xx=phi_xx)


def outward_normal(J: np.ndarray, x_face: np.ndarray, x_cell: np.ndarray) -> np.ndarray:
    """Unit normal of a face with Jacobian ``J``, oriented away from ``x_cell``.

    Faces of 1-D cells (points) use the direction from the cell centre.
    """
    x_face = np.asarray(x_face, dtype=float)
    x_cell = np.asarray(x_cell, dtype=float)
    space_dim = x_face.shape[-1]
    if J.shape[0] == 0:
        n = x_face - x_cell
    elif space_dim == 2:
        t = J[0]
        n = np.array([t[1], -t[0]])
    elif space_dim == 3:
        n = np.cross(J[0], J[1])
    else:
        raise ValueError(f"No face normal in {space_dim} dimensions.")
    n = n / np.linalg.norm(n)
    if np.dot(n, x_face - x_cell) < 0.0:
        n = -n
    return n
