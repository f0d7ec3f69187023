# pyfemasm.fem.reference
"""
Order-agnostic reference-element factory, plus the face tables that tie a
reference cell to its boundary faces.
"""
from functools import lru_cache
from importlib import import_module
import numpy as np

ELEMENT_DIM = {'point': 0, 'line': 1, 'tri': 2, 'quad': 2, 'tet': 3, 'hex': 3}

_FACE_TYPE = {'line': 'point', 'tri': 'line', 'quad': 'line', 'tet': 'tri', 'hex': 'quad'}

# Affine maps  xi_elem = A @ xi_face + b  (face reference -> element reference).
# Quad/hex faces run counter-clockwise seen from outside; tri edges are
# (0,1), (1,2), (2,0) over the face reference line [-1, 1].
_FACE_MAPS = {
    'line': [
        ([[]], [-1.0]),
        ([[]], [1.0]),
    ],
    'quad': [
        ([[1.0], [0.0]], [0.0, -1.0]),     # bottom
        ([[0.0], [1.0]], [1.0, 0.0]),      # right
        ([[-1.0], [0.0]], [0.0, 1.0]),     # top
        ([[0.0], [-1.0]], [-1.0, 0.0]),    # left
    ],
    'tri': [
        ([[0.5], [0.0]], [0.5, 0.0]),
        ([[-0.5], [0.5]], [0.5, 0.5]),
        ([[0.0], [-0.5]], [0.0, 0.5]),
    ],
    'hex': [
        ([[1, 0], [0, 1], [0, 0]], [0.0, 0.0, -1.0]),   # z-
        ([[1, 0], [0, 0], [0, 1]], [0.0, -1.0, 0.0]),   # y-
        ([[0, 0], [1, 0], [0, 1]], [1.0, 0.0, 0.0]),    # x+
        ([[1, 0], [0, 0], [0, 1]], [0.0, 1.0, 0.0]),    # y+
        ([[0, 0], [1, 0], [0, 1]], [-1.0, 0.0, 0.0]),   # x-
        ([[1, 0], [0, 1], [0, 0]], [0.0, 0.0, 1.0]),    # z+
    ],
    'tet': [
        ([[1, 0], [0, 1], [0, 0]], [0.0, 0.0, 0.0]),    # z = 0
        ([[1, 0], [0, 0], [0, 1]], [0.0, 0.0, 0.0]),    # y = 0
        ([[0, 0], [1, 0], [0, 1]], [0.0, 0.0, 0.0]),    # x = 0
        ([[-1, -1], [1, 0], [0, 1]], [1.0, 0.0, 0.0]),  # x + y + z = 1
    ],
}

_REF_CENTROID = {
    'point': [], 'line': [0.0], 'quad': [0.0, 0.0], 'hex': [0.0, 0.0, 0.0],
    'tri': [1 / 3, 1 / 3], 'tet': [0.25, 0.25, 0.25],
}


class Ref:
    """Basis functions of one (element_type, order, family) triple.

    All evaluators take the reference coordinates as separate scalars so the
    results can be cached per point.
    """

    def __init__(self, element_type, order, family, shape_lambda, deriv_lambdas, nodes=None):
        self.element_type = element_type
        self.order = order
        self.family = family
        self.dim = ELEMENT_DIM[element_type]
        self.shape_lambda = shape_lambda
        self.deriv_lambdas = deriv_lambdas
        self.nodes = nodes
        self.n_basis = len(self.shape(*_REF_CENTROID[element_type]))

    def __repr__(self):
        return f"Ref({self.element_type!r}, order={self.order}, family={self.family!r})"

    @lru_cache(maxsize=None)
    def shape(self, *xi):
        if self.dim == 0:
            return np.ones(1)
        return np.asarray(self.shape_lambda(*xi), dtype=float).ravel()

    @lru_cache(maxsize=None)
    def derivative(self, xi, alpha):
        alpha = tuple(alpha)
        if alpha not in self.deriv_lambdas:
            raise ValueError(f"Derivative order {alpha} not computed. "
                             f"Adjust max_deriv_order >= {sum(alpha)}.")
        return np.asarray(self.deriv_lambdas[alpha](*xi), dtype=float).ravel()

    @lru_cache(maxsize=None)
    def grad(self, *xi):
        """(n_basis, dim) reference gradients."""
        cols = []
        for a in range(self.dim):
            alpha = [0] * self.dim
            alpha[a] = 1
            cols.append(self.derivative(xi, tuple(alpha)))
        return np.stack(cols, axis=1) if cols else np.zeros((self.n_basis, 0))

    @lru_cache(maxsize=None)
    def hess(self, *xi):
        """(n_basis, dim, dim) reference Hessians."""
        H = np.empty((self.n_basis, self.dim, self.dim), dtype=float)
        for a in range(self.dim):
            for b in range(a, self.dim):
                alpha = [0] * self.dim
                alpha[a] += 1
                alpha[b] += 1
                d = self.derivative(xi, tuple(alpha))
                H[:, a, b] = d
                H[:, b, a] = d
        return H


@lru_cache(maxsize=None)
def get_reference(element_type: str, poly_order: int = 1, family: str = "lagrange",
                  max_deriv_order: int = 2):
    dim = ELEMENT_DIM.get(element_type)
    if dim is None:
        raise KeyError(element_type)
    if element_type == "point":
        return Ref("point", 0, family, None, {}, np.zeros((1, 0)))
    if family == "dg":
        shape_l, deriv_lambdas, nodes = import_module(
            "pyfemasm.fem.reference.dg_pn").dg_pn(poly_order, dim, max_deriv_order)
    elif family != "lagrange":
        raise ValueError(f"Unknown element family '{family}'.")
    elif element_type in ("line", "quad", "hex"):
        shape_l, deriv_lambdas, nodes = import_module(
            "pyfemasm.fem.reference.quad_qn").tensor_qn(poly_order, dim, max_deriv_order)
    else:
        shape_l, deriv_lambdas, nodes = import_module(
            "pyfemasm.fem.reference.tri_pn").simplex_pn(poly_order, dim, max_deriv_order)
    return Ref(element_type, poly_order, family, shape_l, deriv_lambdas, nodes)


# -------------------------------------------------------------------------
# Face tables
# -------------------------------------------------------------------------
def face_type(element_type: str) -> str:
    try:
        return _FACE_TYPE[element_type]
    except KeyError:
        raise KeyError(element_type) from None

def n_faces(element_type: str) -> int:
    return len(_FACE_MAPS[element_type])

@lru_cache(maxsize=None)
def face_map(element_type: str, face: int):
    """(A, b) with ``xi_elem = A @ xi_face + b``."""
    faces = _FACE_MAPS[element_type]
    if not 0 <= face < len(faces):
        raise IndexError(f"Element type '{element_type}' has no face {face}.")
    A, b = faces[face]
    A = np.asarray(A, dtype=float).reshape(ELEMENT_DIM[element_type], -1)
    return A, np.asarray(b, dtype=float)

def match_nodes(points, ref_nodes, tol: float = 1e-10):
    """Index into ``ref_nodes`` of every row of ``points`` (exact lattice match)."""
    idx = []
    for p in np.atleast_2d(points):
        d = np.linalg.norm(ref_nodes - p, axis=1)
        k = int(np.argmin(d))
        if d[k] > tol:
            raise ValueError(f"Reference point {p} is not a node of the lattice.")
        idx.append(k)
    return np.asarray(idx, dtype=int)

@lru_cache(maxsize=None)
def face_local_nodes(element_type: str, face: int, poly_order: int = 1,
                     host_order: int = None, family: str = "lagrange"):
    """Local node numbers (in the element lattice of ``host_order``) lying on ``face``.

    ``poly_order`` selects which face lattice is collected, so
    ``face_local_nodes('quad', f, 1, 2)`` gives the corners of a face of a Q2
    cell. Discontinuous families have no face nodes.
    """
    if family == "dg":
        return tuple()
    host_order = poly_order if host_order is None else host_order
    host = get_reference(element_type, host_order)
    A, b = face_map(element_type, face)
    ft = face_type(element_type)
    if ft == "point":
        pts = b.reshape(1, -1)
    else:
        pts = get_reference(ft, poly_order).nodes @ A.T + b
    return tuple(match_nodes(pts, host.nodes).tolist())
