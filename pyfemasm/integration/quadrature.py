"""pyfemasm.integration.quadrature
Unified quadrature provider for points, lines, triangles, quads, tets and hexes.
"""
import numpy as np
from functools import lru_cache
from numpy.polynomial.legendre import leggauss

from pyfemasm.fem.reference import face_map, face_type


# -------------------------------------------------------------------------
# 1‑D Gauss–Legendre
# -------------------------------------------------------------------------
def gauss_legendre(order: int):
    if order < 1:
        raise ValueError(order)
    return leggauss(order)  # (points, weights)

def _gl01(order: int):
    """Gauss–Legendre nodes and weights mapped to [0,1]."""
    xi, w = gauss_legendre(int(order))
    return 0.5 * (xi + 1.0), 0.5 * w

# -------------------------------------------------------------------------
# Tensor‑product construction helpers
# -------------------------------------------------------------------------
@lru_cache(maxsize=None)
def point_rule():
    return np.zeros((1, 0)), np.ones(1)

@lru_cache(maxsize=None)
def line_rule(order: int):
    xi, wi = gauss_legendre(order)
    return xi.reshape(-1, 1), wi

@lru_cache(maxsize=None)
def quad_rule(order: int):
    xi, wi = gauss_legendre(order)
    # eta outer, xi inner (same lattice ordering as the Qn basis)
    pts = np.array([[x, y] for y in xi for x in xi])
    wts = np.array([wx * wy for wy in wi for wx in wi])
    return pts, wts

@lru_cache(maxsize=None)
def hex_rule(order: int):
    xi, wi = gauss_legendre(order)
    pts = np.array([[x, y, z] for z in xi for y in xi for x in xi])
    wts = np.array([wx * wy * wz for wz in wi for wy in wi for wx in wi])
    return pts, wts

@lru_cache(maxsize=None)
def tri_rule(order: int):
    """Collapsed (Duffy) Gauss rule on the reference triangle (0,0)-(1,0)-(0,1)."""
    u, w_u = _gl01(order)
    pts, wts = [], []
    for i, ui in enumerate(u):
        for j, vj in enumerate(u):
            pts.append([ui, vj * (1.0 - ui)])
            wts.append(w_u[i] * w_u[j] * (1.0 - ui))
    return np.array(pts), np.array(wts)

@lru_cache(maxsize=None)
def tet_rule(order: int):
    """Collapsed Gauss rule on the reference tetrahedron with unit legs."""
    u, w_u = _gl01(order)
    pts, wts = [], []
    for i, ui in enumerate(u):
        for j, vj in enumerate(u):
            for k, wk in enumerate(u):
                pts.append([ui, vj * (1.0 - ui), wk * (1.0 - ui) * (1.0 - vj)])
                wts.append(w_u[i] * w_u[j] * w_u[k] * (1.0 - ui) ** 2 * (1.0 - vj))
    return np.array(pts), np.array(wts)

# -------------------------------------------------------------------------
# Public API
# -------------------------------------------------------------------------
_RULES = {
    'line': line_rule,
    'tri':  tri_rule,
    'quad': quad_rule,
    'tet':  tet_rule,
    'hex':  hex_rule,
}

def volume(element_type: str, order: int = 2):
    if element_type == 'point':
        return point_rule()
    try:
        return _RULES[element_type](int(order))
    except KeyError:
        raise KeyError(element_type) from None

def facet(element_type: str, face_index: int, order: int = 2):
    """Face rule expressed in the *element* reference coordinates.

    Weights are those of the face reference element; the face metric is
    applied later by the geometry evaluator.
    """
    pts_f, wts = volume(face_type(element_type), order)
    A, b = face_map(element_type, face_index)
    return pts_f @ A.T + b, wts

def points_for_degree(element_type: str, degree: int) -> int:
    """Gauss points per direction integrating degree ``degree`` exactly."""
    # the collapsed maps add (1-u) factors to the integrand
    extra = {'tri': 1, 'tet': 2}.get(element_type, 0)
    return max(1, (int(degree) + extra) // 2 + 1)


class QuadratureRule:
    """Fixed integration points and weights for one reference shape."""

    __slots__ = ("element_type", "points", "weights")

    def __init__(self, element_type: str, points: np.ndarray, weights: np.ndarray):
        self.element_type = element_type
        self.points = points
        self.weights = weights

    @property
    def n_points(self) -> int:
        return len(self.weights)

    def __iter__(self):
        return iter(zip(self.points, self.weights))

    def __repr__(self):
        return f"QuadratureRule({self.element_type!r}, n_points={self.n_points})"


class QuadratureRegistry:
    """Per-geometry-type quadrature rules of a common degree of exactness."""

    def __init__(self, degree: int):
        self.degree = int(degree)
        self._rules: dict[str, QuadratureRule] = {}

    def rule(self, element_type: str) -> QuadratureRule:
        rule = self._rules.get(element_type)
        if rule is None:
            order = points_for_degree(element_type, self.degree)
            pts, wts = volume(element_type, order)
            rule = QuadratureRule(element_type, pts, wts)
            self._rules[element_type] = rule
        return rule

    __getitem__ = rule

