from functools import lru_cache

import numpy as np
import sympy as sp

from ._symbolic import SYMBOLS, lambdify_basis


@lru_cache(maxsize=None)
def simplex_pn(n: int, dim: int, max_deriv_order: int = 2):
    """
    Lagrange P_n on the unit reference simplex (triangle for dim=2,
    tetrahedron for dim=3) built from a monomial Vandermonde system.

    Args:
        n: Polynomial order of the element.
        dim: 2 or 3.
        max_deriv_order: Maximum total derivative order to compute (default 2).

    Returns:
        tuple: (shape_lambda, deriv_lambdas, nodes)
            - shape_lambda: Callable giving [phi_1, ..., phi_N] at a reference point.
            - deriv_lambdas: Dict keyed by derivative multi-index.
            - nodes: (N, dim) reference node coordinates, ordered with the
              first coordinate running fastest.
    """
    if n < 0:
        raise ValueError("Polynomial order n must be non-negative.")
    if dim not in (2, 3):
        raise ValueError(f"Simplex dimension must be 2 or 3, got {dim}.")
    syms = SYMBOLS[:dim]

    # 1. Nodal lattice
    if n == 0:
        nodes_ref = [tuple(sp.Rational(1, dim + 1) for _ in range(dim))]
    elif dim == 2:
        nodes_ref = [(sp.Rational(i, n), sp.Rational(j, n))
                     for j in range(n + 1) for i in range(n + 1 - j)]
    else:
        nodes_ref = [(sp.Rational(i, n), sp.Rational(j, n), sp.Rational(k, n))
                     for k in range(n + 1) for j in range(n + 1 - k) for i in range(n + 1 - j - k)]

    # 2. Monomials of total degree <= n
    if dim == 2:
        powers = [(a, t - a) for t in range(n + 1) for a in range(t + 1)]
    else:
        powers = [(a, b, t - a - b) for t in range(n + 1)
                  for a in range(t + 1) for b in range(t + 1 - a)]
    monomials = []
    for pw in powers:
        m = sp.Integer(1)
        for s, p in zip(syms, pw):
            m *= s ** p
        monomials.append(m)
    if len(monomials) != len(nodes_ref):
        raise RuntimeError(f"Internal error: {len(nodes_ref)} nodes but {len(monomials)} "
                           f"monomials for simplex order n={n}.")

    # 3. Vandermonde V[i, j] = m_j(node_i); Lagrange coefficients are V^{-1}
    V = sp.Matrix([[m.subs(dict(zip(syms, nd))) for m in monomials] for nd in nodes_ref])
    try:
        C = V.inv()
    except ValueError as exc:
        raise RuntimeError(f"Vandermonde matrix is singular for simplex order n={n}.") from exc

    mono = sp.Matrix(monomials)
    basis = [sp.expand((C[:, k].T * mono)[0, 0]) for k in range(len(monomials))]
    shape, derivs = lambdify_basis(basis, syms, max_deriv_order)
    nodes = np.array([[float(c) for c in nd] for nd in nodes_ref], dtype=float)
    return shape, derivs, nodes
