"""Tensor-product Lagrange families: lines (P_n), quads (Q_n) and hexes (Q_n)
on the reference cube [-1, 1]^d with equispaced nodes."""
from functools import lru_cache
from itertools import product

import numpy as np
import sympy as sp

from ._symbolic import SYMBOLS, lambdify_basis


@lru_cache(maxsize=None)
def _lagrange_basis_1d(n: int):
    """Equispaced nodes on [-1,1] and the symbolic 1-D Lagrange polynomials."""
    x = sp.Symbol('x')
    nodes = np.linspace(-1.0, 1.0, n + 1)
    snodes = [sp.Rational(2 * i, n) - 1 for i in range(n + 1)]
    L = []
    for i, xi in enumerate(snodes):
        num = sp.Integer(1)
        den = sp.Integer(1)
        for j, xj in enumerate(snodes):
            if i == j:
                continue
            num *= (x - xj)
            den *= (xi - xj)
        L.append(sp.expand(num / den))
    return x, nodes, L


@lru_cache(maxsize=None)
def tensor_qn(n: int, dim: int, max_deriv_order: int = 2):
    """
    Tensor-product Q_n in ``dim`` dimensions.
    Returns: (shape_fn, deriv_fns, nodes) where
      shape_fn(*xi) -> ((n+1)^dim, )
      deriv_fns[alpha](*xi) -> ((n+1)^dim, ), sum(alpha) <= max_deriv_order
      nodes -> ((n+1)^dim, dim) reference node coordinates
    Stacking order is lexicographic with the first coordinate running fastest:
    index = k*(n+1)^2 + j*(n+1) + i
    """
    if n < 1:
        raise ValueError("Tensor-product Lagrange order must be >= 1.")
    x, nodes1d, L = _lagrange_basis_1d(n)
    syms = SYMBOLS[:dim]
    basis, nodes = [], []
    for rev in product(range(n + 1), repeat=dim):
        idx = rev[::-1]           # last coordinate outermost
        phi = sp.Integer(1)
        for d, i in enumerate(idx):
            phi *= L[i].subs(x, syms[d])
        basis.append(phi)
        nodes.append([nodes1d[i] for i in idx])
    shape, derivs = lambdify_basis(basis, syms, max_deriv_order)
    return shape, derivs, np.array(nodes, dtype=float)
