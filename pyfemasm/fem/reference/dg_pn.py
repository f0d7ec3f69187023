"""Discontinuous monomial bases of total degree <= n (pressure-type spaces)."""
from functools import lru_cache

import sympy as sp

from ._symbolic import SYMBOLS, lambdify_basis


@lru_cache(maxsize=None)
def dg_pn(n: int, dim: int, max_deriv_order: int = 2):
    """{1, xi, eta, ...} up to total degree n in reference coordinates.

    The coefficients are element-local, so the family carries no nodes.
    """
    if n < 0:
        raise ValueError("Polynomial order n must be non-negative.")
    syms = SYMBOLS[:dim]
    basis = [sp.Integer(1)]
    for t in range(1, n + 1):
        if dim == 1:
            basis.append(syms[0] ** t)
        elif dim == 2:
            basis += [syms[0] ** (t - a) * syms[1] ** a for a in range(t + 1)]
        else:
            basis += [syms[0] ** (t - a - b) * syms[1] ** a * syms[2] ** b
                      for a in range(t + 1) for b in range(t + 1 - a)]
    shape, derivs = lambdify_basis(basis, syms, max_deriv_order)
    return shape, derivs, None
