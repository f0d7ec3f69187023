"""SymPy → NumPy lambdification shared by all reference families."""
from itertools import product

import sympy as sp

SYMBOLS = sp.symbols('xi eta zeta')


def lambdify_basis(basis, syms, max_deriv_order: int):
    """Return (shape_fn, deriv_fns) for a list of symbolic basis functions.

    ``deriv_fns`` is keyed by the multi-index of the derivative, one entry per
    coordinate; the zero multi-index maps to the shape function itself.
    """
    shape_lambda = sp.lambdify(syms, sp.Matrix(basis), "numpy")
    deriv_lambdas = {(0,) * len(syms): shape_lambda}
    for alpha in product(range(max_deriv_order + 1), repeat=len(syms)):
        if not 0 < sum(alpha) <= max_deriv_order:
            continue
        exprs = []
        for phi in basis:
            d = phi
            for s, k in zip(syms, alpha):
                if k:
                    d = sp.diff(d, s, k)
            exprs.append(sp.expand(d))
        deriv_lambdas[alpha] = sp.lambdify(syms, sp.Matrix(exprs), "numpy")
    return shape_lambda, deriv_lambdas
