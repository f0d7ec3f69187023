"""Scalar diffusion  -Δu = f  with an analytic Jacobian.

Sign convention: ``Res = f φ - ∇u·∇φ`` (+ boundary flux), ``Jac = ∂(-Res)/∂u``
so that a Newton step solves ``Jac δ = Res``.
"""
from typing import Callable, Union

import numpy as np

from pyfemasm.assembly.kernels.base import LocalKernel
from pyfemasm.assembly.local_assembler import interpolate_grad


class PoissonKernel(LocalKernel):
    uses_tape = False

    def __init__(self, field: str = "u", source: Union[float, Callable[[np.ndarray], float]] = 0.0):
        self.field = field
        self.fields = (field,)
        self.neumann_fields = (field,)
        self.source = source

    def _f(self, x) -> float:
        return float(self.source(x)) if callable(self.source) else float(self.source)

    def assemble_element(self, ctx, buffers, tape, need_jacobian, options):
        sl = buffers.slices[self.field]
        u = ctx.snapshot.values[self.field]
        res = buffers.residual[sl]
        for qp in ctx.volume_points():
            sv = qp.shapes[self.field]
            w = qp.geom.weight
            grad_u = interpolate_grad(sv.phi_x, u)
            res += w * (sv.phi * self._f(qp.x) - sv.phi_x @ grad_u)
            if need_jacobian:
                buffers.jacobian[sl, sl] += w * (sv.phi_x @ sv.phi_x.T)
