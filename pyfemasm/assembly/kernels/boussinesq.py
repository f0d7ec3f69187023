"""Transient Boussinesq approximation (temperature, velocity, pressure).

Trapezoidal (Crank-Nicolson) time discretisation. The adjoint residual
``aRes`` is a ``jax.numpy`` function of the concatenated local unknowns
``T, U, V, [W], P``; the local residual written to the buffers is ``-aRes``
and the local Jacobian is ``d aRes / d u``, taken on the
:class:`~pyfemasm.autodiff.tape.Tape`.
"""
import logging
from typing import Optional, Sequence

import jax.numpy as jnp
import numpy as np

from pyfemasm.assembly.kernels.base import LocalKernel
from pyfemasm.config import BoussinesqParameters

logger = logging.getLogger(__name__)


def _fluxes(t, vs, p, tab, kappa, nu, beta):
    """Point values and fluxes F_T, F_V of one time level.

    ``t``, ``vs[k]`` and ``p`` are nodal coefficient vectors; every returned
    array has the quadrature points on its first axis.
    """
    dim = len(vs)
    phiT, dT = tab["phiT"], tab["dphiT"]
    phiV, dV = tab["phiV"], tab["dphiV"]
    Tq = phiT @ t
    gT = jnp.einsum('qid,i->qd', dT, t)
    Vq = [phiV @ v for v in vs]
    gV = [jnp.einsum('qid,i->qd', dV, v) for v in vs]
    Pq = tab["phiP"] @ p

    adv = sum(Vq[j] * gT[:, j] for j in range(dim))
    FT = kappa * jnp.einsum('qid,qd->qi', dT, gT) + phiT * adv[:, None]
    FV = []
    for k in range(dim):
        sym = jnp.stack([gV[k][:, j] + gV[j][:, k] for j in range(dim)], axis=1)
        conv = sum(Vq[j] * gV[k][:, j] for j in range(dim))
        F = nu * jnp.einsum('qid,qd->qi', dV, sym) + phiV * conv[:, None]
        F = F - Pq[:, None] * dV[:, :, k]
        if k == 1:
            F = F - beta * Tq[:, None] * phiV
        FV.append(F)
    div = sum(gV[k][:, k] for k in range(dim))
    return Tq, Vq, div, FT, FV


def boussinesq_residual(u, tab, kappa, nu, beta, dt):
    """aRes of one element as a function of the local unknowns ``u``.

    ``tab`` holds the quadrature tables (basis values and physical gradients
    per point, weights) and the previous-step nodal values.
    """
    nT = tab["phiT"].shape[1]
    nV = tab["phiV"].shape[1]
    dim = tab["dphiV"].shape[2]
    w = tab["w"]
    t = u[:nT]
    vs = [u[nT + k * nV: nT + (k + 1) * nV] for k in range(dim)]
    p = u[nT + dim * nV:]
    vs_old = [tab["V_old"][k] for k in range(dim)]

    Tq, Vq, div, FT, FV = _fluxes(t, vs, p, tab, kappa, nu, beta)
    Tq_old, Vq_old, _, FT_old, FV_old = _fluxes(tab["T_old"], vs_old, tab["P_old"], tab,
                                                kappa, nu, beta)

    phiT, phiV = tab["phiT"], tab["phiV"]
    aT = jnp.einsum('q,qi->i', w, -(Tq - Tq_old)[:, None] * phiT / dt - 0.5 * (FT + FT_old))
    aV = [jnp.einsum('q,qi->i', w, -(Vq[k] - Vq_old[k])[:, None] * phiV / dt
                     - 0.5 * (FV[k] + FV_old[k]))
          for k in range(dim)]
    aP = jnp.einsum('q,qi->i', w, -div[:, None] * tab["phiP"])
    return jnp.concatenate([aT, *aV, aP])


class BoussinesqKernel(LocalKernel):
    """Local residual/Jacobian of the coupled T, V, P system.

    ``velocity`` lists the velocity component fields (2 or 3); buoyancy acts
    on the second one.
    """
    uses_tape = True
    neumann_fields = ()

    def __init__(self, params: Optional[BoussinesqParameters] = None,
                 temperature: str = "T", velocity: Sequence[str] = ("U", "V"),
                 pressure: str = "P"):
        if len(velocity) not in (2, 3):
            raise ValueError(f"Expected 2 or 3 velocity components, got {len(velocity)}.")
        self.params = params or BoussinesqParameters()
        self.temperature = temperature
        self.velocity = tuple(velocity)
        self.pressure = pressure
        self.fields = (temperature, *self.velocity, pressure)

    def check_options(self, options):
        if options.dt <= 0.0:
            raise ValueError(f"Time step must be positive, got dt={options.dt}.")

    def tables(self, ctx) -> dict:
        """Quadrature tables of one element, points stacked on the first axis."""
        snap = ctx.snapshot
        Tn, Pn, V0 = self.temperature, self.pressure, self.velocity[0]
        phiT, dphiT, phiV, dphiV, phiP, w = [], [], [], [], [], []
        for qp in ctx.volume_points():
            phiT.append(qp.shapes[Tn].phi)
            dphiT.append(qp.shapes[Tn].phi_x)
            phiV.append(qp.shapes[V0].phi)
            dphiV.append(qp.shapes[V0].phi_x)
            phiP.append(qp.shapes[Pn].phi)
            w.append(qp.geom.weight)
        return {
            "phiT": np.array(phiT), "dphiT": np.array(dphiT),
            "phiV": np.array(phiV), "dphiV": np.array(dphiV),
            "phiP": np.array(phiP), "w": np.array(w),
            "T_old": snap.old_values[Tn],
            "V_old": np.array([snap.old_values[v] for v in self.velocity]),
            "P_old": snap.old_values[Pn],
        }

    def assemble_element(self, ctx, buffers, tape, need_jacobian, options):
        snap = ctx.snapshot
        dim = len(self.velocity)
        if snap.coords.shape[1] != dim:
            raise ValueError(f"{dim} velocity components on a {snap.coords.shape[1]}-D mesh.")
        p = self.params

        u = tape.independent(np.concatenate([snap.values[f] for f in self.fields]))
        a_res = tape.dependent(boussinesq_residual, self.tables(ctx),
                               p.thermal_diffusivity, p.viscosity, p.beta, options.dt)

        start = 0
        for name in self.fields:
            n = len(snap.values[name])
            buffers.residual[buffers.slices[name]] = -a_res[start:start + n]
            start += n

        if need_jacobian:
            # the kernel fields must cover the whole local buffer
            n_local = buffers.n_local
            buffers.jacobian[:, :] = self._to_buffer_order(
                tape.jacobian(shape=(n_local, n_local)), buffers)
        logger.debug("elem %d: %d kernel unknowns", snap.elem_id, len(u))

    def _to_buffer_order(self, J, buffers):
        """Rows and columns of ``J`` moved from kernel field order to buffer order."""
        perm = np.concatenate([np.arange(buffers.n_local)[buffers.slices[f]] for f in self.fields])
        out = np.empty_like(J)
        out[np.ix_(perm, perm)] = J
        return out
