import logging

import numpy as np
import pytest
from pyfemasm.assembly import (Assembler, BoundaryCondition, CallbackBoundaryConditions,
                               GlobalSystem, PoissonKernel, RegionBoundaryConditions)
from pyfemasm.assembly.boundary import neumann_loop
from pyfemasm.assembly.local_assembler import ElementContext, LocalBuffers, gather_snapshot
from pyfemasm.core.dofhandler import DofHandler
from pyfemasm.core.solution import SolutionStore
from pyfemasm.fem.mixedelement import FieldSpec, MixedElement
from pyfemasm.integration import QuadratureRegistry
from pyfemasm.utils.meshgen import (structured_hex, structured_quad, structured_tets,
                                    structured_triangles)


def residual_with(mesh, bcs, order=1, neumann=True, init=None):
    dh = DofHandler(MixedElement([FieldSpec('u', order)]), mesh)
    sol = SolutionStore(dh)
    if init is not None:
        sol.initialize('u', init)
    system = GlobalSystem(dh.total_dofs)
    kernel = PoissonKernel('u', source=lambda x: 1.0 + x[0])
    if not neumann:
        kernel.neumann_fields = ()
    Assembler(dh, sol, system, kernel, bcs).assemble(False)
    return dh, system.residual.copy()


class TestEnclosedDirichlet:
    def test_no_flux_when_every_face_is_dirichlet(self):
        mesh = structured_quad(1.0, 1.0, 1, 1, poly_order=2)
        calls = []

        def all_dirichlet(x, field, region, t):
            calls.append(region)
            return True, 5.0

        init = lambda x: x[0] * (1 - x[1])
        _, with_loop = residual_with(mesh, CallbackBoundaryConditions(all_dirichlet), 2, init=init)
        _, volume_only = residual_with(mesh, None, 2, neumann=False, init=init)
        assert sorted(calls) == [1, 2, 3, 4]
        assert np.array_equal(with_loop, volume_only)

    def test_unmatched_region_is_natural(self, caplog):
        mesh = structured_triangles(1.0, 1.0, 2, 2)
        bcs = RegionBoundaryConditions([BoundaryCondition('u', 'neumann', 42, 1.0)])
        with caplog.at_level(logging.DEBUG, logger="pyfemasm.assembly.boundary_conditions"):
            _, natural = residual_with(mesh, bcs)
        _, volume_only = residual_with(mesh, None, neumann=False)
        assert np.allclose(natural, volume_only, atol=1e-15)
        assert "No boundary condition" in caplog.text

    def test_region_rule_lookup(self):
        bcs = RegionBoundaryConditions([BoundaryCondition('u', 'dirichlet', 1, lambda x, t: x[0] * t)])
        assert bcs.evaluate(np.array([2.0, 0.0]), 'u', 1, 3.0) == (True, 6.0)
        assert bcs.evaluate(np.array([2.0, 0.0]), 'u', 2, 3.0) == (False, 0.0)
        with pytest.raises(ValueError):
            bcs.add(BoundaryCondition('u', 'neumann', 1, 0.0))
        with pytest.raises(ValueError):
            BoundaryCondition('u', 'robin', 1)


@pytest.mark.parametrize("mesh, region, measure", [
    (structured_quad(1.0, 2.0, 2, 3), 2, 2.0),
    (structured_quad(1.0, 1.0, 2, 2, poly_order=2), 3, 1.0),
    (structured_triangles(2.0, 1.0, 2, 2, poly_order=2), 1, 2.0),
    (structured_hex(1.0, 1.0, 2.0, 1, 2, 2), 6, 1.0),
    (structured_tets(1.0, 2.0, 1.0, 1, 1, 1), 2, 1.0),
])
def test_flux_integrates_to_face_measure(mesh, region, measure):
    g = 3.0
    bcs = RegionBoundaryConditions([BoundaryCondition('u', 'neumann', region, g)])
    dh, with_flux = residual_with(mesh, bcs, order=mesh.poly_order)
    _, volume_only = residual_with(mesh, None, order=mesh.poly_order, neumann=False)
    diff = with_flux - volume_only
    assert np.isclose(diff.sum(), g * measure)
    # only DOFs on the loaded boundary receive flux
    touched = set()
    for eid, lf, r in mesh.boundary_faces(region):
        touched |= set(dh.face_dofs('u', eid, lf).tolist())
    untouched = np.setdiff1d(np.arange(dh.total_dofs), sorted(touched))
    assert np.allclose(diff[untouched], 0.0)

def test_flux_evaluated_at_face_centroid():
    mesh = structured_quad(1.0, 1.0, 1, 1)
    seen = []

    def bc(x, field, region, t):
        seen.append((region, tuple(np.round(x, 12))))
        return False, (x[0] if region == 1 else 0.0)

    _, with_flux = residual_with(mesh, CallbackBoundaryConditions(bc))
    _, volume_only = residual_with(mesh, None, neumann=False)
    assert (1, (0.5, 0.0)) in seen
    # constant g = 0.5 on the bottom edge: half of it to each bottom node
    assert np.allclose((with_flux - volume_only)[[0, 1]], [0.25, 0.25])

def test_neumann_loop_skips_dg_fields_and_never_touches_jacobian():
    mesh = structured_quad(1.0, 1.0, 1, 1, poly_order=2)
    me = MixedElement([FieldSpec('u', 2), FieldSpec('p', 1, 'dg')])
    dh = DofHandler(me, mesh)
    sol = SolutionStore(dh)
    bcs = RegionBoundaryConditions([BoundaryCondition(f, 'neumann', r, 1.0)
                                    for f in ('u', 'p') for r in (1, 2, 3, 4)])
    snap = gather_snapshot(dh, sol, 0)
    buf = LocalBuffers()
    buf.reset(snap)
    buf.jacobian[:] = 7.0
    ctx = ElementContext(snap, me, QuadratureRegistry(5), mesh.poly_order)
    neumann_loop(mesh, ctx, bcs, ('u', 'p'), buf)
    assert np.isclose(buf.block('u').sum(), 4.0)
    assert np.allclose(buf.block('p'), 0.0)
    assert np.all(buf.jacobian == 7.0)
