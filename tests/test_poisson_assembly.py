import numpy as np
import pytest
from pyfemasm.assembly import (Assembler, BoundaryCondition, CallbackBoundaryConditions,
                               GlobalSystem, PoissonKernel, RegionBoundaryConditions)
from pyfemasm.assembly.local_assembler import ElementContext, LocalBuffers, gather_snapshot
from pyfemasm.config import AssemblyOptions
from pyfemasm.core.dofhandler import DofHandler
from pyfemasm.core.solution import SolutionStore
from pyfemasm.fem.mixedelement import FieldSpec, MixedElement
from pyfemasm.utils.diagnostics import free_residual_norm
from pyfemasm.utils.meshgen import structured_line, structured_quad, structured_triangles


def poisson_setup(mesh, order=1, source=0.0, bcs=None, n_procs=1):
    dh = DofHandler(MixedElement([FieldSpec('u', order)]), mesh)
    sol = SolutionStore(dh)
    system = GlobalSystem(dh.total_dofs, n_procs=n_procs)
    kernel = PoissonKernel('u', source)
    asm = [Assembler(dh, sol, system, kernel, bcs, AssemblyOptions(quad_rule="fifth"),
                     rank=r, n_procs=n_procs) for r in range(n_procs)]
    return dh, sol, system, asm


def test_one_dimensional_scenario():
    mesh = structured_line(1.0, 1)
    bcs = RegionBoundaryConditions([BoundaryCondition('u', 'dirichlet', 1, 0.0),
                                    BoundaryCondition('u', 'neumann', 2, 2.0)])
    dh, sol, system, (asm,) = poisson_setup(mesh, bcs=bcs)
    asm.assemble(request_jacobian=True)
    assert np.allclose(system.residual, [0.0, 2.0])
    assert np.allclose(system.jacobian.toarray(), [[1.0, -1.0], [-1.0, 1.0]])

def test_one_dimensional_zero_flux_not_added():
    mesh = structured_line(1.0, 2)
    calls = []

    def bc(x, field, region, t):
        calls.append(region)
        return False, 0.0

    dh, sol, system, (asm,) = poisson_setup(mesh, bcs=CallbackBoundaryConditions(bc))
    sol.current[:] = [0.0, 0.5, 1.0]
    asm.assemble(request_jacobian=False)
    # u = x has zero interior residual; boundary rows carry -du/dn only
    assert np.allclose(system.residual, [1.0, 0.0, -1.0])
    assert sorted(calls) == [1, 2]

@pytest.mark.parametrize("make_mesh, order", [
    (lambda: structured_quad(1.0, 1.0, 2, 2, poly_order=2), 2),
    (lambda: structured_triangles(1.0, 2.0, 2, 1, poly_order=2), 2),
    (lambda: structured_quad(2.0, 1.0, 3, 2), 1),
])
def test_element_stiffness_symmetric(make_mesh, order):
    mesh = make_mesh()
    dh, sol, system, (asm,) = poisson_setup(mesh, order, source=lambda x: 2 * np.pi ** 2)
    asm.assemble(request_jacobian=True)
    K = system.jacobian.toarray()
    assert np.allclose(K, K.T, atol=1e-12)
    assert np.allclose(K.sum(axis=1), 0.0, atol=1e-12)
    # local blocks are symmetric too
    snap = gather_snapshot(dh, sol, 0)
    buf = LocalBuffers()
    buf.reset(snap)
    ctx = ElementContext(snap, dh.mixed_element, asm.registry, mesh.poly_order)
    asm.kernel.assemble_element(ctx, buf, asm.tape, True, asm.options)
    Ke = buf.jacobian
    assert np.allclose(Ke, Ke.T, atol=1e-13)

def test_jacobian_is_minus_residual_derivative(rng):
    mesh = structured_quad(1.0, 1.0, 2, 2)
    dh, sol, system, (asm,) = poisson_setup(mesh, source=1.0)
    sol.current[:] = rng.standard_normal(dh.total_dofs)
    asm.assemble(True)
    r0, K = system.residual.copy(), system.jacobian.toarray()
    du = rng.standard_normal(dh.total_dofs)
    sol.current += du
    asm.assemble(False)
    # the residual is affine in u
    assert np.allclose(system.residual - r0, -K @ du)

def test_idempotent_residual():
    mesh = structured_triangles(1.0, 1.0, 3, 3)
    bcs = RegionBoundaryConditions([BoundaryCondition('u', 'neumann', 3, lambda x, t: x[0])])
    dh, sol, system, (asm,) = poisson_setup(mesh, source=lambda x: x[1], bcs=bcs)
    sol.initialize('u', lambda x: np.cos(x[0]) * x[1])
    asm.assemble(request_jacobian=False)
    first = system.residual.copy()
    asm.assemble(request_jacobian=False)
    assert np.array_equal(first, system.residual)

def test_residual_pass_keeps_previous_jacobian():
    mesh = structured_quad(1.0, 1.0, 1, 1)
    dh, sol, system, (asm,) = poisson_setup(mesh)
    asm.assemble(True)
    K = system.jacobian
    asm.assemble(False)
    assert system.jacobian is K

def test_manufactured_residual_decreases_under_refinement():
    u_ex = lambda x: np.sin(np.pi * x[0]) * np.sin(np.pi * x[1])
    f = lambda x: 2 * np.pi ** 2 * u_ex(x)
    # outward flux on the top wall
    g = lambda x, t: -np.pi * np.sin(np.pi * x[0])
    bcs = RegionBoundaryConditions(
        [BoundaryCondition('u', 'dirichlet', r, 0.0) for r in (1, 2, 4)]
        + [BoundaryCondition('u', 'neumann', 3, g)])
    norms = []
    for n in (4, 8, 16):
        mesh = structured_quad(1.0, 1.0, n, n)
        dh, sol, system, (asm,) = poisson_setup(mesh, source=f, bcs=bcs)
        sol.initialize('u', u_ex)
        asm.assemble(request_jacobian=False)
        fixed = dh.get_dirichlet_data(bcs)
        norms.append(free_residual_norm(system.residual, fixed))
    assert norms[0] > norms[1] > norms[2]

def test_partitioned_assembly_matches_single_rank():
    mesh = structured_quad(1.0, 1.0, 3, 3)
    bcs = RegionBoundaryConditions([BoundaryCondition('u', 'neumann', 2, 1.5)])
    dh, sol, system, (asm,) = poisson_setup(mesh, source=lambda x: x[0] * x[1], bcs=bcs)
    sol.initialize('u', lambda x: x[0] ** 2)
    asm.assemble(True)
    r1, K1 = system.residual.copy(), system.jacobian.toarray()

    dh3, sol3, system3, ranks = poisson_setup(mesh, source=lambda x: x[0] * x[1], bcs=bcs,
                                              n_procs=3)
    sol3.initialize('u', lambda x: x[0] ** 2)
    ranks[0].assemble(True)
    ranks[1].assemble(True)
    assert not system3.vector_closed
    ranks[2].assemble(True)
    assert np.allclose(system3.residual, r1, atol=1e-13)
    assert np.allclose(system3.jacobian.toarray(), K1, atol=1e-13)

def test_assembler_checks_partition_and_fields():
    mesh = structured_quad(1.0, 1.0, 1, 1)
    dh = DofHandler(MixedElement([FieldSpec('u', 1)]), mesh)
    sol = SolutionStore(dh)
    with pytest.raises(KeyError):
        Assembler(dh, sol, GlobalSystem(dh.total_dofs), PoissonKernel('w'))
    with pytest.raises(ValueError):
        Assembler(dh, sol, GlobalSystem(dh.total_dofs, n_procs=2), PoissonKernel('u'))
    with pytest.raises(ValueError):
        Assembler(dh, sol, GlobalSystem(3), PoissonKernel('u'))
