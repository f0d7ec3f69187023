"""pyfemasm.assembly.engine
Driver of one assembly pass over the elements owned by a rank.
"""
import logging
from typing import Optional

from pyfemasm.assembly.boundary import neumann_loop, neumann_loop_1d
from pyfemasm.assembly.boundary_conditions import RegionBoundaryConditions
from pyfemasm.assembly.global_matrix import GlobalSystem
from pyfemasm.assembly.local_assembler import ElementContext, LocalBuffers, gather_snapshot
from pyfemasm.autodiff.tape import Tape
from pyfemasm.config import AssemblyOptions
from pyfemasm.integration.quadrature import QuadratureRegistry

logger = logging.getLogger(__name__)


class Assembler:
    """Assembles the residual (and optionally the Jacobian) of ``kernel``.

    Each assembler owns one tape and one set of local buffers and handles the
    contiguous element range of ``rank`` among ``n_procs``; the shared
    :class:`GlobalSystem` sums the ranks when they all close.
    """

    def __init__(self, dof_handler, solution, system: GlobalSystem, kernel, bcs=None,
                 options: Optional[AssemblyOptions] = None, *, rank: int = 0, n_procs: int = 1,
                 tape: Optional[Tape] = None, registry: Optional[QuadratureRegistry] = None):
        self.dof_handler = dof_handler
        self.mesh = dof_handler.mesh
        self.solution = solution
        self.system = system
        self.kernel = kernel
        self.bcs = bcs if bcs is not None else RegionBoundaryConditions()
        self.options = options or AssemblyOptions()
        self.rank = int(rank)
        self.n_procs = int(n_procs)
        self.tape = tape if tape is not None else Tape()
        self.registry = registry or QuadratureRegistry(self.options.quad_degree())
        self.buffers = LocalBuffers()

        missing = [f for f in kernel.fields if f not in dof_handler.field_names]
        if missing:
            raise KeyError(f"Kernel fields {missing} are not defined by the DOF handler.")
        if system.n_dofs != dof_handler.total_dofs:
            raise ValueError(f"Global system has {system.n_dofs} rows, "
                             f"DOF handler numbers {dof_handler.total_dofs}.")
        if system.n_procs != self.n_procs:
            raise ValueError(f"Global system expects {system.n_procs} ranks, assembler uses {self.n_procs}.")
        if self.registry.degree < 2 * dof_handler.mixed_element.max_order() - 2:
            logger.warning("Quadrature degree %d under-integrates order-%d fields",
                           self.registry.degree, dof_handler.mixed_element.max_order())

    def assemble(self, request_jacobian: bool) -> GlobalSystem:
        need_jacobian = bool(request_jacobian)
        self.kernel.check_options(self.options)
        owned = self.mesh.owned_elements(self.rank, self.n_procs)
        logger.info("Assembly pass rank %d/%d: elements [%d, %d), jacobian=%s",
                    self.rank, self.n_procs, owned.start, owned.stop, need_jacobian)

        self.system.zero(self.rank, matrix=need_jacobian)
        for eid in owned:
            self._assemble_element(eid, need_jacobian)

        self.system.close_vector(self.rank)
        if need_jacobian:
            self.system.close_matrix(self.rank)

        if self.options.debug and self.system.vector_closed:
            self.system.dump(logger)
        logger.info("Assembly pass rank %d done", self.rank)
        return self.system

    def _assemble_element(self, eid: int, need_jacobian: bool):
        snap = gather_snapshot(self.dof_handler, self.solution, eid)
        buf = self.buffers
        buf.reset(snap, with_jacobian=need_jacobian)
        ctx = ElementContext(snap, self.dof_handler.mixed_element, self.registry,
                             self.mesh.poly_order, fields=self.kernel.fields,
                             with_hessian=self.kernel.with_hessian)

        with self.tape.recording(enabled=need_jacobian and self.kernel.uses_tape):
            self.kernel.assemble_element(ctx, buf, self.tape, need_jacobian, self.options)

        if self.kernel.neumann_fields:
            if self.mesh.dim == 1:
                neumann_loop_1d(self.mesh, snap, self.bcs, self.kernel.neumann_fields,
                                self.dof_handler.mixed_element, buf, self.options.time)
            else:
                neumann_loop(self.mesh, ctx, self.bcs, self.kernel.neumann_fields, buf,
                             self.options.time)

        self.system.add_vector_blocked(buf.residual, buf.dofs, rank=self.rank)
        if need_jacobian:
            self.system.add_matrix_blocked(buf.jacobian, buf.dofs, buf.dofs, rank=self.rank)
        logger.debug("elem %d: %d local dofs", eid, buf.n_local)
