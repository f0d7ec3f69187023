"""pyfemasm.assembly.global_matrix
Distributed global residual vector and sparse Jacobian.

Every rank stages its own additive contributions; ``close_vector`` /
``close_matrix`` act as the collective finalize. Once all ranks of the
partition have closed, the staged pieces are reduced into one vector and one
CSR matrix. Reading either before its close raises
:class:`~pyfemasm.errors.SystemNotClosedError`.
"""
import logging
from typing import Dict

import numba
import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from pyfemasm.errors import AssemblyError, SystemNotClosedError

logger = logging.getLogger(__name__)


@numba.jit(nopython=True, cache=True)
def _block_indices(rows, cols):
    """Row/column index pairs of the dense block ``rows x cols`` (row-major)."""
    n, m = rows.shape[0], cols.shape[0]
    R = np.empty(n * m, dtype=np.int64)
    C = np.empty(n * m, dtype=np.int64)
    k = 0
    for i in range(n):
        for j in range(m):
            R[k] = rows[i]
            C[k] = cols[j]
            k += 1
    return R, C


class _RankStage:
    __slots__ = ("vector", "rows", "cols", "data")

    def __init__(self, n_dofs: int):
        self.vector = np.zeros(n_dofs)
        self.rows, self.cols, self.data = [], [], []


class GlobalSystem:
    """Residual vector + Jacobian matrix shared by ``n_procs`` assemblers."""

    def __init__(self, n_dofs: int, n_procs: int = 1):
        if n_procs < 1:
            raise ValueError(f"n_procs must be >= 1, got {n_procs}.")
        self.n_dofs = int(n_dofs)
        self.n_procs = int(n_procs)
        self._stages = [_RankStage(self.n_dofs) for _ in range(self.n_procs)]
        self._vec_arrived: set = set()
        self._mat_arrived: set = set()
        self._residual = None
        self._jacobian = None

    # ------------------------------------------------------------------
    # Pass lifecycle
    # ------------------------------------------------------------------
    def zero(self, rank: int = 0, matrix: bool = True):
        """Reset the staging of ``rank`` for a new pass."""
        self._check_rank(rank)
        st = self._stages[rank]
        st.vector[:] = 0.0
        self._residual = None
        self._vec_arrived.discard(rank)
        if matrix:
            st.rows, st.cols, st.data = [], [], []
            self._jacobian = None
            self._mat_arrived.discard(rank)

    def _check_rank(self, rank: int):
        if not 0 <= rank < self.n_procs:
            raise ValueError(f"rank {rank} outside [0, {self.n_procs}).")

    # ------------------------------------------------------------------
    # Additive updates
    # ------------------------------------------------------------------
    def add_vector_blocked(self, values, dofs, rank: int = 0):
        if rank in self._vec_arrived or self._residual is not None:
            raise AssemblyError(f"Rank {rank}: residual already closed, call zero() first.")
        dofs = np.asarray(dofs, dtype=np.int64)
        values = np.asarray(values, dtype=float)
        if values.shape != dofs.shape:
            raise ValueError(f"Residual block {values.shape} does not match DOF map {dofs.shape}.")
        np.add.at(self._stages[rank].vector, dofs, values)

    def add_matrix_blocked(self, block, rows, cols, rank: int = 0):
        if rank in self._mat_arrived or self._jacobian is not None:
            raise AssemblyError(f"Rank {rank}: Jacobian already closed, call zero() first.")
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        block = np.asarray(block, dtype=float)
        if block.shape != (rows.size, cols.size):
            raise ValueError(f"Jacobian block {block.shape} does not match DOF maps "
                             f"({rows.size}, {cols.size}).")
        R, C = _block_indices(rows, cols)
        st = self._stages[rank]
        st.rows.append(R)
        st.cols.append(C)
        st.data.append(block.ravel())

    # ------------------------------------------------------------------
    # Finalize barriers
    # ------------------------------------------------------------------
    def close_vector(self, rank: int = 0):
        self._check_rank(rank)
        if rank in self._vec_arrived or self._residual is not None:
            raise AssemblyError(f"Rank {rank} closed the residual twice.")
        self._vec_arrived.add(rank)
        if len(self._vec_arrived) == self.n_procs:
            self._residual = np.sum([st.vector for st in self._stages], axis=0)
            self._vec_arrived.clear()
            logger.debug("Residual closed (%d ranks)", self.n_procs)

    def close_matrix(self, rank: int = 0):
        self._check_rank(rank)
        if rank in self._mat_arrived or self._jacobian is not None:
            raise AssemblyError(f"Rank {rank} closed the Jacobian twice.")
        self._mat_arrived.add(rank)
        if len(self._mat_arrived) == self.n_procs:
            rows = [r for st in self._stages for r in st.rows]
            cols = [c for st in self._stages for c in st.cols]
            data = [d for st in self._stages for d in st.data]
            if rows:
                R, C, D = np.concatenate(rows), np.concatenate(cols), np.concatenate(data)
            else:
                R = C = np.zeros(0, dtype=np.int64)
                D = np.zeros(0)
            # duplicates are summed by the COO -> CSR conversion
            self._jacobian = sp.coo_matrix((D, (R, C)), shape=(self.n_dofs, self.n_dofs)).tocsr()
            self._mat_arrived.clear()
            logger.debug("Jacobian closed (%d ranks, nnz=%d)", self.n_procs, self._jacobian.nnz)

    def close(self, rank: int = 0):
        self.close_vector(rank)
        self.close_matrix(rank)

    @property
    def vector_closed(self) -> bool:
        return self._residual is not None

    @property
    def matrix_closed(self) -> bool:
        return self._jacobian is not None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @property
    def residual(self) -> np.ndarray:
        if self._residual is None:
            raise SystemNotClosedError("Residual vector read before close().")
        return self._residual

    @property
    def jacobian(self) -> sp.csr_matrix:
        if self._jacobian is None:
            raise SystemNotClosedError("Jacobian matrix read before close().")
        return self._jacobian

    def norm(self) -> float:
        return float(np.linalg.norm(self.residual))

    def apply_dirichlet_rows(self, data: Dict[int, float]):
        """Replace constrained rows by identity rows with right-hand side ``data``."""
        if not data:
            return
        dofs = np.fromiter(data.keys(), dtype=np.int64)
        vals = np.fromiter(data.values(), dtype=float)
        K = self.jacobian.tolil()
        for d in dofs:
            K.rows[d] = [int(d)]
            K.data[d] = [1.0]
        self._jacobian = K.tocsr()
        self.residual[dofs] = vals

    def solve(self) -> np.ndarray:
        """Newton increment ``delta`` with ``Jac delta = Res``."""
        return spla.spsolve(self.jacobian.tocsc(), self.residual)

    def dump(self, log=logger):
        """DEBUG listing of the closed residual (and Jacobian when available)."""
        res = self.residual
        for i, v in enumerate(res):
            log.debug("res[%d] = %.12e", i, v)
        if self._jacobian is not None:
            coo = self._jacobian.tocoo()
            for i, j, v in zip(coo.row, coo.col, coo.data):
                log.debug("jac[%d, %d] = %.12e", i, j, v)
