import numpy as np
import pytest
import scipy.sparse as sp
from pyfemasm.assembly.global_matrix import GlobalSystem
from pyfemasm.errors import AssemblyError, SystemNotClosedError


def test_additive_blocks_and_close():
    gs = GlobalSystem(4)
    gs.zero()
    gs.add_vector_blocked([1.0, 2.0], [0, 1])
    gs.add_vector_blocked([1.0, 2.0], [1, 3])
    gs.add_matrix_blocked(np.ones((2, 2)), [0, 1], [0, 1])
    gs.add_matrix_blocked(2 * np.ones((2, 2)), [1, 3], [1, 3])
    with pytest.raises(SystemNotClosedError):
        gs.residual
    gs.close()
    assert np.allclose(gs.residual, [1.0, 3.0, 0.0, 2.0])
    K = gs.jacobian
    assert isinstance(K, sp.csr_matrix)
    assert K[1, 1] == 3.0 and K[3, 1] == 2.0 and K[0, 3] == 0.0
    assert np.isclose(gs.norm(), np.sqrt(14.0))

def test_read_before_close_raises():
    gs = GlobalSystem(2)
    gs.zero()
    with pytest.raises(SystemNotClosedError):
        gs.norm()
    gs.close_vector()
    with pytest.raises(SystemNotClosedError):
        gs.jacobian

def test_close_is_a_barrier_over_ranks():
    gs = GlobalSystem(3, n_procs=2)
    for r in range(2):
        gs.zero(r)
    gs.add_vector_blocked([1.0], [0], rank=0)
    gs.add_vector_blocked([5.0], [0], rank=1)
    gs.close_vector(0)
    with pytest.raises(SystemNotClosedError):
        gs.residual
    gs.close_vector(1)
    assert np.allclose(gs.residual, [6.0, 0.0, 0.0])

def test_double_close_and_add_after_close():
    gs = GlobalSystem(2)
    gs.zero()
    gs.close_vector()
    with pytest.raises(AssemblyError):
        gs.close_vector()
    with pytest.raises(AssemblyError):
        gs.add_vector_blocked([1.0], [0])
    gs.zero(matrix=False)
    gs.add_vector_blocked([1.0], [0])
    gs.close_vector()
    assert np.allclose(gs.residual, [1.0, 0.0])

def test_block_shape_checked():
    gs = GlobalSystem(3)
    gs.zero()
    with pytest.raises(ValueError):
        gs.add_matrix_blocked(np.ones((2, 3)), [0, 1], [0, 1])
    with pytest.raises(ValueError):
        gs.add_vector_blocked([1.0, 2.0], [0])

def test_dirichlet_rows_and_solve():
    gs = GlobalSystem(2)
    gs.zero()
    gs.add_matrix_blocked(np.array([[2.0, -1.0], [-1.0, 2.0]]), [0, 1], [0, 1])
    gs.add_vector_blocked([1.0, 1.0], [0, 1])
    gs.close()
    gs.apply_dirichlet_rows({0: 0.5})
    assert np.allclose(gs.jacobian.toarray(), [[1.0, 0.0], [-1.0, 2.0]])
    assert np.allclose(gs.solve(), [0.5, 0.75])
