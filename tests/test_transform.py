import numpy as np
import pytest
from pyfemasm.errors import DegenerateJacobianError
from pyfemasm.fem.reference import get_reference
from pyfemasm.fem.transform import (jac_jac_inv, outward_normal, shape_funcs_current_elem,
                                    x_mapping)


def test_reference_to_global_mapping():
    coords = np.array([[0.0, 0.0], [2.0, 0.0], [0.0, 1.0]])
    ref = get_reference('tri', 1)
    x = x_mapping(coords, ref.shape(1/3, 1/3))
    assert np.allclose(x, [2/3, 1/3])
    # detJ should be twice the area
    geom = jac_jac_inv(coords, ref.grad(0.2, 0.2), 0.5)
    assert np.isclose(geom.detJ, 2.0)
    assert np.isclose(geom.weight, 1.0)
    assert np.allclose(geom.J @ geom.J_inv, np.eye(2))

def test_degenerate_cell_raises():
    coords = np.array([[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]])
    ref = get_reference('tri', 1)
    with pytest.raises(DegenerateJacobianError) as err:
        jac_jac_inv(coords, ref.grad(0.2, 0.2), elem_id=7, qp=0)
    assert err.value.elem_id == 7

def test_inverted_cell_raises():
    coords = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0]])   # clockwise
    ref = get_reference('tri', 1)
    with pytest.raises(DegenerateJacobianError):
        jac_jac_inv(coords, ref.grad(0.2, 0.2))

def test_boundary_edge_metric():
    coords = np.array([[0.0, 0.0], [2.0, 0.0]])
    ref = get_reference('line', 1)
    geom = jac_jac_inv(coords, ref.grad(0.0))
    assert geom.J.shape == (1, 2)
    assert np.isclose(geom.detJ, 1.0)
    assert np.allclose(geom.J_inv, [[1.0], [0.0]])

def test_boundary_triangle_in_3d():
    coords = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, 1.0], [0.0, 1.0, 1.0]])
    ref = get_reference('tri', 1)
    geom = jac_jac_inv(coords, ref.grad(0.25, 0.25))
    assert np.isclose(geom.detJ, 1.0)
    n = outward_normal(geom.J, coords.mean(axis=0), np.array([0.3, 0.3, 0.5]))
    assert np.allclose(n, [0.0, 0.0, 1.0])

def test_physical_gradient_rectangle():
    ref = get_reference('quad', 1)
    coords = np.array([[0.0, 0.0], [2.0, 0.0], [0.0, 1.0], [2.0, 1.0]])
    xi = (0.1, -0.4)
    geom = jac_jac_inv(coords, ref.grad(*xi))
    sv = shape_funcs_current_elem(ref, xi, geom.J_inv)
    assert np.allclose(coords[:, 0] @ sv.phi_x, [1.0, 0.0])
    assert np.allclose(coords[:, 1] @ sv.phi_x, [0.0, 1.0])
    assert sv.phi_xx is None

def test_physical_hessian_affine_p2():
    ref = get_reference('tri', 2)
    A = np.array([[2.0, 0.5], [0.0, 1.5]])
    coords = ref.nodes @ A.T + np.array([1.0, -1.0])
    xi = (0.2, 0.3)
    geom = jac_jac_inv(coords[[0, 2, 5]], get_reference('tri', 1).grad(*xi))
    sv = shape_funcs_current_elem(ref, xi, geom.J_inv, with_hessian=True)
    u = coords[:, 0] ** 2 + coords[:, 0] * coords[:, 1]
    H = np.einsum('i,ikl->kl', u, sv.phi_xx)
    assert np.allclose(H, [[2.0, 1.0], [1.0, 0.0]])

def test_outward_normal_2d():
    J = np.array([[0.5, 0.0]])
    assert np.allclose(outward_normal(J, [0.5, 0.0], [0.5, 0.5]), [0.0, -1.0])
    assert np.allclose(outward_normal(J, [0.5, 1.0], [0.5, 0.5]), [0.0, 1.0])
