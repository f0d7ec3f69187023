import numpy as np
import pytest
from pyfemasm.integration import quadrature as q
from pyfemasm.integration import QuadratureRegistry

def integrate_ref(element_type, func, order):
    pts, wts = q.volume(element_type, order)
    fvals = np.array([func(x) for x in pts])
    return (fvals * wts).sum()

def test_constant_volume():
    exact = {'line': 2.0, 'tri': 0.5, 'quad': 4.0, 'tet': 1/6, 'hex': 8.0}
    for et, vol in exact.items():
        pts, wts = q.volume(et, 3)
        assert np.isclose(wts.sum(), vol, rtol=1e-12)

def test_linear_exact_tri():
    # ∫_T r dA  over reference triangle  = 1/6
    val = integrate_ref('tri', lambda x: x[0], order=4)
    assert np.isclose(val, 1/6, rtol=1e-12)

def test_linear_exact_tet():
    val = integrate_ref('tet', lambda x: x[2], order=3)
    assert np.isclose(val, 1/24, rtol=1e-12)

def test_point_rule():
    pts, wts = q.volume('point')
    assert pts.shape == (1, 0)
    assert np.allclose(wts, [1.0])

def test_unknown_type():
    with pytest.raises(KeyError):
        q.volume('prism', 2)

def test_facet_rule_quad():
    pts, wts = q.facet('quad', 0, 3)
    # integrate 1 over bottom edge [-1,1] so length 2
    assert np.isclose(wts.sum(), 2.0, rtol=1e-12)
    assert np.allclose(pts[:, 1], -1.0)

def test_facet_rule_tri_slanted_edge():
    pts, wts = q.facet('tri', 1, 3)
    assert np.allclose(pts.sum(axis=1), 1.0)
    assert np.isclose(wts.sum(), 2.0)

def test_facet_rule_tet_slanted_face():
    pts, wts = q.facet('tet', 3, 2)
    assert np.allclose(pts.sum(axis=1), 1.0)
    assert np.isclose(wts.sum(), 0.5)

def test_facet_rule_line_end():
    pts, wts = q.facet('line', 1)
    assert np.allclose(pts, [[1.0]])
    assert np.allclose(wts, [1.0])


class TestRegistry:
    def test_degree_exactness_quad(self):
        rule = QuadratureRegistry(7).rule('quad')
        assert rule.n_points == 16
        val = sum(w * x[0] ** 6 * x[1] for x, w in rule)
        assert np.isclose(val, 0.0, atol=1e-14)
        val = sum(w * x[0] ** 6 for x, w in rule)
        assert np.isclose(val, 4 / 7, rtol=1e-12)

    def test_degree_exactness_tri(self):
        rule = QuadratureRegistry(4)['tri']
        # ∫_T x^2 y^2 = 2! 2! / 6!
        val = sum(w * x[0] ** 2 * x[1] ** 2 for x, w in rule)
        assert np.isclose(val, 1 / 180, rtol=1e-12)

    def test_rules_are_cached(self):
        reg = QuadratureRegistry(3)
        assert reg.rule('hex') is reg.rule('hex')
