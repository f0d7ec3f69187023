"""pyfemasm.utils.meshgen
Structured mesh generators for tests and small demos.

Boundary regions of the generated meshes:
  line : 1 x=0, 2 x=L
  quad/tri : 1 bottom (y=0), 2 right (x=Lx), 3 top (y=Ly), 4 left (x=0)
  hex/tet : 1 bottom (z=0), 2 front (y=0), 3 right (x=Lx), 4 back (y=Ly),
            5 left (x=0), 6 top (z=Lz)
"""
from itertools import permutations
from typing import Optional, Tuple

import numba
import numpy as np

from pyfemasm.core.mesh import Mesh

__all__ = ["structured_line", "structured_quad", "structured_triangles",
           "structured_hex", "structured_tets"]

_TOL = 1e-12


@numba.jit(nopython=True, cache=True)
def _translate_coords(coords: np.ndarray, offset: np.ndarray):
    """Translates all node coordinates by a given offset vector."""
    for d in range(coords.shape[1]):
        coords[:, d] += offset[d]
    return coords


@numba.jit(nopython=True, cache=True)
def _structured_line_numba(L: float, nx: int, order: int):
    n_nodes = order * nx + 1
    coords = np.zeros((n_nodes, 1), dtype=np.float64)
    xs = np.linspace(0.0, L, n_nodes)
    for i in range(n_nodes):
        coords[i, 0] = xs[i]
    elements = np.empty((nx, order + 1), dtype=np.int64)
    for e in range(nx):
        for a in range(order + 1):
            elements[e, a] = e * order + a
    return coords, elements


@numba.jit(nopython=True, cache=True)
def _structured_qn_numba(Lx: float, Ly: float, nx: int, ny: int, order: int):
    """
    Generates raw data for a structured Qn quadrilateral mesh using Numba.
    """
    ngx = order * nx + 1
    ngy = order * ny + 1
    coords = np.zeros((ngx * ngy, 2), dtype=np.float64)
    xs = np.linspace(0.0, Lx, ngx)
    ys = np.linspace(0.0, Ly, ngy)
    for j in range(ngy):
        for i in range(ngx):
            coords[j * ngx + i, 0] = xs[i]
            coords[j * ngx + i, 1] = ys[j]

    npe = order + 1
    elements = np.empty((nx * ny, npe * npe), dtype=np.int64)
    for el in range(nx * ny):
        si = order * (el % nx)
        sj = order * (el // nx)
        k = 0
        for b in range(npe):
            for a in range(npe):
                elements[el, k] = (sj + b) * ngx + (si + a)
                k += 1
    return coords, elements


@numba.jit(nopython=True, cache=True)
def _structured_pk_numba(Lx: float, Ly: float, nx: int, ny: int, order: int):
    """Each lattice cell split into two Pk triangles along its anti-diagonal."""
    ngx = order * nx + 1
    ngy = order * ny + 1
    coords = np.zeros((ngx * ngy, 2), dtype=np.float64)
    xs = np.linspace(0.0, Lx, ngx)
    ys = np.linspace(0.0, Ly, ngy)
    for j in range(ngy):
        for i in range(ngx):
            coords[j * ngx + i, 0] = xs[i]
            coords[j * ngx + i, 1] = ys[j]

    npe = (order + 1) * (order + 2) // 2
    elements = np.empty((2 * nx * ny, npe), dtype=np.int64)
    for cell in range(nx * ny):
        si = order * (cell % nx)
        sj = order * (cell // nx)
        k = 0
        for b in range(order + 1):
            for a in range(order + 1 - b):
                elements[2 * cell, k] = (sj + b) * ngx + (si + a)
                elements[2 * cell + 1, k] = (sj + order - b) * ngx + (si + order - a)
                k += 1
    return coords, elements


@numba.jit(nopython=True, cache=True)
def _structured_hex_numba(Lx: float, Ly: float, Lz: float, nx: int, ny: int, nz: int, order: int):
    ngx = order * nx + 1
    ngy = order * ny + 1
    ngz = order * nz + 1
    coords = np.zeros((ngx * ngy * ngz, 3), dtype=np.float64)
    xs = np.linspace(0.0, Lx, ngx)
    ys = np.linspace(0.0, Ly, ngy)
    zs = np.linspace(0.0, Lz, ngz)
    for k in range(ngz):
        for j in range(ngy):
            for i in range(ngx):
                n = (k * ngy + j) * ngx + i
                coords[n, 0] = xs[i]
                coords[n, 1] = ys[j]
                coords[n, 2] = zs[k]

    npe = order + 1
    elements = np.empty((nx * ny * nz, npe ** 3), dtype=np.int64)
    for el in range(nx * ny * nz):
        si = order * (el % nx)
        sj = order * ((el // nx) % ny)
        sk = order * (el // (nx * ny))
        m = 0
        for c in range(npe):
            for b in range(npe):
                for a in range(npe):
                    elements[el, m] = ((sk + c) * ngy + (sj + b)) * ngx + (si + a)
                    m += 1
    return coords, elements


def _box_locators(extent) -> dict:
    """Region locators of an axis-aligned box starting at the origin."""
    if len(extent) == 1:
        (L,) = extent
        return {1: lambda x: abs(x[0]) < _TOL, 2: lambda x: abs(x[0] - L) < _TOL}
    if len(extent) == 2:
        Lx, Ly = extent
        return {
            1: lambda x: abs(x[1]) < _TOL,
            2: lambda x: abs(x[0] - Lx) < _TOL,
            3: lambda x: abs(x[1] - Ly) < _TOL,
            4: lambda x: abs(x[0]) < _TOL,
        }
    Lx, Ly, Lz = extent
    return {
        1: lambda x: abs(x[2]) < _TOL,
        2: lambda x: abs(x[1]) < _TOL,
        3: lambda x: abs(x[0] - Lx) < _TOL,
        4: lambda x: abs(x[1] - Ly) < _TOL,
        5: lambda x: abs(x[0]) < _TOL,
        6: lambda x: abs(x[2] - Lz) < _TOL,
    }


def _finish(coords, elements, element_type, poly_order, extent, offset):
    mesh = Mesh(coords, elements, element_type, poly_order=poly_order)
    mesh.tag_boundary_faces(_box_locators(extent))
    if offset is not None:
        _translate_coords(mesh.nodes_x, np.asarray(offset, dtype=np.float64))
        for elem in mesh.elements_list:
            elem.centroid = mesh.nodes_x[list(elem.corner_nodes)].mean(axis=0)
    return mesh


def structured_line(L: float, nx: int, poly_order: int = 1,
                    offset: Optional[Tuple[float]] = None) -> Mesh:
    coords, elements = _structured_line_numba(float(L), int(nx), int(poly_order))
    return _finish(coords, elements, 'line', poly_order, (L,), offset)


def structured_quad(Lx: float, Ly: float, nx: int, ny: int, poly_order: int = 1,
                    offset: Optional[Tuple[float, float]] = None) -> Mesh:
    if poly_order < 1:
        raise ValueError("Polynomial order must be a positive integer.")
    coords, elements = _structured_qn_numba(float(Lx), float(Ly), int(nx), int(ny), int(poly_order))
    return _finish(coords, elements, 'quad', poly_order, (Lx, Ly), offset)


def structured_triangles(Lx: float, Ly: float, nx: int, ny: int, poly_order: int = 1,
                         offset: Optional[Tuple[float, float]] = None) -> Mesh:
    if poly_order < 1:
        raise ValueError("Polynomial order must be a positive integer.")
    coords, elements = _structured_pk_numba(float(Lx), float(Ly), int(nx), int(ny), int(poly_order))
    return _finish(coords, elements, 'tri', poly_order, (Lx, Ly), offset)


def structured_hex(Lx: float, Ly: float, Lz: float, nx: int, ny: int, nz: int,
                   poly_order: int = 1, offset: Optional[Tuple[float, float, float]] = None) -> Mesh:
    if poly_order < 1:
        raise ValueError("Polynomial order must be a positive integer.")
    coords, elements = _structured_hex_numba(float(Lx), float(Ly), float(Lz),
                                             int(nx), int(ny), int(nz), int(poly_order))
    return _finish(coords, elements, 'hex', poly_order, (Lx, Ly, Lz), offset)


def structured_tets(Lx: float, Ly: float, Lz: float, nx: int, ny: int, nz: int,
                    offset: Optional[Tuple[float, float, float]] = None) -> Mesh:
    """Linear tetrahedra, six per box cell (Kuhn subdivision)."""
    coords, cubes = _structured_hex_numba(float(Lx), float(Ly), float(Lz),
                                          int(nx), int(ny), int(nz), 1)
    # corner (dx, dy, dz) of a Q1 hex sits at local index dx + 2 dy + 4 dz
    tets = []
    for cube in cubes:
        for perm in permutations(range(3)):
            path = [0]
            step = 0
            for axis in perm:
                step += 1 << axis
                path.append(step)
            t = [int(cube[p]) for p in path]
            x = coords[t]
            if np.linalg.det((x[1:] - x[0]).T) < 0.0:
                t[1], t[2] = t[2], t[1]
            tets.append(t)
    return _finish(coords, np.asarray(tets, dtype=np.int64), 'tet', 1, (Lx, Ly, Lz), offset)
