import numpy as np
import pytest
import scipy.sparse as sp
import trimesh

from mesh import Mesh


def _orient_ccw(V, F):
    a, b, c = V[F[:, 0]], V[F[:, 1]], V[F[:, 2]]
    cross = (b - a)[:, 0] * (c - a)[:, 1] - (b - a)[:, 1] * (c - a)[:, 0]
    F = F.copy()
    F[cross < 0] = F[cross < 0][:, [0, 2, 1]]
    return F


def make_disk(rings: int = 20, radius: float = 1.0):
    """Planar disk: center vertex plus `rings` rings of 6k vertices, zipped by angle."""
    pts = [np.zeros((1, 2))]
    start = [0]
    for k in range(1, rings + 1):
        a = 2 * np.pi * np.arange(6 * k) / (6 * k)
        r = radius * k / rings
        start.append(sum(len(p) for p in pts))
        pts.append(np.c_[r * np.cos(a), r * np.sin(a)])
    P = np.vstack(pts)

    F = [[0, 1 + j, 1 + (j + 1) % 6] for j in range(6)]
    for k in range(2, rings + 1):
        ni, no = 6 * (k - 1), 6 * k
        si, so = start[k - 1], start[k]
        i = o = 0
        while i < ni or o < no:
            next_in = (i + 1) / ni
            next_out = (o + 1) / no
            if o < no and (next_out <= next_in or i >= ni):
                F.append([si + i % ni, so + o % no, so + (o + 1) % no])
                o += 1
            else:
                F.append([si + i % ni, so + o % no, si + (i + 1) % ni])
                i += 1
    F = np.asarray(F, dtype=np.int64)
    V = np.c_[P, np.zeros(len(P))]
    rim = np.arange(start[rings], len(P))
    return Mesh(V=V, F=_orient_ccw(V, F)), rim


def make_grid(n: int = 6):
    """n x n square grid in the z=0 plane with integer coordinates."""
    def idx(i, j):
        return i * (n + 1) + j

    V = np.array([[i, j, 0.0] for i in range(n + 1) for j in range(n + 1)], dtype=np.float64)
    F = []
    for i in range(n):
        for j in range(n):
            F.append([idx(i, j), idx(i + 1, j), idx(i + 1, j + 1)])
            F.append([idx(i, j), idx(i + 1, j + 1), idx(i, j + 1)])
    return Mesh(V=V, F=np.asarray(F)), idx


def make_hexagon():
    """Six equilateral triangles around vertex 0."""
    a = 2 * np.pi * np.arange(6) / 6
    V = np.vstack([[0.0, 0.0, 0.0], np.c_[np.cos(a), np.sin(a), np.zeros(6)]])
    F = np.array([[0, 1 + j, 1 + (j + 1) % 6] for j in range(6)])
    return Mesh(V=V, F=F)


def reference_laplacian(V, F) -> sp.csr_matrix:
    """Vectorised cotangent Laplacian, same sign convention as operators.laplacian."""
    n = V.shape[0]
    i, j, k = F[:, 0], F[:, 1], F[:, 2]
    vi, vj, vk = V[i], V[j], V[k]

    def cot(a, b):
        return (a * b).sum(axis=1) / np.linalg.norm(np.cross(a, b), axis=1)

    w_jk = 0.5 * cot(vj - vi, vk - vi)
    w_ki = 0.5 * cot(vk - vj, vi - vj)
    w_ij = 0.5 * cot(vi - vk, vj - vk)

    rows = np.concatenate([j, k, k, i, i, j])
    cols = np.concatenate([k, j, i, k, j, i])
    data = np.concatenate([w_jk, w_jk, w_ki, w_ki, w_ij, w_ij])
    W = sp.coo_matrix((data, (rows, cols)), shape=(n, n)).tocsr()
    d = np.asarray(W.sum(axis=1)).ravel()
    return (W - sp.diags(d)).tocsr()


@pytest.fixture
def sphere():
    ico = trimesh.creation.icosphere(subdivisions=3, radius=1.0)
    return Mesh.from_trimesh(ico)


@pytest.fixture
def small_sphere():
    ico = trimesh.creation.icosphere(subdivisions=2, radius=1.0)
    return Mesh.from_trimesh(ico)


@pytest.fixture
def disk():
    return make_disk(rings=12)
