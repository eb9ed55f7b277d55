from dataclasses import replace

import numpy as np
import pytest

from errors import MalformedMeshError
from mesh import FacePos, Mesh, build_topology
from operators.laplacian import walk_fan
from conftest import make_disk


def test_face_adjacency_is_an_involution(small_sphere):
    topo = small_sphere.ensure_topology()
    assert (topo.ff >= 0).all()
    m = small_sphere.n_faces
    f = np.repeat(np.arange(m), 3)
    z = np.tile(np.arange(3), m)
    g, zg = topo.ff[f, z], topo.ffi[f, z]
    assert np.array_equal(topo.ff[g, zg], f)
    assert np.array_equal(topo.ffi[g, zg], z)


def test_star_lists_every_corner(small_sphere):
    topo = small_sphere.ensure_topology()
    F = small_sphere.F
    for v in (0, 7, 41):
        faces, corners = topo.star(v)
        assert (F[faces, corners] == v).all()
        assert len(faces) == (F == v).sum()
    assert topo.star_offsets[-1] == 3 * small_sphere.n_faces


def test_disk_boundary_edges():
    mesh, rim = make_disk(rings=5)
    topo = mesh.ensure_topology()
    assert len(topo.boundary_edges) == len(rim)
    f, z = topo.boundary_edges.T
    ends = np.unique(np.r_[mesh.F[f, z], mesh.F[f, (z + 1) % 3]])
    assert np.array_equal(ends, rim)


def test_face_pos_moves(small_sphere):
    topo = small_sphere.ensure_topology()
    F = small_sphere.F
    f = int(topo.vertex_face[0])
    pos = FacePos(F, topo, f, 0)
    assert F[pos.f, pos.z] == 0

    o = pos.copy().other_vertex_on_edge()
    assert o == F[f, (pos.z + 1) % 3]

    back = pos.copy()
    back.other_vertex_on_edge()
    back.other_vertex_on_edge()
    assert back == pos

    across = pos.copy()
    assert across.across_edge()
    assert across.f != pos.f
    assert across.v == 0
    assert {int(x) for x in F[across.f]} >= {0, o}

    nxt = pos.copy()
    nxt.next_edge_at_vertex()
    assert nxt.z == (pos.z + 2) % 3
    nxt.next_edge_at_vertex()
    assert nxt == pos


def test_face_pos_rejects_foreign_vertex(small_sphere):
    topo = small_sphere.ensure_topology()
    f = int(np.flatnonzero(~(small_sphere.F == 0).any(axis=1))[0])
    with pytest.raises(MalformedMeshError):
        FacePos(small_sphere.F, topo, f, 0)


def test_walk_fan_closed_and_open():
    mesh, rim = make_disk(rings=4)
    topo = mesh.ensure_topology()
    # interior vertex: one edge per face, all with a right neighbour
    fan = walk_fan(mesh, 0)
    assert len(fan) == topo.star_size(0) == 6
    assert all(r >= 0 for _, _, r in fan)
    assert sorted(o for o, _, _ in fan) == [1, 2, 3, 4, 5, 6]

    # rim vertex: one more edge than faces, first and last on the boundary
    v = int(rim[3])
    fan = walk_fan(mesh, v)
    assert len(fan) == topo.star_size(v) + 1
    assert fan[0][2] == -1 and fan[-1][2] == -1
    assert all(r >= 0 for _, _, r in fan[1:-1])


@pytest.mark.parametrize(
    "V, F",
    [
        (np.zeros((0, 3)), np.zeros((0, 3), dtype=int)),
        (np.eye(3), np.array([[0, 1, 3]])),
        (np.eye(3), np.array([[0, 1, 1]])),
    ],
)
def test_build_topology_rejects_bad_arrays(V, F):
    with pytest.raises(MalformedMeshError):
        build_topology(V, F)


def test_unreferenced_vertex():
    V = np.vstack([np.eye(3), [[5.0, 5.0, 5.0]]])
    with pytest.raises(MalformedMeshError, match="no incident faces"):
        build_topology(V, np.array([[0, 1, 2]]))


def test_non_manifold_edge():
    V = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1]], dtype=float)
    # edge (0, 1) used by three faces
    F = np.array([[0, 1, 2], [1, 0, 3], [0, 1, 4]])
    with pytest.raises(MalformedMeshError, match="same orientation"):
        build_topology(V, F)


def test_inconsistent_winding():
    V = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=float)
    F = np.array([[0, 1, 2], [1, 3, 2], [0, 1, 3]])
    with pytest.raises(MalformedMeshError):
        build_topology(V, F)


def test_pinched_vertex_is_malformed():
    # two triangles touching only at vertex 0
    V = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [-1, 0, 0], [-1, -1, 0]], dtype=float)
    mesh = Mesh(V=V, F=np.array([[0, 1, 2], [0, 3, 4]]))
    with pytest.raises(MalformedMeshError, match="covers 1 of 2"):
        walk_fan(mesh, 0)


def test_fan_walk_guard_stops_a_fan_that_never_closes(small_sphere):
    topo = small_sphere.ensure_topology()
    F = small_sphere.F
    v = 0
    pos = FacePos(F, topo, topo.vertex_face[v], v)
    order = []
    for _ in range(topo.star_size(v)):
        order.append((pos.f, pos.z))
        pos.across_edge()
        pos.next_edge_at_vertex()
    assert pos.f == order[0][0]

    # the last face of the fan now leads back to the second one
    (f_last, z_last), (f1, z1) = order[-1], order[1]
    ff, ffi = topo.ff.copy(), topo.ffi.copy()
    ff[f_last, z_last] = f1
    ffi[f_last, z_last] = (z1 + 2) % 3
    broken = Mesh(V=small_sphere.V, F=F, topology=replace(topo, ff=ff, ffi=ffi))

    with pytest.raises(MalformedMeshError, match="does not close"):
        walk_fan(broken, v)
