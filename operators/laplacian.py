import logging

import numpy as np
import scipy.sparse as sp

from errors import MalformedMeshError
from mesh import FacePos
from operators.geometry import cotangent

logger = logging.getLogger(__name__)


def walk_fan(mesh, v: int) -> list[tuple[int, int, int]]:
    """
    Ordered edges around vertex v as (o, l, r) triples: o is the other end of
    the edge, l the opposite corner in the face on its left and r the opposite
    corner across the edge (-1 when the edge is on the boundary).

    The walk is bounded by the size of the face star; a fan that neither
    closes nor ends on a boundary within that many moves, or that leaves
    faces of the star unvisited, raises MalformedMeshError.
    """
    topo = mesh.ensure_topology()
    F = mesh.F
    budget = topo.star_size(v)
    pos = FacePos(F, topo, topo.vertex_face[v], v)

    # rewind to the first face of an open fan; a closed fan comes back to start
    start = pos.copy()
    open_fan = False
    moves = 0
    while True:
        back = pos.copy()
        back.next_edge_at_vertex()
        if not back.across_edge():
            open_fan = True
            break
        pos = back
        moves += 1
        if pos == start:
            break
        if moves > budget:
            raise MalformedMeshError(f"fan around vertex {v} does not close")

    fan = []
    if open_fan:
        # incoming boundary edge of the first face
        fan.append((int(F[pos.f, (pos.z + 2) % 3]), int(F[pos.f, (pos.z + 1) % 3]), -1))

    first = pos.copy()
    visited = 0
    while True:
        visited += 1
        if visited > budget:
            raise MalformedMeshError(f"fan around vertex {v} does not close")
        o = pos.copy().other_vertex_on_edge()
        l = pos.opposite_vertex()
        across = pos.copy()
        if not across.across_edge():
            fan.append((o, l, -1))
            break
        fan.append((o, l, across.opposite_vertex()))
        across.next_edge_at_vertex()
        pos = across
        if pos == first:
            break

    if visited != budget:
        raise MalformedMeshError(
            f"fan around vertex {v} covers {visited} of {budget} incident faces"
        )
    return fan


def cotangent_laplacian(mesh) -> sp.csr_matrix:
    """
    Cotangent Laplacian assembled by walking every vertex fan.
      L[v, o] = (cot(angle at l) + cot(angle at r)) / 2,   L[v, v] = -sum_o L[v, o]
    Boundary edges keep the single cotangent they have. Rows sum to zero and
    the matrix is negative semi-definite.
    """
    V = mesh.V
    n = mesh.n_vertices
    rows, cols, left, right = [], [], [], []
    for v in range(n):
        for o, l, r in walk_fan(mesh, v):
            rows.append(v)
            cols.append(o)
            left.append(l)
            right.append(r)

    rows = np.asarray(rows, dtype=np.int64)
    cols = np.asarray(cols, dtype=np.int64)
    left = np.asarray(left, dtype=np.int64)
    right = np.asarray(right, dtype=np.int64)

    # far / near edges seen from the opposite corners
    cot_l = cotangent(V[cols] - V[left], V[rows] - V[left])
    cot_r = np.zeros_like(cot_l)
    inner = right >= 0
    ri = right[inner]
    cot_r[inner] = cotangent(V[cols[inner]] - V[ri], V[rows[inner]] - V[ri])

    data = (cot_l + cot_r) / 2
    W = sp.coo_matrix((data, (rows, cols)), shape=(n, n)).tocsr()

    with np.errstate(invalid="ignore"):
        d = np.asarray(W.sum(axis=1)).ravel()
    L = W - sp.diags(d, format="csr")
    logger.debug("cotangent laplacian: %d off-diagonal entries, %d boundary edges",
                 W.nnz, int((~inner).sum()))
    return L.tocsr()
