# mesh.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
import numpy as np
import trimesh

from errors import MalformedMeshError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeshTopology:
    """
    Index-based adjacency of a triangle mesh. Holds indices only, so it stays
    valid when the vertex positions move.

    Edge z of face f runs from F[f, z] to F[f, (z+1) % 3].
      star_offsets : (n+1,) CSR offsets into star_faces / star_corners
      star_faces   : faces incident to each vertex
      star_corners : local index (0, 1, 2) of the vertex inside that face
      vertex_face  : (n,) one incident face per vertex, start of fan walks
      ff, ffi      : (m, 3) face across edge z and the index of that edge in
                     the neighbour, -1 on boundary edges
    """
    star_offsets: np.ndarray
    star_faces: np.ndarray
    star_corners: np.ndarray
    vertex_face: np.ndarray
    ff: np.ndarray
    ffi: np.ndarray

    def star(self, v: int) -> tuple[np.ndarray, np.ndarray]:
        a, b = self.star_offsets[v], self.star_offsets[v + 1]
        return self.star_faces[a:b], self.star_corners[a:b]

    def star_size(self, v: int) -> int:
        return int(self.star_offsets[v + 1] - self.star_offsets[v])

    @property
    def boundary_edges(self) -> np.ndarray:
        """(k, 2) array of (face, edge index) pairs with no neighbour."""
        return np.argwhere(self.ff < 0)


def build_topology(V: np.ndarray, F: np.ndarray) -> MeshTopology:
    """
    Vertex-face star and face-face adjacency for an oriented 2-manifold.
    Raises MalformedMeshError for empty meshes, out-of-range indices,
    unreferenced vertices and edges that are not shared by at most two
    consistently oriented faces.
    """
    n, m = V.shape[0], F.shape[0]
    if n == 0 or m == 0:
        raise MalformedMeshError("mesh has no vertices or no faces")
    if F.ndim != 2 or F.shape[1] != 3:
        raise MalformedMeshError(f"faces must be (m, 3), got {F.shape}")
    if F.min() < 0 or F.max() >= n:
        raise MalformedMeshError("face references a vertex outside the vertex list")
    if np.any((F[:, 0] == F[:, 1]) | (F[:, 1] == F[:, 2]) | (F[:, 2] == F[:, 0])):
        raise MalformedMeshError("face references the same vertex twice")

    # vertex -> face star, grouped by vertex
    corners = F.ravel()
    order = np.argsort(corners, kind="stable")
    counts = np.bincount(corners, minlength=n)
    if np.any(counts == 0):
        lonely = int(np.flatnonzero(counts == 0)[0])
        raise MalformedMeshError(f"vertex {lonely} has no incident faces")
    star_offsets = np.concatenate([[0], np.cumsum(counts)])
    star_faces = order // 3
    star_corners = order % 3
    vertex_face = star_faces[star_offsets[:-1]]

    # face -> face through opposite half-edges
    src = F.ravel()
    dst = F[:, [1, 2, 0]].ravel()
    key = src.astype(np.int64) * n + dst
    twin = dst.astype(np.int64) * n + src
    sort = np.argsort(key, kind="stable")
    sorted_keys = key[sort]
    if np.any(sorted_keys[1:] == sorted_keys[:-1]):
        raise MalformedMeshError(
            "an edge is used twice with the same orientation "
            "(non-manifold edge or inconsistent winding)"
        )
    pos = np.searchsorted(sorted_keys, twin)
    pos = np.minimum(pos, sorted_keys.size - 1)
    found = sorted_keys[pos] == twin
    he = np.where(found, sort[pos], -1)

    ff = np.where(found, he // 3, -1).reshape(m, 3)
    ffi = np.where(found, he % 3, -1).reshape(m, 3)

    return MeshTopology(
        star_offsets=star_offsets,
        star_faces=star_faces,
        star_corners=star_corners,
        vertex_face=vertex_face,
        ff=ff,
        ffi=ffi,
    )


@dataclass
class Mesh:
    """Triangle mesh stored as vertex and face arenas plus lazily built adjacency."""
    V: np.ndarray
    F: np.ndarray
    topology: MeshTopology | None = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.V = np.asarray(self.V, dtype=np.float64)
        self.F = np.asarray(self.F, dtype=np.int64)

    @property
    def n_vertices(self) -> int:
        return self.V.shape[0]

    @property
    def n_faces(self) -> int:
        return self.F.shape[0]

    def ensure_topology(self) -> MeshTopology:
        if self.topology is None:
            self.topology = build_topology(self.V, self.F)
            logger.debug(
                "built topology: %d vertices, %d faces, %d boundary edges",
                self.n_vertices, self.n_faces, len(self.topology.boundary_edges),
            )
        return self.topology

    @classmethod
    def from_trimesh(cls, tm: trimesh.Trimesh) -> "Mesh":
        return cls(
            V=np.asarray(tm.vertices, dtype=np.float64),
            F=np.asarray(tm.faces, dtype=np.int64),
        )

    def to_trimesh(self, **kwargs) -> trimesh.Trimesh:
        return trimesh.Trimesh(vertices=self.V, faces=self.F, process=False, **kwargs)

    @classmethod
    def load(
        cls,
        path: str,
        process: bool = True,
        recenter: bool = False,
        rescale_unit: bool = False,
    ) -> "Mesh":
        """
        Load a surface mesh via trimesh and make sure it is triangulated.
        Optionally recenter at the origin and rescale to unit size.
        """
        if not os.path.exists(path):
            raise FileNotFoundError(path)

        obj = trimesh.load(path, process=process)

        if isinstance(obj, trimesh.Scene):
            if len(obj.geometry) == 0:
                raise ValueError("Scene contains no geometry.")
            tm = trimesh.util.concatenate(tuple(obj.dump()))
        elif isinstance(obj, trimesh.Trimesh):
            tm = obj
        else:
            raise TypeError(f"Unsupported type from trimesh.load: {type(obj)}")

        if tm.faces is None or len(tm.faces) == 0:
            raise ValueError("Loaded geometry has no faces (is it a point cloud?)")

        translation = -tm.centroid if recenter else np.zeros(3)
        if rescale_unit:
            if tm.scale == 0:
                raise ValueError("Degenerate geometry with zero scale.")
            scale = 1.0 / float(tm.scale)
        else:
            scale = 1.0

        V = (tm.vertices + translation) * scale
        logger.info("loaded %s: %d vertices, %d faces", path, len(V), len(tm.faces))
        return cls(V=V, F=tm.faces)


class FacePos:
    """
    Cursor on a (face, edge, vertex) incidence used to walk vertex fans.
    The vertex always lies on the current edge of the current face.
    """
    __slots__ = ("F", "topology", "f", "z", "v")

    def __init__(self, F: np.ndarray, topology: MeshTopology, f: int, v: int, z: int | None = None):
        self.F = F
        self.topology = topology
        self.f = int(f)
        self.v = int(v)
        if z is None:
            hits = np.flatnonzero(F[self.f] == self.v)
            if hits.size == 0:
                raise MalformedMeshError(f"vertex {v} is not a corner of face {f}")
            z = int(hits[0])
        self.z = int(z)

    def copy(self) -> "FacePos":
        return FacePos(self.F, self.topology, self.f, self.v, self.z)

    def __eq__(self, other) -> bool:
        if not isinstance(other, FacePos):
            return NotImplemented
        return (self.f, self.z, self.v) == (other.f, other.z, other.v)

    def __repr__(self) -> str:
        return f"FacePos(f={self.f}, z={self.z}, v={self.v})"

    def other_vertex_on_edge(self) -> int:
        """Move to the other endpoint of the current edge."""
        a, b = self.F[self.f, self.z], self.F[self.f, (self.z + 1) % 3]
        self.v = int(b if self.v == a else a)
        return self.v

    def next_edge_at_vertex(self) -> int:
        """Move to the other edge of the current face that contains the vertex."""
        if self.v == self.F[self.f, (self.z + 1) % 3]:
            self.z = (self.z + 1) % 3
        else:
            self.z = (self.z + 2) % 3
        return self.z

    def across_edge(self) -> bool:
        """Move to the face sharing the current edge. False (no move) on a boundary."""
        g = self.topology.ff[self.f, self.z]
        if g < 0:
            return False
        self.z = int(self.topology.ffi[self.f, self.z])
        self.f = int(g)
        return True

    def opposite_vertex(self) -> int:
        """Corner of the current face that is not on the current edge."""
        return int(self.F[self.f, (self.z + 2) % 3])
