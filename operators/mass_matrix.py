import numpy as np
import scipy.sparse as sp

from operators.geometry import edge_lengths


def heron_face_areas(V: np.ndarray, F: np.ndarray) -> np.ndarray:
    """Triangle areas from the three edge lengths (Heron)."""
    E = edge_lengths(V, F)
    e0, e1, e2 = E[:, 0], E[:, 1], E[:, 2]
    s = (e0 + e1 + e2) / 2
    # round-off can push the radicand of a flat triangle slightly below zero
    return np.sqrt(np.maximum(s * (s - e0) * (s - e1) * (s - e2), 0.0))


def lumped_mass_barycentric(mesh):
    """
    Lumped (barycentric) mass matrix:
      M_ii = sum over the face star of i of (area(face)/3).
    Returns (M, face_areas); the areas are reused by the gradient stage.
    """
    topo = mesh.ensure_topology()
    area = heron_face_areas(mesh.V, mesh.F)

    n = mesh.n_vertices
    owner = np.repeat(np.arange(n), np.diff(topo.star_offsets))
    m = np.zeros(n, dtype=np.float64)
    np.add.at(m, owner, area[topo.star_faces])
    m /= 3

    return sp.diags(m, format="csr"), area
