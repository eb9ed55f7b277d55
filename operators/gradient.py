import numpy as np

from operators.geometry import unit_face_normals


def _opposite_edges(V: np.ndarray, F: np.ndarray):
    """Counter-clockwise edges opposite corners 0, 1, 2 of every face."""
    p0, p1, p2 = V[F[:, 0]], V[F[:, 1]], V[F[:, 2]]
    return p2 - p1, p0 - p2, p1 - p0


def face_gradient(mesh, face_areas: np.ndarray, u: np.ndarray, normals: np.ndarray | None = None) -> np.ndarray:
    """
    Per-face gradient of a piecewise-linear scalar u:
      grad u|_f = 1/(2 A_f) * sum_k u_k (N_f x e_k)
    with e_k the CCW edge opposite corner k and N_f the unit normal
    (recomputed from mesh.V when `normals` is not given).
    Returns (m, 3). A zero-area face gives a non-finite row.
    """
    F = mesh.F
    N = unit_face_normals(mesh.V, F) if normals is None else normals
    e0, e1, e2 = _opposite_edges(mesh.V, F)

    s = (
        np.cross(N, e0) * u[F[:, 0]][:, None]
        + np.cross(N, e1) * u[F[:, 1]][:, None]
        + np.cross(N, e2) * u[F[:, 2]][:, None]
    )
    with np.errstate(divide="ignore", invalid="ignore"):
        return s / (2.0 * face_areas)[:, None]


def vertex_gradient(mesh, face_areas: np.ndarray, u: np.ndarray, normals: np.ndarray | None = None) -> np.ndarray:
    """
    Legacy per-vertex "gradient": for each face in the star of vertex i,
      (N_f x e_opp / |e_opp|) * u_i / (2 A_f)
    accumulated at i. It scales a geometric direction by u_i alone, so it is
    not the gradient of u; kept to reproduce older results exactly.
    Returns (n, 3).
    """
    topo = mesh.ensure_topology()
    F = mesh.F
    n = mesh.n_vertices
    E = np.stack(_opposite_edges(mesh.V, F), axis=1)  # (m, 3, 3)
    if normals is None:
        normals = unit_face_normals(mesh.V, F)

    faces, corners = topo.star_faces, topo.star_corners
    owner = F[faces, corners]
    e = E[faces, corners]
    N = normals[faces]

    with np.errstate(divide="ignore", invalid="ignore"):
        e = e / np.linalg.norm(e, axis=1, keepdims=True)
        N = N / np.linalg.norm(N, axis=1, keepdims=True)
        g = np.cross(N, e) * (u[owner] / (2 * face_areas[faces]))[:, None]

    out = np.zeros((n, 3), dtype=np.float64)
    np.add.at(out, owner, g)
    return out


def normalize_vector_field(X: np.ndarray) -> np.ndarray:
    """Row-wise unit vectors. Zero rows stay zero, non-finite rows stay non-finite."""
    norm = np.linalg.norm(X, axis=1, keepdims=True)
    out = np.zeros_like(X, dtype=np.float64)
    with np.errstate(invalid="ignore"):
        np.divide(X, norm, out=out, where=norm != 0)
    return out
