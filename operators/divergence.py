import numpy as np

from operators.geometry import cotangent


def _sanitize(div: np.ndarray) -> np.ndarray:
    # flat triangles and zero-length edges give nan / inf contributions
    div[~np.isfinite(div)] = 0.0
    return div


def divergence_from_face_field(mesh, X: np.ndarray) -> np.ndarray:
    """
    Integrated divergence at vertices of a piecewise-constant face field X (m, 3):
      (div X)_i = 1/2 * sum_f  cot(theta_l) (e_j . X_f) + cot(theta_j) (e_l . X_f)
    where e_j, e_l are the edges leaving i inside f and theta_j, theta_l the
    angles at their far ends (each opposite the other edge).
    Non-finite results are set to zero.
    """
    V, F = mesh.V, mesh.F
    n = mesh.n_vertices
    div = np.zeros(n, dtype=np.float64)

    with np.errstate(invalid="ignore", over="ignore"):
        for k in range(3):
            i, j, l = F[:, k], F[:, (k + 1) % 3], F[:, (k + 2) % 3]
            pi, pj, pl = V[i], V[j], V[l]
            e_j = pj - pi
            e_l = pl - pi
            cot_l = cotangent(pi - pl, pj - pl)
            cot_j = cotangent(pi - pj, pl - pj)
            contrib = 0.5 * (cot_l * (e_j * X).sum(axis=1) + cot_j * (e_l * X).sum(axis=1))
            np.add.at(div, i, contrib)

    return _sanitize(div)


# opposite edge p[k+1] - p[k+2], with the sign used per corner by the legacy formula
_LEGACY_OPPOSITE_SIGN = (1.0, -1.0, 1.0)


def vertex_divergence(mesh, X: np.ndarray) -> np.ndarray:
    """
    Legacy divergence of a per-vertex field X (n, 3). For each face in the
    star of i, with left/right edges leaving i and the opposite edge eo:
      cot_l = cot(e_left, eo), cot_r = cot(e_right, eo)
      (div X)_i += (cot_l * (e_right/|e_right| . X_i) + cot_r * (e_left/|e_left| . X_i)) / 2
    Edges are normalized only after the cotangents. Non-finite results are
    set to zero.
    """
    topo = mesh.ensure_topology()
    V, F = mesh.V, mesh.F
    n = mesh.n_vertices
    faces, corners = topo.star_faces, topo.star_corners

    tri = F[faces]
    rows = np.arange(len(faces))
    p_i = V[tri[rows, corners]]
    p_r = V[tri[rows, (corners + 1) % 3]]
    p_l = V[tri[rows, (corners + 2) % 3]]
    sign = np.asarray(_LEGACY_OPPOSITE_SIGN)[corners][:, None]

    e_left = p_l - p_i
    e_right = p_r - p_i
    e_opp = sign * (p_r - p_l)

    owner = F[faces, corners]
    field = X[owner]
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        cot_l = cotangent(e_left, e_opp)
        cot_r = cotangent(e_right, e_opp)
        e_left = e_left / np.linalg.norm(e_left, axis=1, keepdims=True)
        e_right = e_right / np.linalg.norm(e_right, axis=1, keepdims=True)
        contrib = (cot_l * (e_right * field).sum(axis=1)
                   + cot_r * (e_left * field).sum(axis=1)) / 2

    div = np.zeros(n, dtype=np.float64)
    np.add.at(div, owner, contrib)
    return _sanitize(div)
