import numpy as np


def to_vector3(p) -> np.ndarray:
    """Stored point(s) -> float64 vector(s), shape (3,) or (k, 3)."""
    return np.asarray(p, dtype=np.float64)


def cotangent(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """
    cot of the angle between a and b, row-wise:  dot(a, b) / ||a x b||.
    Parallel vectors give +-inf (or nan for zero vectors); no clamping here,
    degenerate values are left for the caller to deal with.
    """
    a = to_vector3(a)
    b = to_vector3(b)
    with np.errstate(divide="ignore", invalid="ignore"):
        return (a * b).sum(axis=-1) / np.linalg.norm(np.cross(a, b), axis=-1)


def edge_lengths(V: np.ndarray, F: np.ndarray) -> np.ndarray:
    """(m, 3) lengths |p1-p0|, |p2-p0|, |p2-p1| per face."""
    p0, p1, p2 = V[F[:, 0]], V[F[:, 1]], V[F[:, 2]]
    return np.stack(
        [
            np.linalg.norm(p1 - p0, axis=1),
            np.linalg.norm(p2 - p0, axis=1),
            np.linalg.norm(p2 - p1, axis=1),
        ],
        axis=1,
    )


def unit_face_normals(V: np.ndarray, F: np.ndarray) -> np.ndarray:
    """(m, 3) unit normals from the current positions, zero on zero-area faces."""
    N = np.cross(V[F[:, 1]] - V[F[:, 0]], V[F[:, 2]] - V[F[:, 0]])
    n = np.linalg.norm(N, axis=1, keepdims=True)
    out = np.zeros_like(N)
    np.divide(N, n, out=out, where=n > 0)
    return out
