# heat_method.py
from __future__ import annotations

import logging
import sys
from functools import partial

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from errors import FactorizationError, MalformedMeshError
from operators.geometry import edge_lengths, unit_face_normals
from operators.laplacian import cotangent_laplacian
from operators.mass_matrix import lumped_mass_barycentric
from operators.gradient import face_gradient, vertex_gradient, normalize_vector_field
from operators.divergence import divergence_from_face_field, vertex_divergence

logger = logging.getLogger(__name__)

GRADIENT_MODES = ("face", "vertex")


def average_edge_length(mesh) -> float:
    """Sum of face semi-perimeters over 1.5 * #faces (each edge shared by two faces)."""
    if mesh.n_faces == 0:
        raise MalformedMeshError("mesh has no faces")
    E = edge_lengths(mesh.V, mesh.F)
    total = float((E.sum(axis=1) / 2).sum())
    return total / (1.5 * mesh.n_faces)


def initial_conditions(n: int, source_ids) -> np.ndarray:
    """Indicator of the source vertices; a vertex listed twice gets 2."""
    if np.isscalar(source_ids):
        source_ids = [int(source_ids)]
    ids = np.asarray(source_ids, dtype=np.int64)
    if ids.size == 0:
        raise ValueError("at least one source vertex is required")
    if ids.min() < 0 or ids.max() >= n:
        raise IndexError(f"source index out of range for {n} vertices")
    u0 = np.zeros(n, dtype=np.float64)
    np.add.at(u0, ids, 1.0)
    return u0


def _factor_spd(A: sp.spmatrix, stage: str):
    """
    Cholesky-type factorization: symmetric-mode SuperLU with diagonal pivots.
    Without row exchanges the pivots are the D of A = L D L^T, so A is SPD
    iff all of them are positive. Returns the solve callable.
    """
    A = sp.csc_matrix(A)
    if not np.all(np.isfinite(A.data)):
        raise FactorizationError(stage, "matrix has non-finite entries")
    asym = abs(A - A.T)
    if asym.nnz and asym.max() > 1e-10 * abs(A).max():
        raise FactorizationError(stage, "matrix is not symmetric")

    try:
        lu = spla.splu(
            A,
            permc_spec="MMD_AT_PLUS_A",
            diag_pivot_thresh=0.0,
            options={"SymmetricMode": True},
        )
    except RuntimeError as exc:
        raise FactorizationError(stage, str(exc)) from exc

    if not np.array_equal(lu.perm_r, lu.perm_c):
        raise FactorizationError(stage, "factorization needed off-diagonal pivots")
    pivots = lu.U.diagonal()
    if not np.all(pivots > 0):
        raise FactorizationError(stage, "matrix is not positive definite")
    return lu.solve


def solve_heat_flow(
    M: sp.spmatrix,
    L: sp.spmatrix,
    h: float,
    u0: np.ndarray,
    m: float = 1.0,
    report=None,
) -> np.ndarray:
    """Backward Euler heat step  (M - t L) u = u0  with t = m h^2."""
    t = float(m) * h * h
    A1 = (M - t * L).tocsr()
    if report is not None:
        report("Timestep", t)
        report("Heat system", A1)
    solve = _factor_spd(A1, "heat")
    logger.debug("heat system factored (t=%.3e)", t)
    return solve(u0)


def solve_geodesic(
    L: sp.spmatrix,
    div: np.ndarray,
    epsilon: float = 1e-6,
    report=None,
) -> np.ndarray:
    """
    Poisson step  L phi = div  through the SPD system  (-L + eps I) phi = -div.
    phi is defined up to an additive constant.
    """
    n = L.shape[0]
    A2 = (-L + epsilon * sp.identity(n, format="csr")).tocsr()
    if report is not None:
        report("Poisson system", A2)
    solve = _factor_spd(A2, "geodesic")
    logger.debug("poisson system factored (eps=%.1e)", epsilon)
    return solve(-div)


def _run(mesh, init_cond, m, epsilon, gradient, report):
    if gradient not in GRADIENT_MODES:
        raise ValueError(f"gradient must be one of {GRADIENT_MODES}, got {gradient!r}")
    n = mesh.n_vertices
    u0 = np.asarray(init_cond, dtype=np.float64)
    if u0.shape != (n,):
        raise ValueError(f"initial conditions must have shape ({n},), got {u0.shape}")

    mesh.ensure_topology()

    # geometry is rebuilt from mesh.V on every call, only adjacency is cached
    M, face_areas = lumped_mass_barycentric(mesh)
    normals = unit_face_normals(mesh.V, mesh.F)
    report("Mass", M)
    L = cotangent_laplacian(mesh)
    report("Cotan", L)

    h = average_edge_length(mesh)
    report("Average edge", h)
    logger.debug("operators built: n=%d, m=%d, h=%.4g", n, mesh.n_faces, h)

    u = solve_heat_flow(M, L, h, u0, m, report=report)
    report("Heat", u)

    if gradient == "face":
        grad_u = face_gradient(mesh, face_areas, u, normals)
    else:
        grad_u = vertex_gradient(mesh, face_areas, u, normals)
    report("Gradient", grad_u)

    X = normalize_vector_field(-grad_u)
    report("Normalized gradient", X)

    if gradient == "face":
        div = divergence_from_face_field(mesh, X)
    else:
        div = vertex_divergence(mesh, X)
    report("Divergence", div)

    phi = solve_geodesic(L, div, epsilon, report=report)
    report("Geodesic distance", phi)

    return phi, {
        "t": float(m) * h * h,
        "h": h,
        "L": L,
        "M": M,
        "u": u,
        "grad_u": grad_u,
        "X": X,
        "div": div,
        "gradient": gradient,
    }


def _silent(label, value):
    pass


def _dump(stream, label, value):
    print(f"{label}:", file=stream)
    if sp.issparse(value):
        C = value.tocsc()
        for col in range(C.shape[1]):
            for k in range(C.indptr[col], C.indptr[col + 1]):
                print(f"({C.indices[k]},{col}) = {C.data[k]!r}", file=stream)
    elif np.ndim(value) == 0:
        print(repr(float(value)), file=stream)
    elif np.ndim(value) == 1:
        for x in value:
            print(repr(float(x)), file=stream)
    else:
        for row in value:
            print(" ".join(repr(float(x)) for x in row), file=stream)


def compute_geodesic(
    mesh,
    initial_conditions: np.ndarray,
    m: float = 1.0,
    *,
    epsilon: float = 1e-6,
    gradient: str = "face",
) -> np.ndarray:
    """
    Heat-method distances from the heat sources in `initial_conditions`.
    The result is unique up to an additive constant; subtract the value at a
    source to anchor it.
    Zero-area triangles make the Laplacian non-finite, so such meshes raise
    FactorizationError (stage "heat") instead of returning distances.
    """
    phi, _ = _run(mesh, initial_conditions, m, epsilon, gradient, _silent)
    return phi


def compute_geodesic_verbose(
    mesh,
    initial_conditions: np.ndarray,
    m: float = 1.0,
    *,
    epsilon: float = 1e-6,
    gradient: str = "face",
    stream=None,
) -> np.ndarray:
    """Same as compute_geodesic, printing every intermediate matrix and field to `stream`."""
    stream = sys.stdout if stream is None else stream
    phi, _ = _run(mesh, initial_conditions, m, epsilon, gradient, partial(_dump, stream))
    return phi


def heat_geodesic_from_sources(
    mesh,
    source_ids,
    m: float = 1.0,
    *,
    epsilon: float = 1e-6,
    gradient: str = "face",
):
    """Distances anchored at the sources (smallest source value moved to zero)."""
    if np.isscalar(source_ids):
        source_ids = [int(source_ids)]
    else:
        source_ids = [int(s) for s in source_ids]

    u0 = initial_conditions(mesh.n_vertices, source_ids)
    phi, info = _run(mesh, u0, m, epsilon, gradient, _silent)
    phi = phi - phi[source_ids].min()

    info.update({"sources": source_ids, "delta": u0, "t_mult": m})
    return phi, info
