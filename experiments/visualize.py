# experiments/visualize.py
import os, sys, numpy as np
sys.path.insert(0, os.path.abspath("."))

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from matplotlib.tri import Triangulation
import trimesh

from mesh import Mesh
from heat_method import GRADIENT_MODES, heat_geodesic_from_sources


def great_circle_distance(V: np.ndarray, src: int) -> np.ndarray:
    """Exact distance on a sphere centred at the origin (radius from the mean vertex norm)."""
    r = np.linalg.norm(V, axis=1)
    cos = np.clip((V @ V[src]) / (r * r[src]), -1.0, 1.0)
    return r.mean() * np.arccos(cos)


def _view_basis(direction: np.ndarray) -> np.ndarray:
    """Two unit vectors spanning the plane orthogonal to `direction` (2x3)."""
    d = direction / np.linalg.norm(direction)
    helper = np.array([1.0, 0.0, 0.0]) if abs(d[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    b1 = np.cross(d, helper)
    b1 /= np.linalg.norm(b1)
    return np.stack([b1, np.cross(d, b1)])


def project_around_source(M: Mesh, src: int, projection: str = "source") -> np.ndarray:
    """
    2D coordinates for plotting.
    'source' looks down the vertex normal at src, 'xy' drops z.
    """
    if projection == "xy":
        return M.V[:, :2]
    if projection != "source":
        raise ValueError(f"unknown projection {projection!r}")
    normal = M.to_trimesh().vertex_normals[src]
    return (M.V - M.V[src]) @ _view_basis(normal).T


def _cap_faces(F: np.ndarray, ref: np.ndarray, vmax: float) -> np.ndarray:
    keep = ref[F].max(axis=1) <= vmax
    return F[keep] if keep.any() else F


def _draw(ax, XY, F, values, title, cmap="viridis", label="distance"):
    tri = Triangulation(XY[:, 0], XY[:, 1], triangles=F)
    used = np.unique(F)
    lo, hi = float(values[used].min()), float(values[used].max())
    levels = np.linspace(lo, hi if hi > lo else lo + 1e-12, 30)
    tpc = ax.tricontourf(tri, values, levels=levels, cmap=cmap)
    ax.tricontour(tri, values, levels=12, colors="k", linewidths=0.4, alpha=0.7)
    ax.set_aspect("equal", adjustable="box")
    ax.set_title(title)
    ax.figure.colorbar(tpc, ax=ax, shrink=0.8, label=label)


def _save(fig, save_path):
    fig.tight_layout()
    os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
    fig.savefig(save_path, dpi=200, bbox_inches="tight")
    plt.close(fig)


def plot_isolines(
    M: Mesh,
    phi: np.ndarray,
    src: int,
    title: str,
    save_path: str,
    *,
    projection: str = "source",
    vmax_percentile: float = 90.0,
    crop_to_cap: bool = True,
):
    """Filled isolines of one distance field, optionally cropped to a cap around src."""
    XY = project_around_source(M, src, projection)
    F = _cap_faces(M.F, phi, float(np.percentile(phi, vmax_percentile))) if crop_to_cap else M.F

    fig, ax = plt.subplots(figsize=(7, 6))
    _draw(ax, XY, F, phi, title)
    ax.plot([XY[src, 0]], [XY[src, 1]], "ro", markersize=4)
    _save(fig, save_path)


def plot_gradient_modes(
    M: Mesh,
    src: int,
    save_path: str,
    *,
    exact: np.ndarray | None = None,
    m: float = 1.0,
    projection: str = "source",
    vmax_percentile: float = 40.0,
) -> dict:
    """
    One panel per gradient mode, plus one |error| panel per mode when the
    exact distance is known. The cap is cut from the exact distance when
    given, otherwise from the face-mode result.
    Returns {mode: mean abs error} with `exact`, {mode: phi} without.
    """
    phis = {mode: heat_geodesic_from_sources(M, src, m, gradient=mode)[0] for mode in GRADIENT_MODES}
    ref = exact if exact is not None else phis["face"]
    F = _cap_faces(M.F, ref, float(np.percentile(ref, vmax_percentile)))
    XY = project_around_source(M, src, projection)

    rows = 1 if exact is None else 2
    fig, axes = plt.subplots(rows, len(GRADIENT_MODES), figsize=(6 * len(GRADIENT_MODES), 5 * rows), squeeze=False)
    errors = {}
    for col, mode in enumerate(GRADIENT_MODES):
        phi = phis[mode]
        _draw(axes[0, col], XY, F, phi, f"{mode} gradient (t={m:g}h²)")
        axes[0, col].plot([XY[src, 0]], [XY[src, 1]], "ro", markersize=4)
        if exact is not None:
            err = np.abs(phi - exact)
            errors[mode] = float(err.mean())
            _draw(axes[1, col], XY, F, err, f"{mode}: mean |error| {errors[mode]:.3g}",
                  cmap="magma", label="|error|")
    _save(fig, save_path)
    return errors if exact is not None else phis


if __name__ == "__main__":
    out_dir = os.path.join("results", "plots")

    # sphere with a known answer, source at the north pole
    M = Mesh.from_trimesh(trimesh.creation.icosphere(subdivisions=4, radius=1.0))
    src = int(np.argmax(M.V[:, 2]))
    exact = great_circle_distance(M.V, src)
    for m in (1.0, 4.0):
        out = os.path.join(out_dir, f"sphere_gradient_modes_m{m:g}.png")
        errors = plot_gradient_modes(M, src, out, exact=exact, m=m)
        print(f"m={m:g}: " + ", ".join(f"{k} mean |err|={v:.4f}" for k, v in errors.items()))
        print(f"  → Saved: {out}")

    # any extra meshes given on the command line, no reference distance
    for path in sys.argv[1:]:
        if not os.path.exists(path):
            print(f"[warn] {path} not found, skipping")
            continue
        M = Mesh.load(path)
        name = os.path.splitext(os.path.basename(path))[0]
        out = os.path.join(out_dir, f"{name}_gradient_modes.png")
        plot_gradient_modes(M, 0, out)
        print(f"  → Saved: {out}")
