from .geometry import to_vector3, cotangent, unit_face_normals
from .laplacian import cotangent_laplacian, walk_fan
from .mass_matrix import lumped_mass_barycentric
from .gradient import face_gradient, vertex_gradient, normalize_vector_field
from .divergence import divergence_from_face_field, vertex_divergence

__all__ = [
    "to_vector3",
    "cotangent",
    "unit_face_normals",
    "cotangent_laplacian",
    "walk_fan",
    "lumped_mass_barycentric",
    "face_gradient",
    "vertex_gradient",
    "normalize_vector_field",
    "divergence_from_face_field",
    "vertex_divergence",
]
