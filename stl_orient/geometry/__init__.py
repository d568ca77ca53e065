"""Геометрия: модель сетки, объём, bounding box, статистика."""

from stl_orient.geometry.mesh import (
    MalformedMeshError,
    TriangleMesh,
    compute_face_normals,
    weld_vertices,
)
from stl_orient.geometry.mesh_stats import (
    BoundingBox,
    MeshStatistics,
    calculate_bounding_box,
    calculate_mesh_statistics,
    calculate_signed_volume,
    calculate_surface_area,
    compute_volume,
)

__all__ = [
    "MalformedMeshError",
    "TriangleMesh",
    "compute_face_normals",
    "weld_vertices",
    "BoundingBox",
    "MeshStatistics",
    "calculate_bounding_box",
    "calculate_mesh_statistics",
    "calculate_signed_volume",
    "calculate_surface_area",
    "compute_volume",
]
