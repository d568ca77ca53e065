"""
Mesh statistics and volume integration.

Provides:
- Axis-aligned bounding box
- Enclosed volume by divergence-theorem tetrahedron summation
- Surface area, boundary edge count and a combined statistics record

Volume is exact for any closed, consistently wound mesh regardless of
convexity. Open or self-intersecting meshes still produce a number, but it has
no physical meaning; this is logged, not raised.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from stl_orient.config import WELD_TOLERANCE
from stl_orient.geometry.mesh import MeshLike, as_mesh, weld_vertices

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class BoundingBox:
    """Axis-Aligned Bounding Box (AABB).

    Attributes:
        min_point: Minimum corner (x_min, y_min, z_min)
        max_point: Maximum corner (x_max, y_max, z_max)
    """
    min_point: NDArray[np.float64]
    max_point: NDArray[np.float64]

    @property
    def dimensions(self) -> NDArray[np.float64]:
        """Box size along X, Y, Z."""
        return self.max_point - self.min_point

    @property
    def width(self) -> float:
        """X-axis dimension."""
        return float(self.dimensions[0])

    @property
    def height(self) -> float:
        """Y-axis (vertical) dimension."""
        return float(self.dimensions[1])

    @property
    def depth(self) -> float:
        """Z-axis dimension."""
        return float(self.dimensions[2])

    @property
    def center(self) -> NDArray[np.float64]:
        return (self.min_point + self.max_point) / 2

    @property
    def volume(self) -> float:
        dims = self.dimensions
        return float(dims[0] * dims[1] * dims[2])

    def translated(self, offset) -> 'BoundingBox':
        shift = np.asarray(offset, dtype=np.float64)
        return BoundingBox(self.min_point + shift, self.max_point + shift)

    def to_dict(self) -> dict:
        return {
            'min': self.min_point.tolist(),
            'max': self.max_point.tolist(),
            'dimensions': self.dimensions.tolist(),
            'center': self.center.tolist(),
        }


@dataclass
class MeshStatistics:
    """Summary of a mesh in its as-loaded orientation.

    Attributes:
        n_triangles: Number of triangles
        n_vertices: Number of unique vertices after welding
        bbox: Axis-aligned bounding box
        surface_area: Total surface area, squared mesh units
        volume: Enclosed volume (absolute), cubic mesh units
        n_boundary_edges: Edges used by only one triangle (0 for closed meshes)
    """
    n_triangles: int
    n_vertices: int
    bbox: BoundingBox
    surface_area: float
    volume: float
    n_boundary_edges: int

    @property
    def is_watertight(self) -> bool:
        return self.n_boundary_edges == 0

    @property
    def dimensions(self) -> Tuple[float, float, float]:
        dims = self.bbox.dimensions
        return (float(dims[0]), float(dims[1]), float(dims[2]))

    def to_dict(self) -> dict:
        return {
            'n_triangles': self.n_triangles,
            'n_vertices': self.n_vertices,
            'bbox': self.bbox.to_dict(),
            'surface_area': self.surface_area,
            'volume': self.volume,
            'n_boundary_edges': self.n_boundary_edges,
            'is_watertight': self.is_watertight,
        }


def calculate_bounding_box(vertices: NDArray[np.float64]) -> BoundingBox:
    """Calculate axis-aligned bounding box for an (N, 3) point array."""
    vertices = np.asarray(vertices, dtype=np.float64)
    if len(vertices) == 0:
        return BoundingBox(min_point=np.zeros(3), max_point=np.zeros(3))

    return BoundingBox(
        min_point=np.min(vertices, axis=0),
        max_point=np.max(vertices, axis=0),
    )


def calculate_signed_volume(
    vertices: NDArray[np.float64],
    faces: NDArray[np.int64],
) -> float:
    """Signed volume of an indexed mesh.

    Formula: V = (1/6) * sum(v0 . (v1 x v2)); the sign follows the winding.
    """
    if len(faces) == 0:
        return 0.0

    v0 = vertices[faces[:, 0]]
    v1 = vertices[faces[:, 1]]
    v2 = vertices[faces[:, 2]]

    signed_volumes = np.einsum('ij,ij->i', v0, np.cross(v1, v2)) / 6.0
    return float(np.sum(signed_volumes))


def compute_volume(mesh: MeshLike, weld_tolerance: float = WELD_TOLERANCE) -> float:
    """Enclosed volume of a closed triangle mesh.

    The soup is welded into indexed form first, then the signed tetrahedra
    formed with the origin are summed. The absolute value is returned, so
    inverted winding does not matter.

    Precondition: the mesh is closed. For open meshes the result is defined
    but meaningless; a warning is logged.

    Args:
        mesh: TriangleMesh or (M, 3, 3) positions
        weld_tolerance: merge distance for coincident vertices

    Returns:
        Non-negative volume in cubic mesh units

    Raises:
        MalformedMeshError: if the mesh has no usable position data
    """
    tri_mesh = as_mesh(mesh)
    vertices, faces = weld_vertices(tri_mesh.vertices, weld_tolerance)

    n_boundary = count_boundary_edges(faces)
    if n_boundary:
        logger.warning(
            "Mesh is not closed (%d boundary edges); volume is approximate",
            n_boundary,
        )

    volume = abs(calculate_signed_volume(vertices, faces))
    logger.debug("Volume: %.3f (%d triangles)", volume, len(faces))
    return volume


def calculate_face_areas(triangles: NDArray[np.float64]) -> NDArray[np.float64]:
    """Area of each triangle in an (M, 3, 3) array: 0.5 * |e1 x e2|."""
    e1 = triangles[:, 1] - triangles[:, 0]
    e2 = triangles[:, 2] - triangles[:, 0]
    return 0.5 * np.linalg.norm(np.cross(e1, e2), axis=1)


def calculate_surface_area(mesh: MeshLike) -> float:
    return float(np.sum(calculate_face_areas(as_mesh(mesh).triangles)))


def count_boundary_edges(faces: NDArray[np.int64]) -> int:
    """Number of edges used by exactly one face (0 for a closed mesh)."""
    if len(faces) == 0:
        return 0

    edges = np.vstack([
        np.sort(np.stack([faces[:, i], faces[:, (i + 1) % 3]], axis=1), axis=1)
        for i in range(3)
    ])
    edge_count = Counter(map(tuple, edges.tolist()))
    return sum(1 for count in edge_count.values() if count == 1)


def calculate_mesh_statistics(
    mesh: MeshLike,
    weld_tolerance: float = WELD_TOLERANCE,
) -> MeshStatistics:
    """Calculate statistics for a mesh.

    Example:
        >>> stats = calculate_mesh_statistics(mesh)
        >>> print(f"{stats.volume:.1f} mm^3, watertight={stats.is_watertight}")
    """
    tri_mesh = as_mesh(mesh)
    vertices, faces = weld_vertices(tri_mesh.vertices, weld_tolerance)

    stats = MeshStatistics(
        n_triangles=tri_mesh.n_triangles,
        n_vertices=len(vertices),
        bbox=calculate_bounding_box(vertices),
        surface_area=float(np.sum(calculate_face_areas(tri_mesh.triangles))),
        volume=abs(calculate_signed_volume(vertices, faces)),
        n_boundary_edges=count_boundary_edges(faces),
    )

    logger.debug(
        "Mesh statistics calculated",
        extra={
            'triangles': stats.n_triangles,
            'vertices': stats.n_vertices,
            'volume': stats.volume,
        },
    )
    return stats
