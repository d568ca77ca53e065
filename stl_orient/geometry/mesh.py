"""
Triangle mesh model shared by every analysis stage.

Provides:
- TriangleMesh: immutable triangle soup with unit face normals
- Construction from soup, indexed (vertices + faces) or flat position buffers
- Rigid transforms that return new meshes (rotated, translated)
- Welding of coincident vertices into an indexed form

Volume integration is only physically meaningful for closed (watertight)
meshes. Closure is not validated here; see mesh_stats.count_boundary_edges.
"""

import logging
from typing import Optional, Tuple, Union

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

from stl_orient.config import NORMAL_EPSILON, WELD_TOLERANCE

logger = logging.getLogger(__name__)


class MalformedMeshError(ValueError):
    """Mesh is missing position or normal data required for an operation."""


def normalize_rows(vectors: NDArray[np.float64]) -> NDArray[np.float64]:
    """Normalize each row to unit length; zero-length rows stay zero."""
    lengths = np.linalg.norm(vectors, axis=1, keepdims=True)
    safe = np.where(lengths < NORMAL_EPSILON, 1.0, lengths)
    unit = vectors / safe
    unit[lengths[:, 0] < NORMAL_EPSILON] = 0.0
    return unit


def compute_face_normals(triangles: NDArray[np.float64]) -> NDArray[np.float64]:
    """Unit face normals from the cross product of the triangle edges.

    Args:
        triangles: (M, 3, 3) triangle vertex positions

    Returns:
        (M, 3) unit normals, zero for degenerate triangles
    """
    e1 = triangles[:, 1] - triangles[:, 0]
    e2 = triangles[:, 2] - triangles[:, 0]
    return normalize_rows(np.cross(e1, e2))


def _as_triangles(positions) -> NDArray[np.float64]:
    if positions is None:
        raise MalformedMeshError("Mesh has no position data")

    try:
        triangles = np.array(positions, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedMeshError(f"Mesh positions are not numeric: {exc}") from exc

    if triangles.size == 0:
        raise MalformedMeshError("Mesh has no triangles")
    if triangles.ndim != 3 or triangles.shape[1:] != (3, 3):
        raise MalformedMeshError(
            f"Mesh positions must have shape (M, 3, 3), got {triangles.shape}"
        )
    if not np.all(np.isfinite(triangles)):
        raise MalformedMeshError("Mesh positions contain NaN or infinite values")
    return triangles


def _as_face_normals(normals, n_triangles: int) -> NDArray[np.float64]:
    try:
        arr = np.array(normals, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise MalformedMeshError(f"Mesh normals are not numeric: {exc}") from exc

    if arr.shape == (n_triangles, 3, 3):
        # Per-vertex normals: average over the triangle's corners
        arr = arr.mean(axis=1)
    elif arr.shape != (n_triangles, 3):
        raise MalformedMeshError(
            f"Normals must have shape ({n_triangles}, 3) or ({n_triangles}, 3, 3), "
            f"got {arr.shape}"
        )
    if not np.all(np.isfinite(arr)):
        raise MalformedMeshError("Mesh normals contain NaN or infinite values")
    return normalize_rows(arr)


class TriangleMesh:
    """Immutable triangle mesh with one unit normal per triangle.

    Attributes:
        triangles: (M, 3, 3) read-only vertex positions
        normals: (M, 3) read-only unit face normals

    Normals may be given per face (M, 3), per vertex (M, 3, 3, averaged per
    triangle) or omitted, in which case they are derived by cross product.
    """

    def __init__(self, triangles, normals=None):
        tris = _as_triangles(triangles)
        if normals is None:
            face_normals = compute_face_normals(tris)
        else:
            face_normals = _as_face_normals(normals, len(tris))

        tris.setflags(write=False)
        face_normals.setflags(write=False)
        self._triangles = tris
        self._normals = face_normals

    @classmethod
    def from_indexed(cls, vertices, faces, normals=None) -> 'TriangleMesh':
        """Build from an indexed mesh (unique vertices + face indices)."""
        if vertices is None or faces is None:
            raise MalformedMeshError("Indexed mesh needs both vertices and faces")
        verts = np.asarray(vertices, dtype=np.float64)
        idx = np.asarray(faces)
        if verts.ndim != 2 or verts.shape[1] != 3:
            raise MalformedMeshError(f"Vertices must have shape (N, 3), got {verts.shape}")
        if idx.size == 0:
            raise MalformedMeshError("Mesh has no triangles")
        if idx.ndim != 2 or idx.shape[1] != 3:
            raise MalformedMeshError(f"Faces must have shape (M, 3), got {idx.shape}")
        if idx.min() < 0 or idx.max() >= len(verts):
            raise MalformedMeshError("Face index out of range")
        return cls(verts[idx.astype(np.int64)], normals)

    @classmethod
    def from_positions(cls, positions, normals=None) -> 'TriangleMesh':
        """Build from a flat position buffer of 9 floats per triangle."""
        if positions is None:
            raise MalformedMeshError("Mesh has no position data")
        flat = np.asarray(positions, dtype=np.float64).ravel()
        if flat.size == 0 or flat.size % 9 != 0:
            raise MalformedMeshError(
                f"Position buffer length must be a positive multiple of 9, got {flat.size}"
            )
        if normals is not None:
            normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
            if len(normals) == flat.size // 3:
                normals = normals.reshape(-1, 3, 3)
        return cls(flat.reshape(-1, 3, 3), normals)

    @property
    def triangles(self) -> NDArray[np.float64]:
        return self._triangles

    @property
    def normals(self) -> NDArray[np.float64]:
        return self._normals

    @property
    def n_triangles(self) -> int:
        return len(self._triangles)

    @property
    def vertices(self) -> NDArray[np.float64]:
        """All corner positions as an (3M, 3) array (not deduplicated)."""
        return self._triangles.reshape(-1, 3)

    @property
    def face_centers(self) -> NDArray[np.float64]:
        return self._triangles.mean(axis=1)

    def bounding_box(self):
        """Axis-aligned bounding box of the current geometry."""
        from stl_orient.geometry.mesh_stats import calculate_bounding_box
        return calculate_bounding_box(self.vertices)

    def rotated(self, rotation) -> 'TriangleMesh':
        """Return a copy rotated about the local origin.

        Args:
            rotation: Rotation3D or a 3x3 rotation matrix
        """
        matrix = np.asarray(getattr(rotation, 'matrix', rotation), dtype=np.float64)
        tris = self._triangles.reshape(-1, 3) @ matrix.T
        normals = self._normals @ matrix.T
        return TriangleMesh(tris.reshape(-1, 3, 3), normals)

    def translated(self, offset) -> 'TriangleMesh':
        """Return a copy shifted by `offset` (3-vector); normals unchanged."""
        shift = np.asarray(offset, dtype=np.float64).reshape(1, 1, 3)
        return TriangleMesh(self._triangles + shift, self._normals)

    def welded(
        self,
        tolerance: float = WELD_TOLERANCE,
    ) -> Tuple[NDArray[np.float64], NDArray[np.int64]]:
        """Merge coincident corners into an indexed (vertices, faces) form.

        Corners closer than `tolerance` are joined transitively; each group
        keeps the position of its lowest-index member.

        Returns:
            vertices: (N, 3) unique positions
            faces: (M, 3) indices into vertices, one row per triangle
        """
        return weld_vertices(self.vertices, tolerance)

    def __len__(self) -> int:
        return self.n_triangles

    def __repr__(self) -> str:
        return f"TriangleMesh(n_triangles={self.n_triangles})"


def weld_vertices(
    points: NDArray[np.float64],
    tolerance: float = WELD_TOLERANCE,
) -> Tuple[NDArray[np.float64], NDArray[np.int64]]:
    """Weld a triangle-corner list (3M, 3) into indexed form.

    Args:
        points: corner positions, three consecutive rows per triangle
        tolerance: merge distance

    Returns:
        (vertices, faces) tuple
    """
    points = np.asarray(points, dtype=np.float64)
    n = len(points)
    if n == 0 or n % 3 != 0:
        raise MalformedMeshError(f"Corner count must be a positive multiple of 3, got {n}")

    tree = cKDTree(points)
    pairs = tree.query_pairs(r=tolerance, output_type='ndarray')

    if len(pairs) == 0:
        labels = np.arange(n)
    else:
        graph = coo_matrix(
            (np.ones(len(pairs), dtype=np.int8), (pairs[:, 0], pairs[:, 1])),
            shape=(n, n),
        )
        _, labels = connected_components(graph, directed=False)

    _, first_index, inverse = np.unique(labels, return_index=True, return_inverse=True)
    vertices = points[first_index]
    faces = inverse.reshape(-1, 3).astype(np.int64)

    logger.debug("Welded %d corners into %d vertices", n, len(vertices))
    return vertices, faces


MeshLike = Union[TriangleMesh, NDArray[np.float64]]


def as_mesh(mesh: Optional[MeshLike]) -> TriangleMesh:
    """Accept a TriangleMesh or raw (M, 3, 3) positions."""
    if isinstance(mesh, TriangleMesh):
        return mesh
    return TriangleMesh(mesh)
