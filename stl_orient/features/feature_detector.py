"""
Feature detection for print orientation.

Classifies each triangle by its face normal:
- flat up-facing surfaces (potential build-plate contact)
- overhangs (faces pointing down, need support)
- hole candidates (normal pointing toward the bounding-box center)

Hole detection is a normal-direction heuristic, not topological analysis:
inward-facing walls of a bore or socket look toward the part's center.
The "functional direction" is the negated average normal of those faces.

Features are detected once, at the mesh's original orientation.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from numpy.typing import NDArray

from stl_orient.config import (
    FLAT_NORMAL_THRESHOLD,
    HOLE_DETECTION_THRESHOLD,
    NORMAL_EPSILON,
    OVERHANG_FACTOR,
    WORLD_DOWN,
    WORLD_UP,
)
from stl_orient.geometry.mesh import MeshLike, as_mesh, normalize_rows

logger = logging.getLogger(__name__)


@dataclass
class FeatureDetectionResult:
    """Features found in a mesh at its original orientation.

    Index lists refer to triangle positions in the mesh.
    """
    has_flat_surfaces: bool = False
    flat_surface_indices: List[int] = field(default_factory=list)
    has_holes: bool = False
    hole_indices: List[int] = field(default_factory=list)
    has_overhangs: bool = False
    overhang_indices: List[int] = field(default_factory=list)
    functional_direction: Optional[NDArray[np.float64]] = None

    def to_dict(self) -> dict:
        return {
            'has_flat_surfaces': self.has_flat_surfaces,
            'n_flat_surfaces': len(self.flat_surface_indices),
            'has_holes': self.has_holes,
            'n_hole_faces': len(self.hole_indices),
            'has_overhangs': self.has_overhangs,
            'n_overhang_faces': len(self.overhang_indices),
            'functional_direction': (
                None if self.functional_direction is None
                else self.functional_direction.tolist()
            ),
        }


class FeatureDetector:
    """Heuristic detector of print-relevant surface features.

    Args:
        flat_threshold: cos of the max tilt for an up-facing flat face
        hole_threshold: min alignment of the normal with the center direction
        overhang_factor: overhang threshold = flat_threshold * overhang_factor
    """

    def __init__(
        self,
        flat_threshold: float = FLAT_NORMAL_THRESHOLD,
        hole_threshold: float = HOLE_DETECTION_THRESHOLD,
        overhang_factor: float = OVERHANG_FACTOR,
    ):
        self.flat_threshold = flat_threshold
        self.hole_threshold = hole_threshold
        self.overhang_factor = overhang_factor

    def detect(self, mesh: MeshLike) -> FeatureDetectionResult:
        """Classify triangles and derive the functional direction.

        Raises:
            MalformedMeshError: if positions or normals are missing or malformed
        """
        tri_mesh = as_mesh(mesh)
        normals = tri_mesh.normals

        up_dots = normals @ WORLD_UP
        down_dots = normals @ WORLD_DOWN

        flat = np.flatnonzero(up_dots > self.flat_threshold)
        overhang = np.flatnonzero(down_dots > self.flat_threshold * self.overhang_factor)
        holes = self._hole_candidates(tri_mesh.face_centers, normals, tri_mesh.bounding_box().center)

        result = FeatureDetectionResult(
            has_flat_surfaces=len(flat) > 0,
            flat_surface_indices=flat.tolist(),
            has_overhangs=len(overhang) > 0,
            overhang_indices=overhang.tolist(),
        )

        if len(holes) > 0:
            result.has_holes = True
            result.hole_indices = holes.tolist()
            result.functional_direction = self._functional_direction(normals[holes])

        logger.info(
            "Features: flat=%d, holes=%d, overhangs=%d, functional direction=%s",
            len(flat), len(holes), len(overhang),
            None if result.functional_direction is None
            else np.round(result.functional_direction, 3).tolist(),
        )
        return result

    def _hole_candidates(
        self,
        face_centers: NDArray[np.float64],
        normals: NDArray[np.float64],
        bbox_center: NDArray[np.float64],
    ) -> NDArray[np.intp]:
        """Faces whose normal looks toward the bounding-box center."""
        to_center = normalize_rows(bbox_center[np.newaxis, :] - face_centers)
        alignment = np.einsum('ij,ij->i', normals, to_center)
        return np.flatnonzero(alignment > self.hole_threshold)

    @staticmethod
    def _functional_direction(hole_normals: NDArray[np.float64]) -> Optional[NDArray[np.float64]]:
        """Negated, normalized mean of the hole-face normals."""
        avg = hole_normals.mean(axis=0)
        length = float(np.linalg.norm(avg))
        if length < NORMAL_EPSILON:
            logger.warning("Hole normals cancel out; no functional direction")
            return None
        return -avg / length


def detect_features(mesh: MeshLike, detector: Optional[FeatureDetector] = None) -> FeatureDetectionResult:
    """Detect flat surfaces, holes and overhangs with default thresholds."""
    return (detector or FeatureDetector()).detect(mesh)
