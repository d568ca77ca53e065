"""
Build-plate fit check and placement.

The build envelope is centered on the origin in X and Z and starts at the
floor (y = 0) in Y. A part fits when its axis-aligned bounding box, after an
optional horizontal shift, lies inside the envelope; it is then lowered so
its lowest point rests on the floor.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from stl_orient.config import BUILD_DEPTH_MM, BUILD_HEIGHT_MM, BUILD_WIDTH_MM
from stl_orient.geometry.mesh import MeshLike, TriangleMesh, as_mesh
from stl_orient.geometry.mesh_stats import BoundingBox
from stl_orient.orientation.rotation import Rotation3D

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildEnvelope:
    """Printable volume: width (X) x height (Y) x depth (Z)."""
    width: float = BUILD_WIDTH_MM
    height: float = BUILD_HEIGHT_MM
    depth: float = BUILD_DEPTH_MM

    def __post_init__(self):
        for name in ('width', 'height', 'depth'):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"Build envelope {name} must be positive, got {value}")

    @property
    def dimensions(self) -> Tuple[float, float, float]:
        return (self.width, self.height, self.depth)

    def to_dict(self) -> dict:
        return {'width': self.width, 'height': self.height, 'depth': self.depth}


@dataclass(frozen=True)
class FitResult:
    can_fit: bool
    offset_x: float = 0.0
    offset_z: float = 0.0

    def to_dict(self) -> dict:
        return {'can_fit': self.can_fit, 'offset_x': self.offset_x, 'offset_z': self.offset_z}


@dataclass(frozen=True, eq=False)
class Placement:
    """Result of putting an oriented part on the build plate.

    Attributes:
        rotation: orientation applied to the part
        bounding_box: bounding box of the rotated part, before translation
        fit: fit check verdict and horizontal offsets
        translation: (offset_x, -min_y, offset_z) moving the part onto the plate
    """
    rotation: Rotation3D
    bounding_box: BoundingBox
    fit: FitResult
    translation: Tuple[float, float, float]

    @property
    def exceeds_envelope(self) -> bool:
        return not self.fit.can_fit

    def to_dict(self) -> dict:
        return {
            'rotation': self.rotation.to_dict(),
            'bounding_box': self.bounding_box.to_dict(),
            'fit': self.fit.to_dict(),
            'translation': list(self.translation),
            'exceeds_envelope': self.exceeds_envelope,
        }


def _axis_offset(lo: float, hi: float, half: float) -> float:
    """Shift that moves [lo, hi] inside [-half, half], or 0 if already inside."""
    if lo < -half:
        return -half - lo
    if hi > half:
        return half - hi
    return 0.0


def check_fit(bounding_box: BoundingBox, envelope: Optional[BuildEnvelope] = None) -> FitResult:
    """Check whether a bounding box fits the envelope after a horizontal shift.

    Args:
        bounding_box: bounding box of the oriented part
        envelope: build envelope (default 256 x 256 x 256)

    Returns:
        FitResult; offsets are zero when the part cannot fit
    """
    envelope = envelope or BuildEnvelope()
    size_x, size_y, size_z = (float(v) for v in bounding_box.dimensions)

    if size_x > envelope.width or size_y > envelope.height or size_z > envelope.depth:
        logger.info(
            "Part %.1f x %.1f x %.1f does not fit envelope %.0f x %.0f x %.0f",
            size_x, size_y, size_z, *envelope.dimensions,
        )
        return FitResult(can_fit=False)

    half_width = envelope.width / 2
    half_depth = envelope.depth / 2
    min_x, _, min_z = (float(v) for v in bounding_box.min_point)
    max_x, _, max_z = (float(v) for v in bounding_box.max_point)

    offset_x = _axis_offset(min_x, max_x, half_width)
    offset_z = _axis_offset(min_z, max_z, half_depth)

    fits_x = min_x + offset_x >= -half_width and max_x + offset_x <= half_width
    fits_z = min_z + offset_z >= -half_depth and max_z + offset_z <= half_depth

    result = FitResult(can_fit=fits_x and fits_z, offset_x=offset_x, offset_z=offset_z)
    logger.debug("Fit check: %s", result)
    return result


def place_on_build_plate(
    mesh: MeshLike,
    rotation: Optional[Rotation3D] = None,
    envelope: Optional[BuildEnvelope] = None,
) -> Placement:
    """Orient a copy of the part and compute its build-plate placement.

    Args:
        mesh: part at its original orientation (not modified)
        rotation: orientation to apply (identity if None)
        envelope: build envelope

    Returns:
        Placement with the rotated bounding box, fit verdict and translation
    """
    rotation = rotation or Rotation3D.identity()
    oriented: TriangleMesh = as_mesh(mesh).rotated(rotation)
    bbox = oriented.bounding_box()
    fit = check_fit(bbox, envelope)

    # 0.0 - y instead of -y: no -0.0 for parts already on the floor
    translation = (fit.offset_x, 0.0 - float(bbox.min_point[1]), fit.offset_z)

    if not fit.can_fit:
        logger.warning(
            "Part exceeds build envelope: %s",
            np.round(bbox.dimensions, 2).tolist(),
        )

    return Placement(rotation=rotation, bounding_box=bbox, fit=fit, translation=translation)
