"""
Rigid rotations for re-orienting a part on the build plate.

Euler angles follow the XYZ order of common 3D viewers: the matrix is
Rx @ Ry @ Rz. Y is the vertical axis.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from stl_orient.geometry.mesh import normalize_rows

logger = logging.getLogger(__name__)

# Entries smaller than this are snapped to exact zero (sin(pi) etc.)
_SNAP_EPSILON = 1e-12

# three.js uses the same gimbal-lock cutoff
_GIMBAL_LIMIT = 0.9999999


def _js_round(value: float) -> int:
    """Round half up, matching the rounding used in orientation labels."""
    return int(math.floor(value + 0.5))


def _unit(v) -> NDArray[np.float64]:
    """Unit vector along v; a zero vector stays zero."""
    return normalize_rows(np.asarray(v, dtype=np.float64).reshape(1, 3))[0]


def _skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Cross-product matrix: _skew(a) @ b == cross(a, b)."""
    x, y, z = v
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def _principal(axis_index: int, angle_rad: float) -> NDArray[np.float64]:
    """Rotation about the X (0), Y (1) or Z (2) axis."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    i, j = [k for k in range(3) if k != axis_index]
    # about Y the sine signs flip, since Z -> X is the positive direction
    if axis_index == 1:
        s = -s
    m = np.eye(3)
    m[i, i] = m[j, j] = c
    m[i, j] = -s
    m[j, i] = s
    return m


@dataclass(eq=False)
class Rotation3D:
    """Proper rotation in 3D.

    Attributes:
        matrix: 3x3 orthogonal matrix with det = +1, read-only
        euler_hint: XYZ angles (radians) the rotation was built from;
            `euler_xyz` reports them as given instead of extracting them
    """
    matrix: NDArray[np.float64]
    euler_hint: Optional[Tuple[float, float, float]] = field(default=None, repr=False)

    def __post_init__(self):
        m = np.array(self.matrix, dtype=np.float64)
        if m.shape != (3, 3):
            raise ValueError(f"Expected a 3x3 rotation matrix, got shape {m.shape}")
        m[np.abs(m) < _SNAP_EPSILON] = 0.0
        m.setflags(write=False)
        self.matrix = m

    @classmethod
    def identity(cls) -> 'Rotation3D':
        return cls(np.eye(3), euler_hint=(0.0, 0.0, 0.0))

    @classmethod
    def from_axis_angle(cls, axis: NDArray[np.float64], angle_rad: float) -> 'Rotation3D':
        """Rodrigues' formula: R = I + sin(a) K + (1 - cos(a)) K^2.

        The axis does not need to be normalized.
        """
        k = _skew(_unit(axis))
        return cls(np.eye(3) + math.sin(angle_rad) * k + (1.0 - math.cos(angle_rad)) * (k @ k))

    @classmethod
    def from_euler_xyz(cls, angles_rad: Tuple[float, float, float]) -> 'Rotation3D':
        """Rotation from (x, y, z) Euler angles in radians, XYZ order."""
        angles = tuple(float(a) for a in angles_rad)
        matrix = _principal(0, angles[0]) @ _principal(1, angles[1]) @ _principal(2, angles[2])
        return cls(matrix, euler_hint=angles)

    @classmethod
    def around_x(cls, angle_rad: float) -> 'Rotation3D':
        return cls.from_euler_xyz((angle_rad, 0.0, 0.0))

    @classmethod
    def around_y(cls, angle_rad: float) -> 'Rotation3D':
        return cls.from_euler_xyz((0.0, angle_rad, 0.0))

    @classmethod
    def around_z(cls, angle_rad: float) -> 'Rotation3D':
        return cls.from_euler_xyz((0.0, 0.0, angle_rad))

    def apply(self, points: NDArray[np.float64]) -> NDArray[np.float64]:
        """Rotate one vector (shape (3,)) or a batch of row vectors (N, 3)."""
        pts = np.asarray(points, dtype=np.float64)
        return pts @ self.matrix.T if pts.ndim > 1 else self.matrix @ pts

    def compose(self, other: 'Rotation3D') -> 'Rotation3D':
        """`other` first, then `self`."""
        return Rotation3D(self.matrix @ other.matrix)

    def inverse(self) -> 'Rotation3D':
        return Rotation3D(self.matrix.T)

    @property
    def euler_xyz(self) -> Tuple[float, float, float]:
        """XYZ Euler angles in radians (construction angles when known)."""
        if self.euler_hint is not None:
            return self.euler_hint

        m = self.matrix
        sin_y = float(np.clip(m[0, 2], -1.0, 1.0))
        if abs(sin_y) < _GIMBAL_LIMIT:
            return (
                math.atan2(-m[1, 2], m[2, 2]),
                math.asin(sin_y),
                math.atan2(-m[0, 1], m[0, 0]),
            )
        # gimbal lock: X and Z turn about the same axis, put it all in X
        return (math.atan2(m[2, 1], m[1, 1]), math.asin(sin_y), 0.0)

    @property
    def euler_degrees(self) -> Tuple[int, int, int]:
        return tuple(_js_round(math.degrees(a)) for a in self.euler_xyz)

    @property
    def axis_angle(self) -> Tuple[NDArray[np.float64], float]:
        """(unit axis, angle in radians); the axis is +X for the identity."""
        m = self.matrix
        angle = math.acos(float(np.clip((np.trace(m) - 1.0) / 2.0, -1.0, 1.0)))

        if angle < 1e-6:
            return np.array([1.0, 0.0, 0.0]), 0.0

        if math.pi - angle < 1e-6:
            # half turn: (R + I) / 2 = a a^T, any non-zero column is along a
            outer = (m + np.eye(3)) / 2.0
            column = outer[:, int(np.argmax(np.diag(outer)))]
            return column / np.linalg.norm(column), math.pi

        axis = np.array([m[2, 1] - m[1, 2], m[0, 2] - m[2, 0], m[1, 0] - m[0, 1]])
        return axis / (2.0 * math.sin(angle)), angle

    def is_identity(self, tol: float = 1e-9) -> bool:
        return bool(np.allclose(self.matrix, np.eye(3), atol=tol))

    def to_dict(self) -> dict:
        return {
            'euler_xyz_deg': list(self.euler_degrees),
            'matrix': self.matrix.tolist(),
        }

    def __matmul__(self, other: 'Rotation3D') -> 'Rotation3D':
        return self.compose(other)
