"""
Pytest configuration and fixtures for the STL print-orientation analyzer.

Provides:
- Mesh builders (box, disc, box with inward-facing "hole" walls, bore plate)
- STL file fixtures written with numpy-stl (binary, ASCII, empty, custom normals)
- Assertion helpers
"""

import logging
from pathlib import Path
from typing import Callable, Sequence

import numpy as np
import pytest
from stl import mesh as stl_mesh

from stl_orient.geometry.mesh import TriangleMesh
from stl_orient.orientation.rotation import Rotation3D

# Corner i of a box: x = bit 0, y = bit 1, z = bit 2; outward (CCW) winding
BOX_FACES = [
    [0, 4, 6], [0, 6, 2],  # -X
    [1, 3, 7], [1, 7, 5],  # +X
    [0, 1, 5], [0, 5, 4],  # -Y (bottom)
    [2, 6, 7], [2, 7, 3],  # +Y (top)
    [0, 2, 3], [0, 3, 1],  # -Z
    [4, 5, 7], [4, 7, 6],  # +Z
]


# ============================================================================
# Logging Isolation
# ============================================================================

@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog sees stl_orient records in every test."""
    yield
    logger = logging.getLogger("stl_orient")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for log_filter in list(logger.filters):
        logger.removeFilter(log_filter)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# ============================================================================
# Helper Functions for Building Test Geometry
# ============================================================================

def _box_triangles(min_corner: Sequence[float], max_corner: Sequence[float]) -> np.ndarray:
    """(12, 3, 3) triangles of an axis-aligned box with outward normals."""
    lo = np.asarray(min_corner, dtype=np.float64)
    hi = np.asarray(max_corner, dtype=np.float64)
    corners = np.array([
        [hi[0] if i & 1 else lo[0], hi[1] if i & 2 else lo[1], hi[2] if i & 4 else lo[2]]
        for i in range(8)
    ])
    return corners[np.array(BOX_FACES)]


def _centered_box(size_x: float, size_y: float, size_z: float) -> np.ndarray:
    half = np.array([size_x, size_y, size_z]) / 2
    return _box_triangles(-half, half)


def _jittered(triangles: np.ndarray, amount: float = 1e-3, seed: int = 0) -> np.ndarray:
    """Move every triangle corner independently by up to `amount` per axis.

    Shared corners no longer coincide exactly, as in files written with
    limited precision.
    """
    rng = np.random.default_rng(seed)
    return triangles + rng.uniform(-amount, amount, size=triangles.shape)


def _disc_triangles(radius: float = 20.0, thickness: float = 2.0,
                    segments: int = 32) -> np.ndarray:
    """Closed disc (short cylinder) with its axis along Y, centered on the origin."""
    angles = np.linspace(0, 2 * np.pi, segments, endpoint=False)
    ring = np.column_stack([radius * np.cos(angles), np.zeros(segments), radius * np.sin(angles)])
    top = ring + [0.0, thickness / 2, 0.0]
    bot = ring - [0.0, thickness / 2, 0.0]
    c_top = np.array([0.0, thickness / 2, 0.0])
    c_bot = np.array([0.0, -thickness / 2, 0.0])

    triangles = []
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append([c_top, top[j], top[i]])   # top cap, normal +Y
        triangles.append([c_bot, bot[i], bot[j]])   # bottom cap, normal -Y
        triangles.append([bot[i], top[j], bot[j]])  # side, outward
        triangles.append([bot[i], top[i], top[j]])
    return np.array(triangles)


def _quad_facing_up(y: float, half: float = 2.0) -> np.ndarray:
    """Two triangles in the plane y = const with normal +Y."""
    a = [-half, y, -half]
    b = [half, y, -half]
    c = [half, y, half]
    d = [-half, y, half]
    return np.array([[a, d, c], [a, c, b]], dtype=np.float64)


def _quad_facing_plus_x(x: float, half: float = 2.0) -> np.ndarray:
    """Two triangles in the plane x = const with normal +X."""
    a = [x, -half, -half]
    b = [x, half, -half]
    c = [x, half, half]
    d = [x, -half, half]
    return np.array([[a, b, c], [a, c, d]], dtype=np.float64)


def _bore_walls(radius: float, height: float, segments: int = 24) -> np.ndarray:
    """Inward-facing cylinder walls along Y (the inside of a through-bore)."""
    angles = np.linspace(0, 2 * np.pi, segments, endpoint=False)
    ring = np.column_stack([radius * np.cos(angles), np.zeros(segments), radius * np.sin(angles)])
    top = ring + [0.0, height / 2, 0.0]
    bot = ring - [0.0, height / 2, 0.0]

    triangles = []
    for i in range(segments):
        j = (i + 1) % segments
        triangles.append([bot[i], bot[j], top[j]])
        triangles.append([bot[i], top[j], top[i]])
    return np.array(triangles)


def _write_binary_stl(path: Path, triangles: np.ndarray, normals=None) -> None:
    """Write a binary STL; with `normals`, they are stored verbatim."""
    m = stl_mesh.Mesh(np.zeros(len(triangles), dtype=stl_mesh.Mesh.dtype))
    m.vectors[:] = triangles
    if normals is None:
        m.save(str(path))
    else:
        m.normals[:] = normals
        m.save(str(path), update_normals=False)


def _write_ascii_stl(path: Path, triangles: np.ndarray, name: str = "part") -> None:
    """Write an ASCII STL by hand (normals computed per facet)."""
    with open(str(path), 'w') as f:
        f.write(f"solid {name}\n")
        for tri in triangles:
            v0, v1, v2 = tri
            normal = np.cross(v1 - v0, v2 - v0)
            normal = normal / np.linalg.norm(normal)
            f.write(f"  facet normal {normal[0]} {normal[1]} {normal[2]}\n")
            f.write("    outer loop\n")
            for v in tri:
                f.write(f"      vertex {v[0]} {v[1]} {v[2]}\n")
            f.write("    endloop\n")
            f.write("  endfacet\n")
        f.write(f"endsolid {name}\n")


# ============================================================================
# Geometry Fixtures
# ============================================================================

@pytest.fixture
def make_box() -> Callable[..., TriangleMesh]:
    """Factory: make_box(min_corner, max_corner) -> closed box mesh."""
    def factory(min_corner, max_corner) -> TriangleMesh:
        return TriangleMesh(_box_triangles(min_corner, max_corner))
    return factory


@pytest.fixture
def cube_mesh() -> TriangleMesh:
    """10 mm cube centered on the origin."""
    return TriangleMesh(_centered_box(10.0, 10.0, 10.0))


@pytest.fixture
def disc_mesh() -> TriangleMesh:
    """Flat disc R=20, t=2 lying in the XZ plane (axis along Y)."""
    return TriangleMesh(_disc_triangles(radius=20.0, thickness=2.0, segments=32))


@pytest.fixture
def tilted_disc_mesh(disc_mesh: TriangleMesh) -> TriangleMesh:
    """The disc tilted 3 degrees about X (flat face within 5 degrees of up)."""
    return disc_mesh.rotated(Rotation3D.from_axis_angle(np.array([1.0, 0.0, 0.0]), np.radians(3.0)))


@pytest.fixture
def sideways_hole_mesh() -> TriangleMesh:
    """20 mm box plus an inward face at x=-5 looking at the center.

    Functional direction is -X, perpendicular to up.
    """
    return TriangleMesh(np.concatenate([
        _centered_box(20.0, 20.0, 20.0),
        _quad_facing_plus_x(-5.0),
    ]))


@pytest.fixture
def downward_hole_mesh() -> TriangleMesh:
    """20 mm box plus an inward face at y=-5 looking up at the center.

    Functional direction is -Y, anti-parallel to up.
    """
    return TriangleMesh(np.concatenate([
        _centered_box(20.0, 20.0, 20.0),
        _quad_facing_up(-5.0),
    ]))


@pytest.fixture
def bore_plate_mesh() -> TriangleMesh:
    """Flat 50x5x50 plate with a symmetric vertical through-bore (walls only).

    Hole normals cancel out, so there is no functional direction.
    """
    return TriangleMesh(np.concatenate([
        _centered_box(50.0, 5.0, 50.0),
        _bore_walls(radius=10.0, height=5.0, segments=24),
    ]))


@pytest.fixture
def open_box_mesh() -> TriangleMesh:
    """10 mm cube with its +Z side missing (4 boundary edges)."""
    return TriangleMesh(_centered_box(10.0, 10.0, 10.0)[:10])


# ============================================================================
# STL File Fixtures
# ============================================================================

@pytest.fixture
def tmp_stl_dir(tmp_path: Path) -> Path:
    """Temporary directory for STL files created during tests."""
    return tmp_path


@pytest.fixture
def cube_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL of a 10 mm cube."""
    path = tmp_stl_dir / "cube.stl"
    _write_binary_stl(path, _centered_box(10.0, 10.0, 10.0))
    return path


@pytest.fixture
def ascii_stl_path(tmp_stl_dir: Path) -> Path:
    """ASCII STL of a 10 mm cube."""
    path = tmp_stl_dir / "ascii_cube.stl"
    _write_ascii_stl(path, _centered_box(10.0, 10.0, 10.0), name="cube")
    return path


@pytest.fixture
def zero_normals_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL of a 10 mm cube whose normal records are all zero."""
    path = tmp_stl_dir / "zero_normals.stl"
    triangles = _centered_box(10.0, 10.0, 10.0)
    _write_binary_stl(path, triangles, normals=np.zeros((len(triangles), 3)))
    return path


@pytest.fixture
def empty_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL with 0 triangles."""
    path = tmp_stl_dir / "empty.stl"
    m = stl_mesh.Mesh(np.zeros(0, dtype=stl_mesh.Mesh.dtype))
    m.save(str(path))
    return path


@pytest.fixture
def oversized_stl_path(tmp_stl_dir: Path) -> Path:
    """Binary STL of a 300 x 10 x 300 mm slab (larger than 256 in X and Z)."""
    path = tmp_stl_dir / "slab.stl"
    _write_binary_stl(path, _centered_box(300.0, 10.0, 300.0))
    return path


# ============================================================================
# Assertion Helpers
# ============================================================================

def assert_unit_rows(vectors: np.ndarray, atol: float = 1e-9) -> None:
    """Assert that every row of an (N, 3) array has unit length."""
    lengths = np.linalg.norm(vectors, axis=1)
    np.testing.assert_allclose(lengths, 1.0, atol=atol)
