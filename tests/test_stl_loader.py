"""
Tests for stl_orient.io.stl_loader.

- binary and ASCII files load into the same TriangleMesh
- STL normal records vs. normals derived from vertex winding
- format sniffing from the first bytes
- load errors
"""

import logging
import struct

import numpy as np
import pytest
from stl import mesh as stl_mesh

from stl_orient.geometry.mesh import TriangleMesh
from stl_orient.io.stl_loader import (
    STLFormat,
    STLInfo,
    STLLoadError,
    detect_stl_format,
    load_stl,
    load_stl_with_info,
)
from tests.conftest import _write_binary_stl, assert_unit_rows


class TestReading:
    """Successful loads."""

    def test_binary_cube(self, cube_stl_path):
        part = load_stl(str(cube_stl_path))

        assert isinstance(part, TriangleMesh)
        assert part.n_triangles == 12
        assert part.triangles.dtype == np.float64
        assert_unit_rows(part.normals)

    def test_path_object(self, cube_stl_path):
        assert load_stl(cube_stl_path).n_triangles == 12

    def test_ascii_matches_binary(self, ascii_stl_path, cube_stl_path):
        """The ASCII fixture is the same 10 mm cube as the binary one."""
        text_part = load_stl(str(ascii_stl_path))
        binary_part = load_stl(str(cube_stl_path))
        assert text_part.n_triangles == binary_part.n_triangles
        np.testing.assert_allclose(
            text_part.bounding_box().dimensions,
            binary_part.bounding_box().dimensions,
            atol=1e-5,
        )

    def test_bounding_box(self, cube_stl_path):
        bbox = load_stl(str(cube_stl_path)).bounding_box()
        np.testing.assert_allclose(bbox.dimensions, [10.0, 10.0, 10.0], atol=1e-4)
        np.testing.assert_allclose(bbox.center, [0.0, 0.0, 0.0], atol=1e-4)

    def test_shared_corners_weld(self, cube_stl_path):
        """36 soup corners of the cube collapse to its 8 vertices."""
        vertices, faces = load_stl(str(cube_stl_path)).welded()
        assert vertices.shape == (8, 3)
        assert faces.shape == (12, 3)

    def test_load_is_logged(self, cube_stl_path, caplog):
        with caplog.at_level(logging.INFO, logger="stl_orient.io.stl_loader"):
            load_stl(str(cube_stl_path))
        assert "Загружено: 12 граней." in caplog.messages


class TestReadErrors:
    """Every failure surfaces as STLLoadError."""

    def test_missing(self, tmp_stl_dir):
        with pytest.raises(STLLoadError, match="Файл не найден"):
            load_stl(str(tmp_stl_dir / "absent.stl"))

    def test_zero_triangles(self, empty_stl_path):
        with pytest.raises(STLLoadError):
            load_stl(str(empty_stl_path))

    def test_garbage_text(self, tmp_stl_dir):
        path = tmp_stl_dir / "notes.stl"
        path.write_text("shopping list: filament, nozzle")
        with pytest.raises(STLLoadError):
            load_stl(str(path))

    def test_info_variant_raises_too(self, empty_stl_path):
        with pytest.raises(STLLoadError):
            load_stl_with_info(str(empty_stl_path))


class TestNormals:
    """Non-zero normal records win; zero records are derived from winding."""

    def test_zero_records_are_derived(self, zero_normals_stl_path, cube_mesh):
        part = load_stl(str(zero_normals_stl_path))
        assert_unit_rows(part.normals)
        np.testing.assert_allclose(part.normals, cube_mesh.normals, atol=1e-6)

    def test_records_win_over_winding(self, tmp_stl_dir, cube_mesh):
        path = tmp_stl_dir / "inverted.stl"
        inverted = -cube_mesh.normals
        _write_binary_stl(path, cube_mesh.triangles, normals=inverted)

        np.testing.assert_allclose(load_stl(str(path)).normals, inverted, atol=1e-6)

    def test_partial_records(self, tmp_stl_dir, cube_mesh):
        """Unnormalized records are scaled to unit length; zero ones are replaced."""
        path = tmp_stl_dir / "partial.stl"
        records = cube_mesh.normals.copy()
        records[:6] = 0.0
        records[6:] *= -3.0
        _write_binary_stl(path, cube_mesh.triangles, normals=records)

        part, info = load_stl_with_info(str(path))
        np.testing.assert_allclose(part.normals[:6], cube_mesh.normals[:6], atol=1e-6)
        np.testing.assert_allclose(part.normals[6:], -cube_mesh.normals[6:], atol=1e-6)
        assert (info.n_file_normals, info.n_derived_normals) == (6, 6)


class TestDetectFormat:
    def test_binary(self, cube_stl_path):
        assert detect_stl_format(str(cube_stl_path))[0] is STLFormat.BINARY

    def test_ascii_with_name(self, ascii_stl_path):
        assert detect_stl_format(str(ascii_stl_path)) == (STLFormat.ASCII, "cube")

    def test_binary_header_starting_with_solid(self, tmp_stl_dir, cube_mesh):
        """Some exporters put "solid <name>" into the binary header."""
        records = np.zeros(cube_mesh.n_triangles, dtype=stl_mesh.Mesh.dtype)
        records["vectors"] = cube_mesh.triangles
        path = tmp_stl_dir / "exported.stl"
        path.write_bytes(
            b"solid exported_part".ljust(80, b"\x00")
            + struct.pack("<I", cube_mesh.n_triangles)
            + records.tobytes()
        )
        assert detect_stl_format(str(path)) == (STLFormat.BINARY, "exported_part")

    def test_truncated(self, tmp_stl_dir):
        path = tmp_stl_dir / "truncated.stl"
        path.write_bytes(bytes(20))
        assert detect_stl_format(str(path)) == (STLFormat.UNKNOWN, None)

    def test_missing(self, tmp_stl_dir):
        with pytest.raises(STLLoadError, match="Файл не найден"):
            detect_stl_format(str(tmp_stl_dir / "absent.stl"))


class TestFileInfo:
    def test_binary_info(self, cube_stl_path):
        part, info = load_stl_with_info(str(cube_stl_path))

        assert isinstance(info, STLInfo)
        assert part.n_triangles == info.n_triangles == 12
        assert info.n_file_normals == 12
        assert info.n_derived_normals == 0
        assert info.format is STLFormat.BINARY
        # 80-byte header, uint32 count, 50 bytes per facet
        assert info.file_size_bytes == 84 + 12 * 50
        assert info.file_size_kb == pytest.approx(684 / 1024)

    def test_ascii_info(self, ascii_stl_path):
        _, info = load_stl_with_info(str(ascii_stl_path))
        assert (info.format, info.solid_name, info.n_triangles) == (STLFormat.ASCII, "cube", 12)

    def test_to_dict(self, cube_stl_path):
        _, info = load_stl_with_info(str(cube_stl_path))
        data = info.to_dict()
        assert data['format'] == "binary"
        assert data['n_triangles'] == 12
        assert data['filepath'] == str(cube_stl_path)
