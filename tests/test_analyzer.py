"""
Unit tests for stl_orient.orientation.analyzer module.

Tests:
- Full ranking for simple parts
- Repeatability
- Background execution via submit()
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from stl_orient.geometry.mesh import MalformedMeshError
from stl_orient.orientation.analyzer import OrientationAnalyzer, analyze_orientation
from stl_orient.orientation.scorer import OrientationResult, OrientationSettings


class _FailingDetector:
    """Detector stand-in that rejects every mesh."""

    def detect(self, mesh):
        raise MalformedMeshError("normals missing")


class TestAnalyze:
    """Tests for OrientationAnalyzer.analyze() and analyze_orientation()."""

    def test_cube_returns_six(self, cube_mesh):
        results = analyze_orientation(cube_mesh)
        assert len(results) == 6
        assert all(isinstance(r, OrientationResult) for r in results)

    def test_functional_direction_returns_seven(self, sideways_hole_mesh):
        assert len(analyze_orientation(sideways_hole_mesh)) == 7

    def test_sorted_best_first(self, downward_hole_mesh):
        scores = [r.score for r in analyze_orientation(downward_hole_mesh)]
        assert scores == sorted(scores, reverse=True)

    def test_tilted_disc_stays_flat(self, tilted_disc_mesh):
        """A disc within a few degrees of flat keeps its orientation."""
        best = analyze_orientation(tilted_disc_mesh)[0]
        assert best.rotation.euler_degrees == (0, 0, 0)

    def test_disc_best_is_not_on_edge(self, disc_mesh):
        results = analyze_orientation(disc_mesh)
        on_edge = [r for r in results if r.rotation.euler_degrees in ((90, 0, 0), (-90, 0, 0))]
        assert all(r.score < results[0].score for r in on_edge)

    def test_repeatable(self, sideways_hole_mesh):
        """Two runs on the same mesh give identical rankings."""
        first = analyze_orientation(sideways_hole_mesh)
        second = analyze_orientation(sideways_hole_mesh)
        assert [r.score for r in first] == [r.score for r in second]
        assert [r.description for r in first] == [r.description for r in second]

    def test_features_recorded(self, downward_hole_mesh):
        analyzer = OrientationAnalyzer(downward_hole_mesh)
        assert analyzer.features is None
        analyzer.analyze()
        np.testing.assert_allclose(analyzer.features.functional_direction, [0, -1, 0], atol=1e-12)

    def test_parallel(self, sideways_hole_mesh):
        sequential = analyze_orientation(sideways_hole_mesh)
        parallel = analyze_orientation(sideways_hole_mesh, max_workers=3)
        assert [r.score for r in parallel] == [r.score for r in sequential]

    def test_settings_passed_through(self, cube_mesh):
        settings = OrientationSettings(weight_time=0.0, weight_support=0.0)
        results = analyze_orientation(cube_mesh, settings=settings)
        assert results[0].score == pytest.approx(0.25)

    def test_accepts_raw_positions(self, cube_mesh):
        assert len(analyze_orientation(np.array(cube_mesh.triangles))) == 6

    def test_malformed_mesh(self):
        with pytest.raises(MalformedMeshError):
            OrientationAnalyzer(None)

    def test_logs_best(self, cube_mesh, caplog):
        with caplog.at_level("INFO", logger="stl_orient.orientation.analyzer"):
            analyze_orientation(cube_mesh)
        assert "Rotation: 0°, 0°, 0°" in caplog.text


class TestSubmit:
    """Background execution."""

    def test_future_result(self, cube_mesh):
        future = OrientationAnalyzer(cube_mesh).submit()
        results = future.result(timeout=30)
        assert [r.score for r in results] == [r.score for r in analyze_orientation(cube_mesh)]

    def test_given_executor(self, sideways_hole_mesh):
        with ThreadPoolExecutor(max_workers=2) as executor:
            future = OrientationAnalyzer(sideways_hole_mesh).submit(executor)
            assert len(future.result(timeout=30)) == 7

    def test_error_reported_through_future(self, cube_mesh):
        analyzer = OrientationAnalyzer(cube_mesh, detector=_FailingDetector())
        future = analyzer.submit()
        assert isinstance(future.exception(timeout=30), MalformedMeshError)
        with pytest.raises(MalformedMeshError):
            future.result()
