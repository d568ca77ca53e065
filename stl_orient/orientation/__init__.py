"""Ориентация модели: кандидаты, оценка и выбор положения для печати."""

from stl_orient.orientation.analyzer import OrientationAnalyzer, analyze_orientation
from stl_orient.orientation.candidates import (
    CUBE_ORIENTATIONS,
    functional_alignment_rotation,
    generate_candidate_orientations,
)
from stl_orient.orientation.rotation import Rotation3D
from stl_orient.orientation.scorer import (
    OrientationResult,
    OrientationSettings,
    describe_orientation,
    score_orientation,
    score_orientations,
)

__all__ = [
    "OrientationAnalyzer",
    "analyze_orientation",
    "CUBE_ORIENTATIONS",
    "functional_alignment_rotation",
    "generate_candidate_orientations",
    "Rotation3D",
    "OrientationResult",
    "OrientationSettings",
    "describe_orientation",
    "score_orientation",
    "score_orientations",
]
