"""
stl_orient — анализ ориентации STL-модели для 3D-печати.

Объём, детекция особенностей, ранжирование кандидатов ориентации и
проверка размещения на столе принтера. CLI запускается через main.py.
"""

from stl_orient.logging_config import (
    setup_logging,
    get_logger,
    configure_default_logging,
    log_timing,
    timed,
    LogContext,
)
from stl_orient.geometry.mesh import MalformedMeshError, TriangleMesh
from stl_orient.geometry.mesh_stats import BoundingBox, compute_volume
from stl_orient.features.feature_detector import FeatureDetectionResult, detect_features
from stl_orient.orientation.rotation import Rotation3D
from stl_orient.orientation.scorer import OrientationResult, OrientationSettings
from stl_orient.orientation.analyzer import OrientationAnalyzer, analyze_orientation
from stl_orient.build_plate import (
    BuildEnvelope,
    FitResult,
    Placement,
    check_fit,
    place_on_build_plate,
)

__version__ = "0.1.0"

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_default_logging",
    "log_timing",
    "timed",
    "LogContext",
    "MalformedMeshError",
    "TriangleMesh",
    "BoundingBox",
    "compute_volume",
    "FeatureDetectionResult",
    "detect_features",
    "Rotation3D",
    "OrientationResult",
    "OrientationSettings",
    "OrientationAnalyzer",
    "analyze_orientation",
    "BuildEnvelope",
    "FitResult",
    "Placement",
    "check_fit",
    "place_on_build_plate",
]
