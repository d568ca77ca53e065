"""
Scoring of candidate print orientations.

For every candidate the mesh is rotated into a fresh copy and evaluated on:
- support fraction: share of triangles whose rotated normal points down
- time proxy: rotated height, inflated by the support fraction
- quality: how well the functional direction points up (0.5 if unknown)

Score = (1 - support) * 0.3 + (1 - time) * 0.2 + quality * 0.5,
plus a flat bonus when the rotated up-axis lies close to the functional
direction. The bonus overlaps the quality term; both are kept as is.

The time proxy is in mesh units (mm), so `1 - time` is usually negative:
it is a relative ranking signal, not a duration.
"""

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from stl_orient import config as cfg
from stl_orient.features.feature_detector import FeatureDetectionResult
from stl_orient.geometry.mesh import MeshLike, TriangleMesh, as_mesh
from stl_orient.orientation.rotation import Rotation3D

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrientationSettings:
    """Thresholds and weights of the orientation score."""
    support_threshold: float = cfg.SUPPORT_NORMAL_THRESHOLD
    support_time_factor: float = cfg.SUPPORT_TIME_FACTOR
    weight_support: float = cfg.WEIGHT_SUPPORT
    weight_time: float = cfg.WEIGHT_TIME
    weight_quality: float = cfg.WEIGHT_QUALITY
    neutral_quality: float = cfg.NEUTRAL_QUALITY
    alignment_threshold: float = cfg.ALIGNMENT_THRESHOLD
    alignment_bonus: float = cfg.ALIGNMENT_BONUS


@dataclass(frozen=True, eq=False)
class OrientationResult:
    """Evaluation of one candidate orientation.

    Attributes:
        rotation: candidate rotation about the mesh origin
        score: weighted score, higher is better
        support_volume: fraction of down-facing triangles, 0..1
        print_time: height-based time proxy, >= 0
        quality: functional-direction quality, 0..1
        description: human-readable summary
    """
    rotation: Rotation3D
    score: float
    support_volume: float
    print_time: float
    quality: float
    description: str

    def to_dict(self) -> dict:
        return {
            'rotation': self.rotation.to_dict(),
            'score': self.score,
            'support_volume': self.support_volume,
            'print_time': self.print_time,
            'quality': self.quality,
            'description': self.description,
        }


def calculate_support_fraction(mesh: TriangleMesh, threshold: float = cfg.SUPPORT_NORMAL_THRESHOLD) -> float:
    """Share of triangles whose normal points down beyond `threshold`."""
    down_dots = mesh.normals @ cfg.WORLD_DOWN
    return float(np.count_nonzero(down_dots > threshold)) / mesh.n_triangles


def estimate_print_time(mesh: TriangleMesh, support_fraction: float,
                        support_time_factor: float = cfg.SUPPORT_TIME_FACTOR) -> float:
    """Height-based time proxy: height * (1 + factor * support)."""
    return mesh.bounding_box().height * (1 + support_fraction * support_time_factor)


def estimate_quality(features: FeatureDetectionResult,
                     neutral: float = cfg.NEUTRAL_QUALITY) -> float:
    """Map functional_direction . up from [-1, 1] to [0, 1]; neutral if unknown."""
    if features.has_holes and features.functional_direction is not None:
        functional_dot = float(np.dot(features.functional_direction, cfg.WORLD_UP))
        return (functional_dot + 1) / 2
    return neutral


def functional_alignment(rotation: Rotation3D, features: FeatureDetectionResult) -> Optional[float]:
    """Dot product of the functional direction with the rotated up-axis."""
    if features.functional_direction is None:
        return None
    rotated_up = rotation.apply(cfg.WORLD_UP)
    return float(np.dot(features.functional_direction, rotated_up))


def calculate_overall_score(
    support_fraction: float,
    print_time: float,
    quality: float,
    features: FeatureDetectionResult,
    rotation: Rotation3D,
    settings: OrientationSettings = OrientationSettings(),
) -> float:
    score = (
        (1 - support_fraction) * settings.weight_support
        + (1 - print_time) * settings.weight_time
        + quality * settings.weight_quality
    )

    if features.has_holes:
        alignment = functional_alignment(rotation, features)
        if alignment is not None and alignment > settings.alignment_threshold:
            score += settings.alignment_bonus

    return score


def describe_orientation(
    rotation: Rotation3D,
    score: float,
    support_fraction: float,
    features: FeatureDetectionResult,
    settings: OrientationSettings = OrientationSettings(),
) -> str:
    """Build a one-line summary of a scored orientation.

    Example:
        "Rotation: 90°, 0°, 0° | Support: 17% | Good orientation"
    """
    x_deg, y_deg, z_deg = rotation.euler_degrees
    parts = [
        f"Rotation: {x_deg}°, {y_deg}°, {z_deg}°",
        f"Support: {int(np.floor(support_fraction * 100 + 0.5))}%",
    ]

    if features.has_holes:
        alignment = functional_alignment(rotation, features)
        if alignment is not None:
            if alignment > settings.alignment_threshold:
                parts.append("Holes facing upward (optimal)")
            elif alignment < -settings.alignment_threshold:
                parts.append("Holes facing downward (poor)")
            else:
                parts.append("Holes facing sideways")

    if score > cfg.SCORE_EXCELLENT:
        parts.append("Excellent orientation")
    elif score > cfg.SCORE_GOOD:
        parts.append("Good orientation")
    elif score > cfg.SCORE_AVERAGE:
        parts.append("Average orientation")
    else:
        parts.append("Poor orientation")

    return " | ".join(parts)


def score_orientation(
    mesh: TriangleMesh,
    rotation: Rotation3D,
    features: FeatureDetectionResult,
    settings: OrientationSettings = OrientationSettings(),
) -> OrientationResult:
    """Evaluate one candidate on a rotated copy of the mesh."""
    rotated = mesh.rotated(rotation)

    support = calculate_support_fraction(rotated, settings.support_threshold)
    print_time = estimate_print_time(rotated, support, settings.support_time_factor)
    quality = estimate_quality(features, settings.neutral_quality)
    score = calculate_overall_score(support, print_time, quality, features, rotation, settings)
    description = describe_orientation(rotation, score, support, features, settings)

    logger.debug(
        "  %-28s support=%.3f time=%.2f quality=%.2f score=%.3f",
        "Rotation %s" % (rotation.euler_degrees,), support, print_time, quality, score,
    )

    return OrientationResult(
        rotation=rotation,
        score=score,
        support_volume=support,
        print_time=print_time,
        quality=quality,
        description=description,
    )


def score_orientations(
    mesh: MeshLike,
    candidates: Sequence[Rotation3D],
    features: FeatureDetectionResult,
    settings: Optional[OrientationSettings] = None,
    max_workers: Optional[int] = None,
) -> List[OrientationResult]:
    """Score all candidates and return them best first.

    Candidates are independent; with `max_workers` > 1 they are evaluated on
    a thread pool. Equal scores keep candidate order.

    Args:
        mesh: mesh at its original orientation (not modified)
        candidates: rotations to evaluate
        features: feature detection result of the original orientation
        settings: score weights and thresholds
        max_workers: thread pool size; None or 1 evaluates sequentially

    Returns:
        OrientationResult list sorted by descending score
    """
    tri_mesh = as_mesh(mesh)
    settings = settings or OrientationSettings()

    def evaluate(rotation: Rotation3D) -> OrientationResult:
        return score_orientation(tri_mesh, rotation, features, settings)

    if max_workers is not None and max_workers > 1 and len(candidates) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            # each task runs in a copy of the caller's context (log fields)
            futures = [
                executor.submit(contextvars.copy_context().run, evaluate, rotation)
                for rotation in candidates
            ]
            results = [future.result() for future in futures]
    else:
        results = [evaluate(rotation) for rotation in candidates]

    return sorted(results, key=lambda r: r.score, reverse=True)
