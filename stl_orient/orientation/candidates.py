"""
Генерация кандидатов ориентации.

Кандидаты — шесть «граней куба» (каждая сторона детали вниз) и, если
найдено функциональное направление, поворот, выводящий его вверх.
Перебор конечен и детерминирован: оптимизация по всему пространству
поворотов не выполняется.
"""

import logging
from typing import List, Optional

import numpy as np

from stl_orient.config import ROTATION_AXIS_EPSILON, WORLD_UP
from stl_orient.features.feature_detector import FeatureDetectionResult
from stl_orient.orientation.rotation import Rotation3D

logger = logging.getLogger(__name__)

# Углы Эйлера XYZ шести стандартных ориентаций (порядок фиксирован)
CUBE_ORIENTATIONS = (
    (0.0, 0.0, 0.0),
    (np.pi / 2, 0.0, 0.0),
    (-np.pi / 2, 0.0, 0.0),
    (0.0, np.pi / 2, 0.0),
    (0.0, -np.pi / 2, 0.0),
    (np.pi, 0.0, 0.0),
)


def functional_alignment_rotation(
    functional_direction: np.ndarray,
    axis_epsilon: float = ROTATION_AXIS_EPSILON,
) -> Optional[Rotation3D]:
    """Поворот, совмещающий функциональное направление с осью «вверх».

    Ось = normalize(f × up), угол = arccos(f · up).

    Returns:
        Rotation3D, или None если f почти параллельно (или антипараллельно)
        оси «вверх» и ось поворота не определена.
    """
    f = np.asarray(functional_direction, dtype=np.float64)
    axis = np.cross(f, WORLD_UP)
    axis_len = float(np.linalg.norm(axis))
    if axis_len <= axis_epsilon:
        logger.debug("Функциональное направление параллельно оси Y, поворот пропущен")
        return None

    angle = float(np.arccos(np.clip(np.dot(f, WORLD_UP), -1.0, 1.0)))
    return Rotation3D.from_axis_angle(axis / axis_len, angle)


def generate_candidate_orientations(
    features: FeatureDetectionResult,
    axis_epsilon: float = ROTATION_AXIS_EPSILON,
) -> List[Rotation3D]:
    """Сформировать упорядоченный список кандидатов.

    Args:
        features: результат детекции на исходной ориентации.
        axis_epsilon: минимальная длина |f × up|.

    Returns:
        6 или 7 поворотов: шесть стандартных, затем (опционально)
        поворот функционального направления вверх.
    """
    candidates = [Rotation3D.from_euler_xyz(angles) for angles in CUBE_ORIENTATIONS]

    if features.functional_direction is not None:
        extra = functional_alignment_rotation(features.functional_direction, axis_epsilon)
        if extra is not None:
            candidates.append(extra)

    logger.debug("Кандидатов ориентации: %d", len(candidates))
    return candidates
