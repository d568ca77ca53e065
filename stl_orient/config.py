"""
Глобальные константы анализа ориентации и размещения на столе принтера.

Значения по умолчанию; проектный конфиг (.stlorient.json) переопределяет
их через stl_orient.project_config.
"""

import numpy as np

# ---------------------------------------------------------------------------
# Мировые оси (ось Y направлена вверх, как во вьюере)
# ---------------------------------------------------------------------------

WORLD_UP = np.array([0.0, 1.0, 0.0])
WORLD_DOWN = np.array([0.0, -1.0, 0.0])

# ---------------------------------------------------------------------------
# Детекция особенностей
# ---------------------------------------------------------------------------

# cos(~18°): грань считается горизонтальной «вверх»
FLAT_NORMAL_THRESHOLD = 0.95

# Нависание: dot(n, down) > FLAT_NORMAL_THRESHOLD * OVERHANG_FACTOR
OVERHANG_FACTOR = 0.7

# Нормаль смотрит на центр bounding box → кандидат в отверстие
HOLE_DETECTION_THRESHOLD = 0.8

# ---------------------------------------------------------------------------
# Кандидаты ориентации
# ---------------------------------------------------------------------------

# Минимальная длина |f × up|, при которой ось вращения определена
ROTATION_AXIS_EPSILON = 0.01

# ---------------------------------------------------------------------------
# Оценка ориентаций
# ---------------------------------------------------------------------------

SUPPORT_NORMAL_THRESHOLD = 0.7
SUPPORT_TIME_FACTOR = 0.5

WEIGHT_SUPPORT = 0.3
WEIGHT_TIME = 0.2
WEIGHT_QUALITY = 0.5

NEUTRAL_QUALITY = 0.5

ALIGNMENT_THRESHOLD = 0.8
ALIGNMENT_BONUS = 0.2

SCORE_EXCELLENT = 0.8
SCORE_GOOD = 0.6
SCORE_AVERAGE = 0.4

# ---------------------------------------------------------------------------
# Рабочая область принтера, мм (ширина X, высота Y, глубина Z)
# ---------------------------------------------------------------------------

BUILD_WIDTH_MM = 256.0
BUILD_HEIGHT_MM = 256.0
BUILD_DEPTH_MM = 256.0

# ---------------------------------------------------------------------------
# Геометрия
# ---------------------------------------------------------------------------

# Допуск слияния совпадающих вершин при индексации «супа» треугольников
WELD_TOLERANCE = 1e-6

# Нормали короче этого значения считаются нулевыми
NORMAL_EPSILON = 1e-12
