"""
Анализ ориентации детали для печати.

Пайплайн: детекция особенностей (один раз, в исходной ориентации) →
генерация кандидатов → оценка каждого кандидата на повёрнутой копии →
сортировка по убыванию оценки. Исходная сетка не изменяется.
"""

import contextvars
import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import List, Optional

from stl_orient.features.feature_detector import (
    FeatureDetectionResult,
    FeatureDetector,
)
from stl_orient.geometry.mesh import MeshLike, TriangleMesh, as_mesh
from stl_orient.logging_config import log_timing
from stl_orient.orientation.candidates import generate_candidate_orientations
from stl_orient.orientation.scorer import (
    OrientationResult,
    OrientationSettings,
    score_orientations,
)

logger = logging.getLogger(__name__)


class OrientationAnalyzer:
    """Анализатор ориентации одной сетки.

    Хранит сетку и настройки; `analyze()` выполняет расчёт синхронно,
    `submit()` — в фоне, возвращая Future как сигнал завершения.

    Args:
        mesh: TriangleMesh или массив (M, 3, 3)
        settings: веса и пороги оценки
        detector: детектор особенностей (по умолчанию с порогами из config)
        max_workers: размер пула для параллельной оценки кандидатов
    """

    def __init__(
        self,
        mesh: MeshLike,
        settings: Optional[OrientationSettings] = None,
        detector: Optional[FeatureDetector] = None,
        max_workers: Optional[int] = None,
    ):
        self.mesh: TriangleMesh = as_mesh(mesh)
        self.settings = settings or OrientationSettings()
        self.detector = detector or FeatureDetector()
        self.max_workers = max_workers
        self.features: Optional[FeatureDetectionResult] = None

    def analyze(self) -> List[OrientationResult]:
        """Полный анализ: кандидаты, отсортированные по убыванию оценки.

        Raises:
            MalformedMeshError: при некорректной сетке
        """
        with log_timing(logger, "Анализ ориентации", n_triangles=self.mesh.n_triangles):
            features = self.detector.detect(self.mesh)
            self.features = features

            candidates = generate_candidate_orientations(features)
            results = score_orientations(
                self.mesh, candidates, features,
                settings=self.settings, max_workers=self.max_workers,
            )

        best = results[0]
        logger.info("Лучшая ориентация: %s (оценка %.3f)", best.description, best.score)
        return results

    def submit(self, executor: Optional[Executor] = None) -> 'Future[List[OrientationResult]]':
        """Запустить анализ в фоне.

        Args:
            executor: исполнитель; если не задан, создаётся одноразовый
                ThreadPoolExecutor на один поток.

        Returns:
            Future со списком OrientationResult. Ошибки анализа
            (например MalformedMeshError) доступны через future.exception().
        """
        # задача выполняется в копии контекста вызывающего потока (поля логов)
        task = contextvars.copy_context().run
        if executor is not None:
            return executor.submit(task, self.analyze)

        own_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="stl_orient")
        future = own_executor.submit(task, self.analyze)
        # Поток завершится после выполнения задачи
        own_executor.shutdown(wait=False)
        return future


def analyze_orientation(
    mesh: MeshLike,
    settings: Optional[OrientationSettings] = None,
    max_workers: Optional[int] = None,
) -> List[OrientationResult]:
    """Ранжировать кандидаты ориентации для печати.

    Args:
        mesh: TriangleMesh или массив (M, 3, 3)
        settings: веса и пороги оценки
        max_workers: пул потоков для оценки (None — последовательно)

    Returns:
        6 или 7 OrientationResult, лучший первым
    """
    return OrientationAnalyzer(mesh, settings=settings, max_workers=max_workers).analyze()
