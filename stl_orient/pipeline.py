"""
Полный анализ одной модели: объём, особенности, ранжированные ориентации
и размещение лучшей ориентации на столе принтера.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from stl_orient.build_plate import BuildEnvelope, Placement, place_on_build_plate
from stl_orient.features.feature_detector import FeatureDetectionResult, FeatureDetector
from stl_orient.geometry.mesh import MeshLike, as_mesh
from stl_orient.config import WELD_TOLERANCE
from stl_orient.geometry.mesh_stats import MeshStatistics, calculate_mesh_statistics
from stl_orient.logging_config import LogContext
from stl_orient.orientation.analyzer import OrientationAnalyzer
from stl_orient.orientation.scorer import OrientationResult, OrientationSettings

logger = logging.getLogger(__name__)

MM3_PER_CM3 = 1000.0


@dataclass
class AnalysisReport:
    """Результат анализа одной модели."""
    statistics: MeshStatistics
    volume_mm3: float
    features: FeatureDetectionResult
    orientations: List[OrientationResult]
    placement: Placement
    envelope: BuildEnvelope
    source: Optional[str] = None
    elapsed_seconds: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def volume_cm3(self) -> float:
        return self.volume_mm3 / MM3_PER_CM3

    @property
    def best(self) -> OrientationResult:
        """Рекомендуемая ориентация (первая в списке)."""
        return self.orientations[0]

    def to_dict(self, top_n: Optional[int] = None) -> dict:
        orientations = self.orientations if top_n is None else self.orientations[:top_n]
        return {
            'source': self.source,
            'volume_mm3': self.volume_mm3,
            'volume_cm3': self.volume_cm3,
            'statistics': self.statistics.to_dict(),
            'features': self.features.to_dict(),
            'orientations': [o.to_dict() for o in orientations],
            'placement': self.placement.to_dict(),
            'envelope': self.envelope.to_dict(),
            'elapsed_seconds': self.elapsed_seconds,
            'warnings': list(self.warnings),
        }

    def summary(self, top_n: Optional[int] = None) -> str:
        """Текстовая сводка для вывода в консоль."""
        dims = self.placement.bounding_box.dimensions
        fit = self.placement.fit
        lines = []
        if self.source:
            lines.append(f"Model: {self.source}")
        lines.append(
            f"Triangles: {self.statistics.n_triangles}, "
            f"watertight: {'yes' if self.statistics.is_watertight else 'no'}"
        )
        lines.append(f"Volume: {self.volume_mm3:.2f} mm³ ({self.volume_cm3:.2f} cm³)")
        lines.append(
            f"Features: flat={len(self.features.flat_surface_indices)}, "
            f"holes={len(self.features.hole_indices)}, "
            f"overhangs={len(self.features.overhang_indices)}"
        )
        lines.append("Orientations:")
        shown = self.orientations if top_n is None else self.orientations[:top_n]
        for i, result in enumerate(shown, 1):
            lines.append(f"  {i}. [{result.score:+.3f}] {result.description}")
        lines.append(
            f"Best orientation size: {dims[0]:.1f} x {dims[1]:.1f} x {dims[2]:.1f} mm "
            f"(envelope {self.envelope.width:.0f} x {self.envelope.height:.0f} x "
            f"{self.envelope.depth:.0f})"
        )
        if fit.can_fit:
            tx, ty, tz = self.placement.translation
            lines.append(f"Fits build plate: yes, offset ({tx:.2f}, {ty:.2f}, {tz:.2f})")
        else:
            lines.append("Fits build plate: NO, model exceeds build envelope")
        for warning in self.warnings:
            lines.append(f"Warning: {warning}")
        return "\n".join(lines)


def run_analysis(
    mesh: MeshLike,
    envelope: Optional[BuildEnvelope] = None,
    settings: Optional[OrientationSettings] = None,
    max_workers: Optional[int] = None,
    detector: Optional[FeatureDetector] = None,
    source: Optional[str] = None,
    weld_tolerance: float = WELD_TOLERANCE,
) -> AnalysisReport:
    """Выполнить полный анализ модели.

    Объём и статистика считаются в исходной ориентации; лучшая ориентация
    передаётся в проверку размещения на столе.

    Args:
        mesh: TriangleMesh или массив (M, 3, 3)
        envelope: рабочая область принтера (по умолчанию 256³ мм)
        settings: веса и пороги оценки ориентаций
        max_workers: пул потоков для оценки кандидатов
        detector: детектор особенностей с нестандартными порогами
        source: имя файла для отчёта и логов
        weld_tolerance: расстояние слияния вершин для объёма и проверки замкнутости

    Raises:
        MalformedMeshError: при некорректной сетке
    """
    tri_mesh = as_mesh(mesh)
    envelope = envelope or BuildEnvelope()
    start = time.perf_counter()

    with LogContext(model=source or "<mesh>"):
        statistics = calculate_mesh_statistics(tri_mesh, weld_tolerance)
        volume = statistics.volume
        if not statistics.is_watertight:
            logger.warning(
                "Mesh is not closed (%d boundary edges); volume is approximate",
                statistics.n_boundary_edges,
            )

        analyzer = OrientationAnalyzer(
            tri_mesh, settings=settings, detector=detector, max_workers=max_workers,
        )
        orientations = analyzer.analyze()
        placement = place_on_build_plate(tri_mesh, orientations[0].rotation, envelope)

    warnings = []
    if not statistics.is_watertight:
        warnings.append(
            f"mesh is not closed ({statistics.n_boundary_edges} boundary edges), "
            f"volume is approximate"
        )
    if placement.exceeds_envelope:
        warnings.append("model exceeds build envelope")

    elapsed = time.perf_counter() - start
    logger.info("Анализ завершён за %.2f с, объём %.2f см³", elapsed, volume / MM3_PER_CM3)

    return AnalysisReport(
        statistics=statistics,
        volume_mm3=volume,
        features=analyzer.features,
        orientations=orientations,
        placement=placement,
        envelope=envelope,
        source=source,
        elapsed_seconds=elapsed,
        warnings=warnings,
    )


def save_report_json(report: AnalysisReport, path, top_n: Optional[int] = None) -> Path:
    """Записать отчёт в JSON-файл (UTF-8)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(top_n), f, indent=2, ensure_ascii=False)
    logger.info("Отчёт сохранён: %s", path)
    return path
