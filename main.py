"""
Точка входа: анализ ориентации STL-модели для 3D-печати.

Использование:
    python main.py <stl_file> [--config CONFIG] [--json OUT] [--top N] [--workers N]

Пример:
    python main.py "bracket.stl"
    python main.py "bracket.stl" --json report.json --top 3
    python main.py "bracket.stl" --envelope 220x250x220 --workers 4
    python main.py "bracket.stl" --config project.stlorient.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Обеспечить поддержку Unicode (mm³, °) на Windows-консоли
if sys.stdout.encoding and sys.stdout.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stdout.reconfigure(encoding='utf-8', errors='replace')
if sys.stderr.encoding and sys.stderr.encoding.lower() not in ('utf-8', 'utf8'):
    sys.stderr.reconfigure(encoding='utf-8', errors='replace')

from stl_orient.build_plate import BuildEnvelope
from stl_orient.geometry.mesh import MalformedMeshError
from stl_orient.io.stl_loader import STLLoadError, load_stl
from stl_orient.logging_config import setup_logging
from stl_orient.pipeline import AnalysisReport, run_analysis, save_report_json
from stl_orient.project_config import ConfigError, ProjectConfig, load_config

logger = logging.getLogger("stl_orient.cli")


# ---------------------------------------------------------------------------
# Пайплайн
# ---------------------------------------------------------------------------

def run_pipeline(
    stl_path: str,
    config: Optional[ProjectConfig] = None,
    envelope: Optional[BuildEnvelope] = None,
    max_workers: Optional[int] = None,
) -> AnalysisReport:
    """Полный пайплайн: STL → отчёт об ориентации.

    Шаги:
      1. Загрузка STL.
      2. Объём и статистика сетки.
      3. Детекция особенностей, генерация и оценка кандидатов.
      4. Размещение лучшей ориентации на столе принтера.

    Args:
        stl_path: путь к STL-файлу.
        config: конфигурация проекта (по умолчанию встроенные значения).
        envelope: рабочая область; перекрывает значение из конфига.
        max_workers: размер пула потоков; перекрывает значение из конфига.

    Raises:
        STLLoadError: если файл не загружен.
        ConfigError: при некорректных значениях конфигурации.
        MalformedMeshError: при некорректной геометрии.
    """
    config = config or ProjectConfig()

    logger.info("=" * 60)
    logger.info("Шаг 1: Загрузка STL")
    logger.info("=" * 60)
    mesh = load_stl(stl_path)

    logger.info("=" * 60)
    logger.info("Шаг 2-4: Анализ ориентации и размещения")
    logger.info("=" * 60)
    return run_analysis(
        mesh,
        envelope=envelope or config.envelope_settings(),
        settings=config.orientation_settings(),
        max_workers=max_workers if max_workers is not None else config.analysis.max_workers,
        detector=config.feature_detector(),
        source=Path(stl_path).name,
        weld_tolerance=config.weld_tolerance(),
    )


def _default_report_path(stl_path: str, config: ProjectConfig) -> Path:
    stl = Path(stl_path)
    out_dir = Path(config.output.output_dir) if config.output.output_dir else stl.parent
    return out_dir / f"{stl.stem}{config.output.suffix}.json"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _parse_envelope(value: str) -> BuildEnvelope:
    """'220x250x220' → BuildEnvelope(ширина, высота, глубина)."""
    parts = value.lower().replace('×', 'x').split('x')
    try:
        width, height, depth = (float(p) for p in parts)
        return BuildEnvelope(width, height, depth)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"ожидается ШИРИНАxВЫСОТАxГЛУБИНА в мм, напр. 256x256x256: {value!r}"
        )


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"ожидается целое число ≥ 1: {value!r}")
    return number


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Анализ ориентации STL-модели для 3D-печати.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "stl_file",
        help="Путь к входному STL-файлу.",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Путь к конфигурационному файлу .stlorient.json.",
    )
    parser.add_argument(
        "--json", "-j",
        default=None,
        dest="json_output",
        help="Сохранить отчёт в JSON-файл.",
    )
    parser.add_argument(
        "--top", "-n",
        type=_positive_int,
        default=None,
        help="Сколько лучших ориентаций показать (по умолчанию: все).",
    )
    parser.add_argument(
        "--workers", "-w",
        type=_positive_int,
        default=None,
        help="Число потоков для оценки кандидатов (по умолчанию: последовательно).",
    )
    parser.add_argument(
        "--envelope", "-e",
        type=_parse_envelope,
        default=None,
        help="Рабочая область принтера, мм: ШИРИНАxВЫСОТАxГЛУБИНА (по умолчанию 256x256x256).",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Подробный лог (DEBUG), включая оценку каждого кандидата.",
    )
    parser.add_argument(
        "--log-json",
        default=None,
        dest="log_json",
        help="Дополнительно писать лог в JSON-файл (одна запись на строку).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        json_file=args.log_json,
    )

    try:
        config = load_config(stl_path=args.stl_file, explicit_config=args.config)
        report = run_pipeline(
            args.stl_file,
            config=config,
            envelope=args.envelope,
            max_workers=args.workers,
        )

        top_n = args.top if args.top is not None else config.analysis.top_n
        print(report.summary(top_n))

        if args.json_output:
            save_report_json(report, args.json_output)
        elif config.output.write_json:
            save_report_json(report, _default_report_path(args.stl_file, config))
    except STLLoadError as exc:
        logger.critical("Ошибка загрузки STL: %s", exc)
        return 1
    except ConfigError as exc:
        logger.critical("Ошибка конфигурации: %s", exc)
        return 1
    except MalformedMeshError as exc:
        logger.critical("Некорректная геометрия: %s", exc)
        return 1
    except Exception as exc:
        logger.critical("Неожиданная ошибка: %s", exc, exc_info=True)
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
