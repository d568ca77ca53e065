"""
Batch orientation analysis over a folder of STL parts.

Every file is loaded, analyzed and optionally written out as a JSON report.
A file that fails to load or analyze is recorded with its error message
and the run moves on to the next one. Files can be processed on a thread
pool; the returned results are always in path order.

Usage:
    from stl_orient.batch import batch_analyze

    batch = batch_analyze("./models", output_dir="./reports", write_json=True, parallel=True)
    print(batch.summary())
"""

import fnmatch
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from stl_orient.io.stl_loader import load_stl
from stl_orient.pipeline import AnalysisReport, run_analysis, save_report_json
from stl_orient.project_config import ProjectConfig, load_config

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, 'FileAnalysisResult'], None]


@dataclass
class FileAnalysisResult:
    """Outcome for one STL file: the report, or the error that stopped it."""
    input_path: Path
    report: Optional[AnalysisReport] = None
    output_path: Optional[Path] = None
    success: bool = False
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @property
    def status(self) -> str:
        return "OK" if self.success else "FAILED"

    def to_dict(self) -> Dict:
        entry = {
            'input': str(self.input_path),
            'output': str(self.output_path) if self.output_path else None,
            'success': self.success,
            'error': self.error,
            'duration': self.duration_seconds,
        }
        if self.report is not None:
            best = self.report.best
            entry['volume_cm3'] = self.report.volume_cm3
            entry['best_orientation'] = best.description
            entry['best_score'] = best.score
            entry['can_fit'] = self.report.placement.fit.can_fit
        return entry


@dataclass
class BatchResult:
    results: List[FileAnalysisResult] = field(default_factory=list)
    total_duration_seconds: float = 0.0

    def _count(self, predicate: Callable[[FileAnalysisResult], bool]) -> int:
        return len([r for r in self.results if predicate(r)])

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return self._count(lambda r: r.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful

    @property
    def oversized(self) -> int:
        """Analyzed parts whose best orientation does not fit the envelope."""
        return self._count(
            lambda r: r.report is not None and r.report.placement.exceeds_envelope
        )

    @property
    def success_rate(self) -> float:
        """Percentage of files analyzed without error (0 for an empty batch)."""
        return 100.0 * self.successful / self.total if self.results else 0.0

    def summary(self) -> str:
        rows = [
            ("Total files", self.total),
            ("Successful", self.successful),
            ("Failed", self.failed),
            ("Oversized", self.oversized),
            ("Success rate", f"{self.success_rate:.1f}%"),
            ("Total time", f"{self.total_duration_seconds:.1f}s"),
        ]
        lines = ["Batch Analysis Summary", "=" * 40]
        lines += [f"{label + ':':<17}{value}" for label, value in rows]
        lines.append("")

        analyzed = [r for r in self.results if r.report is not None]
        if analyzed:
            lines.append("Best orientations:")
            lines += [f"  - {r.input_path.name}: {r.report.best.description}" for r in analyzed]

        failures = [r for r in self.results if not r.success]
        if failures:
            lines.append("Failed files:")
            lines += [f"  - {r.input_path.name}: {r.error}" for r in failures]

        return "\n".join(lines)

    def to_dict(self) -> Dict:
        data: Dict = {
            name: getattr(self, name)
            for name in ('total', 'successful', 'failed', 'oversized', 'success_rate')
        }
        data['total_duration_seconds'] = self.total_duration_seconds
        data['results'] = [r.to_dict() for r in self.results]
        return data


def find_stl_files(
    input_dir: Union[str, Path],
    pattern: str = "*.stl",
    recursive: bool = False,
) -> List[Path]:
    """Files in input_dir whose name matches pattern, ignoring case, sorted.

    Raises:
        FileNotFoundError: input_dir does not exist
        NotADirectoryError: input_dir is not a directory
    """
    input_dir = Path(input_dir)
    if not input_dir.exists():
        raise FileNotFoundError(f"Directory does not exist: {input_dir}")
    if not input_dir.is_dir():
        raise NotADirectoryError(f"Expected a directory: {input_dir}")

    entries = input_dir.rglob("*") if recursive else input_dir.iterdir()
    wanted = pattern.lower()
    files = sorted(
        p for p in entries
        if p.is_file() and fnmatch.fnmatch(p.name.lower(), wanted)
    )

    logger.info("Found %d STL files in %s", len(files), input_dir)
    return files


def _report_path(input_path: Path, config: ProjectConfig, output_dir: Optional[Path]) -> Path:
    return (output_dir or input_path.parent) / f"{input_path.stem}{config.output.suffix}.json"


def analyze_single_file(
    input_path: Path,
    config: Optional[ProjectConfig] = None,
    output_dir: Optional[Path] = None,
    write_json: bool = False,
) -> FileAnalysisResult:
    """Load and analyze one part; errors end up in the result, not raised.

    The JSON report goes to `<output_dir or STL folder>/<stem><suffix>.json`
    when write_json is set.
    """
    config = config or ProjectConfig()
    result = FileAnalysisResult(input_path=input_path)
    started = time.perf_counter()

    try:
        result.report = run_analysis(
            load_stl(input_path),
            envelope=config.envelope_settings(),
            settings=config.orientation_settings(),
            max_workers=config.analysis.max_workers,
            detector=config.feature_detector(),
            source=input_path.name,
            weld_tolerance=config.weld_tolerance(),
        )
        if write_json:
            result.output_path = save_report_json(
                result.report, _report_path(input_path, config, output_dir))
        result.success = True
    except Exception as exc:
        result.error = str(exc)
        logger.error("Failed to analyze %s: %s", input_path.name, exc)

    result.duration_seconds = time.perf_counter() - started
    return result


def _resolve_config(
    input_dir: Path,
    config: Optional[ProjectConfig],
    config_path: Optional[Union[str, Path]],
) -> ProjectConfig:
    if config is not None:
        return config
    if config_path:
        return load_config(explicit_config=config_path)
    # discovery starts from the folder of a file inside input_dir
    return load_config(stl_path=input_dir / "dummy.stl")


def batch_analyze(
    input_dir: Union[str, Path],
    output_dir: Optional[Union[str, Path]] = None,
    pattern: str = "*.stl",
    recursive: bool = False,
    config: Optional[ProjectConfig] = None,
    config_path: Optional[Union[str, Path]] = None,
    write_json: Optional[bool] = None,
    parallel: bool = False,
    max_workers: Optional[int] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> BatchResult:
    """Analyze every matching STL file in input_dir.

    Args:
        input_dir: folder with the parts
        output_dir: where JSON reports go (config value, else next to each STL)
        pattern: file name pattern, case-insensitive
        recursive: descend into subfolders
        config: settings to use; discovered from input_dir when omitted
        config_path: explicit .stlorient.json, used when config is omitted
        write_json: write a report per file (default from config.output)
        parallel: analyze files on a thread pool
        max_workers: pool size (None lets the executor decide)
        progress_callback: called as (done, total, result) after each file

    Raises:
        FileNotFoundError, NotADirectoryError: bad input_dir
        ConfigError: config_path cannot be used
    """
    started = time.perf_counter()
    input_dir = Path(input_dir)
    config = _resolve_config(input_dir, config, config_path)

    if write_json is None:
        write_json = config.output.write_json
    target = output_dir or config.output.output_dir
    out_dir = Path(target) if target else None
    if write_json and out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)

    stl_files = find_stl_files(input_dir, pattern, recursive)
    if not stl_files:
        logger.warning("No STL files found in %s", input_dir)
        return BatchResult(total_duration_seconds=time.perf_counter() - started)

    n_files = len(stl_files)
    logger.info("Starting batch analysis: %d files, parallel=%s", n_files, parallel)
    done: List[FileAnalysisResult] = []

    def finished(result: FileAnalysisResult) -> None:
        done.append(result)
        if progress_callback:
            progress_callback(len(done), n_files, result)
        logger.info(
            "[%d/%d] %s: %s (%.1fs)",
            len(done), n_files, result.input_path.name,
            result.status, result.duration_seconds,
        )

    if parallel:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            pending = [
                pool.submit(analyze_single_file, path, config, out_dir, write_json)
                for path in stl_files
            ]
            for future in as_completed(pending):
                finished(future.result())
        done.sort(key=lambda r: r.input_path)
    else:
        for path in stl_files:
            finished(analyze_single_file(path, config, out_dir, write_json))

    batch = BatchResult(results=done, total_duration_seconds=time.perf_counter() - started)
    logger.info(
        "Batch analysis complete: %d/%d successful (%.1f%%) in %.1fs",
        batch.successful, batch.total, batch.success_rate, batch.total_duration_seconds,
    )
    return batch


def batch_analyze_cli(argv: Optional[List[str]] = None) -> int:
    """`stl-orient-batch` entry point. Exit code 1 if any file failed."""
    import argparse

    from stl_orient.logging_config import setup_logging

    parser = argparse.ArgumentParser(description="Batch print-orientation analysis of STL files")
    parser.add_argument("input_dir", help="Folder with STL parts")
    parser.add_argument("-o", "--output", dest="output_dir",
                        help="Folder for JSON reports (default: next to each STL)")
    parser.add_argument("-p", "--pattern", default="*.stl", help="File name pattern (default: *.stl)")
    parser.add_argument("-r", "--recursive", action="store_true", help="Include subfolders")
    parser.add_argument("-c", "--config", dest="config_path", help=".stlorient.json to use")
    parser.add_argument("--json", action="store_true", dest="write_json", default=None,
                        help="Write a JSON report per file")
    parser.add_argument("--parallel", action="store_true", help="Analyze files in parallel")
    parser.add_argument("-j", "--jobs", type=int, dest="max_workers", help="Parallel workers")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        batch = batch_analyze(
            args.input_dir,
            output_dir=args.output_dir,
            pattern=args.pattern,
            recursive=args.recursive,
            config_path=args.config_path,
            write_json=args.write_json,
            parallel=args.parallel,
            max_workers=args.max_workers,
        )
    except Exception as exc:
        logger.error("Batch analysis failed: %s", exc)
        return 1

    print("\n" + batch.summary())
    return 1 if batch.failed else 0


if __name__ == "__main__":
    import sys
    sys.exit(batch_analyze_cli())
