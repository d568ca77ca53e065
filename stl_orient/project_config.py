"""
JSON-based project configuration for stl_orient.

Allows overriding default analysis values through:
1. .stlorient.json file in the current directory
2. .stlorient.json file in the STL file's directory
3. Explicit config file path via CLI

Configuration hierarchy (later overrides earlier):
1. Built-in defaults (config.py)
2. User config (~/.stlorient.json)
3. Project config (./.stlorient.json)
4. CLI arguments

Example .stlorient.json:
{
    "envelope": {
        "width": 220.0,
        "height": 250.0,
        "depth": 220.0
    },
    "orientation": {
        "weight_support": 0.4,
        "alignment_bonus": 0.0
    },
    "analysis": {
        "max_workers": 4,
        "top_n": 3,
        "weld_tolerance": 0.001
    },
    "output": {
        "write_json": true,
        "output_dir": "reports"
    }
}
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

from stl_orient import config as cfg

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".stlorient.json"


class ConfigError(Exception):
    """Configuration file is missing, unreadable or holds invalid values."""


@dataclass
class EnvelopeConfig:
    """Printer build volume, mm."""
    width: float = cfg.BUILD_WIDTH_MM
    height: float = cfg.BUILD_HEIGHT_MM
    depth: float = cfg.BUILD_DEPTH_MM


@dataclass
class OrientationConfig:
    """Orientation score weights and thresholds."""
    support_threshold: float = cfg.SUPPORT_NORMAL_THRESHOLD
    support_time_factor: float = cfg.SUPPORT_TIME_FACTOR
    weight_support: float = cfg.WEIGHT_SUPPORT
    weight_time: float = cfg.WEIGHT_TIME
    weight_quality: float = cfg.WEIGHT_QUALITY
    neutral_quality: float = cfg.NEUTRAL_QUALITY
    alignment_threshold: float = cfg.ALIGNMENT_THRESHOLD
    alignment_bonus: float = cfg.ALIGNMENT_BONUS


@dataclass
class AnalysisConfig:
    """Feature detection thresholds and execution settings."""
    flat_threshold: float = cfg.FLAT_NORMAL_THRESHOLD
    hole_threshold: float = cfg.HOLE_DETECTION_THRESHOLD
    overhang_factor: float = cfg.OVERHANG_FACTOR
    weld_tolerance: float = cfg.WELD_TOLERANCE
    max_workers: Optional[int] = None  # None = sequential scoring
    top_n: int = 7  # orientations shown in the summary


@dataclass
class OutputConfig:
    """Report output configuration."""
    write_json: bool = False
    output_dir: str = ""  # "" = next to the STL file
    suffix: str = "_orientation"


@dataclass
class ProjectConfig:
    """Complete project configuration."""
    envelope: EnvelopeConfig = field(default_factory=EnvelopeConfig)
    orientation: OrientationConfig = field(default_factory=OrientationConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        with open(path, 'w', encoding='utf-8') as f:
            f.write(self.to_json())
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectConfig':
        """Create configuration from dictionary.

        Unknown sections and keys (including "_comment") are ignored.

        Raises:
            ConfigError: if data is not a JSON object
        """
        if not isinstance(data, dict):
            raise ConfigError(
                f"Configuration root must be a JSON object, got {type(data).__name__}"
            )
        config = cls()

        for section in fields(cls):
            values = data.get(section.name)
            if not isinstance(values, dict):
                continue
            target = getattr(config, section.name)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)
                elif not key.startswith('_'):
                    logger.warning("Unknown config key: %s.%s", section.name, key)

        return config

    @classmethod
    def from_json(cls, json_str: str) -> 'ProjectConfig':
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ProjectConfig':
        """Load configuration from JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
            ConfigError: If the JSON root is not an object
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)

    def envelope_settings(self):
        """Build envelope for the fit check.

        Raises:
            ConfigError: if a dimension is not a positive number
        """
        from stl_orient.build_plate import BuildEnvelope

        try:
            return BuildEnvelope(
                width=float(self.envelope.width),
                height=float(self.envelope.height),
                depth=float(self.envelope.depth),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid envelope configuration: {exc}") from exc

    def orientation_settings(self):
        """Score weights and thresholds for the orientation scorer."""
        from stl_orient.orientation.scorer import OrientationSettings

        try:
            return OrientationSettings(**{
                key: float(value) for key, value in asdict(self.orientation).items()
            })
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid orientation configuration: {exc}") from exc

    def feature_detector(self):
        """Feature detector with the configured thresholds."""
        from stl_orient.features.feature_detector import FeatureDetector

        try:
            return FeatureDetector(
                flat_threshold=float(self.analysis.flat_threshold),
                hole_threshold=float(self.analysis.hole_threshold),
                overhang_factor=float(self.analysis.overhang_factor),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid analysis configuration: {exc}") from exc

    def weld_tolerance(self) -> float:
        """Vertex merge distance for volume and watertightness checks.

        Raises:
            ConfigError: if the value is not a non-negative number
        """
        try:
            tolerance = float(self.analysis.weld_tolerance)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid analysis configuration: {exc}") from exc
        if not tolerance >= 0.0:
            raise ConfigError(
                f"Invalid analysis configuration: weld_tolerance must be >= 0, got {tolerance}"
            )
        return tolerance


def find_config_file(
    stl_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Find configuration file using search hierarchy.

    Search order:
    1. Explicit config path (if provided)
    2. .stlorient.json in STL file's directory
    3. .stlorient.json in current working directory
    4. ~/.stlorient.json in user's home directory

    Returns:
        Path to config file if found, None otherwise
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = []
    if stl_path:
        candidates.append(Path(stl_path).parent / CONFIG_FILENAME)
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config(
    stl_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> ProjectConfig:
    """Load configuration with fallback to defaults.

    A discovered config file that cannot be parsed is logged and replaced by
    defaults. An explicitly requested one must exist and parse.

    Raises:
        ConfigError: if `explicit_config` is missing or invalid
    """
    if explicit_config and not Path(explicit_config).exists():
        raise ConfigError(f"Config file not found: {explicit_config}")

    config_path = find_config_file(stl_path, explicit_config)
    if config_path is None:
        return ProjectConfig()

    try:
        return ProjectConfig.load(config_path)
    except (json.JSONDecodeError, OSError, ConfigError) as e:
        if explicit_config:
            raise ConfigError(f"Failed to load config {config_path}: {e}") from e
        logger.error("Failed to load config %s: %s", config_path, e)

    return ProjectConfig()


def merge_configs(base: ProjectConfig, override: ProjectConfig) -> ProjectConfig:
    """Merge two configurations, with override taking precedence.

    Only values of `override` that differ from the built-in defaults are
    applied.
    """
    merged = ProjectConfig.from_dict(base.to_dict())
    defaults = ProjectConfig()

    for section in fields(ProjectConfig):
        override_section = asdict(getattr(override, section.name))
        default_section = asdict(getattr(defaults, section.name))
        target = getattr(merged, section.name)
        for key, value in override_section.items():
            if value != default_section[key]:
                setattr(target, key, value)

    return merged


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> None:
    """Create a sample configuration file with documentation."""
    sample = {
        "_comment": "STL print orientation analysis configuration",
        "_version": "1.0",
        "envelope": {
            "_comment": "Printer build volume, mm (X width, Y height, Z depth)",
            **asdict(EnvelopeConfig()),
        },
        "orientation": {
            "_comment": "Score = (1-support)*w_support + (1-time)*w_time + quality*w_quality (+bonus)",
            **asdict(OrientationConfig()),
        },
        "analysis": {
            "_comment": "Feature detection thresholds and thread pool size",
            **asdict(AnalysisConfig()),
        },
        "output": {
            "_comment": "JSON report settings",
            **asdict(OutputConfig()),
        },
    }

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    logger.info("Sample configuration created: %s", path)
