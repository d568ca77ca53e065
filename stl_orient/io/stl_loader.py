"""
Загрузка STL-файлов в TriangleMesh.

Поддерживает:
- Бинарный формат STL (автодетекция)
- ASCII формат STL (автодетекция)

Разбор файла полностью выполняет numpy-stl. Нормали берутся из записей
файла, если они ненулевые; иначе вычисляются по обходу вершин.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from stl import mesh

from stl_orient.config import NORMAL_EPSILON
from stl_orient.geometry.mesh import MalformedMeshError, TriangleMesh, compute_face_normals

logger = logging.getLogger(__name__)

PathLike = Union[str, 'os.PathLike[str]']


class STLFormat(Enum):
    """STL file format type."""
    BINARY = "binary"
    ASCII = "ascii"
    UNKNOWN = "unknown"


@dataclass
class STLInfo:
    """Metadata about loaded STL file."""
    filepath: str
    format: STLFormat
    file_size_bytes: int
    n_triangles: int
    n_file_normals: int
    solid_name: Optional[str] = None

    @property
    def file_size_kb(self) -> float:
        return self.file_size_bytes / 1024

    @property
    def n_derived_normals(self) -> int:
        """Triangles whose normal was computed because the file had a zero one."""
        return self.n_triangles - self.n_file_normals

    def to_dict(self) -> dict:
        return {
            'filepath': self.filepath,
            'format': self.format.value,
            'file_size_bytes': self.file_size_bytes,
            'n_triangles': self.n_triangles,
            'n_file_normals': self.n_file_normals,
            'solid_name': self.solid_name,
        }


class STLLoadError(Exception):
    """Ошибка при загрузке или разборе STL-файла."""


def _solid_name(line: str) -> Optional[str]:
    return line[5:].strip() or None


def detect_stl_format(filepath: PathLike) -> Tuple[STLFormat, Optional[str]]:
    """Detect STL file format (binary vs ASCII).

    ASCII STL starts with 'solid' and contains 'facet'/'endsolid'. Binary STL
    has an 80-byte header which may also start with 'solid', so the keyword
    alone is not enough.

    Returns:
        Tuple of (format, solid_name or None)

    Raises:
        STLLoadError: if file cannot be read
    """
    try:
        with open(filepath, 'rb') as f:
            head = f.read(1024)
    except FileNotFoundError:
        raise STLLoadError(f"Файл не найден: {str(filepath)!r}")
    except OSError as exc:
        raise STLLoadError(f"Не удалось прочитать файл {str(filepath)!r}: {exc}") from exc

    text = head.decode('ascii', errors='ignore')
    first_line = text.strip().split('\n')[0].strip()

    if first_line.lower().startswith('solid'):
        lowered = text.lower()
        if 'facet' in lowered or 'endsolid' in lowered or len(head) < 84:
            return STLFormat.ASCII, _solid_name(first_line)

    if len(head) < 84:
        # Меньше заголовка и счётчика треугольников бинарного STL
        return STLFormat.UNKNOWN, None

    header = head[:80].split(b'\x00')[0].decode('ascii', errors='ignore').strip()
    solid_name = _solid_name(header) if header.lower().startswith('solid') else None
    return STLFormat.BINARY, solid_name


def _merge_normals(vectors: np.ndarray, file_normals: np.ndarray) -> Tuple[np.ndarray, int]:
    """Файловые нормали там, где они ненулевые; вычисленные в остальных строках."""
    lengths = np.linalg.norm(file_normals, axis=1)
    has_normal = lengths > NORMAL_EPSILON

    normals = compute_face_normals(vectors)
    normals[has_normal] = file_normals[has_normal] / lengths[has_normal, np.newaxis]
    return normals, int(np.count_nonzero(has_normal))


def _read_stl(filepath: PathLike) -> Tuple[TriangleMesh, int]:
    try:
        # calculate_normals=False: сохранить нормали из файла
        stl_mesh = mesh.Mesh.from_file(str(filepath), calculate_normals=False)
    except FileNotFoundError:
        raise STLLoadError(f"Файл не найден: {str(filepath)!r}")
    except Exception as exc:
        raise STLLoadError(f"Не удалось прочитать STL-файл {str(filepath)!r}: {exc}") from exc

    if len(stl_mesh.vectors) == 0:
        raise STLLoadError(f"STL-файл {str(filepath)!r} не содержит треугольников.")

    vectors = np.asarray(stl_mesh.vectors, dtype=np.float64)
    normals, n_file_normals = _merge_normals(
        vectors, np.asarray(stl_mesh.normals, dtype=np.float64),
    )

    try:
        tri_mesh = TriangleMesh(vectors, normals)
    except MalformedMeshError as exc:
        raise STLLoadError(f"STL-файл {str(filepath)!r} повреждён: {exc}") from exc

    return tri_mesh, n_file_normals


def load_stl(filepath: PathLike) -> TriangleMesh:
    """Загрузить STL-файл (бинарный или ASCII) в TriangleMesh.

    Args:
        filepath: путь к STL-файлу.

    Returns:
        TriangleMesh с единичными нормалями граней.

    Raises:
        STLLoadError: если файл не найден, повреждён или содержит 0 треугольников.
    """
    stl_format, solid_name = detect_stl_format(filepath)
    file_size = os.path.getsize(filepath)

    logger.info("Загрузка STL: %s (формат: %s, размер: %.1f KB)",
                filepath, stl_format.value, file_size / 1024)
    if solid_name:
        logger.debug("Solid name: %s", solid_name)

    tri_mesh, n_file_normals = _read_stl(filepath)

    if n_file_normals < tri_mesh.n_triangles:
        logger.debug("Нормали вычислены для %d граней",
                     tri_mesh.n_triangles - n_file_normals)
    logger.info("Загружено: %d граней.", tri_mesh.n_triangles)
    return tri_mesh


def load_stl_with_info(filepath: PathLike) -> Tuple[TriangleMesh, STLInfo]:
    """Load an STL file and return the mesh together with file metadata.

    Raises:
        STLLoadError: if file not found, corrupted, or contains 0 triangles
    """
    stl_format, solid_name = detect_stl_format(filepath)
    file_size = os.path.getsize(filepath)

    tri_mesh, n_file_normals = _read_stl(filepath)

    info = STLInfo(
        filepath=str(filepath),
        format=stl_format,
        file_size_bytes=file_size,
        n_triangles=tri_mesh.n_triangles,
        n_file_normals=n_file_normals,
        solid_name=solid_name,
    )
    logger.info("Загружено: %s, %d граней (%s)", filepath, info.n_triangles, stl_format.value)
    return tri_mesh, info
