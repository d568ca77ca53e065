"""Чтение STL-файлов."""

from stl_orient.io.stl_loader import (
    STLFormat,
    STLInfo,
    STLLoadError,
    detect_stl_format,
    load_stl,
    load_stl_with_info,
)

__all__ = [
    "STLFormat",
    "STLInfo",
    "STLLoadError",
    "detect_stl_format",
    "load_stl",
    "load_stl_with_info",
]
