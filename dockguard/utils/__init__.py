"""Utility helpers for the auditor."""

from .discovery import iter_manifest_files
from .fileio import read_text_file, read_yaml_file

__all__ = [
    "iter_manifest_files",
    "read_text_file",
    "read_yaml_file",
]
