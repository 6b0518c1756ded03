"""Scan orchestration package."""

from .engine import ScanEngine
from .merger import IngestionMerger
from .task_registry import DuplicatePolicy, ScanTask, ScanTaskRegistry

__all__ = [
    "ScanEngine",
    "IngestionMerger",
    "DuplicatePolicy",
    "ScanTask",
    "ScanTaskRegistry",
]
