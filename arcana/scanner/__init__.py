"""Platform scanner package."""

from .base import CancellationToken, PlatformScanner, ProgressCallback, ScannedCandidate
from .registry import ScannerRegistry

__all__ = [
    "CancellationToken",
    "PlatformScanner",
    "ProgressCallback",
    "ScannedCandidate",
    "ScannerRegistry",
]
