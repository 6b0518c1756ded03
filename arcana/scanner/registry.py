"""Scanner registration by platform name."""

import logging
from typing import Any, Dict, List, Optional

from arcana.catalog.store import CatalogStore
from arcana.scanner.base import PlatformScanner
from arcana.errors import NoScannerRegistered

logger = logging.getLogger(__name__)


class ScannerRegistry:
    """
    Maps platform names to scanner implementations.

    Lookup is by exact (case-sensitive) name match.

    Example:
        registry = ScannerRegistry()
        registry.register(SteamScanner(config, store))
        scanner = registry.require('Steam')
    """

    def __init__(self, scanners: Optional[List[PlatformScanner]] = None):
        self._scanners: Dict[str, PlatformScanner] = {}
        for scanner in scanners or []:
            self.register(scanner)

    def register(self, scanner: PlatformScanner) -> None:
        """
        Register a scanner under its platform name.

        Args:
            scanner: Scanner instance with a non-empty `name`

        Raises:
            ValueError: If the scanner has no name
        """
        if not scanner.name:
            raise ValueError(f"{type(scanner).__name__} has no platform name")
        if scanner.name in self._scanners:
            logger.warning(f"Replacing scanner for platform '{scanner.name}'")
        self._scanners[scanner.name] = scanner
        logger.debug(f"Registered scanner for platform '{scanner.name}'")

    def get(self, platform: str) -> Optional[PlatformScanner]:
        return self._scanners.get(platform)

    def require(self, platform: str) -> PlatformScanner:
        """
        Get the scanner for a platform.

        Raises:
            NoScannerRegistered: If none is registered
        """
        scanner = self._scanners.get(platform)
        if scanner is None:
            raise NoScannerRegistered(platform)
        return scanner

    def names(self) -> List[str]:
        """Registered platform names, sorted."""
        return sorted(self._scanners)

    def __contains__(self, platform: object) -> bool:
        return platform in self._scanners

    def __len__(self) -> int:
        return len(self._scanners)


def create_default_registry(config: Dict[str, Any], store: Optional[CatalogStore] = None) -> ScannerRegistry:
    """
    Build the registry of built-in scanners.

    Args:
        config: Configuration dictionary
        store: Optional catalog store (used for stored credentials)

    Returns:
        ScannerRegistry with every built-in platform registered
    """
    from arcana.scanner.steam import SteamScanner

    return ScannerRegistry([
        SteamScanner(config, store=store),
        # Add new platform implementations here
    ])
