"""
Arcana - Game Library Scan Engine

Attaches platform data sources (storefront libraries), scans them
asynchronously and ingests the discovered games into a local catalog.
"""

__version__ = "0.3.0"
__author__ = "arcana"
