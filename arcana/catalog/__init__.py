"""Catalog persistence package."""

from .db import Base, create_session_factory
from .models import ApiKey, Collection, Game, Meta, Platform, User
from .store import CatalogError, CatalogStore, ConstraintViolation

__all__ = [
    "Base",
    "create_session_factory",
    "ApiKey",
    "Collection",
    "Game",
    "Meta",
    "Platform",
    "User",
    "CatalogError",
    "CatalogStore",
    "ConstraintViolation",
]
