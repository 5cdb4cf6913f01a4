"""Core infrastructure modules."""

from .config import ProviderSettings
from .global_paths import GlobalPath
from .id import Identifier

__all__ = ["GlobalPath", "Identifier", "ProviderSettings"]
