"""
Data Models Layer.

This package contains the models that define the core data structures used
throughout the application, such as the manifest, configuration and statistics.
"""

from .config import SyncConfig, SyncProfile
from .manifest import ContentCategory, Manifest, ManifestEntry, parse_manifest
from .stats import SyncStats

__all__ = [
    "ContentCategory",
    "Manifest",
    "ManifestEntry",
    "SyncConfig",
    "SyncProfile",
    "SyncStats",
    "parse_manifest",
]
