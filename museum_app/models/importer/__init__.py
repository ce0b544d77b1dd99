"""
Importer queue models.
"""

from .schema import ArtworkIndex, ImportRun, ImportRunStatus, ImportStatus

__all__ = [
    "ArtworkIndex",
    "ImportRun",
    "ImportRunStatus",
    "ImportStatus",
]
