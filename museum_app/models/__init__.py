# museum_app/models/__init__.py
"""
Database models package
"""

from .artist import Artist, ArtistWallet, normalize_address
from .artwork import Artwork, build_nft_uid
from .base import BaseModel, db
from .collection import Collection
from .importer import ArtworkIndex, ImportRun, ImportRunStatus, ImportStatus
from .relationships import artist_artworks, artist_collections

__all__ = [
    "db",
    "BaseModel",
    # Catalog models
    "Artist",
    "ArtistWallet",
    "Artwork",
    "Collection",
    "artist_artworks",
    "artist_collections",
    # Queue models
    "ArtworkIndex",
    "ImportRun",
    "ImportRunStatus",
    "ImportStatus",
    # Helpers
    "build_nft_uid",
    "normalize_address",
]
