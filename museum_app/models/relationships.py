# museum_app/models/relationships.py

from .base import db

# Composite primary keys make re-linking the same pair a no-op at the database level.
artist_artworks = db.Table(
    "artist_artworks",
    db.Column("artist_id", db.Integer, db.ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True),
    db.Column("artwork_id", db.Integer, db.ForeignKey("artworks.id", ondelete="CASCADE"), primary_key=True),
)

artist_collections = db.Table(
    "artist_collections",
    db.Column("artist_id", db.Integer, db.ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True),
    db.Column(
        "collection_id", db.Integer, db.ForeignKey("collections.id", ondelete="CASCADE"), primary_key=True
    ),
)
