# museum_app/models/artist.py

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import UniqueConstraint, func
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseModel, db
from .relationships import artist_artworks, artist_collections


def normalize_address(address):
    """Lowercase and trim a wallet address; returns None for blanks."""
    if address is None:
        return None
    value = str(address).strip().lower()
    return value or None


class Artist(BaseModel):
    """Creator of one or more artworks, identified primarily by wallet address"""

    __tablename__ = "artists"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), unique=True, nullable=False, index=True)
    username = db.Column(db.String(255), nullable=True)
    display_name = db.Column(db.String(255), nullable=True)
    bio = db.Column(db.Text, nullable=True)
    avatar_url = db.Column(db.String(1000), nullable=True)
    profile_url = db.Column(db.String(1000), nullable=True)
    website_url = db.Column(db.String(1000), nullable=True)
    ens_name = db.Column(db.String(255), nullable=True)
    is_verified = db.Column(db.Boolean, default=False, nullable=False)
    twitter_handle = db.Column(db.String(100), nullable=True)
    instagram_handle = db.Column(db.String(100), nullable=True)
    social_links = db.Column(db.JSON, nullable=True)
    resolution_source = db.Column(db.String(50), nullable=True)

    # Ordered list of {"address", "blockchain", "lastIndexed"} entries
    wallet_addresses = db.Column(db.JSON, nullable=False, default=list)

    wallets = db.relationship("ArtistWallet", back_populates="artist", cascade="all, delete-orphan")
    artworks = db.relationship("Artwork", secondary=artist_artworks, back_populates="artists")
    collections = db.relationship("Collection", secondary=artist_collections, back_populates="artists")

    def __repr__(self):
        return f"<Artist {self.name}>"

    def has_wallet(self, address, blockchain):
        normalized = normalize_address(address)
        for entry in self.wallet_addresses or []:
            if normalize_address(entry.get("address")) == normalized and entry.get("blockchain") == blockchain:
                return True
        return False

    def add_wallet(self, address, blockchain):
        """
        Append a wallet to the embedded list and the lookup table.

        Existing entries are never replaced; returns True when a new wallet was added.
        """
        normalized = normalize_address(address)
        if normalized is None or self.has_wallet(normalized, blockchain):
            return False
        entries = list(self.wallet_addresses or [])
        entries.append(
            {
                "address": normalized,
                "blockchain": blockchain,
                "lastIndexed": datetime.now(timezone.utc).isoformat(),
            }
        )
        # Reassign so SQLAlchemy notices the JSON change
        self.wallet_addresses = entries
        self.wallets.append(ArtistWallet(address=normalized, blockchain=blockchain))
        return True

    @staticmethod
    def find_by_wallet(address, blockchain, session=None):
        """Find the artist owning ``(address, blockchain)`` using the wallet index."""
        normalized = normalize_address(address)
        if normalized is None:
            return None
        session = session or db.session
        wallet = (
            session.query(ArtistWallet)
            .filter(func.lower(ArtistWallet.address) == normalized, ArtistWallet.blockchain == blockchain)
            .first()
        )
        return wallet.artist if wallet else None

    @staticmethod
    def find_by_name(name, session=None):
        """Find artist by exact name with error handling"""
        session = session or db.session
        try:
            return session.query(Artist).filter_by(name=name).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding artist by name {name}: {str(e)}")
            return None


class ArtistWallet(BaseModel):
    """Secondary index mapping ``(address, blockchain)`` to its artist"""

    __tablename__ = "artist_wallets"

    id = db.Column(db.Integer, primary_key=True)
    artist_id = db.Column(db.Integer, db.ForeignKey("artists.id", ondelete="CASCADE"), nullable=False, index=True)
    address = db.Column(db.String(255), nullable=False, index=True)
    blockchain = db.Column(db.String(50), nullable=False)

    artist = db.relationship("Artist", back_populates="wallets")

    __table_args__ = (UniqueConstraint("address", "blockchain", name="uq_artist_wallet_address_chain"),)

    def __repr__(self):
        return f"<ArtistWallet {self.blockchain}:{self.address}>"
