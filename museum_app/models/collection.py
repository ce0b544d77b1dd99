# museum_app/models/collection.py

from .base import BaseModel, db
from .relationships import artist_collections


class Collection(BaseModel):
    """Marketplace collection or contract grouping artworks"""

    __tablename__ = "collections"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    contract_address = db.Column(db.String(255), nullable=True, index=True)
    blockchain = db.Column(db.String(50), nullable=True)
    website_url = db.Column(db.String(1000), nullable=True)
    image_url = db.Column(db.String(1000), nullable=True)
    banner_image_url = db.Column(db.String(1000), nullable=True)
    discord_url = db.Column(db.String(1000), nullable=True)
    twitter_handle = db.Column(db.String(100), nullable=True)
    is_generative_art = db.Column(db.Boolean, default=False, nullable=False)
    is_shared_contract = db.Column(db.Boolean, default=False, nullable=False)
    total_supply = db.Column(db.Integer, nullable=True)
    mint_start_date = db.Column(db.DateTime(timezone=True), nullable=True)
    fees = db.Column(db.JSON, nullable=True)
    last_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    artworks = db.relationship("Artwork", back_populates="collection")
    artists = db.relationship("Artist", secondary=artist_collections, back_populates="collections")

    def __repr__(self):
        return f"<Collection {self.slug}>"

    @staticmethod
    def find_by_slug(slug, session=None):
        session = session or db.session
        return session.query(Collection).filter_by(slug=slug).first()
