# museum_app/models/artwork.py

from sqlalchemy import UniqueConstraint

from .base import BaseModel, db
from .relationships import artist_artworks


def build_nft_uid(contract_address, token_id):
    """Composite ``contract:token`` key shared by the queue and the catalog."""
    return f"{str(contract_address).strip()}:{str(token_id).strip()}"


class Artwork(BaseModel):
    """Imported token with denormalized display data"""

    __tablename__ = "artworks"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(500), unique=True, nullable=False, index=True)
    contract_address = db.Column(db.String(255), nullable=False)
    token_id = db.Column(db.String(255), nullable=False)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(2000), nullable=True)
    thumbnail_url = db.Column(db.String(2000), nullable=True)
    animation_url = db.Column(db.String(2000), nullable=True)
    generator_url = db.Column(db.String(2000), nullable=True)
    metadata_url = db.Column(db.String(2000), nullable=True)
    mime = db.Column(db.String(100), nullable=True)
    blockchain = db.Column(db.String(50), nullable=True, index=True)
    token_standard = db.Column(db.String(20), nullable=True)
    supply = db.Column(db.Integer, nullable=True)
    mint_date = db.Column(db.DateTime(timezone=True), nullable=True)
    dimensions = db.Column(db.JSON, nullable=True)
    attributes = db.Column(db.JSON, nullable=True)
    features = db.Column(db.JSON, nullable=True)
    tags = db.Column(db.JSON, nullable=True)
    collection_id = db.Column(db.Integer, db.ForeignKey("collections.id", ondelete="SET NULL"), nullable=True)

    collection = db.relationship("Collection", back_populates="artworks")
    artists = db.relationship("Artist", secondary=artist_artworks, back_populates="artworks")

    __table_args__ = (UniqueConstraint("contract_address", "token_id", name="uq_artwork_contract_token"),)

    def __repr__(self):
        return f"<Artwork {self.uid}>"

    @staticmethod
    def find_by_token(contract_address, token_id, session=None):
        session = session or db.session
        return (
            session.query(Artwork)
            .filter_by(contract_address=str(contract_address), token_id=str(token_id))
            .first()
        )
