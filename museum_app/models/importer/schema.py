"""
SQLAlchemy models for the import queue.

``ArtworkIndex`` is the durable queue: one row per ``nft_uid`` carrying the raw
provider payload, the normalized snapshot and the current pipeline status.
``ImportRun`` records one row per queue batch for auditing.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..base import BaseModel, db


class ImportStatus(str, enum.Enum):
    """Lifecycle states for a queued token."""

    PENDING = "pending"
    PROCESSING = "processing"
    NORMALIZED = "normalized"
    REFERENCED = "referenced"
    IMPORTED = "imported"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in {ImportStatus.IMPORTED, ImportStatus.SKIPPED}


class ImportRunStatus(str, enum.Enum):
    """Lifecycle states for a queue batch run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


class ArtworkIndex(BaseModel):
    """Queue row tracking a single raw-to-import attempt."""

    __tablename__ = "artwork_index"

    id: Mapped[int] = mapped_column(primary_key=True)
    nft_uid: Mapped[str] = mapped_column(db.String(500), nullable=False, unique=True, index=True)
    data_source: Mapped[str] = mapped_column(db.String(50), nullable=False)
    blockchain: Mapped[str] = mapped_column(db.String(50), nullable=False)
    contract_address: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    token_id: Mapped[str | None] = mapped_column(db.String(255), nullable=True)
    raw_response: Mapped[dict] = mapped_column(db.JSON, nullable=False, default=dict)
    normalized_data: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    checksum: Mapped[str | None] = mapped_column(db.String(64), nullable=True)
    import_status: Mapped[ImportStatus] = mapped_column(
        Enum(ImportStatus, name="import_status_enum"),
        nullable=False,
        default=ImportStatus.PENDING,
    )
    error_message: Mapped[str | None] = mapped_column(db.Text, nullable=True)
    last_attempt: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True), nullable=True)
    artwork_id: Mapped[int | None] = mapped_column(
        ForeignKey("artworks.id", ondelete="SET NULL"),
        nullable=True,
    )

    artwork = relationship("Artwork")

    __table_args__ = (Index("idx_artwork_index_status_created", "import_status", "created_at"),)

    def __repr__(self) -> str:
        return f"<ArtworkIndex {self.nft_uid} {self.import_status.value}>"


class ImportRun(BaseModel):
    """Metadata describing a single ``process_queue`` batch."""

    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    trigger: Mapped[str] = mapped_column(db.String(50), nullable=False, default="api")
    status: Mapped[ImportRunStatus] = mapped_column(
        Enum(ImportRunStatus, name="import_run_status_enum"),
        nullable=False,
        default=ImportRunStatus.PENDING,
        index=True,
    )
    requested_status: Mapped[str] = mapped_column(db.String(50), nullable=False, default="pending")
    requested_limit: Mapped[int] = mapped_column(db.Integer, nullable=False, default=50)
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    counts_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<ImportRun {self.id} {self.status.value}>"
