"""
Import a single queued token into the gallery catalog.

``ImportEngine.import_record`` claims an ``ArtworkIndex`` row, normalizes and
enriches its raw payload, resolves the artist and collection, upserts the
artwork keyed by ``(contract_address, token_id)`` and finally pins referenced
IPFS content. Status is committed at each stage so resolved artists and
collections survive a later failure; a retry finds them again through the
resolvers instead of duplicating them.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from museum_app.models import Artist, Artwork, ArtworkIndex, Collection, ImportStatus, build_nft_uid, db

from ..errors import ImportFailure, MissingIdentifier
from ..metrics import record_import_outcome
from ..pinning import PinningClient
from .artist_resolver import ArtistResolver
from .collection_resolver import CollectionResolver, parse_iso_datetime
from .enrichment import Enricher
from .media import resolve_thumbnail
from .normalizer import normalize
from .records import NormalizedNFT, build_raw_record

CLAIMABLE_STATUSES = tuple(
    status for status in ImportStatus if status not in (ImportStatus.PROCESSING, ImportStatus.SKIPPED)
)
DEFAULT_STALE_CLAIM_SECONDS = 900


def stale_claim_cutoff(max_age_seconds: int | None = None, *, now: datetime | None = None) -> datetime:
    """Claims whose ``last_attempt`` predates the returned instant are abandoned."""
    if max_age_seconds is None:
        max_age_seconds = int(current_app.config.get("IMPORTER_STALE_CLAIM_SECONDS", DEFAULT_STALE_CLAIM_SECONDS))
    return (now or datetime.now(timezone.utc)) - timedelta(seconds=max_age_seconds)


def stale_claim_filter(cutoff: datetime):
    return and_(
        ArtworkIndex.import_status == ImportStatus.PROCESSING,
        or_(ArtworkIndex.last_attempt.is_(None), ArtworkIndex.last_attempt < cutoff),
    )

ARTWORK_FIELDS = (
    "title",
    "description",
    "image_url",
    "thumbnail_url",
    "animation_url",
    "generator_url",
    "metadata_url",
    "mime",
    "blockchain",
    "token_standard",
    "supply",
    "mint_date",
    "dimensions",
    "attributes",
    "features",
    "tags",
)


@dataclass(frozen=True)
class ImportResult:
    success: bool
    index_id: int | None = None
    nft_uid: str | None = None
    artwork_id: int | None = None
    artist_id: int | None = None
    collection_id: int | None = None
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    created_records: Mapping[str, bool] = field(
        default_factory=lambda: {"artist": False, "collection": False, "artwork": False}
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "indexId": self.index_id,
            "nftUid": self.nft_uid,
            "artworkId": self.artwork_id,
            "artistId": self.artist_id,
            "collectionId": self.collection_id,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "createdRecords": dict(self.created_records),
        }


def _artwork_values(nft: NormalizedNFT) -> dict[str, Any]:
    values = {name: getattr(nft, name) for name in ARTWORK_FIELDS}
    values["mint_date"] = parse_iso_datetime(nft.mint_date)
    # Re-applied here because normalized snapshots may predate the placeholder list
    values["thumbnail_url"] = resolve_thumbnail(nft.thumbnail_url, nft.image_url)
    values["attributes"] = list(nft.attributes) or None
    values["features"] = dict(nft.features) or None
    values["tags"] = list(nft.tags) or None
    return values


class ImportEngine:
    """Run the per-record import sequence against the configured collaborators."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        enrichers: Mapping[str, Enricher] | None = None,
        pinning_client: PinningClient | None = None,
        artist_resolver: ArtistResolver | None = None,
        collection_resolver: CollectionResolver | None = None,
    ) -> None:
        self.session = session or db.session
        self.enrichers = dict(enrichers or {})
        if pinning_client is None:
            pinning_client = PinningClient(
                current_app.config.get("PINATA_JWT"),
                timeout=float(current_app.config.get("IMPORTER_HTTP_TIMEOUT", 10)),
            )
        self.pinning_client = pinning_client
        self.artist_resolver = artist_resolver or ArtistResolver(self.session)
        self.collection_resolver = collection_resolver or CollectionResolver(self.session)

    # Public API -----------------------------------------------------------------

    def import_record(self, index_id: int) -> ImportResult:
        """
        Import the queue row ``index_id``.

        Never raises for per-record problems: any failure marks the row
        ``failed`` with the error message and returns ``success=False``.
        """
        started = time.perf_counter()
        entry = self._claim(index_id)
        if entry is None:
            return self._unclaimed_result(index_id)

        nft_uid = entry.nft_uid
        source = entry.data_source
        warnings: list[str] = []
        created = {"artist": False, "collection": False, "artwork": False}
        artist_id: int | None = None
        collection_id: int | None = None

        try:
            contract_address, token_id = self._require_identifiers(entry)

            nft = self._normalize(entry, contract_address, token_id)
            if not nft.has_media:
                warnings.append("Record has no image, animation or generator URL.")
            entry.normalized_data = nft.to_dict()
            entry.import_status = ImportStatus.NORMALIZED
            self._commit()

            artist_resolution = self.artist_resolver.resolve(nft.creator, blockchain=nft.blockchain)
            collection_resolution = self.collection_resolver.resolve(nft.collection)
            artist = artist_resolution.artist
            collection = collection_resolution.collection
            created["artist"] = artist_resolution.created
            created["collection"] = collection_resolution.created
            if artist is not None and collection is not None:
                warning = self._conflicting_artist_warning(artist, collection, nft, artist_resolution.matched_by)
                if warning:
                    warnings.append(warning)
                if collection not in artist.collections:
                    artist.collections.append(collection)
            entry.import_status = ImportStatus.REFERENCED
            self._commit()
            artist_id = artist.id if artist is not None else None
            collection_id = collection.id if collection is not None else None

            artwork, created["artwork"] = self._upsert_artwork(nft, contract_address, token_id, collection)
            if artist is not None and artist not in artwork.artists:
                artwork.artists.append(artist)

            entry.import_status = ImportStatus.IMPORTED
            entry.artwork_id = artwork.id
            entry.error_message = None
            self._commit()
        except Exception as exc:
            return self._fail(index_id, exc, source=source, started=started, artist_id=artist_id, collection_id=collection_id)

        current_app.logger.info(
            "Imported artwork",
            extra={
                "importer_index_id": index_id,
                "importer_nft_uid": nft_uid,
                "importer_artwork_id": artwork.id,
                "importer_artist_id": artist_id,
                "importer_collection_id": collection_id,
                "importer_created": created,
                "importer_warnings": warnings,
            },
        )
        record_import_outcome(source=source, outcome="imported", duration_seconds=time.perf_counter() - started)
        self.pinning_client.pin_artwork(artwork)
        return ImportResult(
            success=True,
            index_id=index_id,
            nft_uid=nft_uid,
            artwork_id=artwork.id,
            artist_id=artist_id,
            collection_id=collection_id,
            warnings=tuple(warnings),
            created_records=created,
        )

    # Stages ---------------------------------------------------------------------

    def _claim(self, index_id: int) -> ArtworkIndex | None:
        # A processing row left behind by a crashed worker is claimable once stale
        claimable = or_(ArtworkIndex.import_status.in_(CLAIMABLE_STATUSES), stale_claim_filter(stale_claim_cutoff()))
        claimed = (
            self.session.query(ArtworkIndex)
            .filter(ArtworkIndex.id == index_id, claimable)
            .update(
                {
                    ArtworkIndex.import_status: ImportStatus.PROCESSING,
                    ArtworkIndex.last_attempt: datetime.now(timezone.utc),
                },
                synchronize_session=False,
            )
        )
        self._commit()
        if not claimed:
            return None
        return self.session.get(ArtworkIndex, index_id, populate_existing=True)

    def _unclaimed_result(self, index_id: int) -> ImportResult:
        entry = self.session.get(ArtworkIndex, index_id)
        if entry is None:
            message = f"Artwork index {index_id} not found."
        elif entry.import_status is ImportStatus.SKIPPED:
            message = f"Artwork index {index_id} is marked skipped."
        else:
            message = f"Artwork index {index_id} is already being processed."
        current_app.logger.warning("Import record not claimed", extra={"importer_index_id": index_id, "importer_reason": message})
        return ImportResult(success=False, index_id=index_id, nft_uid=entry.nft_uid if entry else None, errors=(message,))

    @staticmethod
    def _require_identifiers(entry: ArtworkIndex) -> tuple[str, str]:
        contract_address = (entry.contract_address or "").strip()
        token_id = (entry.token_id or "").strip()
        if not contract_address:
            raise MissingIdentifier("contract_address", entry.nft_uid)
        if not token_id:
            raise MissingIdentifier("token_id", entry.nft_uid)
        return contract_address, token_id

    def _normalize(self, entry: ArtworkIndex, contract_address: str, token_id: str) -> NormalizedNFT:
        raw = build_raw_record(
            entry.data_source,
            entry.raw_response or {},
            blockchain=entry.blockchain,
            contract_address=contract_address,
            token_id=token_id,
        )
        nft = normalize(raw)
        enricher = self.enrichers.get(raw.source.value)
        if enricher is not None:
            nft = enricher.enrich(nft, contract_address, token_id)
        return nft

    @staticmethod
    def _conflicting_artist_warning(
        artist: Artist,
        collection: Collection,
        nft: NormalizedNFT,
        matched_by: str | None,
    ) -> str | None:
        if matched_by != "wallet" or collection in artist.collections or not artist.collections:
            return None
        incoming_name = nft.creator.preferred_name if nft.creator else None
        if not incoming_name or incoming_name == artist.name:
            return None
        others = ", ".join(sorted(item.slug for item in artist.collections))
        return (
            f"Artist {artist.id} matched by wallet is linked to other collections ({others}) "
            f"as '{artist.name}'; incoming creator name '{incoming_name}' was not applied."
        )

    def _upsert_artwork(
        self,
        nft: NormalizedNFT,
        contract_address: str,
        token_id: str,
        collection: Collection | None,
    ) -> tuple[Artwork, bool]:
        values = _artwork_values(nft)
        artwork = Artwork.find_by_token(contract_address, token_id, session=self.session)
        if artwork is None:
            artwork = Artwork(
                uid=build_nft_uid(contract_address, token_id),
                contract_address=contract_address,
                token_id=token_id,
                collection=collection,
                **values,
            )
            self.session.add(artwork)
            self.session.flush()
            return artwork, True

        for name, value in values.items():
            # Blank incoming values never erase stored display data
            if value is not None:
                setattr(artwork, name, value)
        if collection is not None:
            artwork.collection = collection
        self.session.flush()
        return artwork, False

    def _fail(
        self,
        index_id: int,
        exc: Exception,
        *,
        source: str,
        started: float,
        artist_id: int | None,
        collection_id: int | None,
    ) -> ImportResult:
        self.session.rollback()
        message = str(exc) or exc.__class__.__name__
        entry = self.session.get(ArtworkIndex, index_id)
        if entry is None:
            raise ImportFailure(f"Artwork index {index_id} disappeared while importing.") from exc
        entry.import_status = ImportStatus.FAILED
        entry.error_message = message
        entry.last_attempt = datetime.now(timezone.utc)
        self._commit()
        current_app.logger.error(
            "Import record failed",
            extra={
                "importer_index_id": index_id,
                "importer_nft_uid": entry.nft_uid,
                "importer_error": message,
                "importer_error_type": exc.__class__.__name__,
            },
            exc_info=exc,
        )
        record_import_outcome(source=source, outcome="failed", duration_seconds=time.perf_counter() - started)
        return ImportResult(
            success=False,
            index_id=index_id,
            nft_uid=entry.nft_uid,
            artist_id=artist_id,
            collection_id=collection_id,
            errors=(message,),
        )

    def _commit(self) -> None:
        self.session.commit()


__all__ = ["ImportEngine", "ImportResult"]
