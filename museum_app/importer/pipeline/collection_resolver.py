"""
Upsert Collection records keyed by slug.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timezone
from typing import Any, Callable

from flask import current_app
from sqlalchemy.orm import Session

from config.survivorship import COLLECTION_PROFILE
from museum_app.models import Collection, db

from .records import CollectionData
from .survivorship import apply_survivorship


@dataclass(frozen=True)
class CollectionResolution:
    collection: Collection | None
    created: bool = False
    updated_fields: tuple[str, ...] = ()

    @property
    def collection_id(self) -> int | None:
        return self.collection.id if self.collection is not None else None


def parse_iso_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _incoming_payload(data: CollectionData) -> dict[str, Any]:
    payload = {item.name: getattr(data, item.name) for item in fields(CollectionData)}
    slug = payload.pop("slug")
    # A title echoing the slug is a placeholder and must not replace a real one
    if payload.get("title") and slug and payload["title"].strip() == slug.strip():
        payload["title"] = None
    payload["mint_start_date"] = parse_iso_datetime(payload.get("mint_start_date"))
    return payload


class CollectionResolver:
    """Create or refresh collections; blanks never erase stored metadata."""

    def __init__(self, session: Session | None = None, *, clock: Callable[[], datetime] | None = None) -> None:
        self.session = session or db.session
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def resolve(self, data: CollectionData | None) -> CollectionResolution:
        if data is None:
            return CollectionResolution(collection=None)
        slug = (data.slug or data.contract_address or "").strip()
        if not slug:
            return CollectionResolution(collection=None)

        now = self._clock()
        incoming = _incoming_payload(data)
        collection = Collection.find_by_slug(slug, session=self.session)
        if collection is None:
            collection = Collection(
                slug=slug,
                title=data.title or slug,
                is_generative_art=bool(data.is_generative_art),
                is_shared_contract=bool(data.is_shared_contract),
                last_synced_at=now,
                **{
                    key: value
                    for key, value in incoming.items()
                    if value is not None and key not in {"title", "is_generative_art", "is_shared_contract"}
                },
            )
            self.session.add(collection)
            self.session.flush()
            current_app.logger.info(
                "Created collection",
                extra={"importer_collection_id": collection.id, "importer_collection_slug": slug},
            )
            return CollectionResolution(collection=collection, created=True)

        snapshot = {name: getattr(collection, name) for name in COLLECTION_PROFILE.field_names}
        result = apply_survivorship(profile=COLLECTION_PROFILE, incoming_payload=incoming, core_snapshot=snapshot)
        updated = list(result.changed_fields)
        for field_name in updated:
            setattr(collection, field_name, result.resolved_values[field_name])
        # Flags only ever turn on
        for flag in ("is_generative_art", "is_shared_contract"):
            if incoming.get(flag) and not getattr(collection, flag):
                setattr(collection, flag, True)
                updated.append(flag)
        collection.last_synced_at = now
        self.session.flush()
        if updated:
            current_app.logger.info(
                "Refreshed collection metadata",
                extra={"importer_collection_id": collection.id, "importer_updated_fields": updated},
            )
        return CollectionResolution(collection=collection, updated_fields=tuple(updated))


__all__ = ["CollectionResolution", "CollectionResolver", "parse_iso_datetime"]
