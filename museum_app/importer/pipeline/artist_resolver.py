"""
Find-or-create Artist records from normalized creator data.

Wallet address is the primary identity: an artist is located through the
``artist_wallets`` index on ``(address, blockchain)``. Name lookup is used only
when the creator carries no usable address. Existing artists are merged
fill-only through the survivorship profile; new artists get a unique name
through a bounded suffix loop that reports failure as a result value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.survivorship import ARTIST_PROFILE
from museum_app.models import Artist, db, normalize_address

from ..errors import ArtistCreationError
from .records import Creator
from .survivorship import apply_survivorship

DEFAULT_MAX_NAME_ATTEMPTS = 5
PLACEHOLDER_PREFIX = "Artist_"


def placeholder_name(address: str) -> str:
    """Derived display name for creators known only by wallet."""
    return f"{PLACEHOLDER_PREFIX}{address[-8:]}"


def _suffixed(base_name: str, attempt: int) -> str:
    return base_name if attempt == 1 else f"{base_name} ({attempt})"


@dataclass(frozen=True)
class ArtistCreationResult:
    """Outcome of the bounded unique-name creation loop."""

    artist: Artist | None
    attempts: int
    error: ArtistCreationError | None = None

    @property
    def ok(self) -> bool:
        return self.artist is not None


@dataclass(frozen=True)
class ArtistResolution:
    artist: Artist | None
    created: bool = False
    matched_by: str | None = None
    updated_fields: tuple[str, ...] = ()

    @property
    def artist_id(self) -> int | None:
        return self.artist.id if self.artist is not None else None


def _creator_payload(creator: Creator) -> dict[str, Any]:
    links = creator.social_links or {}
    return {
        "username": creator.username,
        "display_name": creator.display_name,
        "ens_name": creator.ens_name,
        "bio": creator.bio,
        "avatar_url": creator.avatar_url,
        "profile_url": creator.profile_url,
        "website_url": creator.website_url,
        "twitter_handle": links.get("twitter"),
        "instagram_handle": links.get("instagram"),
        "resolution_source": creator.resolution_source,
    }


class ArtistResolver:
    """Resolve creators to Artist rows inside the caller's session."""

    def __init__(self, session: Session | None = None, *, max_name_attempts: int | None = None) -> None:
        self.session = session or db.session
        if max_name_attempts is None:
            max_name_attempts = int(current_app.config.get("IMPORTER_ARTIST_NAME_MAX_ATTEMPTS", DEFAULT_MAX_NAME_ATTEMPTS))
        self.max_name_attempts = max(1, max_name_attempts)

    # Public API -----------------------------------------------------------------

    def resolve(self, creator: Creator | None, *, blockchain: str) -> ArtistResolution:
        """
        Return the Artist for ``creator``, creating it when needed.

        Returns an empty resolution when the creator has neither a usable
        address nor a name. Raises ``ArtistCreationError`` when no unique name
        could be found within the attempt bound.
        """
        if creator is None:
            return ArtistResolution(artist=None)

        address = normalize_address(creator.address) if creator.has_usable_address else None
        name = creator.preferred_name

        artist: Artist | None = None
        matched_by: str | None = None
        if address is not None:
            artist = Artist.find_by_wallet(address, blockchain, session=self.session)
            matched_by = "wallet" if artist is not None else None
        elif name is not None:
            artist = Artist.find_by_name(name, session=self.session)
            matched_by = "name" if artist is not None else None
        else:
            return ArtistResolution(artist=None)

        if artist is not None:
            updated = self._merge(artist, creator, address=address, blockchain=blockchain)
            return ArtistResolution(artist=artist, matched_by=matched_by, updated_fields=updated)

        result = self.create_artist(creator, address=address, blockchain=blockchain)
        if result.error is not None:
            raise result.error
        return ArtistResolution(artist=result.artist, created=True)

    def create_artist(self, creator: Creator, *, address: str | None, blockchain: str) -> ArtistCreationResult:
        """
        Insert a new artist under the first free suffixed variant of its name.

        Each candidate is inserted inside a SAVEPOINT so a concurrent writer
        that takes the same name between the lookup and the flush only costs
        one attempt; the loop moves on to the next suffix.
        """
        base_name = creator.preferred_name or (placeholder_name(address) if address else None)
        if base_name is None:
            raise ValueError("Cannot create an artist without an address or a name.")

        payload = _creator_payload(creator)
        for attempt in range(1, self.max_name_attempts + 1):
            candidate = _suffixed(base_name, attempt)
            if self._name_taken(candidate):
                continue
            artist = Artist(
                name=candidate,
                is_verified=bool(creator.is_verified),
                social_links=dict(creator.social_links) or None,
                wallet_addresses=[],
                **{key: value for key, value in payload.items() if value is not None},
            )
            if address is not None:
                artist.add_wallet(address, blockchain)
            try:
                with self.session.begin_nested():
                    self.session.add(artist)
                    self.session.flush()
            except IntegrityError:
                if not self._name_taken(candidate):
                    raise
                current_app.logger.info(
                    "Artist name taken concurrently",
                    extra={"importer_artist_name": candidate, "importer_attempt": attempt},
                )
                continue
            current_app.logger.info(
                "Created artist",
                extra={
                    "importer_artist_id": artist.id,
                    "importer_artist_name": artist.name,
                    "importer_artist_address": address,
                    "importer_name_attempts": attempt,
                },
            )
            return ArtistCreationResult(artist=artist, attempts=attempt)

        attempts = self.max_name_attempts
        current_app.logger.warning(
            "Artist name attempts exhausted",
            extra={"importer_artist_name": base_name, "importer_attempts": attempts},
        )
        return ArtistCreationResult(artist=None, attempts=attempts, error=ArtistCreationError(base_name, attempts))

    # Internal helpers -----------------------------------------------------------

    def _name_taken(self, name: str, *, exclude_id: int | None = None) -> bool:
        query = self.session.query(Artist.id).filter(Artist.name == name)
        if exclude_id is not None:
            query = query.filter(Artist.id != exclude_id)
        return query.first() is not None

    def _find_available_name(self, base_name: str, *, exclude_id: int | None = None) -> tuple[str | None, int]:
        for attempt in range(1, self.max_name_attempts + 1):
            candidate = _suffixed(base_name, attempt)
            if not self._name_taken(candidate, exclude_id=exclude_id):
                return candidate, attempt
        return None, self.max_name_attempts

    def _has_address_name(self, artist: Artist) -> bool:
        current = (artist.name or "").strip()
        for entry in artist.wallet_addresses or []:
            wallet = normalize_address(entry.get("address"))
            if not wallet:
                continue
            if current.lower() == wallet:
                return True
            base = placeholder_name(wallet)
            if current == base or current.startswith(f"{base} ("):
                return True
        return False

    def _merge(self, artist: Artist, creator: Creator, *, address: str | None, blockchain: str) -> tuple[str, ...]:
        snapshot: Mapping[str, Any] = {field: getattr(artist, field) for field in ARTIST_PROFILE.field_names}
        result = apply_survivorship(
            profile=ARTIST_PROFILE,
            incoming_payload=_creator_payload(creator),
            core_snapshot=snapshot,
        )
        updated: list[str] = []
        for field_name in result.changed_fields:
            setattr(artist, field_name, result.resolved_values[field_name])
            updated.append(field_name)

        if creator.social_links:
            links = dict(artist.social_links or {})
            added = {key: value for key, value in creator.social_links.items() if key not in links and value}
            if added:
                links.update(added)
                artist.social_links = links
                updated.append("social_links")

        if creator.is_verified and not artist.is_verified:
            artist.is_verified = True
            updated.append("is_verified")

        real_name = creator.preferred_name
        if real_name and real_name != artist.name and self._has_address_name(artist):
            upgraded, _ = self._find_available_name(real_name, exclude_id=artist.id)
            if upgraded is not None:
                artist.name = upgraded
                updated.append("name")

        if address is not None and artist.add_wallet(address, blockchain):
            updated.append("wallet_addresses")

        if updated:
            self.session.flush()
            current_app.logger.info(
                "Merged artist fields",
                extra={"importer_artist_id": artist.id, "importer_updated_fields": updated},
            )
        return tuple(updated)


__all__ = [
    "ArtistCreationResult",
    "ArtistResolution",
    "ArtistResolver",
    "placeholder_name",
]
