"""
Value objects passed between pipeline stages.

``RawRecord`` is a tagged union over provider payloads (one subclass per
source). ``NormalizedNFT`` is the canonical shape produced by the normalizer
and persisted as JSON on the queue row.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Mapping

ZERO_ADDRESSES: frozenset[str] = frozenset(
    {
        "0x0000000000000000000000000000000000000000",
        "tz1ke2h7sddakhjqh8wx4z372du1kchsksyu",
        "tz1burnburnburnburnburnburnburjayjjx",
    }
)


class DataSource(str, enum.Enum):
    """Upstream providers with a dedicated normalizer."""

    OPENSEA = "opensea"
    TEZOS = "tezos"

    @classmethod
    def coerce(cls, value: "DataSource | str") -> "DataSource":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        if normalized in {"objkt", "teztok"}:
            return cls.TEZOS
        return cls(normalized)


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    return address.strip().lower() in ZERO_ADDRESSES


def payload_checksum(payload: Mapping[str, Any] | None) -> str:
    """Stable sha256 of a raw payload, independent of key order."""
    serialized = json.dumps(payload or {}, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RawRecord:
    """Provider payload plus the identifiers needed to queue it."""

    payload: Mapping[str, Any]
    blockchain: str
    contract_address: str | None
    token_id: str | None

    source: DataSource = field(init=False)

    @property
    def is_identified(self) -> bool:
        return bool(self.contract_address and self.token_id)

    @property
    def nft_uid(self) -> str:
        """
        ``contract:token`` for identified records.

        Records missing either identifier get a source, chain and payload
        scoped key so unrelated incomplete records never share a queue row.
        """
        if self.is_identified:
            return f"{self.contract_address}:{self.token_id}"
        digest = payload_checksum(self.payload)[:12]
        return f"{self.source.value}:{self.blockchain}:{self.contract_address or ''}:{self.token_id or ''}:{digest}"


@dataclass(frozen=True)
class OpenSeaRecord(RawRecord):
    """Ethereum-family token as returned by the OpenSea v2 API."""

    source: DataSource = field(default=DataSource.OPENSEA, init=False)


@dataclass(frozen=True)
class TezosRecord(RawRecord):
    """Tezos token as returned by the objkt GraphQL API."""

    source: DataSource = field(default=DataSource.TEZOS, init=False)


RECORD_TYPES: Mapping[DataSource, type[RawRecord]] = {
    DataSource.OPENSEA: OpenSeaRecord,
    DataSource.TEZOS: TezosRecord,
}


def build_raw_record(
    source: DataSource | str,
    payload: Mapping[str, Any],
    *,
    blockchain: str,
    contract_address: str | None,
    token_id: str | int | None,
) -> RawRecord:
    """Construct the tagged record variant for ``source``."""
    record_type = RECORD_TYPES[DataSource.coerce(source)]
    return record_type(
        payload=dict(payload or {}),
        blockchain=(blockchain or "unknown").lower(),
        contract_address=str(contract_address).strip() if contract_address else None,
        token_id=str(token_id).strip() if token_id is not None and str(token_id).strip() else None,
    )


@dataclass
class Creator:
    address: str | None = None
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    profile_url: str | None = None
    website_url: str | None = None
    display_name: str | None = None
    ens_name: str | None = None
    is_verified: bool | None = None
    social_links: dict[str, str] = field(default_factory=dict)
    resolution_source: str | None = None

    @property
    def has_usable_address(self) -> bool:
        return not is_zero_address(self.address)

    @property
    def preferred_name(self) -> str | None:
        for candidate in (self.display_name, self.username, self.ens_name):
            if candidate and candidate.strip():
                return candidate.strip()
        return None

    @property
    def is_complete(self) -> bool:
        return bool(self.address and self.username and self.profile_url)


@dataclass
class CollectionData:
    slug: str
    title: str | None = None
    description: str | None = None
    contract_address: str | None = None
    blockchain: str | None = None
    website_url: str | None = None
    image_url: str | None = None
    banner_image_url: str | None = None
    discord_url: str | None = None
    twitter_handle: str | None = None
    is_generative_art: bool | None = None
    is_shared_contract: bool | None = None
    total_supply: int | None = None
    mint_start_date: str | None = None
    fees: list[Any] | dict[str, Any] | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.slug and self.title and self.description and self.image_url)


@dataclass
class NormalizedNFT:
    title: str
    description: str | None = None
    image_url: str | None = None
    thumbnail_url: str | None = None
    animation_url: str | None = None
    generator_url: str | None = None
    metadata_url: str | None = None
    mime: str | None = None
    blockchain: str = "unknown"
    token_standard: str | None = None
    supply: int = 1
    mint_date: str | None = None
    dimensions: dict[str, int] | None = None
    attributes: list[dict[str, str]] = field(default_factory=list)
    features: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    creator: Creator | None = None
    collection: CollectionData | None = None

    @property
    def has_media(self) -> bool:
        return bool(self.image_url or self.animation_url or self.generator_url)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NormalizedNFT":
        known = {item.name for item in fields(cls)}
        values = {key: value for key, value in payload.items() if key in known}
        creator = values.pop("creator", None)
        collection = values.pop("collection", None)
        instance = cls(**values)
        if isinstance(creator, Mapping):
            creator_fields = {item.name for item in fields(Creator)}
            instance.creator = Creator(**{k: v for k, v in creator.items() if k in creator_fields})
        if isinstance(collection, Mapping) and collection.get("slug"):
            collection_fields = {item.name for item in fields(CollectionData)}
            instance.collection = CollectionData(**{k: v for k, v in collection.items() if k in collection_fields})
        return instance


__all__ = [
    "CollectionData",
    "Creator",
    "DataSource",
    "NormalizedNFT",
    "OpenSeaRecord",
    "RawRecord",
    "TezosRecord",
    "build_raw_record",
    "is_zero_address",
    "payload_checksum",
]
