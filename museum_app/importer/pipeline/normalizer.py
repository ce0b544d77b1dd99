"""
Field normalizer converting provider payloads into ``NormalizedNFT`` values.

``normalize`` dispatches on the ``RawRecord`` variant. Each provider function
walks documented fallback chains for every field; malformed optional data is
dropped with a logged warning so a single bad sub-field never fails the record.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Sequence

from .known_contracts import classify_collection
from .media import (
    clean_url,
    detect_mime,
    first_present,
    is_generator_url,
    is_valid_animation_url,
    resolve_thumbnail,
)
from .records import (
    CollectionData,
    Creator,
    NormalizedNFT,
    OpenSeaRecord,
    RawRecord,
    TezosRecord,
    is_zero_address,
)
from ..errors import UnsupportedSource

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled"
MAX_FALLBACK_TAGS = 5
DIMENSION_STRING_PATTERN = re.compile(r"(\d+)\s*[x×]\s*(\d+)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
        return number if number > 0 else None
    return None


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_mint_date(value: Any, *, field_name: str = "mint_date") -> str | None:
    """
    Parse ISO-8601 strings or epoch seconds/milliseconds into a UTC ISO string.

    Unparseable values are logged and treated as absent.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            seconds = value / 1000 if value > 1e12 else value
            parsed = datetime.fromtimestamp(seconds, tz=timezone.utc)
        elif isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return parse_mint_date(int(text), field_name=field_name)
            if text.endswith("Z"):
                text = f"{text[:-1]}+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            raise ValueError(f"unsupported type {type(value).__name__}")
    except (ValueError, OverflowError, OSError) as exc:
        logger.warning(
            "Dropping unparseable mint date",
            extra={"importer_field": field_name, "importer_value": str(value), "importer_error": str(exc)},
        )
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Attributes, tags, features
# ---------------------------------------------------------------------------


def _attribute_entry(entry: Any) -> tuple[str, str] | None:
    if not isinstance(entry, Mapping):
        return None
    nested = entry.get("attribute")
    if isinstance(nested, Mapping):
        trait, value = nested.get("name"), nested.get("value")
    elif "trait_type" in entry:
        trait, value = entry.get("trait_type"), entry.get("value")
    elif "name" in entry:
        trait, value = entry.get("name"), entry.get("value")
    elif "key" in entry:
        trait, value = entry.get("key"), entry.get("value")
    else:
        return None
    trait_text = _stringify(trait)
    value_text = _stringify(value)
    if trait_text is None or value_text is None:
        return None
    return trait_text, value_text


def _attribute_candidates(source: Any) -> list[Any]:
    if isinstance(source, Mapping):
        return [{"trait_type": key, "value": value} for key, value in source.items()]
    if isinstance(source, (list, tuple)):
        return list(source)
    return []


def extract_attributes(payload: Mapping[str, Any], metadata: Mapping[str, Any] | None = None) -> list[dict[str, str]]:
    """
    Flatten the first present attribute source into ``{trait_type, value}`` pairs.

    Duplicates (case-insensitive trait and value) are removed keeping the
    first occurrence.
    """
    metadata = metadata or {}
    sources: Sequence[Any] = (
        payload.get("attributes"),
        payload.get("traits"),
        metadata.get("attributes"),
        payload.get("properties"),
        payload.get("features"),
    )
    candidates: list[Any] = []
    for source in sources:
        candidates = _attribute_candidates(source)
        if candidates:
            break

    seen: set[tuple[str, str]] = set()
    attributes: list[dict[str, str]] = []
    for entry in candidates:
        parsed = _attribute_entry(entry)
        if parsed is None:
            logger.warning("Dropping malformed attribute entry", extra={"importer_value": repr(entry)[:200]})
            continue
        key = (parsed[0].lower(), parsed[1].lower())
        if key in seen:
            continue
        seen.add(key)
        attributes.append({"trait_type": parsed[0], "value": parsed[1]})
    return attributes


def extract_tags(payload: Mapping[str, Any], attributes: Sequence[Mapping[str, str]]) -> list[str]:
    raw_tags = payload.get("tags")
    tags: list[str] = []
    if isinstance(raw_tags, (list, tuple)):
        for entry in raw_tags:
            if isinstance(entry, Mapping):
                entry = _mapping(entry.get("tag")).get("name") or entry.get("name")
            text = _text(entry)
            if text and text not in tags:
                tags.append(text)
    elif isinstance(raw_tags, str):
        for part in raw_tags.split(","):
            text = part.strip()
            if text and text not in tags:
                tags.append(text)
    if tags:
        return tags
    return [attribute["value"] for attribute in attributes[:MAX_FALLBACK_TAGS]]


def extract_features(payload: Mapping[str, Any]) -> dict[str, Any]:
    features = payload.get("features")
    if isinstance(features, Mapping):
        return {str(key): value for key, value in features.items()}
    return {}


def extract_supply(payload: Mapping[str, Any]) -> int:
    for key in ("supply", "total_supply", "edition_size"):
        number = _positive_int(payload.get(key))
        if number is not None:
            return number
    return 1


# ---------------------------------------------------------------------------
# Dimensions
# ---------------------------------------------------------------------------


def _dimension_pair(candidate: Any) -> dict[str, int] | None:
    if isinstance(candidate, str):
        match = DIMENSION_STRING_PATTERN.search(candidate)
        if not match:
            return None
        candidate = {"width": match.group(1), "height": match.group(2)}
    if not isinstance(candidate, Mapping):
        return None
    width = _positive_int(candidate.get("width"))
    height = _positive_int(candidate.get("height"))
    if width is None or height is None:
        return None
    return {"width": width, "height": height}


def extract_dimensions(
    payload: Mapping[str, Any],
    attributes: Sequence[Mapping[str, str]] = (),
) -> dict[str, int] | None:
    """Return the first valid positive-integer ``{width, height}`` pair."""
    candidates: list[Any] = []
    dimensions = payload.get("dimensions")
    if isinstance(dimensions, Mapping):
        for key in ("artifact", "display", "thumbnail"):
            entry = dimensions.get(key)
            if isinstance(entry, Mapping):
                nested = entry.get("dimensions")
                candidates.append(nested if isinstance(nested, Mapping) else entry)
        candidates.append(dimensions)
    elif dimensions is not None:
        candidates.append(dimensions)
    candidates.append(payload.get("image_details"))
    attribute_lookup = {entry["trait_type"].lower(): entry["value"] for entry in attributes}
    if "width" in attribute_lookup and "height" in attribute_lookup:
        candidates.append({"width": attribute_lookup["width"], "height": attribute_lookup["height"]})

    for candidate in candidates:
        if candidate is None:
            continue
        pair = _dimension_pair(candidate)
        if pair is not None:
            return pair
    if isinstance(dimensions, str) or (isinstance(dimensions, Mapping) and "width" in dimensions):
        logger.warning("Dropping invalid dimensions", extra={"importer_value": repr(dimensions)[:200]})
    return None


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


def _select_animation(candidates: Iterable[tuple[str | None, str | None]]) -> str | None:
    for url, mime in candidates:
        cleaned = clean_url(url)
        if cleaned and is_valid_animation_url(cleaned, mime):
            return cleaned
        if cleaned:
            logger.debug("Rejected animation candidate", extra={"importer_url": cleaned, "importer_mime": mime})
    return None


def _select_generator(explicit: Sequence[Any], candidates: Sequence[Any]) -> str | None:
    explicit_url = first_present(*explicit)
    if explicit_url:
        return explicit_url
    for url in candidates:
        cleaned = clean_url(url)
        if cleaned and is_generator_url(cleaned):
            return cleaned
    return None


def _finalize_media(
    nft: NormalizedNFT,
    *,
    image_url: str | None,
    image_mime_hint: str | None,
    animation_candidates: Sequence[tuple[str | None, str | None]],
    thumbnail_url: str | None,
    explicit_mime: str | None,
) -> None:
    animation_url = _select_animation(animation_candidates)
    image_mime = detect_mime(image_url, image_mime_hint)
    if animation_url is None and image_mime and (image_mime.startswith("video/") or image_mime == "image/gif"):
        # Single-file animated artworks
        animation_url = image_url
    nft.image_url = image_url
    nft.animation_url = animation_url
    nft.thumbnail_url = resolve_thumbnail(thumbnail_url, image_url)
    nft.mime = detect_mime(None, explicit_mime) or detect_mime(animation_url) or image_mime


# ---------------------------------------------------------------------------
# OpenSea
# ---------------------------------------------------------------------------


def _opensea_creator(payload: Mapping[str, Any]) -> Creator | None:
    raw_creator = payload.get("creator")
    address: str | None
    username = _text(payload.get("creator_username"))
    if isinstance(raw_creator, Mapping):
        address = _text(raw_creator.get("address"))
        username = username or _text(_mapping(raw_creator.get("user")).get("username"))
    else:
        address = _text(raw_creator)
    if address is not None:
        address = address.lower()
    if address is not None and is_zero_address(address):
        address = None

    social_links: dict[str, str] = {}
    raw_links = payload.get("creator_social_links")
    if isinstance(raw_links, Mapping):
        social_links = {str(k): str(v) for k, v in raw_links.items() if _text(v)}
    elif isinstance(raw_links, list):
        for account in raw_links:
            account = _mapping(account)
            platform, handle = _text(account.get("platform")), _text(account.get("username"))
            if platform and handle:
                social_links[platform] = handle

    creator = Creator(
        address=address,
        username=username,
        bio=_text(payload.get("creator_bio")),
        avatar_url=clean_url(payload.get("creator_avatar_url")),
        profile_url=clean_url(payload.get("creator_profile_url")),
        website_url=clean_url(payload.get("creator_website_url")),
        display_name=_text(payload.get("creator_display_name")),
        ens_name=_text(payload.get("creator_ens_name")),
        is_verified=payload.get("creator_is_verified") if isinstance(payload.get("creator_is_verified"), bool) else None,
        social_links=social_links,
        resolution_source="opensea",
    )
    if creator.address is None and creator.preferred_name is None:
        return None
    return creator


def _opensea_collection(payload: Mapping[str, Any], contract: str | None, blockchain: str) -> CollectionData | None:
    slug = _text(payload.get("collection")) or _text(payload.get("collection_slug"))
    title = _text(payload.get("collection_name"))
    if slug is None and title is None:
        return None
    slug = slug or contract
    if slug is None:
        return None
    collection = CollectionData(
        slug=slug,
        title=title,
        description=_text(payload.get("collection_description")),
        contract_address=contract,
        blockchain=blockchain,
        website_url=clean_url(payload.get("collection_website_url")),
        image_url=clean_url(payload.get("collection_image_url")),
        banner_image_url=clean_url(payload.get("collection_banner_image_url")),
        discord_url=clean_url(payload.get("collection_discord_url")),
        total_supply=_positive_int(payload.get("collection_total_supply")),
        mint_start_date=parse_mint_date(payload.get("collection_mint_start_date"), field_name="collection_mint_start_date"),
        fees=payload.get("collection_fees") if isinstance(payload.get("collection_fees"), (list, dict)) else None,
    )
    classify_collection(collection)
    return collection


def _normalize_opensea(raw: OpenSeaRecord) -> NormalizedNFT:
    payload = raw.payload
    metadata = _mapping(payload.get("metadata"))
    contract = raw.contract_address or _text(payload.get("contract"))

    attributes = extract_attributes(payload, metadata)
    nft = NormalizedNFT(
        title=_text(payload.get("name")) or _text(metadata.get("name")) or DEFAULT_TITLE,
        description=_text(payload.get("description")) or _text(metadata.get("description")),
        metadata_url=clean_url(payload.get("metadata_url")),
        blockchain=raw.blockchain,
        token_standard=(_text(payload.get("token_standard")) or "ERC721").upper(),
        supply=extract_supply(payload),
        mint_date=parse_mint_date(payload.get("mint_date") or payload.get("minted_at")),
        dimensions=extract_dimensions(payload, attributes),
        attributes=attributes,
        features=extract_features(payload),
        tags=extract_tags(payload, attributes),
        creator=_opensea_creator(payload),
        collection=_opensea_collection(payload, contract, raw.blockchain),
    )

    image_url = first_present(
        payload.get("image_url"),
        payload.get("display_image_url"),
        payload.get("display_uri"),
        payload.get("artifact_uri"),
        payload.get("image"),
        metadata.get("image"),
    )
    animation_sources = (
        payload.get("animation_url"),
        payload.get("display_animation_url"),
        metadata.get("animation_url"),
        payload.get("artifact_uri"),
    )
    nft.generator_url = _select_generator(
        (payload.get("generator_url"), metadata.get("generator_url")),
        animation_sources,
    )
    _finalize_media(
        nft,
        image_url=image_url,
        image_mime_hint=None,
        animation_candidates=[(url, None) for url in animation_sources]
        + [(nft.generator_url, None), (payload.get("ipfs"), None), (metadata.get("ipfs"), None)],
        thumbnail_url=first_present(
            payload.get("display_image_url"),
            payload.get("display_uri"),
            payload.get("thumbnail_url"),
            payload.get("thumbnail_uri"),
        ),
        explicit_mime=_text(payload.get("mime")),
    )
    return nft


# ---------------------------------------------------------------------------
# Tezos / objkt
# ---------------------------------------------------------------------------


def _tezos_token(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    token = payload.get("token")
    return token if isinstance(token, Mapping) else payload


def _tezos_dimension_mime(token: Mapping[str, Any], key: str) -> str | None:
    entry = _mapping(_mapping(token.get("dimensions")).get(key))
    return _text(entry.get("mime"))


def _tezos_creator(token: Mapping[str, Any]) -> Creator | None:
    creators = token.get("creators")
    first = _mapping(creators[0]) if isinstance(creators, list) and creators else {}
    holder = _mapping(first.get("holder"))
    address = _text(first.get("creator_address")) or _text(holder.get("address")) or _text(token.get("artist_address"))
    if address is not None and is_zero_address(address):
        address = None
    social_links = {
        platform: handle
        for platform, handle in (("twitter", _text(holder.get("twitter"))), ("instagram", _text(holder.get("instagram"))))
        if handle
    }
    creator = Creator(
        address=address.lower() if address else None,
        username=_text(holder.get("alias")),
        bio=_text(holder.get("description")),
        avatar_url=clean_url(holder.get("logo")),
        website_url=clean_url(holder.get("website")),
        social_links=social_links,
        resolution_source="objkt",
    )
    if creator.address is None and creator.preferred_name is None:
        return None
    return creator


def _tezos_collection(token: Mapping[str, Any], contract: str | None) -> CollectionData | None:
    fa = _mapping(token.get("fa"))
    slug = _text(fa.get("contract")) or contract
    if not fa or slug is None:
        return None
    collection = CollectionData(
        slug=slug,
        title=_text(fa.get("name")),
        description=_text(fa.get("description")),
        contract_address=slug,
        blockchain="tezos",
        website_url=clean_url(fa.get("website")),
        image_url=clean_url(fa.get("logo")),
        twitter_handle=_text(fa.get("twitter")),
        total_supply=_positive_int(fa.get("items")),
    )
    classify_collection(collection)
    return collection


def _normalize_tezos(raw: TezosRecord) -> NormalizedNFT:
    token = _tezos_token(raw.payload)
    metadata = _mapping(token.get("metadata"))
    contract = raw.contract_address or _text(_mapping(token.get("fa")).get("contract")) or _text(token.get("fa_contract"))

    attributes = extract_attributes(token, metadata)
    explicit_mime = _text(token.get("mime")) or _tezos_dimension_mime(token, "artifact")
    nft = NormalizedNFT(
        title=_text(token.get("name")) or _text(metadata.get("name")) or DEFAULT_TITLE,
        description=_text(token.get("description")) or _text(metadata.get("description")),
        metadata_url=_text(token.get("metadata")) if isinstance(token.get("metadata"), str) else None,
        blockchain="tezos",
        token_standard="FA2",
        supply=extract_supply(token),
        mint_date=parse_mint_date(token.get("timestamp") or token.get("mint_date"), field_name="timestamp"),
        dimensions=extract_dimensions(token, attributes),
        attributes=attributes,
        features=extract_features(token),
        tags=extract_tags(token, attributes),
        creator=_tezos_creator(token),
        collection=_tezos_collection(token, contract),
    )

    display_uri = clean_url(token.get("display_uri"))
    artifact_uri = clean_url(token.get("artifact_uri"))
    image_url = first_present(display_uri, artifact_uri, token.get("image_url"))
    if image_url == display_uri:
        image_mime_hint = _tezos_dimension_mime(token, "display")
    elif image_url == artifact_uri:
        image_mime_hint = explicit_mime
    else:
        image_mime_hint = None

    nft.generator_url = _select_generator(
        (token.get("generator_url"), metadata.get("generator_url")),
        (token.get("animation_url"), artifact_uri),
    )
    _finalize_media(
        nft,
        image_url=image_url,
        image_mime_hint=image_mime_hint,
        animation_candidates=(
            (token.get("animation_url"), None),
            (artifact_uri, explicit_mime),
            (nft.generator_url, None),
            (token.get("ipfs"), None),
            (metadata.get("ipfs"), None),
        ),
        thumbnail_url=first_present(token.get("thumbnail_uri"), display_uri),
        explicit_mime=explicit_mime,
    )
    return nft


_NORMALIZERS: Mapping[type, Callable[[Any], NormalizedNFT]] = {
    OpenSeaRecord: _normalize_opensea,
    TezosRecord: _normalize_tezos,
}


def normalize(raw: RawRecord) -> NormalizedNFT:
    """
    Convert a raw provider record into the canonical ``NormalizedNFT``.

    Raises ``UnsupportedSource`` only for record types without a normalizer;
    missing or malformed optional fields never raise.
    """
    handler = _NORMALIZERS.get(type(raw))
    if handler is None:
        raise UnsupportedSource(f"No normalizer registered for {type(raw).__name__}.")
    return handler(raw)


__all__ = [
    "extract_attributes",
    "extract_dimensions",
    "extract_supply",
    "extract_tags",
    "normalize",
    "parse_mint_date",
]
