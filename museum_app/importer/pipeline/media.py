"""
Media URL helpers shared by the normalizer, the import engine and pinning.

Everything here is pure string handling: MIME inference from extensions and
known platforms, the animation-URL gate, placeholder thumbnail detection and
IPFS content identifier extraction.
"""

from __future__ import annotations

import re
from typing import Iterable, Mapping
from urllib.parse import urlparse

EXTENSION_MIME_TYPES: Mapping[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "ogv": "video/ogg",
    "html": "text/html",
    "htm": "text/html",
    "js": "application/javascript",
    "json": "application/json",
    "pdf": "application/pdf",
    "zip": "application/zip",
    "wasm": "application/wasm",
}

INTERACTIVE_PLATFORM_DOMAINS: tuple[str, ...] = (
    "fxhash.xyz",
    "generator.artblocks.io",
    "artblocks.io",
    "async.art",
    "foundation.app",
    "superrare.com",
    "alba.art",
    "gmstudio.art",
    "highlight.xyz",
    "prohibition.art",
    "verse.works",
    "plottables.io",
    "tender.art",
    "objkt.com",
    "hicetnunc.art",
    "teia.art",
    "versum.xyz",
    "kalamint.io",
    "rarible.com",
    "opensea.io",
    "looksrare.org",
    "x2y2.io",
    "blur.io",
    "niftygateway.com",
    "makersplace.com",
    "knownorigin.io",
    "asyncart.com",
    "zora.co",
    "catalog.works",
)

INTERACTIVE_KEYWORDS: tuple[str, ...] = ("generator", "interactive", "viewer", "render", "embed", "animation")

# Generic previews some Tezos indexers return instead of a real thumbnail.
PLACEHOLDER_THUMBNAIL_HASHES: frozenset[str] = frozenset(
    {
        "QmNrhZHUaEqxhyLfqoq1mtHSipkWHeT31LNHb1QEbDHgnc",
    }
)

GENERATOR_URL_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"generator", re.IGNORECASE),
    re.compile(r"artblocks\.io/generator", re.IGNORECASE),
    re.compile(r"fxhash\.xyz/.*gentk", re.IGNORECASE),
    re.compile(r"\.html?$", re.IGNORECASE),
    re.compile(r"interactive", re.IGNORECASE),
    re.compile(r"live", re.IGNORECASE),
)

CID_PATTERN = re.compile(r"Qm[1-9A-HJ-NP-Za-km-z]{44}|bafy[a-z0-9]{55}")

# objkt labels zipped HTML artworks as directories.
MIME_ALIASES: Mapping[str, str] = {"application/x-directory": "text/html"}

ANIMATION_MIME_PREFIXES: tuple[str, ...] = ("video/",)
ANIMATION_MIME_TYPES: frozenset[str] = frozenset({"image/gif", "text/html", "application/javascript"})


def clean_url(value) -> str | None:
    """Return a stripped URL string or None for blanks and non-strings."""
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def first_present(*values) -> str | None:
    for value in values:
        cleaned = clean_url(value)
        if cleaned:
            return cleaned
    return None


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _path_extension(url: str) -> str | None:
    try:
        path = urlparse(url).path
    except ValueError:
        path = url
    last_segment = path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return None
    return last_segment.rsplit(".", 1)[-1].lower() or None


def is_ipfs_url(url: str | None) -> bool:
    if not url:
        return False
    lowered = url.lower()
    return lowered.startswith("ipfs://") or "/ipfs/" in lowered or bool(CID_PATTERN.search(url))


def is_interactive_platform(url: str | None) -> bool:
    if not url:
        return False
    host = _hostname(url)
    if not host:
        return False
    return any(host == domain or host.endswith(f".{domain}") for domain in INTERACTIVE_PLATFORM_DOMAINS)


def _platform_mime(url: str) -> str | None:
    lowered = url.lower()
    if "generator.artblocks.io" in lowered or "artblocks.io/generator" in lowered:
        return "text/html"
    if "fxhash" in lowered and "gentk" in lowered:
        return "text/html"
    if any(cdn in lowered for cdn in ("openseauserdata.com", "raw.seadn.io", "cloudfront.net")) and ".mp4" in lowered:
        return "video/mp4"
    return None


def detect_mime(url: str | None, explicit: str | None = None) -> str | None:
    """
    Infer a MIME type for ``url``.

    Order: explicit value, file extension, known platform conventions.
    Returns None when nothing conclusive is found.
    """
    explicit_value = clean_url(explicit)
    if explicit_value and "/" in explicit_value:
        lowered = explicit_value.lower()
        return MIME_ALIASES.get(lowered, lowered)
    if not url:
        return None
    if url.startswith("data:"):
        header = url[5:].split(",", 1)[0]
        media_type = header.split(";", 1)[0].strip().lower()
        return media_type or None
    extension = _path_extension(url)
    if extension and extension in EXTENSION_MIME_TYPES:
        return EXTENSION_MIME_TYPES[extension]
    return _platform_mime(url)


def is_animation_mime(mime: str | None) -> bool:
    if not mime:
        return False
    lowered = mime.lower()
    return lowered.startswith(ANIMATION_MIME_PREFIXES) or lowered in ANIMATION_MIME_TYPES


def _has_dynamic_parameters(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return bool(parsed.query or parsed.fragment)


def is_valid_animation_url(url: str | None, mime: str | None = None) -> bool:
    """
    Decide whether ``url`` may be stored as animation content.

    Accepted when the resolved MIME is video, GIF, HTML or JavaScript, or the URL
    belongs to a known interactive platform. When no MIME can be determined the
    URL is accepted only on an IPFS reference, an interactivity keyword or
    dynamic query/fragment parameters.
    """
    if not url:
        return False
    resolved = detect_mime(url, mime)
    if is_animation_mime(resolved):
        return True
    if is_interactive_platform(url):
        return True
    if resolved is not None:
        return False
    lowered = url.lower()
    if is_ipfs_url(url):
        return True
    if any(keyword in lowered for keyword in INTERACTIVE_KEYWORDS):
        return True
    return _has_dynamic_parameters(url)


def is_generator_url(url: str | None) -> bool:
    if not url:
        return False
    return any(pattern.search(url) for pattern in GENERATOR_URL_PATTERNS)


def is_placeholder_thumbnail(url: str | None) -> bool:
    if not url:
        return False
    return any(placeholder in url for placeholder in PLACEHOLDER_THUMBNAIL_HASHES)


def resolve_thumbnail(thumbnail_url: str | None, image_url: str | None) -> str | None:
    """
    Swap placeholder thumbnails for the main image and drop duplicates.

    A placeholder resolves to the image URL; a provider thumbnail that
    repeats the image resolves to None.
    """
    candidate = clean_url(thumbnail_url)
    image = clean_url(image_url)
    if is_placeholder_thumbnail(candidate):
        return image
    if candidate is not None and candidate == image:
        return None
    return candidate


def extract_cids(urls: Iterable[str | None]) -> list[str]:
    """Return unique IPFS content identifiers in first-seen order."""
    seen: dict[str, None] = {}
    for url in urls:
        if not url:
            continue
        for match in CID_PATTERN.findall(url):
            seen.setdefault(match, None)
    return list(seen)


__all__ = [
    "CID_PATTERN",
    "EXTENSION_MIME_TYPES",
    "INTERACTIVE_PLATFORM_DOMAINS",
    "PLACEHOLDER_THUMBNAIL_HASHES",
    "clean_url",
    "detect_mime",
    "extract_cids",
    "first_present",
    "is_animation_mime",
    "is_generator_url",
    "is_interactive_platform",
    "is_ipfs_url",
    "is_placeholder_thumbnail",
    "is_valid_animation_url",
    "resolve_thumbnail",
]
