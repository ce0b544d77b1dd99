"""
Well-known contract addresses used to classify collections and skip tokens.
"""

from __future__ import annotations

from typing import Any

# Wrapped XTZ is a fungible utility token, never an artwork.
WRAPPED_TEZOS_CONTRACT = "KT1TjnZYs5CGLbmV6yuW169P8Pnr9BiVwwjz"

EXCLUDED_CONTRACTS: frozenset[str] = frozenset({WRAPPED_TEZOS_CONTRACT.lower()})

SHARED_CONTRACTS: frozenset[str] = frozenset(
    {
        # OpenSea shared storefront and collection contracts
        "0x495f947276749ce646f68ac8c248420045cb7b5e",
        "0xa5409ec958c83c3f309868babaca7c86dcb077c1",
        "0x2953399124f0cbb46d2cbacd8a89cf0599974963",
        # Tezos marketplace and fxhash contracts
        "kt1rj6pbjhpwc3m5rw5s2nbmefwbuwbdxton",
        "kt1u6ehmnxjtkvawj4thczg4fsdahc21ssvi",
    }
)

GENERATIVE_CONTRACTS: frozenset[str] = frozenset(
    {
        # fxhash
        "kt1u6ehmnxjtkvawj4thczg4fsdahc21ssvi",
        "kt1kea8z6vwxdjrvqtmracedvzsvxat3khace",
        "kt1aaabso5ae6eo8fpen5xhcd4w3khstafxk",
        "kt1xcognfupwk7sp8536efrxcp73lmt68nyr",
        # Art Blocks
        "0x059edd72cd353df5106d2b9cc5ab83a52287ac3a",
        "0xa7d8d9ef8d8ce8992df33d8b8cf4aebabd5bd270",
        "0x99a9b7c1116f9ceeb1652de04d5969cce509b069",
        "0x0e6a21cf97d6a9d9d8f794d26dfb3e3baa49f3ac",
    }
)

GENERATIVE_KEYWORDS: tuple[str, ...] = (
    "art blocks",
    "artblocks",
    "fxhash",
    "async art",
    "bright moments",
    "generative",
    "algorithmic",
    "procedural",
    "qql",
    "fidenza",
)


def is_excluded_contract(contract_address: str | None) -> bool:
    return bool(contract_address) and contract_address.strip().lower() in EXCLUDED_CONTRACTS


def is_shared_contract(contract_address: str | None) -> bool:
    return bool(contract_address) and contract_address.strip().lower() in SHARED_CONTRACTS


def is_generative_collection(contract_address: str | None, title: str | None) -> bool:
    if contract_address and contract_address.strip().lower() in GENERATIVE_CONTRACTS:
        return True
    if not title:
        return False
    lowered = title.lower()
    return any(keyword in lowered for keyword in GENERATIVE_KEYWORDS)


def classify_collection(collection: Any) -> None:
    """Derive the shared and generative flags; a flag already set never turns off."""
    collection.is_shared_contract = bool(collection.is_shared_contract) or is_shared_contract(collection.contract_address)
    collection.is_generative_art = bool(collection.is_generative_art) or is_generative_collection(
        collection.contract_address, collection.title or collection.slug
    )
