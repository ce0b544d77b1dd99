"""
OpenSea v2 adapter.

Fetches Ethereum-family tokens by wallet or by contract/token id, and doubles
as the enrichment source for mint dates, creator profiles and collection
metadata.
"""

from __future__ import annotations

from typing import Any, Mapping

from museum_app.importer.pipeline.known_contracts import is_generative_collection, is_shared_contract
from museum_app.importer.pipeline.normalizer import parse_mint_date
from museum_app.importer.pipeline.records import (
    CollectionData,
    Creator,
    DataSource,
    RawRecord,
    build_raw_record,
    is_zero_address,
)

from .base import FetchPage, HttpAdapter

OPENSEA_API_BASE = "https://api.opensea.io/api/v2"
OPENSEA_PROFILE_BASE = "https://opensea.io"
DEFAULT_CHAIN = "ethereum"
DEFAULT_PAGE_SIZE = 50


def _social_links(accounts: Any) -> dict[str, str]:
    links: dict[str, str] = {}
    if not isinstance(accounts, list):
        return links
    for account in accounts:
        if not isinstance(account, Mapping):
            continue
        platform = str(account.get("platform") or "").strip().lower()
        handle = str(account.get("username") or "").strip()
        if platform and handle and platform not in links:
            links[platform] = handle
    return links


class OpenSeaAdapter(HttpAdapter):
    name = DataSource.OPENSEA.value

    def __init__(
        self,
        *,
        api_key: str | None = None,
        chain: str = DEFAULT_CHAIN,
        base_url: str = OPENSEA_API_BASE,
        page_size: int = DEFAULT_PAGE_SIZE,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.chain = chain
        self.base_url = base_url.rstrip("/")
        self.page_size = max(1, min(200, page_size))

    def default_headers(self) -> Mapping[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-KEY"] = self.api_key
        return headers

    def _record(self, nft: Mapping[str, Any]) -> RawRecord:
        return build_raw_record(
            DataSource.OPENSEA,
            nft,
            blockchain=self.chain,
            contract_address=nft.get("contract"),
            token_id=nft.get("identifier"),
        )

    # Source adapter -------------------------------------------------------------

    def fetch_by_wallet(self, address: str, cursor: str | None = None) -> FetchPage:
        params: dict[str, Any] = {"limit": self.page_size}
        if cursor:
            params["next"] = cursor
        data = self._send(
            "GET",
            f"{self.base_url}/chain/{self.chain}/account/{address}/nfts",
            context=f"wallet {address}",
            params=params,
        ) or {}
        records = [self._record(nft) for nft in data.get("nfts") or [] if isinstance(nft, Mapping)]
        return FetchPage(records=records, next_cursor=data.get("next") or None)

    def fetch_by_token(self, contract_address: str, token_id: str) -> RawRecord | None:
        data = self._send(
            "GET",
            f"{self.base_url}/chain/{self.chain}/contract/{contract_address}/nfts/{token_id}",
            context=f"token {contract_address}:{token_id}",
            allow_missing=True,
        )
        nft = (data or {}).get("nft")
        if not isinstance(nft, Mapping):
            return None
        payload = {"contract": contract_address, "identifier": token_id, **nft}
        return self._record(payload)

    # Enrichment source ----------------------------------------------------------

    def fetch_mint_date(self, contract_address: str, token_id: str) -> str | None:
        """Timestamp of the earliest transfer out of the zero address."""
        data = self._send(
            "GET",
            f"{self.base_url}/events/chain/{self.chain}/contract/{contract_address}/nfts/{token_id}",
            context=f"events {contract_address}:{token_id}",
            allow_missing=True,
            params={"event_type": "transfer"},
        )
        events = (data or {}).get("asset_events") or []
        timestamps = [
            event.get("event_timestamp")
            for event in events
            if isinstance(event, Mapping)
            and (
                event.get("event_type") == "mint"
                or (event.get("from_address") and is_zero_address(event.get("from_address")))
            )
            and event.get("event_timestamp") is not None
        ]
        if not timestamps:
            return None
        return parse_mint_date(min(timestamps), field_name="event_timestamp")

    def fetch_creator_profile(self, address: str) -> Creator | None:
        data = self._send(
            "GET",
            f"{self.base_url}/accounts/{address}",
            context=f"account {address}",
            allow_missing=True,
        )
        if not data:
            return None
        username = (data.get("username") or "").strip() or None
        social_links = _social_links(data.get("social_media_accounts"))
        return Creator(
            address=(data.get("address") or address).lower(),
            username=username,
            bio=data.get("bio") or None,
            avatar_url=data.get("profile_image_url") or None,
            profile_url=f"{OPENSEA_PROFILE_BASE}/{username}" if username else None,
            website_url=data.get("website") or None,
            social_links=social_links,
            resolution_source=self.name,
        )

    def fetch_collection_metadata(self, slug: str) -> CollectionData | None:
        data = self._send(
            "GET",
            f"{self.base_url}/collections/{slug}",
            context=f"collection {slug}",
            allow_missing=True,
        )
        if not data:
            return None
        contracts = [item for item in data.get("contracts") or [] if isinstance(item, Mapping)]
        contract_address = contracts[0].get("address") if contracts else None
        title = data.get("name") or None
        return CollectionData(
            slug=data.get("collection") or slug,
            title=title,
            description=data.get("description") or None,
            contract_address=contract_address,
            blockchain=(contracts[0].get("chain") if contracts else None) or self.chain,
            website_url=data.get("project_url") or None,
            image_url=data.get("image_url") or None,
            banner_image_url=data.get("banner_image_url") or None,
            discord_url=data.get("discord_url") or None,
            twitter_handle=data.get("twitter_username") or None,
            is_generative_art=is_generative_collection(contract_address, title),
            is_shared_contract=is_shared_contract(contract_address),
            total_supply=data.get("total_supply") if isinstance(data.get("total_supply"), int) else None,
            mint_start_date=parse_mint_date(data.get("created_date"), field_name="created_date"),
            fees=data.get("fees") if isinstance(data.get("fees"), (list, dict)) else None,
        )


__all__ = ["OpenSeaAdapter"]
