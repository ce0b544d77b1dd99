"""
Tezos adapter backed by the objkt GraphQL API.

Wallet pages use an integer offset as the cursor.
"""

from __future__ import annotations

from typing import Any, Mapping

from museum_app.importer.errors import AdapterError
from museum_app.importer.pipeline.records import DataSource, RawRecord, build_raw_record

from .base import FetchPage, HttpAdapter

OBJKT_GRAPHQL_URL = "https://data.objkt.com/v3/graphql"
DEFAULT_PAGE_SIZE = 100

TOKEN_FIELDS = """
    token_id
    name
    description
    artifact_uri
    display_uri
    thumbnail_uri
    mime
    supply
    metadata
    dimensions
    attributes { attribute { name value } }
    tags { tag { name } }
    fa { contract name description website twitter logo items }
    creators {
        creator_address
        holder { address alias logo description website instagram twitter }
    }
    timestamp
"""

WALLET_TOKENS_QUERY = (
    """
query WalletTokens($address: String!, $limit: Int!, $offset: Int!) {
    token_holder(
        where: {holder_address: {_eq: $address}, quantity: {_gt: "0"}}
        limit: $limit
        offset: $offset
        order_by: {last_incremented_at: desc}
    ) {
        quantity
        last_incremented_at
        token {"""
    + TOKEN_FIELDS
    + """}
    }
}
"""
)

TOKEN_QUERY = (
    """
query Token($contract: String!, $tokenId: String!) {
    token(where: {fa_contract: {_eq: $contract}, token_id: {_eq: $tokenId}}, limit: 1) {"""
    + TOKEN_FIELDS
    + """}
}
"""
)


class TezosAdapter(HttpAdapter):
    name = DataSource.TEZOS.value

    def __init__(self, *, graphql_url: str = OBJKT_GRAPHQL_URL, page_size: int = DEFAULT_PAGE_SIZE, **kwargs: Any):
        super().__init__(**kwargs)
        self.graphql_url = graphql_url
        self.page_size = max(1, page_size)

    def _query(self, query: str, variables: Mapping[str, Any], *, context: str) -> Mapping[str, Any]:
        body = self._send(
            "POST",
            self.graphql_url,
            context=context,
            json={"query": query, "variables": dict(variables)},
        ) or {}
        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(error.get("message", error)) for error in errors if error)
            raise AdapterError(f"objkt GraphQL error for {context}: {messages}", provider=self.name)
        return body.get("data") or {}

    def _record(self, token: Mapping[str, Any], payload: Mapping[str, Any]) -> RawRecord:
        fa = token.get("fa") if isinstance(token.get("fa"), Mapping) else {}
        return build_raw_record(
            DataSource.TEZOS,
            payload,
            blockchain="tezos",
            contract_address=fa.get("contract") or token.get("fa_contract"),
            token_id=token.get("token_id"),
        )

    def fetch_by_wallet(self, address: str, cursor: str | None = None) -> FetchPage:
        offset = int(cursor) if cursor else 0
        data = self._query(
            WALLET_TOKENS_QUERY,
            {"address": address, "limit": self.page_size, "offset": offset},
            context=f"wallet {address} offset {offset}",
        )
        rows = [row for row in data.get("token_holder") or [] if isinstance(row, Mapping)]
        records = [self._record(row["token"], row) for row in rows if isinstance(row.get("token"), Mapping)]
        next_cursor = str(offset + len(rows)) if len(rows) >= self.page_size else None
        return FetchPage(records=records, next_cursor=next_cursor)

    def fetch_by_token(self, contract_address: str, token_id: str) -> RawRecord | None:
        data = self._query(
            TOKEN_QUERY,
            {"contract": contract_address, "tokenId": str(token_id)},
            context=f"token {contract_address}:{token_id}",
        )
        tokens = [token for token in data.get("token") or [] if isinstance(token, Mapping)]
        if not tokens:
            return None
        token = {"fa_contract": contract_address, **tokens[0]}
        return self._record(token, token)


__all__ = ["OBJKT_GRAPHQL_URL", "TezosAdapter"]
