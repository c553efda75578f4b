"""Live ledger node event source over its HTTP JSON API."""

import logging
from typing import Any, Iterable, Iterator, Optional

import requests

from holdings_recon.core.exceptions import LedgerQueryError, SourceUnavailable
from holdings_recon.domain.models import EventKind, EventSourceKind
from holdings_recon.sources.event_source import chunked

logger = logging.getLogger(__name__)

# Statuses that mean "try again later" or "credentials rejected"
_UNAVAILABLE_STATUSES = {401, 403, 408, 429}


class LedgerNodeSource:
    """
    Event source backed by the ledger node's REST API.

    GET {base}/v1/events?wallet=...|asset_ids=...&types=...&since_height=...
    returns {"events": [...], "next_cursor": "..." | null}. Each event is
    {"type", "block_height", "block_timestamp", "data": {"id", "to" | "from"}}.
    """

    kind = EventSourceKind.LEDGER

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        api_key_header: str = "Authorization",
        timeout_seconds: float = 15.0,
        page_size: int = 500,
        asset_chunk_size: int = 100,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._api_key_header = api_key_header
        self._timeout = timeout_seconds
        self._page_size = page_size
        self._asset_chunk_size = asset_chunk_size
        self._session = session or requests.Session()

    def fetch_wallet_pages(
        self,
        wallet_address: str,
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        params = self._base_params(event_kinds, since_height)
        params["wallet"] = wallet_address
        yield from self._paginate(params)

    def fetch_asset_pages(
        self,
        asset_ids: list[str],
        event_kinds: Iterable[EventKind],
        since_height: Optional[int] = None,
    ) -> Iterator[list[Any]]:
        for chunk in chunked(sorted(asset_ids), self._asset_chunk_size):
            params = self._base_params(event_kinds, since_height)
            params["asset_ids"] = ",".join(chunk)
            yield from self._paginate(params)

    def close(self) -> None:
        self._session.close()

    def _base_params(
        self,
        event_kinds: Iterable[EventKind],
        since_height: Optional[int],
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "types": ",".join(sorted(k.value for k in event_kinds)),
            "limit": self._page_size,
        }
        if since_height is not None:
            params["since_height"] = since_height
        return params

    def _paginate(self, params: dict[str, Any]) -> Iterator[list[Any]]:
        cursor: Optional[str] = None
        while True:
            page_params = dict(params)
            if cursor:
                page_params["cursor"] = cursor
            body = self._get("/v1/events", page_params)
            events = body.get("events")
            if not isinstance(events, list):
                raise SourceUnavailable(self.kind.value, "response has no events list")
            yield [self._normalize(e) for e in events]
            cursor = body.get("next_cursor")
            if not cursor or not events:
                return

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.get(url, headers=self._headers(), params=params, timeout=self._timeout)
        except requests.RequestException as exc:
            raise SourceUnavailable(self.kind.value, str(exc)) from exc

        if resp.status_code in _UNAVAILABLE_STATUSES or resp.status_code >= 500:
            raise SourceUnavailable(self.kind.value, f"HTTP {resp.status_code} from {path}")
        if resp.status_code >= 400:
            raise LedgerQueryError(self.kind.value, f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise SourceUnavailable(self.kind.value, "response body is not JSON") from exc
        if not isinstance(body, dict):
            raise SourceUnavailable(self.kind.value, "response body is not an object")
        return body

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._api_key:
            is_auth_header = self._api_key_header.lower() == "authorization"
            value = self._api_key
            if is_auth_header and not value.lower().startswith("bearer "):
                value = f"Bearer {value}"
            headers[self._api_key_header] = value
        return headers

    @staticmethod
    def _normalize(raw: Any) -> Any:
        """Map the node's event JSON onto the common wire shape."""
        if not isinstance(raw, dict):
            return raw
        data = raw.get("data") if isinstance(raw.get("data"), dict) else {}
        return {
            "asset_id": data.get("id", raw.get("asset_id")),
            "wallet_address": data.get("to") or data.get("from") or raw.get("wallet_address"),
            "event_type": raw.get("type", raw.get("event_type")),
            "block_height": raw.get("block_height"),
            "block_timestamp": raw.get("block_timestamp"),
        }
