"""Applicant platform connector: GET {base_url}/api/deals."""

import logging
from typing import Optional

import httpx

from deal_board.errors import SourceError
from deal_board.models.raw import RawDeal

from .base import BaseDealSource

logger = logging.getLogger(__name__)


class ApiDealSource(BaseDealSource):
    """
    Fetches deal records from the applicant platform's JSON API.
    Accepts either a bare list or {"deals": [...]} / {"data": [...]} envelopes.
    """

    source_id = "api"

    DEFAULT_HEADERS = {
        "User-Agent": "deal-board/0.1",
        "Accept": "application/json",
    }

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None):
        if not base_url:
            raise SourceError("ApiDealSource needs a base URL (set DEAL_BOARD_API_URL)")
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(
            timeout=30.0,
            follow_redirects=True,
            headers=self.DEFAULT_HEADERS,
        )

    def _get_json(self, path: str, params: Optional[dict] = None):
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise SourceError(f"HTTP {e.response.status_code} from {url}") from e
        except httpx.RequestError as e:
            raise SourceError(f"Request to {url} failed: {e}") from e

    @staticmethod
    def _unwrap(payload) -> list[dict]:
        if isinstance(payload, dict):
            payload = payload.get("deals", payload.get("data", []))
        if not isinstance(payload, list):
            raise SourceError("Unexpected /api/deals payload shape")
        return [r for r in payload if isinstance(r, dict)]

    def search(self, query: Optional[str] = None, filters: Optional[dict] = None) -> list[RawDeal]:
        """
        List deals. query and filters are passed through as query parameters
        (q=..., status=..., industry=...).
        """
        params = dict(filters or {})
        if query:
            params["q"] = query
        records = self._unwrap(self._get_json("/api/deals", params=params or None))
        logger.info("Fetched %d deals from %s", len(records), self.base_url)
        return [RawDeal(data=r) for r in records]

    def fetch_details(self, raw_id: str) -> RawDeal:
        payload = self._get_json(f"/api/deals/{raw_id}")
        if isinstance(payload, dict) and isinstance(payload.get("deal"), dict):
            payload = payload["deal"]
        if not isinstance(payload, dict):
            raise SourceError(f"Deal not found: {raw_id}")
        return RawDeal(data=payload)
