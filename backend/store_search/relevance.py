"""
Relevance-filtering collaborator.

Ranking and natural-language filtering live in an external (LLM-backed)
service. This module defines the contract the coordinator calls and an
HTTP client for a service that implements it. The coordinator never
depends on the collaborator succeeding.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Any

import httpx

from .base import NormalizedRecord
from .errors import FilterProviderFailure

logger = logging.getLogger(__name__)


@dataclass
class FilterVerdict:
    """Records kept by the relevance service, plus its explanation."""
    records: List[NormalizedRecord]
    summary: Optional[str] = None


class BaseRelevanceFilter(ABC):
    """
    Contract for the external relevance service.

    Implementations may raise anything on failure; callers treat every
    exception as "leave the records unfiltered".
    """

    @abstractmethod
    async def filter_by_relevance(
        self,
        records: List[NormalizedRecord],
        query: str,
        top_n: Optional[int] = None,
        custom_filter: Optional[str] = None,
    ) -> FilterVerdict:
        """
        Keep the records relevant to the query.

        Args:
            records: One store's records
            query: The user's search text
            top_n: Keep at most this many records
            custom_filter: Natural-language constraint (e.g. "only cordless")
        """

    @abstractmethod
    async def sort_by_similarity_across_sites(
        self,
        per_site: Dict[str, List[NormalizedRecord]],
        query: str,
    ) -> Dict[str, List[NormalizedRecord]]:
        """Reorder each store's records so comparable products line up across stores."""

    async def close(self):
        """Release any resources held by the client."""


class RemoteRelevanceFilter(BaseRelevanceFilter):
    """
    HTTP client for a relevance service.

    Endpoints:
        POST {base_url}/filter      {query, topN?, filter?, products: [...]}
                                    -> {products: [...], summary?}
        POST {base_url}/similarity  {query, stores: [{store, products}]}
                                    -> {stores: [{store, products}]}
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Service root URL
            timeout: Request timeout in seconds
            headers: Extra HTTP headers (auth, tracing)
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.headers = headers or {'Accept': 'application/json'}
        self._transport = transport
        # Reusable HTTP client with connection pooling
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, config) -> Optional['RemoteRelevanceFilter']:
        """Build a client when a service URL is configured, else None."""
        if not config.relevance_service_url:
            return None
        return cls(config.relevance_service_url, timeout=config.relevance_timeout)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise FilterProviderFailure(f"Relevance service request to {path} failed: {e}") from e
        except ValueError as e:
            raise FilterProviderFailure(f"Relevance service returned invalid JSON from {path}") from e

        if not isinstance(data, dict):
            raise FilterProviderFailure(f"Relevance service returned {type(data).__name__} from {path}")
        return data

    @staticmethod
    def _parse_records(items: Any, path: str) -> List[NormalizedRecord]:
        if not isinstance(items, list):
            raise FilterProviderFailure(f"Relevance service response from {path} has no product list")
        try:
            return [NormalizedRecord.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise FilterProviderFailure(f"Malformed product in response from {path}: {e}") from e

    async def filter_by_relevance(
        self,
        records: List[NormalizedRecord],
        query: str,
        top_n: Optional[int] = None,
        custom_filter: Optional[str] = None,
    ) -> FilterVerdict:
        payload: Dict[str, Any] = {
            'query': query,
            'products': [r.to_dict() for r in records],
        }
        if top_n is not None:
            payload['topN'] = top_n
        if custom_filter:
            payload['filter'] = custom_filter

        data = await self._post('/filter', payload)
        return FilterVerdict(
            records=self._parse_records(data.get('products'), '/filter'),
            summary=data.get('summary'),
        )

    async def sort_by_similarity_across_sites(
        self,
        per_site: Dict[str, List[NormalizedRecord]],
        query: str,
    ) -> Dict[str, List[NormalizedRecord]]:
        payload = {
            'query': query,
            'stores': [
                {'store': store, 'products': [r.to_dict() for r in records]}
                for store, records in per_site.items()
            ],
        }
        data = await self._post('/similarity', payload)

        stores = data.get('stores')
        if not isinstance(stores, list):
            raise FilterProviderFailure("Relevance service response from /similarity has no store list")

        reordered = {}
        for entry in stores:
            if not isinstance(entry, dict) or 'store' not in entry:
                raise FilterProviderFailure("Malformed store entry in response from /similarity")
            reordered[entry['store']] = self._parse_records(entry.get('products'), '/similarity')
        return reordered
