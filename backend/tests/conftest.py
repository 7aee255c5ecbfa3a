"""
Pytest configuration and fixtures for store search tests.

No test touches the network or a real browser: pages are served from
dictionaries by FakeFetcher and the relevance service is replaced by
FakeRelevanceFilter.
"""

import asyncio
from typing import Dict, List, Optional
from urllib.parse import urlparse

import pytest

from store_search.base import PageSnapshot
from store_search.config import DescriptorRegistry
from store_search.descriptors import SiteDescriptor
from store_search.errors import NavigationFailure, NavigationFailureKind
from store_search.relevance import BaseRelevanceFilter, FilterVerdict


def make_descriptor_mapping(domain: str = 'tienda.example', name: Optional[str] = None,
                            pagination: Optional[dict] = None, **overrides) -> dict:
    """Raw descriptor for a store whose results live in div.results > div.product."""
    data = {
        'domain': domain,
        'name': name or domain.split('.')[0].title(),
        'country': 'CR',
        'currency': 'CRC',
        'search': {'url_template': f'https://{domain}/buscar?q={{query}}'},
        'product_list': {
            'container': '.results',
            'item': '.product',
            'selectors': {
                'url': 'a.title',
                'url_attribute': 'href',
                'title': 'a.title',
                'title_attribute': 'text',
                'price': '.price',
                'price_attribute': 'text',
                'image': 'img',
            },
        },
        'scraping': {'wait_time': 0, 'scroll': False},
    }
    if pagination is not None:
        data['scraping']['pagination'] = pagination
    data.update(overrides)
    return data


def make_items(prefix: str, count: int, price: str = '₡1.000') -> List[tuple]:
    """(href, title, price_text) tuples for listing_page()."""
    return [(f'/p/{prefix}-{i}', f'{prefix} producto {i}', price) for i in range(1, count + 1)]


def listing_page(items: List[tuple], next_href: Optional[str] = None, extra: str = '') -> str:
    """Results page HTML with one div.product per item and an optional a.next link."""
    rows = ''.join(
        f'<div class="product">'
        f'<a class="title" href="{href}">{title}</a>'
        f'<span class="price">{price}</span>'
        f'<img src="/img/{i}.jpg">'
        f'</div>'
        for i, (href, title, price) in enumerate(items)
    )
    nav = f'<a class="next" href="{next_href}">Siguiente</a>' if next_href else ''
    return f'<html><body><div class="results">{rows}</div>{nav}{extra}</body></html>'


class FakeFetcher:
    """Serves HTML from a dict and records every fetch."""

    def __init__(self, pages: Optional[Dict[str, str]] = None,
                 failures: Optional[Dict[str, NavigationFailureKind]] = None,
                 delay: float = 0.0):
        self.pages = pages or {}
        self.failures = failures or {}
        self.delay = delay
        self.calls: List[str] = []
        self.user_agents: List[Optional[str]] = []
        self.active = 0
        self.peak = 0

    async def fetch(self, url, options, user_agent=None):
        self.calls.append(url)
        self.user_agents.append(user_agent)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if url in self.failures:
                raise NavigationFailure(url, self.failures[url], 'simulated')
            if url not in self.pages:
                raise NavigationFailure(url, NavigationFailureKind.UNREACHABLE, 'no such page')
            return PageSnapshot(html=self.pages[url], final_url=url)
        finally:
            self.active -= 1


class FakeRelevanceFilter(BaseRelevanceFilter):
    """Keeps the first top_n records and reverses each store's order on similarity."""

    def __init__(self, failing_hosts=(), fail_similarity: bool = False):
        self.failing_hosts = set(failing_hosts)
        self.fail_similarity = fail_similarity
        self.filter_calls = []
        self.similarity_calls = []

    async def filter_by_relevance(self, records, query, top_n=None, custom_filter=None):
        self.filter_calls.append((urlparse(records[0].url).hostname, query, top_n, custom_filter))
        if urlparse(records[0].url).hostname in self.failing_hosts:
            raise RuntimeError('model overloaded')
        kept = records[:top_n] if top_n else list(records)
        return FilterVerdict(records=kept, summary=f'kept {len(kept)}')

    async def sort_by_similarity_across_sites(self, per_site, query):
        self.similarity_calls.append((sorted(per_site), query))
        if self.fail_similarity:
            raise RuntimeError('similarity unavailable')
        return {store: list(reversed(records)) for store, records in per_site.items()}


@pytest.fixture
def descriptor_mapping():
    """Factory for raw descriptor mappings."""
    return make_descriptor_mapping


@pytest.fixture
def make_descriptor():
    """Factory for validated descriptors."""
    def factory(**kwargs) -> SiteDescriptor:
        return SiteDescriptor.from_mapping(make_descriptor_mapping(**kwargs))
    return factory


@pytest.fixture
def page_builder():
    """(listing_page, make_items) helpers."""
    return listing_page, make_items


@pytest.fixture
def fake_fetcher_cls():
    return FakeFetcher


@pytest.fixture
def fake_relevance_cls():
    return FakeRelevanceFilter


@pytest.fixture
def three_store_registry():
    """Registry with three single-page stores: alfa, beta and gama."""
    return DescriptorRegistry.from_mappings([
        make_descriptor_mapping('alfa.example', name='Alfa'),
        make_descriptor_mapping('beta.example', name='Beta'),
        make_descriptor_mapping('gama.example', name='Gama'),
    ])


@pytest.fixture
def three_store_pages():
    """Search pages for 'taladro' on the three stores, keyed by search URL."""
    return {
        f'https://{store}.example/buscar?q=taladro': listing_page(make_items(store, count))
        for store, count in (('alfa', 3), ('beta', 2), ('gama', 4))
    }
