"""
Multi-store product search.

This package provides a descriptor-driven scraping pipeline:
- Rendered page fetching (Playwright / Chromium)
- Selector-based listing extraction (BeautifulSoup)
- Next-button pagination
- Concurrent fan-out across every registered store
- Optional relevance filtering through an external service
"""

from .base import (
    FleetSearchResult,
    NormalizedRecord,
    PageSnapshot,
    RawRecord,
    RenderOptions,
    StoreScrapeOutcome,
    WaitStrategy,
)
from .config import DescriptorRegistry
from .descriptors import SiteDescriptor
from .errors import (
    ConfigurationMissing,
    DescriptorValidationError,
    FilterProviderFailure,
    InvalidSearchRequest,
    NavigationFailure,
    StoreSearchError,
)
from .manager import FleetSearchCoordinator, SearchOptions

__all__ = [
    'FleetSearchResult',
    'NormalizedRecord',
    'PageSnapshot',
    'RawRecord',
    'RenderOptions',
    'StoreScrapeOutcome',
    'WaitStrategy',
    'DescriptorRegistry',
    'SiteDescriptor',
    'ConfigurationMissing',
    'DescriptorValidationError',
    'FilterProviderFailure',
    'InvalidSearchRequest',
    'NavigationFailure',
    'StoreSearchError',
    'FleetSearchCoordinator',
    'SearchOptions',
]
