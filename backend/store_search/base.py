"""
Data structures shared by the store search pipeline.

Everything here except the descriptors is created and discarded within
a single fleet search: raw records per DOM node, normalized records per
store, one outcome per store and one aggregated fleet result.
"""

from typing import List, Dict, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


class WaitStrategy(Enum):
    """Navigation readiness signals, fastest first."""
    CONTENT_LOADED = "domcontentloaded"
    LOAD = "load"
    NETWORK_IDLE = "networkidle"


@dataclass(frozen=True)
class RenderOptions:
    """How a listing page must be rendered before its DOM is read."""
    wait_strategy: WaitStrategy = WaitStrategy.CONTENT_LOADED
    explicit_selectors: tuple = ()
    scroll_to_bottom: bool = True
    max_wait_ms: int = 3000


@dataclass(frozen=True)
class PageSnapshot:
    """Rendered DOM of one page plus the URL it resolved to."""
    html: str
    final_url: str
    title: str = ''


@dataclass
class RawRecord:
    """Fields scraped from one item node, before normalization."""
    url: str
    title: str
    price_text: str
    price: float
    currency: Optional[str] = None
    image: Optional[str] = None
    availability: Optional[str] = None


@dataclass(frozen=True)
class NormalizedRecord:
    """
    Canonical listing entry returned to callers.

    Availability is never carried at listing level; optional fields are
    None when the page did not provide them and are left out of to_dict().
    """
    url: str
    name: str
    price: int
    currency: Optional[str] = None
    image: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'url': self.url,
            'product_name': self.name,
            'price': self.price,
        }
        if self.currency:
            data['currency'] = self.currency
        if self.image:
            data['image'] = self.image
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'NormalizedRecord':
        """Rebuild a record from its to_dict() form (or the 'name' alias)."""
        name = data.get('product_name') or data.get('name') or ''
        return cls(
            url=str(data['url']),
            name=str(name),
            price=int(data['price']),
            currency=data.get('currency') or None,
            image=data.get('image') or None,
        )


@dataclass
class PageCursor:
    """Position of one store's scrape within its paginated results."""
    url: str
    page_index: int = 1
    total_pages: Optional[int] = None


@dataclass
class StoreScrapeOutcome:
    """
    Result of scraping one store for one query.

    A failed outcome always has an error and no records; a successful one
    never carries an error.
    """
    store: str
    domain: str
    search_url: str
    success: bool
    records: List[NormalizedRecord] = field(default_factory=list)
    error: Optional[str] = None
    duration_ms: int = 0
    pages: int = 0
    filtered: bool = False
    filter_summary: Optional[str] = None

    def __post_init__(self):
        if self.success and self.error:
            raise ValueError(f"Outcome for {self.domain} cannot be successful and carry an error")
        if not self.success:
            if not self.error:
                raise ValueError(f"Failed outcome for {self.domain} must carry an error")
            if self.records:
                raise ValueError(f"Failed outcome for {self.domain} must not carry records")

    @classmethod
    def failed(cls, store: str, domain: str, search_url: str, error: str,
               duration_ms: int = 0, pages: int = 0) -> 'StoreScrapeOutcome':
        return cls(
            store=store,
            domain=domain,
            search_url=search_url,
            success=False,
            error=error or 'Unknown error',
            duration_ms=duration_ms,
            pages=pages,
        )

    @property
    def count(self) -> int:
        return len(self.records)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'store': self.store,
            'domain': self.domain,
            'products': [r.to_dict() for r in self.records],
            'count': self.count,
            'success': self.success,
            'searchUrl': self.search_url,
            'durationMs': self.duration_ms,
            'pages': self.pages,
            'filtered': self.filtered,
        }
        if self.error:
            data['error'] = self.error
        if self.filter_summary:
            data['filterSummary'] = self.filter_summary
        return data


@dataclass
class FleetSearchResult:
    """Aggregated outcome of one query across every registered store."""
    search: str
    stores: List[StoreScrapeOutcome] = field(default_factory=list)
    duration_ms: int = 0
    filtered: bool = False
    filter_summary: Optional[str] = None

    @property
    def total_stores(self) -> int:
        return len(self.stores)

    @property
    def successful_stores(self) -> int:
        return sum(1 for s in self.stores if s.success)

    @property
    def total_products(self) -> int:
        return sum(s.count for s in self.stores)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'search': self.search,
            'totalStores': self.total_stores,
            'successfulStores': self.successful_stores,
            'totalProducts': self.total_products,
            'stores': [s.to_dict() for s in self.stores],
            'durationMs': self.duration_ms,
            'filtered': self.filtered,
        }
        if self.filter_summary:
            data['filterSummary'] = self.filter_summary
        return data
