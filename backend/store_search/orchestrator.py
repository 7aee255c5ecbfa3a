"""
Per-store scrape loop: fetch -> extract -> paginate, then normalize.

Within one store everything is sequential. A fetch failure on any page
fails the whole store: records from earlier pages are discarded rather
than returned as a partial result.
"""

import logging
import time
from typing import List, Optional

from .base import Colors, PageCursor, RawRecord, StoreScrapeOutcome
from .descriptors import SiteDescriptor
from .errors import NavigationFailure
from .extractor import ListingExtractor
from .pagination import PaginationWalker
from .utils.normalizers import normalize_records

logger = logging.getLogger(__name__)


def store_logger(descriptor: SiteDescriptor) -> logging.Logger:
    """Per-store logger so one store's progress reads as a unit."""
    return logging.getLogger(f"store_search.store.{descriptor.domain}")


class StoreScrapeOrchestrator:
    """
    Drives the scrape of exactly one store for one search URL.

    Usage:
        orchestrator = StoreScrapeOrchestrator(fetcher)
        outcome = await orchestrator.scrape(descriptor, search_url, max_pages=2)
    """

    def __init__(
        self,
        fetcher,
        extractor: Optional[ListingExtractor] = None,
        politeness_delay: float = 1.0,
    ):
        """
        Args:
            fetcher: Anything with `async fetch(url, options, user_agent=None) -> PageSnapshot`
            extractor: Listing extractor (a default one is created if omitted)
            politeness_delay: Seconds between successive pages of the same store
        """
        self.fetcher = fetcher
        self.extractor = extractor or ListingExtractor()
        self.politeness_delay = politeness_delay

    async def scrape(
        self,
        descriptor: SiteDescriptor,
        search_url: str,
        max_pages: Optional[int] = None,
    ) -> StoreScrapeOutcome:
        """
        Scrape every page of a store's results until pagination is exhausted.

        Args:
            descriptor: Store rules
            search_url: First results page
            max_pages: Page budget overriding the descriptor's

        Returns:
            StoreScrapeOutcome (never raises for fetch or extraction problems)
        """
        log = store_logger(descriptor)
        started = time.monotonic()
        walker = PaginationWalker(
            descriptor.pagination,
            max_pages=max_pages,
            politeness_delay=self.politeness_delay,
        )
        cursor: Optional[PageCursor] = PageCursor(url=search_url)
        raw_records: List[RawRecord] = []
        pages = 0

        log.info(f"Starting scrape for {Colors.bold(descriptor.name)}: {search_url}")

        try:
            while cursor is not None:
                snapshot = await self.fetcher.fetch(
                    cursor.url,
                    descriptor.render,
                    user_agent=descriptor.user_agent,
                )
                pages += 1

                records = self.extractor.extract(snapshot, descriptor)
                raw_records.extend(records)
                log.info(f"   Page {cursor.page_index}: {len(records)} product(s)")

                cursor = await walker.advance(snapshot, cursor)

        except NavigationFailure as e:
            duration_ms = _elapsed_ms(started)
            log.error(f"{Colors.red('[ERR]')} {descriptor.name}: {e} (page {pages + 1}, {duration_ms}ms)")
            return StoreScrapeOutcome.failed(
                store=descriptor.name,
                domain=descriptor.domain,
                search_url=search_url,
                error=str(e),
                duration_ms=duration_ms,
                pages=pages,
            )
        except Exception as e:
            duration_ms = _elapsed_ms(started)
            log.exception(f"{Colors.red('[ERR]')} {descriptor.name}: unexpected error on page {pages + 1}")
            return StoreScrapeOutcome.failed(
                store=descriptor.name,
                domain=descriptor.domain,
                search_url=search_url,
                error=str(e) or type(e).__name__,
                duration_ms=duration_ms,
                pages=pages,
            )

        normalized = normalize_records(raw_records, search_url)
        duration_ms = _elapsed_ms(started)

        if not normalized:
            log.warning(f"{Colors.yellow('[EMPTY]')} {descriptor.name}: no products extracted from {pages} page(s)")

        log.info(
            f"✅ {descriptor.name}: {len(normalized)} product(s) from {pages} page(s) "
            f"in {duration_ms / 1000:.2f}s"
            + (f" ({walker.halt_reason})" if walker.halt_reason else "")
        )

        return StoreScrapeOutcome(
            store=descriptor.name,
            domain=descriptor.domain,
            search_url=search_url,
            success=True,
            records=normalized,
            duration_ms=duration_ms,
            pages=pages,
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
