"""
Fleet search coordinator - runs one query against every registered store.

Builds each store's search URL, scrapes all stores concurrently, keeps
each store's failure inside its own outcome, and optionally hands the
results to the external relevance service.
"""

import asyncio
import contextlib
import logging
import time
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from .base import Colors, FleetSearchResult, NormalizedRecord, StoreScrapeOutcome
from .config import DescriptorRegistry
from .errors import ConfigurationMissing, FilterProviderFailure, InvalidSearchRequest
from .orchestrator import StoreScrapeOrchestrator
from .relevance import BaseRelevanceFilter

logger = logging.getLogger(__name__)


@dataclass
class SearchOptions:
    """Caller options for a fleet search."""
    top_n: Optional[int] = None
    natural_language_filter: Optional[str] = None
    max_pages_override: Optional[int] = None


def validate_request(query: str, top_n: Optional[int] = None, max_pages: Optional[int] = None) -> str:
    """
    Check a search request and return the cleaned query.

    Raises:
        InvalidSearchRequest: On a missing query or non-positive limits
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidSearchRequest("The search query is required")
    for name, value in (('top_n', top_n), ('max_pages', max_pages)):
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
            raise InvalidSearchRequest(f"{name} must be a positive integer, got {value!r}")
    return query.strip()


class FleetSearchCoordinator:
    """
    Orchestrates store scrapes across the whole fleet.

    Usage:
        coordinator = FleetSearchCoordinator(registry, fetcher)

        # Scrape and filter in one call
        result = await coordinator.search('taladro', SearchOptions(top_n=5))

        # Or in two phases
        result = await coordinator.scrape_all('taladro', max_pages=2)
        result = await coordinator.apply_filters(result, top_n=5)
    """

    def __init__(
        self,
        registry: DescriptorRegistry,
        fetcher,
        relevance_filter: Optional[BaseRelevanceFilter] = None,
        max_concurrency: int = 4,
        politeness_delay: float = 1.0,
        orchestrator: Optional[StoreScrapeOrchestrator] = None,
    ):
        """
        Args:
            registry: Store descriptors
            fetcher: Shared page fetcher (one browser for all stores)
            relevance_filter: External relevance service, if any
            max_concurrency: Stores scraped at once (0 or None = no limit)
            politeness_delay: Seconds between pages of the same store
            orchestrator: Custom per-store orchestrator
        """
        self.registry = registry
        self.relevance_filter = relevance_filter
        self.max_concurrency = max_concurrency
        self.orchestrator = orchestrator or StoreScrapeOrchestrator(
            fetcher, politeness_delay=politeness_delay
        )

    @classmethod
    def from_settings(cls, config, registry: DescriptorRegistry, fetcher,
                      relevance_filter: Optional[BaseRelevanceFilter] = None) -> 'FleetSearchCoordinator':
        """Build a coordinator using concurrency and delay settings."""
        return cls(
            registry,
            fetcher,
            relevance_filter=relevance_filter,
            max_concurrency=config.max_concurrent_stores,
            politeness_delay=config.politeness_delay,
        )

    # ============================================================
    # SEARCH
    # ============================================================

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> FleetSearchResult:
        """
        Scrape every store, then apply relevance filtering if requested.

        Args:
            query: Search text
            options: top_n / natural_language_filter / max_pages_override

        Returns:
            FleetSearchResult

        Raises:
            InvalidSearchRequest: Only for a structurally invalid request
        """
        options = options or SearchOptions()
        validate_request(query, options.top_n, options.max_pages_override)

        result = await self.scrape_all(query, max_pages=options.max_pages_override)
        if options.top_n or options.natural_language_filter:
            result = await self.apply_filters(
                result,
                top_n=options.top_n,
                natural_language_filter=options.natural_language_filter,
            )
        return result

    async def scrape_all(self, query: str, max_pages: Optional[int] = None) -> FleetSearchResult:
        """
        Scrape every registered store concurrently, without filtering.

        One store failing never affects another; the result is only built
        once every store has finished or failed.

        The fleet duration is the wall-clock time of the whole phase. Each
        store's own duration covers its scrape only, not the time it spent
        queued behind the concurrency cap, so with more stores than
        max_concurrency the fleet duration can exceed the slowest store.
        """
        query = validate_request(query, max_pages=max_pages)
        domains = self.registry.list_domains()

        logger.info(f"{Colors.bold('Fleet search')}: \"{query}\" across {len(domains)} store(s)")
        started = time.monotonic()

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        tasks = [self._scrape_arm(domain, query, max_pages, semaphore) for domain in domains]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: List[StoreScrapeOutcome] = []
        for domain, result in zip(domains, results):
            if isinstance(result, BaseException):
                logger.error(f"Scrape task failed for {domain}: {result!r}")
                outcomes.append(StoreScrapeOutcome.failed(
                    store=domain, domain=domain, search_url='', error=str(result) or type(result).__name__
                ))
            else:
                outcomes.append(result)

        fleet = FleetSearchResult(
            search=query,
            stores=outcomes,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            f"✅ Fleet search complete in {fleet.duration_ms / 1000:.2f}s: "
            f"{Colors.green(f'{fleet.successful_stores}/{fleet.total_stores} stores')}, "
            f"{fleet.total_products} product(s)"
        )
        return fleet

    async def _scrape_arm(
        self,
        domain: str,
        query: str,
        max_pages: Optional[int],
        semaphore: Optional[asyncio.Semaphore],
    ) -> StoreScrapeOutcome:
        """Scrape one store, turning every error into a failed outcome."""
        try:
            descriptor = self.registry.get_descriptor(domain)
            search_url = self.registry.build_search_url(domain, query)
        except ConfigurationMissing as e:
            logger.error(f"{Colors.red('[ERR]')} {domain}: {e}")
            return StoreScrapeOutcome.failed(store=domain, domain=domain, search_url='', error=str(e))

        guard = semaphore if semaphore is not None else contextlib.nullcontext()
        try:
            async with guard:
                return await self.orchestrator.scrape(descriptor, search_url, max_pages=max_pages)
        except Exception as e:
            logger.exception(f"{Colors.red('[ERR]')} {descriptor.name}: scrape aborted")
            return StoreScrapeOutcome.failed(
                store=descriptor.name,
                domain=descriptor.domain,
                search_url=search_url,
                error=str(e) or type(e).__name__,
            )

    async def search_store(self, domain: str, query: str, max_pages: Optional[int] = None) -> StoreScrapeOutcome:
        """
        Search a single store.

        Raises:
            InvalidSearchRequest: On an invalid query or page budget
            ConfigurationMissing: If the store is not registered
        """
        query = validate_request(query, max_pages=max_pages)
        descriptor = self.registry.get_descriptor(domain)
        search_url = self.registry.build_search_url(descriptor.domain, query)
        return await self.orchestrator.scrape(descriptor, search_url, max_pages=max_pages)

    async def scrape_url(self, url: str, max_pages: Optional[int] = None) -> StoreScrapeOutcome:
        """
        Scrape an arbitrary listing URL of a registered store.

        Raises:
            ConfigurationMissing: If the URL's host has no descriptor
        """
        validate_request(url, max_pages=max_pages)
        descriptor = self.registry.get_descriptor_for_url(url)
        return await self.orchestrator.scrape(descriptor, url, max_pages=max_pages)

    # ============================================================
    # RELEVANCE FILTERING
    # ============================================================

    async def apply_filters(
        self,
        result: FleetSearchResult,
        top_n: Optional[int] = None,
        natural_language_filter: Optional[str] = None,
    ) -> FleetSearchResult:
        """
        Forward each store's records to the relevance service.

        A store whose filtering fails keeps its original records and is
        marked filtered=False. The cross-store similarity reorder is then
        requested for the stores that were filtered; if it fails, the
        per-store order is left as it is.
        """
        validate_request(result.search, top_n=top_n)
        natural_language_filter = (natural_language_filter or '').strip() or None
        if not (top_n or natural_language_filter):
            return result

        if result.total_products == 0:
            logger.info("No products to filter")
            return result

        if self.relevance_filter is None:
            logger.warning("Filtering requested but no relevance service is configured, returning unfiltered results")
            return result

        logger.info(f"Filtering {result.total_products} product(s) with the relevance service...")
        outcomes = await asyncio.gather(*[
            self._filter_outcome(outcome, result.search, top_n, natural_language_filter)
            for outcome in result.stores
        ])
        outcomes = await self._reorder(list(outcomes), result.search)

        return FleetSearchResult(
            search=result.search,
            stores=outcomes,
            duration_ms=result.duration_ms,
            filtered=any(o.filtered for o in outcomes),
            filter_summary=_filter_summary(top_n, natural_language_filter),
        )

    async def _filter_outcome(
        self,
        outcome: StoreScrapeOutcome,
        query: str,
        top_n: Optional[int],
        natural_language_filter: Optional[str],
    ) -> StoreScrapeOutcome:
        if not outcome.success or not outcome.records:
            return outcome

        try:
            verdict = await self.relevance_filter.filter_by_relevance(
                outcome.records,
                query,
                top_n=top_n,
                custom_filter=natural_language_filter,
            )
        except Exception as e:
            error = e if isinstance(e, FilterProviderFailure) else FilterProviderFailure(str(e))
            logger.warning(f"{Colors.yellow('[UNFILTERED]')} {outcome.store}: {error}, keeping all products")
            return replace(outcome, filtered=False, filter_summary='not filtered: relevance service failed')

        logger.info(f"   {outcome.store}: {outcome.count} -> {len(verdict.records)} product(s)")
        return replace(outcome, records=list(verdict.records), filtered=True, filter_summary=verdict.summary)

    async def _reorder(self, outcomes: List[StoreScrapeOutcome], query: str) -> List[StoreScrapeOutcome]:
        per_site: Dict[str, List[NormalizedRecord]] = {
            o.domain: o.records for o in outcomes if o.success and o.filtered and o.records
        }
        if len(per_site) < 2:
            return outcomes

        try:
            reordered = await self.relevance_filter.sort_by_similarity_across_sites(per_site, query)
        except Exception as e:
            logger.warning(f"Similarity ordering failed, keeping per-store order: {e}")
            return outcomes

        final = []
        for outcome in outcomes:
            records = reordered.get(outcome.domain)
            if records is None or outcome.domain not in per_site:
                final.append(outcome)
            elif Counter(records) != Counter(outcome.records):
                logger.warning(f"Similarity ordering for {outcome.store} changed its products, ignoring it")
                final.append(outcome)
            else:
                final.append(replace(outcome, records=list(records)))
        return final


def _filter_summary(top_n: Optional[int], natural_language_filter: Optional[str]) -> str:
    parts = []
    if top_n:
        parts.append(f"Top {top_n} most relevant products per store")
    if natural_language_filter:
        parts.append(natural_language_filter)
    return '; '.join(parts)
