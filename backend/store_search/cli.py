#!/usr/bin/env python3
"""
Command-line entry point for multi-store searches.

Usage:
    store-search --list
    store-search search QUERY [--store DOMAIN] [--max-pages N] [--top-n N] [--filter TEXT] [--json]
    store-search scrape URL [--max-pages N] [--json]

Examples:
    store-search --descriptors stores.json --list
    store-search search "taladro inalambrico" --max-pages 2
    store-search search taladro --store tienda.example --json
    store-search search taladro --top-n 5 --filter "solo marca DeWalt"
"""

import asyncio
import argparse
import json
import logging
import sys
from typing import List, Optional

from .base import FleetSearchResult, StoreScrapeOutcome
from .config import DescriptorRegistry
from .crawlers.rendered import RenderedPageFetcher
from .errors import ConfigurationMissing, DescriptorValidationError, InvalidSearchRequest
from .logging_setup import configure_logging
from .manager import FleetSearchCoordinator, SearchOptions, validate_request
from .relevance import RemoteRelevanceFilter
from .settings import settings

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INVALID_REQUEST = 2


def load_registry(path: Optional[str]) -> DescriptorRegistry:
    """Load descriptors from --descriptors or STORE_SEARCH_DESCRIPTORS_PATH."""
    path = path or settings.descriptors_path
    if not path:
        raise ConfigurationMissing('<descriptors file>', ['--descriptors', 'STORE_SEARCH_DESCRIPTORS_PATH'])
    return DescriptorRegistry.from_file(path)


def list_stores(registry: DescriptorRegistry):
    """Print every registered store."""
    print(f"\n{'='*60}")
    print("Available Stores")
    print(f"{'='*60}\n")

    for store in registry.get_site_summary():
        pages = "paginated" if store['pagination'] else "single page"
        if store['pagination'] and store['max_pages']:
            pages = f"{pages}, max {store['max_pages']}"
        print(f"  {store['domain']:30} - {store['name']}")
        print(f"  {'':30}   {store['country'] or '--'} / {store['currency'] or '--'} ({pages})")
        print()


def print_outcome(outcome: StoreScrapeOutcome, limit: int = 5):
    status = "✅" if outcome.success else "❌"
    print(f"{status} {outcome.store} ({outcome.domain}): {outcome.count} product(s), "
          f"{outcome.pages} page(s), {outcome.duration_ms}ms")
    if outcome.error:
        print(f"   ERROR: {outcome.error}")
    if outcome.filter_summary:
        print(f"   Filter: {outcome.filter_summary}")

    for i, record in enumerate(outcome.records[:limit]):
        currency = f" {record.currency}" if record.currency else ""
        print(f"   {i+1}. {record.name} - {record.price}{currency}")
        print(f"      {record.url}")
    if outcome.count > limit:
        print(f"   ... and {outcome.count - limit} more")
    print()


def print_result(result: FleetSearchResult):
    print(f"\n{'='*60}")
    print(f"Search: {result.search}")
    print(f"{'='*60}\n")

    for outcome in result.stores:
        print_outcome(outcome)

    print(f"Stores: {result.successful_stores}/{result.total_stores} successful")
    print(f"Products: {result.total_products}")
    if result.filter_summary:
        print(f"Filtered: {'yes' if result.filtered else 'no'} ({result.filter_summary})")
    print(f"Duration: {result.duration_ms / 1000:.2f}s")


async def run_search(args, registry: DescriptorRegistry) -> int:
    relevance_filter = RemoteRelevanceFilter.from_settings(settings)
    fetcher = RenderedPageFetcher.from_settings(settings)
    coordinator = FleetSearchCoordinator.from_settings(
        settings, registry, fetcher, relevance_filter=relevance_filter
    )

    try:
        async with fetcher:
            if args.command == 'scrape':
                outcome = await coordinator.scrape_url(args.url, max_pages=args.max_pages)
                result = FleetSearchResult(search=args.url, stores=[outcome], duration_ms=outcome.duration_ms)
            elif args.store:
                outcome = await coordinator.search_store(args.store, args.query, max_pages=args.max_pages)
                result = FleetSearchResult(search=args.query, stores=[outcome], duration_ms=outcome.duration_ms)
                if args.top_n or args.filter:
                    result = await coordinator.apply_filters(
                        result, top_n=args.top_n, natural_language_filter=args.filter
                    )
            else:
                result = await coordinator.search(args.query, SearchOptions(
                    top_n=args.top_n,
                    natural_language_filter=args.filter,
                    max_pages_override=args.max_pages,
                ))
    finally:
        if relevance_filter is not None:
            await relevance_filter.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_result(result)
    return EXIT_OK if result.successful_stores else EXIT_FAILURE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='store-search', description='Search products across online stores')
    parser.add_argument('--descriptors', type=str, help='Store descriptors JSON file')
    parser.add_argument('--list', action='store_true', help='List all registered stores')
    parser.add_argument('--no-log-file', action='store_true', help='Log to the console only')

    subparsers = parser.add_subparsers(dest='command')

    search = subparsers.add_parser('search', help='Search every store (or one) for a query')
    search.add_argument('query', help='Search text')
    search.add_argument('--store', type=str, help='Only search this store (domain or name)')
    search.add_argument('--max-pages', type=int, help='Pages per store (overrides descriptors)')
    search.add_argument('--top-n', type=int, help='Keep the N most relevant products per store')
    search.add_argument('--filter', type=str, help='Natural-language filter for the relevance service')
    search.add_argument('--json', action='store_true', help='Print the result as JSON')

    scrape = subparsers.add_parser('scrape', help='Scrape a listing URL of a registered store')
    scrape.add_argument('url', help='Listing URL')
    scrape.add_argument('--max-pages', type=int, help='Pages to follow')
    scrape.add_argument('--json', action='store_true', help='Print the result as JSON')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(log_to_file=not args.no_log_file)

    if not args.list and not args.command:
        parser.print_help()
        return EXIT_INVALID_REQUEST

    try:
        registry = load_registry(args.descriptors)
    except (ConfigurationMissing, DescriptorValidationError, OSError, ValueError) as e:
        logger.error(f"Could not load store descriptors: {e}")
        return EXIT_FAILURE

    if args.list:
        list_stores(registry)
        return EXIT_OK

    try:
        if args.command == 'search':
            # Reject bad requests before a browser is launched
            validate_request(args.query, args.top_n, args.max_pages)
        else:
            validate_request(args.url, max_pages=args.max_pages)
        return asyncio.run(run_search(args, registry))
    except InvalidSearchRequest as e:
        logger.error(f"Invalid request: {e}")
        return EXIT_INVALID_REQUEST
    except ConfigurationMissing as e:
        logger.error(str(e))
        return EXIT_FAILURE


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    run()
