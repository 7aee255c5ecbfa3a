"""
Listing extraction driven by a store's selector rules.

The extractor is a pure function of (snapshot, descriptor): the same DOM
and rules always yield the same records, in document order.
"""

import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from .base import PageSnapshot, RawRecord
from .descriptors import SiteDescriptor, FieldRule
from .utils.extractors import read_value, parse_price

logger = logging.getLogger(__name__)


class ListingExtractor:
    """Turns a rendered listing page into raw product records."""

    def __init__(self, parser: str = 'html.parser'):
        self.parser = parser

    def extract(self, snapshot: PageSnapshot, descriptor: SiteDescriptor) -> List[RawRecord]:
        """
        Extract every valid product record from a rendered page.

        Items without a name or with a price that does not parse to a
        positive number are dropped. Optional fields are left as None when
        the page does not provide them; the descriptor currency fills in
        only when no currency selector is configured.

        Args:
            snapshot: Rendered page
            descriptor: Store rules

        Returns:
            List of RawRecord in document order
        """
        soup = BeautifulSoup(snapshot.html, self.parser)
        rules = descriptor.listing

        containers = soup.select(rules.container)
        if not containers:
            logger.warning(f"[{descriptor.domain}] Container not found: {rules.container}")
            return []

        records = []
        seen = 0
        dropped = 0
        for item in self._items(containers, rules.item):
            seen += 1
            record = self._extract_item(item, descriptor)
            if record is None:
                dropped += 1
                continue
            records.append(record)

        logger.debug(
            f"[{descriptor.domain}] {seen} item node(s), {len(records)} extracted, {dropped} dropped"
        )
        return records

    @staticmethod
    def _items(containers: List[Tag], item_selector: str) -> List[Tag]:
        """Item nodes across all containers, without duplicates from nested matches."""
        items = []
        seen_ids = set()
        for container in containers:
            for item in container.select(item_selector):
                if id(item) in seen_ids:
                    continue
                seen_ids.add(id(item))
                items.append(item)
        return items

    def _extract_item(self, item: Tag, descriptor: SiteDescriptor) -> Optional[RawRecord]:
        rules = descriptor.listing

        title = read_value(item, rules.title)
        price_text = read_value(item, rules.price)
        price = parse_price(price_text)
        if not title or price <= 0:
            return None

        if rules.currency is not None:
            currency = self._optional(item, rules.currency)
        else:
            currency = descriptor.currency

        return RawRecord(
            url=read_value(item, rules.url),
            title=title,
            price_text=price_text,
            price=price,
            currency=currency,
            image=self._optional(item, rules.image),
            availability=self._optional(item, rules.availability),
        )

    @staticmethod
    def _optional(item: Tag, rule: Optional[FieldRule]) -> Optional[str]:
        if rule is None:
            return None
        return read_value(item, rule) or None
