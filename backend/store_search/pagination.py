"""
Pagination walker.

Decides, one rendered page at a time, whether a store has another results
page and where it is. Page N+1's URL is only known once page N has been
rendered, so the walker is consulted after every fetch.
"""

import asyncio
import logging
import re
from enum import Enum
from typing import Optional
from urllib.parse import urljoin, urldefrag, urlparse, parse_qs

from bs4 import BeautifulSoup

from .base import PageCursor, PageSnapshot
from .descriptors import PaginationRules
from .utils.extractors import read_element

logger = logging.getLogger(__name__)


class WalkerState(Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


def parse_page_number(text: Optional[str]) -> Optional[int]:
    """First integer in a string ('Página 3 de 12' -> 3), or None."""
    if not text:
        return None
    match = re.search(r'\d+', text)
    return int(match.group(0)) if match else None


class PaginationWalker:
    """
    Two-state machine (ACTIVE -> EXHAUSTED) over a store's results pages.

    Halts when any of these hold:
    - pagination is disabled for the store
    - the page budget has been reached
    - the page reports a total page count and the current page reached it
    - no next control, or no usable URL on it
    """

    def __init__(
        self,
        rules: PaginationRules,
        max_pages: Optional[int] = None,
        politeness_delay: float = 1.0,
        parser: str = 'html.parser',
    ):
        """
        Args:
            rules: Store pagination rules
            max_pages: Per-call page budget; overrides rules.max_pages when given
            politeness_delay: Seconds to pause before moving to the next page
            parser: BeautifulSoup parser name
        """
        self.rules = rules
        self.page_budget = max_pages if max_pages is not None else rules.max_pages
        self.politeness_delay = politeness_delay
        self.parser = parser
        self.state = WalkerState.ACTIVE
        self.halt_reason: Optional[str] = None

    @property
    def exhausted(self) -> bool:
        return self.state == WalkerState.EXHAUSTED

    def _halt(self, reason: str) -> None:
        self.state = WalkerState.EXHAUSTED
        self.halt_reason = reason
        logger.debug(f"Pagination stopped: {reason}")
        return None

    def next_cursor(self, snapshot: PageSnapshot, cursor: PageCursor) -> Optional[PageCursor]:
        """
        Decide the transition after rendering the page at `cursor`.

        Args:
            snapshot: The page just rendered
            cursor: Where that page sits in the walk

        Returns:
            Cursor for the next page, or None once EXHAUSTED
        """
        if self.exhausted:
            return None

        if not self.rules.enabled:
            return self._halt("pagination disabled")

        if self.page_budget is not None and cursor.page_index >= self.page_budget:
            return self._halt(f"page budget reached ({self.page_budget})")

        soup = BeautifulSoup(snapshot.html, self.parser)
        current_url = snapshot.final_url or cursor.url

        total_pages = self._total_pages(soup) or cursor.total_pages
        current_page = self._current_page(soup, current_url) or cursor.page_index
        if total_pages is not None and current_page >= total_pages:
            return self._halt(f"last page reached ({current_page}/{total_pages})")

        next_url = self._next_url(soup, current_url)
        if not next_url:
            return None

        logger.debug(f"Page {cursor.page_index + 1}: {next_url}")
        return PageCursor(url=next_url, page_index=cursor.page_index + 1, total_pages=total_pages)

    async def advance(self, snapshot: PageSnapshot, cursor: PageCursor) -> Optional[PageCursor]:
        """Like next_cursor(), pausing for the politeness delay before moving on."""
        next_cursor = self.next_cursor(snapshot, cursor)
        if next_cursor is not None and self.politeness_delay > 0:
            await asyncio.sleep(self.politeness_delay)
        return next_cursor

    def _next_url(self, soup: BeautifulSoup, current_url: str) -> Optional[str]:
        rule = self.rules.next_button_attribute
        element = soup.select_one(self.rules.next_button)
        if element is None:
            return self._halt("no next page control")

        raw = read_element(element, rule.kind, rule.attribute)
        if not raw or raw.startswith('#') or raw.lower().startswith('javascript:'):
            return self._halt("next page control has no URL")

        # Resolved against the full page URL so "?page=2" keeps the search path
        next_url = urldefrag(urljoin(current_url, raw))[0]
        if next_url == urldefrag(current_url)[0]:
            return self._halt("next page link points at the current page")
        return next_url

    def _current_page(self, soup: BeautifulSoup, current_url: str) -> Optional[int]:
        if self.rules.current_page_selector:
            element = soup.select_one(self.rules.current_page_selector)
            page = parse_page_number(element.get_text()) if element else None
            if page:
                return page

        if self.rules.page_param:
            values = parse_qs(urlparse(current_url).query).get(self.rules.page_param)
            if values:
                return parse_page_number(values[0])
        return None

    def _total_pages(self, soup: BeautifulSoup) -> Optional[int]:
        if not self.rules.total_pages_selector:
            return None
        element = soup.select_one(self.rules.total_pages_selector)
        return parse_page_number(element.get_text()) if element else None
