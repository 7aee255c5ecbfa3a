"""
Rendered page fetcher for JavaScript-driven listing pages.

One Chromium process is shared by every fetch; each fetch runs in its own
browser context so cookies and storage never leak between stores.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)

from ..base import PageSnapshot, RenderOptions, WaitStrategy
from ..errors import NavigationFailure, NavigationFailureKind

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

# Scrolls one step and reports [viewport bottom, document height]
SCROLL_STEP_SCRIPT = """(step) => {
    window.scrollBy(0, step);
    return [window.scrollY + window.innerHeight, document.body.scrollHeight];
}"""


class RenderedPageFetcher:
    """
    Playwright-backed fetcher that renders a URL and returns its DOM.

    Features:
    - Two-tier navigation: fast readiness signal, one fallback to network idle
    - Per-selector bounded waits (missing selectors are not fatal)
    - Bounded incremental scroll to trigger lazy-loaded items
    - Isolated browser context per fetch over one shared browser

    Usage:
        async with RenderedPageFetcher() as fetcher:
            snapshot = await fetcher.fetch(url, RenderOptions())
    """

    def __init__(
        self,
        headless: bool = True,
        navigation_timeout: float = 30.0,
        selector_timeout: float = 15.0,
        user_agent: str = DEFAULT_USER_AGENT,
        scroll_step_px: int = 200,
        scroll_max_steps: int = 20,
        scroll_interval: float = 0.05,
        settle_time: float = 0.5,
        browser: Optional[Browser] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            headless: Run browser in headless mode
            navigation_timeout: Seconds allowed for each navigation attempt
            selector_timeout: Seconds allowed for each readiness selector
            user_agent: Default user agent for new contexts
            scroll_step_px: Pixels per scroll step
            scroll_max_steps: Upper bound on scroll steps per page
            scroll_interval: Pause after each scroll step
            settle_time: Pause after scrolling finishes
            browser: Already-launched browser to use (not closed by close())
        """
        self.headless = headless
        self.navigation_timeout = navigation_timeout
        self.selector_timeout = selector_timeout
        self.user_agent = user_agent
        self.scroll_step_px = scroll_step_px
        self.scroll_max_steps = scroll_max_steps
        self.scroll_interval = scroll_interval
        self.settle_time = settle_time
        self._browser: Optional[Browser] = browser
        self._owns_browser = browser is None
        self._playwright = None
        self._start_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config) -> 'RenderedPageFetcher':
        """Build a fetcher from a Settings instance."""
        return cls(
            headless=config.headless,
            navigation_timeout=config.navigation_timeout,
            selector_timeout=config.selector_timeout,
            user_agent=config.user_agent,
            scroll_step_px=config.scroll_step_px,
            scroll_max_steps=config.scroll_max_steps,
        )

    async def start(self):
        """Launch the shared browser if it is not running yet."""
        async with self._start_lock:
            if self._browser is not None and self._browser.is_connected():
                return
            if not self._owns_browser:
                raise RuntimeError("Injected browser is disconnected")
            if self._browser is not None or self._playwright is not None:
                logger.warning("Browser disconnected, relaunching")
                await self._cleanup()

            try:
                self._playwright = await async_playwright().start()
                logger.debug("Launching Chromium browser...")
                self._browser = await self._playwright.chromium.launch(
                    headless=self.headless,
                    args=[
                        '--no-sandbox',
                        '--disable-setuid-sandbox',
                        '--disable-dev-shm-usage',
                    ],
                )
                logger.debug("Browser started")
            except Exception as e:
                logger.error(f"Failed to initialize browser: {e}")
                await self._cleanup()
                raise

    async def _cleanup(self):
        """Close browser resources with timeouts to prevent hanging."""
        cleanup_timeout = 5.0

        if self._browser and self._owns_browser:
            try:
                await asyncio.wait_for(self._browser.close(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Browser close timed out, forcing cleanup")
            except PlaywrightError as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            self._playwright = None

    async def close(self):
        """Close the browser and cleanup resources."""
        await self._cleanup()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def fetch(
        self,
        url: str,
        options: RenderOptions,
        user_agent: Optional[str] = None,
    ) -> PageSnapshot:
        """
        Render a URL and return its DOM.

        Args:
            url: Page to render
            options: Readiness, scroll and delay settings for this page
            user_agent: Overrides the fetcher's default user agent

        Returns:
            PageSnapshot with HTML and the URL the page resolved to

        Raises:
            NavigationFailure: When both navigation tiers fail
        """
        await self.start()

        context: BrowserContext = await self._browser.new_context(
            user_agent=user_agent or self.user_agent,
            viewport={'width': 1920, 'height': 1080},
            ignore_https_errors=True,
        )
        try:
            page = await context.new_page()
            logger.debug(f"Rendering {url}")

            response = await self._navigate(page, url, options.wait_strategy)
            if response is not None and response.status >= 400:
                logger.warning(f"HTTP {response.status} for {url}, extracting whatever rendered")

            await self._wait_until_ready(page, options)

            if options.scroll_to_bottom:
                await self._scroll(page)

            html = await page.content()
            try:
                title = await page.title()
            except PlaywrightError:
                title = ''

            logger.debug(f"Rendered {page.url} ({len(html) / 1024:.1f} KB)")
            return PageSnapshot(html=html, final_url=page.url or url, title=title)
        finally:
            try:
                await asyncio.wait_for(context.close(), timeout=5.0)
            except (asyncio.TimeoutError, PlaywrightError) as e:
                logger.debug(f"Error closing context for {url}: {e}")

    async def _navigate(self, page: Page, url: str, strategy: WaitStrategy):
        """Navigate with the fast strategy, falling back once to network idle."""
        timeout_ms = int(self.navigation_timeout * 1000)

        try:
            return await page.goto(url, wait_until=strategy.value, timeout=timeout_ms)
        except PlaywrightError as e:
            if strategy == WaitStrategy.NETWORK_IDLE:
                raise self._failure(url, e) from e
            logger.debug(f"{strategy.value} navigation failed for {url} ({e}), falling back to networkidle")

        try:
            return await page.goto(url, wait_until=WaitStrategy.NETWORK_IDLE.value, timeout=timeout_ms)
        except PlaywrightError as e:
            raise self._failure(url, e) from e

    @staticmethod
    def _failure(url: str, error: PlaywrightError) -> NavigationFailure:
        if isinstance(error, PlaywrightTimeoutError):
            kind = NavigationFailureKind.TIMEOUT
        else:
            kind = NavigationFailureKind.UNREACHABLE
        return NavigationFailure(url, kind, str(error).splitlines()[0] if str(error) else '')

    async def _wait_until_ready(self, page: Page, options: RenderOptions):
        """Wait on each readiness selector, or a flat delay when none are given."""
        if not options.explicit_selectors:
            logger.debug(f"Waiting {options.max_wait_ms}ms")
            await asyncio.sleep(options.max_wait_ms / 1000)
            return

        timeout_ms = int(self.selector_timeout * 1000)
        for selector in options.explicit_selectors:
            try:
                await page.wait_for_selector(selector, timeout=timeout_ms)
                logger.debug(f"Selector found: {selector}")
            except PlaywrightError:
                logger.debug(f"Selector not found: {selector}")

    async def _scroll(self, page: Page):
        """Scroll down in fixed steps until the page stops growing."""
        last_height = None
        steps = 0
        try:
            for steps in range(1, self.scroll_max_steps + 1):
                position, height = await page.evaluate(SCROLL_STEP_SCRIPT, self.scroll_step_px)
                await asyncio.sleep(self.scroll_interval)
                if position >= height and height == last_height:
                    break
                last_height = height
        except PlaywrightError as e:
            # Scroll is optional, don't fail on it
            logger.debug(f"Scroll stopped early: {e}")

        logger.debug(f"Scrolled {steps} step(s)")
        await asyncio.sleep(self.settle_time)
