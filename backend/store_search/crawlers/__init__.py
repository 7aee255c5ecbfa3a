"""Page fetcher implementations."""

from .rendered import RenderedPageFetcher

__all__ = ['RenderedPageFetcher']
