"""
Error taxonomy for the store search pipeline.

Only InvalidSearchRequest is meant to reach the caller of a fleet search.
Everything else is contained in the outcome of the store that raised it,
or recovered locally (FilterProviderFailure).
"""

from enum import Enum
from typing import Optional


class StoreSearchError(Exception):
    """Base class for all store search errors."""


class InvalidSearchRequest(StoreSearchError):
    """The top-level request is structurally invalid (e.g. missing query)."""


class DescriptorValidationError(StoreSearchError):
    """A site descriptor mapping does not match the expected schema."""

    def __init__(self, descriptor: str, path: str, reason: str):
        self.descriptor = descriptor
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid descriptor '{descriptor}' at {path}: {reason}")


class ConfigurationMissing(StoreSearchError):
    """No descriptor is registered for the requested site."""

    def __init__(self, domain: str, tried: Optional[list] = None):
        self.domain = domain
        self.tried = tried or [domain]
        super().__init__(
            f"No configuration for store '{domain}' (tried: {', '.join(self.tried)})"
        )


class NavigationFailureKind(Enum):
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"


class NavigationFailure(StoreSearchError):
    """A page could not be rendered, even after the load-strategy fallback."""

    def __init__(self, url: str, kind: NavigationFailureKind, detail: str = ''):
        self.url = url
        self.kind = kind
        self.detail = detail
        message = f"Navigation {kind.value} for {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class FilterProviderFailure(StoreSearchError):
    """The external relevance-filtering service failed or answered garbage."""
