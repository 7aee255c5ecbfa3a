"""
Site descriptors: the per-store rules that drive extraction and pagination.

A descriptor is validated once, when it is loaded, into the frozen
dataclasses below. Nothing downstream re-checks the raw mapping, so a
malformed store config fails before any browser is touched.

Raw mapping shape (one store):

    domain: tienda.example
    name: Tienda Example
    country: CR
    currency: CRC
    search:
      url_template: https://tienda.example/buscar?q={query}
    product_list:
      container: .results
      item: .product
      selectors:
        url: a.title
        url_attribute: href
        title: a.title
        title_attribute: text
        price: .price
        price_attribute: text
        image: img          # optional, defaults to 'src'
    scraping:
      wait_time: 3000
      scroll: true
      wait_for_selectors: [.results .product]
      pagination:
        enabled: true
        next_button: a.next
        next_button_attribute: href
        max_pages: 3
"""

from typing import Dict, Optional, Any, Mapping
from dataclasses import dataclass
from enum import Enum

from .base import RenderOptions, WaitStrategy
from .errors import DescriptorValidationError


class ExtractionKind(Enum):
    """How a field value is read from its element."""
    TEXT = "text"           # element text, trimmed
    HTML = "html"           # inner markup
    ATTRIBUTE = "attribute" # a named attribute (href, src, data-*)


@dataclass(frozen=True)
class FieldRule:
    """Selector plus extraction kind for one record field."""
    selector: str
    kind: ExtractionKind
    attribute: Optional[str] = None

    @classmethod
    def parse(cls, selector: str, attribute: str) -> 'FieldRule':
        """
        Build a rule from the config's (selector, attribute) pair.

        The attribute string 'text' and 'html' are extraction kinds; any
        other value names the attribute to read.
        """
        attribute = (attribute or 'text').strip()
        if attribute == 'text':
            return cls(selector=selector, kind=ExtractionKind.TEXT)
        if attribute == 'html':
            return cls(selector=selector, kind=ExtractionKind.HTML)
        return cls(selector=selector, kind=ExtractionKind.ATTRIBUTE, attribute=attribute)


@dataclass(frozen=True)
class ListingRules:
    """Where the repeating product nodes are and how to read each field."""
    container: str
    item: str
    url: FieldRule
    title: FieldRule
    price: FieldRule
    currency: Optional[FieldRule] = None
    image: Optional[FieldRule] = None
    availability: Optional[FieldRule] = None


@dataclass(frozen=True)
class PaginationRules:
    """How to find the next results page."""
    enabled: bool = False
    next_button: Optional[str] = None
    next_button_attribute: Optional[FieldRule] = None
    max_pages: Optional[int] = None
    page_param: Optional[str] = None
    current_page_selector: Optional[str] = None
    total_pages_selector: Optional[str] = None


@dataclass(frozen=True)
class SiteDescriptor:
    """Validated, immutable configuration for one store."""
    domain: str
    name: str
    search_url_template: str
    listing: ListingRules
    render: RenderOptions
    pagination: PaginationRules
    currency: Optional[str] = None
    country: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> 'SiteDescriptor':
        """
        Validate a raw descriptor mapping.

        Args:
            data: Parsed store configuration (see module docstring)

        Returns:
            SiteDescriptor

        Raises:
            DescriptorValidationError: On any missing or malformed field
        """
        if not isinstance(data, Mapping):
            raise DescriptorValidationError('?', '<root>', 'descriptor must be a mapping')

        label = str(data.get('domain') or data.get('name') or '?')
        check = _Checker(label)

        domain = check.required_str(data, 'domain')
        name = check.optional_str(data, 'name') or domain

        search = check.section(data, 'search')
        template = check.required_str(search, 'url_template', 'search.url_template')
        if '{query}' not in template:
            raise DescriptorValidationError(label, 'search.url_template', "must contain '{query}'")

        listing = cls._parse_listing(check, check.section(data, 'product_list'))

        scraping = data.get('scraping') or {}
        if not isinstance(scraping, Mapping):
            raise DescriptorValidationError(label, 'scraping', 'must be a mapping')

        return cls(
            domain=domain.lower(),
            name=name,
            search_url_template=template,
            listing=listing,
            render=cls._parse_render(check, scraping),
            pagination=cls._parse_pagination(check, scraping.get('pagination')),
            currency=check.optional_str(data, 'currency'),
            country=check.optional_str(data, 'country'),
            user_agent=check.optional_str(scraping, 'user_agent', 'scraping.user_agent'),
        )

    @staticmethod
    def _parse_listing(check: '_Checker', section: Mapping[str, Any]) -> ListingRules:
        selectors = section.get('selectors')
        if not isinstance(selectors, Mapping):
            raise DescriptorValidationError(check.label, 'product_list.selectors', 'missing or not a mapping')

        def rule(field: str, default_attribute: str, required: bool) -> Optional[FieldRule]:
            path = f"product_list.selectors.{field}"
            selector = check.optional_str(selectors, field, path)
            if not selector:
                if required:
                    raise DescriptorValidationError(check.label, path, 'required selector is missing')
                return None
            attribute = check.optional_str(selectors, f"{field}_attribute", f"{path}_attribute")
            if required and not attribute:
                raise DescriptorValidationError(check.label, f"{path}_attribute", 'required attribute is missing')
            return FieldRule.parse(selector, attribute or default_attribute)

        return ListingRules(
            container=check.required_str(section, 'container', 'product_list.container'),
            item=check.required_str(section, 'item', 'product_list.item'),
            url=rule('url', 'href', required=True),
            title=rule('title', 'text', required=True),
            price=rule('price', 'text', required=True),
            currency=rule('currency', 'text', required=False),
            image=rule('image', 'src', required=False),
            availability=rule('availability', 'text', required=False),
        )

    @staticmethod
    def _parse_render(check: '_Checker', scraping: Mapping[str, Any]) -> RenderOptions:
        wait_time = scraping.get('wait_time', 3000)
        if isinstance(wait_time, bool) or not isinstance(wait_time, (int, float)) or wait_time < 0:
            raise DescriptorValidationError(check.label, 'scraping.wait_time', 'must be a non-negative number of ms')

        selectors = scraping.get('wait_for_selectors') or []
        if isinstance(selectors, str):
            selectors = [selectors]
        if not isinstance(selectors, (list, tuple)) or not all(isinstance(s, str) and s for s in selectors):
            raise DescriptorValidationError(check.label, 'scraping.wait_for_selectors', 'must be a list of selectors')

        wait_until = scraping.get('wait_until', WaitStrategy.CONTENT_LOADED.value)
        try:
            strategy = WaitStrategy(wait_until)
        except ValueError:
            valid = ', '.join(s.value for s in WaitStrategy)
            raise DescriptorValidationError(check.label, 'scraping.wait_until', f"must be one of: {valid}")

        return RenderOptions(
            wait_strategy=strategy,
            explicit_selectors=tuple(selectors),
            scroll_to_bottom=bool(scraping.get('scroll', True)),
            max_wait_ms=int(wait_time),
        )

    @staticmethod
    def _parse_pagination(check: '_Checker', section: Any) -> PaginationRules:
        if not section:
            return PaginationRules(enabled=False)
        if not isinstance(section, Mapping):
            raise DescriptorValidationError(check.label, 'scraping.pagination', 'must be a mapping')

        enabled = bool(section.get('enabled', False))
        next_button = check.optional_str(section, 'next_button', 'scraping.pagination.next_button')
        next_attribute = check.optional_str(
            section, 'next_button_attribute', 'scraping.pagination.next_button_attribute'
        )
        if enabled and not (next_button and next_attribute):
            raise DescriptorValidationError(
                check.label, 'scraping.pagination',
                'enabled pagination needs next_button and next_button_attribute'
            )

        max_pages = section.get('max_pages')
        if max_pages is not None and (isinstance(max_pages, bool) or not isinstance(max_pages, int) or max_pages < 1):
            raise DescriptorValidationError(check.label, 'scraping.pagination.max_pages', 'must be a positive integer')

        return PaginationRules(
            enabled=enabled,
            next_button=next_button,
            next_button_attribute=FieldRule.parse(next_button, next_attribute) if next_button else None,
            max_pages=max_pages,
            page_param=check.optional_str(section, 'page_param', 'scraping.pagination.page_param'),
            current_page_selector=check.optional_str(
                section, 'current_page_selector', 'scraping.pagination.current_page_selector'
            ),
            total_pages_selector=check.optional_str(
                section, 'total_pages_selector', 'scraping.pagination.total_pages_selector'
            ),
        )

    def to_summary(self) -> Dict[str, Any]:
        """Short description for listings and the CLI."""
        return {
            'domain': self.domain,
            'name': self.name,
            'country': self.country,
            'currency': self.currency,
            'pagination': self.pagination.enabled,
            'max_pages': self.pagination.max_pages,
        }


class _Checker:
    """Small helpers that turn type mismatches into validation errors."""

    def __init__(self, label: str):
        self.label = label

    def section(self, data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
        value = data.get(key)
        if not isinstance(value, Mapping):
            raise DescriptorValidationError(self.label, key, 'missing or not a mapping')
        return value

    def required_str(self, data: Mapping[str, Any], key: str, path: Optional[str] = None) -> str:
        value = self.optional_str(data, key, path)
        if not value:
            raise DescriptorValidationError(self.label, path or key, 'required value is missing')
        return value

    def optional_str(self, data: Mapping[str, Any], key: str, path: Optional[str] = None) -> Optional[str]:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise DescriptorValidationError(self.label, path or key, 'must be a string')
        return value.strip() or None
