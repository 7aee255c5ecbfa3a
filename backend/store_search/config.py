"""
Store descriptor registry.

Holds the validated SiteDescriptor for every store a fleet search fans
out to. The registry is an ordinary object owned by whoever builds the
coordinator; there is no module-level store list.
"""

import json
import logging
from pathlib import Path
from typing import Dict, List, Iterable, Mapping, Any, Union
from urllib.parse import quote, urlparse

from .descriptors import SiteDescriptor
from .errors import ConfigurationMissing, DescriptorValidationError

logger = logging.getLogger(__name__)


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def domain_variants(domain: str) -> List[str]:
    """
    Lookup variants for a domain, exact match first.

    Examples:
        www.tienda.example -> ['www.tienda.example', 'tienda.example']
        tienda.example -> ['tienda.example', 'www.tienda.example']
    """
    domain = domain.strip().lower()
    if domain.startswith('www.'):
        return [domain, domain[4:]]
    return [domain, f"www.{domain}"]


def encode_query(query: str) -> str:
    """Percent-encode a search query for use inside a URL template."""
    return quote(query, safe="-_.!~*'()")


# ============================================================
# REGISTRY
# ============================================================

class DescriptorRegistry:
    """
    Read-only lookup of site descriptors by domain or alias.

    Usage:
        registry = DescriptorRegistry.from_file('stores.json')
        descriptor = registry.get_descriptor('tienda.example')
        url = registry.build_search_url('tienda.example', 'taladro')
    """

    def __init__(self, descriptors: Iterable[SiteDescriptor] = ()):
        self._descriptors: Dict[str, SiteDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: SiteDescriptor):
        """Add a descriptor; a second one for the same domain replaces the first."""
        if descriptor.domain in self._descriptors:
            logger.warning(f"Replacing descriptor for {descriptor.domain}")
        self._descriptors[descriptor.domain] = descriptor

    @classmethod
    def from_mappings(cls, mappings: Iterable[Mapping[str, Any]]) -> 'DescriptorRegistry':
        """
        Validate raw descriptor mappings and build a registry.

        Raises:
            DescriptorValidationError: On the first malformed descriptor
        """
        return cls(SiteDescriptor.from_mapping(m) for m in mappings)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'DescriptorRegistry':
        """
        Load descriptors from a JSON file.

        The file holds either a list of descriptor mappings or a mapping of
        domain -> descriptor mapping (the domain key fills in a missing
        'domain' field).
        """
        path = Path(path)
        with path.open(encoding='utf-8') as fh:
            data = json.load(fh)

        if isinstance(data, Mapping):
            mappings = []
            for domain, entry in data.items():
                if not isinstance(entry, Mapping):
                    raise DescriptorValidationError(domain, '<root>', 'descriptor must be a mapping')
                mappings.append({'domain': domain, **entry})
        elif isinstance(data, list):
            mappings = data
        else:
            raise DescriptorValidationError(str(path), '<root>', 'expected a list or mapping of descriptors')

        registry = cls.from_mappings(mappings)
        logger.info(f"Loaded {len(registry)} store descriptor(s) from {path}")
        return registry

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, domain: str) -> bool:
        try:
            self.get_descriptor(domain)
        except ConfigurationMissing:
            return False
        return True

    def get_descriptor(self, domain_or_alias: str) -> SiteDescriptor:
        """
        Get the descriptor for a store.

        Tries the exact domain, its www variant, then the store's display
        name (case-insensitive).

        Args:
            domain_or_alias: Domain (e.g. 'tienda.example') or store name

        Returns:
            SiteDescriptor

        Raises:
            ConfigurationMissing: If no descriptor matches
        """
        key = (domain_or_alias or '').strip()
        variants = domain_variants(key) if key else []
        for variant in variants:
            if variant in self._descriptors:
                return self._descriptors[variant]

        for descriptor in self._descriptors.values():
            if descriptor.name.lower() == key.lower():
                return descriptor

        raise ConfigurationMissing(key, variants)

    def get_descriptor_for_url(self, url: str) -> SiteDescriptor:
        """Get the descriptor whose domain matches the URL's hostname."""
        hostname = urlparse(url).hostname
        if not hostname:
            raise ConfigurationMissing(url)
        return self.get_descriptor(hostname)

    def list_domains(self) -> List[str]:
        """All registered domains, in registration order."""
        return list(self._descriptors.keys())

    def build_search_url(self, domain: str, query: str) -> str:
        """
        Build a store's search URL for a query.

        Raises:
            ConfigurationMissing: If the store has no descriptor
        """
        descriptor = self.get_descriptor(domain)
        return descriptor.search_url_template.replace('{query}', encode_query(query))

    def get_site_summary(self) -> List[Dict[str, Any]]:
        """Get a summary of all stores for display."""
        return [d.to_summary() for d in self._descriptors.values()]
