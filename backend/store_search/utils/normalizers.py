"""
Data normalization utilities.

These functions turn raw scraped records into the canonical form
returned to callers.
"""

import math
import logging
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from ..base import RawRecord, NormalizedRecord

logger = logging.getLogger(__name__)


def resolve_url(url: str, base_url: str) -> str:
    """
    Make a URL absolute.

    Examples:
        /p/123 against https://store.example/search?q=x -> https://store.example/p/123
        https://cdn.example/a.jpg -> unchanged
        //cdn.example/a.jpg against https://store.example/ -> https://cdn.example/a.jpg
        '' -> base_url
    """
    if not url:
        return base_url

    url = url.strip()
    if urlparse(url).scheme in ('http', 'https'):
        return url

    try:
        return urljoin(base_url, url)
    except ValueError as e:
        logger.warning(f"Could not resolve URL '{url}' against {base_url}: {e}")
        return base_url


def round_price(price: float) -> int:
    """Round half up to the nearest whole currency unit."""
    return int(math.floor(price + 0.5))


def normalize_text(text: Optional[str]) -> str:
    """Trim and collapse internal whitespace."""
    if not text:
        return ''
    return ' '.join(text.split())


def normalize_record(record: RawRecord, base_url: str) -> Optional[NormalizedRecord]:
    """
    Convert one raw record to its canonical form.

    Returns None for records that do not survive normalization (empty
    name or a price that rounds to zero).
    """
    name = normalize_text(record.title)
    price = round_price(record.price)
    if not name or price <= 0:
        return None

    return NormalizedRecord(
        url=resolve_url(record.url, base_url),
        name=name,
        price=price,
        currency=normalize_text(record.currency) or None,
        image=resolve_url(record.image, base_url) if record.image else None,
    )


def normalize_records(records: List[RawRecord], base_url: str) -> List[NormalizedRecord]:
    """Normalize a store's raw records against its search URL."""
    normalized = []
    for record in records:
        result = normalize_record(record, base_url)
        if result is None:
            logger.debug(f"Dropped record during normalization: {record.title!r} ({record.price_text!r})")
            continue
        normalized.append(result)
    return normalized
