"""Shared utilities for extraction and normalization."""

from .normalizers import (
    resolve_url,
    round_price,
    normalize_text,
    normalize_record,
    normalize_records,
)
from .extractors import (
    read_value,
    read_element,
    parse_price,
)

__all__ = [
    'resolve_url',
    'round_price',
    'normalize_text',
    'normalize_record',
    'normalize_records',
    'read_value',
    'read_element',
    'parse_price',
]
