"""
Data extraction utilities.

These functions read field values out of BeautifulSoup elements and turn
price text into numbers.
"""

import re
from typing import Optional
from bs4 import Tag

from ..descriptors import ExtractionKind, FieldRule

# Some catalogs emit prices like 2.499e5
SCIENTIFIC_PRICE = re.compile(r'^\d+\.?\d*e[+-]?\d+$', re.IGNORECASE)

# 49.950 or 1.299.000: dots grouping thousands, no decimals
DOT_GROUPED = re.compile(r'^\d{1,3}(?:\.\d{3})+$')

# 49.950,00: dot groups, comma decimals
COMMA_DECIMAL = re.compile(r'\d\.\d{3},\d{1,2}\s*$')

# First run of digits with its separators
PRICE_TOKEN = re.compile(r'\d[\d.,]*')


def read_value(scope: Tag, rule: FieldRule) -> str:
    """
    Read one field from the first element matching the rule's selector.

    Args:
        scope: Element to search within
        rule: Selector and extraction kind

    Returns:
        Trimmed value, or '' when the element or attribute is absent
    """
    element = scope.select_one(rule.selector)
    if element is None:
        return ''
    return read_element(element, rule.kind, rule.attribute)


def read_element(element: Tag, kind: ExtractionKind, attribute: Optional[str] = None) -> str:
    """Read text, inner markup, or a named attribute from an element."""
    if kind == ExtractionKind.TEXT:
        return element.get_text().strip()
    if kind == ExtractionKind.HTML:
        return element.decode_contents().strip()

    value = element.get(attribute)
    if isinstance(value, list):
        # Multi-valued attributes (class, rel) come back as lists
        value = ' '.join(value)
    return (value or '').strip()


def parse_price(text: str) -> float:
    """
    Parse a price string into a number.

    Handles:
        2.499e5    -> 249900.0  (scientific notation)
        ₡49.950    -> 49950.0   (dot as thousands separator)
        $1,299.99  -> 1299.99
        49.950,00  -> 49950.0
        ₡10.000 - ₡20.000 -> 10000.0  (first price of a range)
        Agotado    -> 0.0

    Returns:
        Parsed price, or 0.0 when nothing numeric is found
    """
    if not text:
        return 0.0

    text = text.strip()
    if SCIENTIFIC_PRICE.match(text):
        return float(text)

    # Price ranges: keep the first number only
    match = PRICE_TOKEN.search(text)
    if match is None:
        return 0.0
    text = match.group(0).rstrip('.,')

    if COMMA_DECIMAL.search(text):
        text = text.replace('.', '').replace(',', '.')

    # Keep only digits and the decimal point
    cleaned = re.sub(r'[^\d.]', '', text)
    if DOT_GROUPED.match(cleaned):
        cleaned = cleaned.replace('.', '')

    try:
        return float(cleaned)
    except ValueError:
        return 0.0
