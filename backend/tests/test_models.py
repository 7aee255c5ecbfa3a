"""
Tests for the result data structures.
"""

import pytest

from store_search.base import FleetSearchResult, NormalizedRecord, StoreScrapeOutcome


def record(n=1, **kwargs):
    return NormalizedRecord(url=f'https://tienda.example/p/{n}', name=f'Producto {n}', price=1000 * n, **kwargs)


class TestNormalizedRecord:
    """Test record serialization."""

    def test_to_dict_omits_missing_fields(self):
        assert record().to_dict() == {
            'url': 'https://tienda.example/p/1',
            'product_name': 'Producto 1',
            'price': 1000,
        }

    def test_to_dict_with_optional_fields(self):
        data = record(currency='CRC', image='https://tienda.example/img/1.jpg').to_dict()

        assert data['currency'] == 'CRC'
        assert data['image'] == 'https://tienda.example/img/1.jpg'

    def test_from_dict_accepts_name_alias(self):
        rebuilt = NormalizedRecord.from_dict({'url': 'https://tienda.example/p/1', 'name': 'Producto 1', 'price': '1000'})

        assert rebuilt == record()


class TestStoreScrapeOutcome:
    """Test the success/error invariant."""

    def test_success_with_error_rejected(self):
        with pytest.raises(ValueError):
            StoreScrapeOutcome('Tienda', 'tienda.example', '', success=True, error='boom')

    def test_failure_without_error_rejected(self):
        with pytest.raises(ValueError):
            StoreScrapeOutcome('Tienda', 'tienda.example', '', success=False)

    def test_failure_with_records_rejected(self):
        with pytest.raises(ValueError):
            StoreScrapeOutcome('Tienda', 'tienda.example', '', success=False, error='boom', records=[record()])

    def test_failed_factory(self):
        outcome = StoreScrapeOutcome.failed('Tienda', 'tienda.example', 'https://tienda.example/buscar?q=x', '')

        assert outcome.success is False
        assert outcome.error == 'Unknown error'
        assert outcome.count == 0

    def test_to_dict(self):
        outcome = StoreScrapeOutcome(
            'Tienda', 'tienda.example', 'https://tienda.example/buscar?q=x',
            success=True, records=[record(1), record(2)], duration_ms=1200, pages=2,
        )

        data = outcome.to_dict()

        assert data['store'] == 'Tienda'
        assert data['count'] == 2
        assert data['searchUrl'] == 'https://tienda.example/buscar?q=x'
        assert data['durationMs'] == 1200
        assert data['pages'] == 2
        assert data['filtered'] is False
        assert 'error' not in data
        assert 'filterSummary' not in data
        assert data['products'][1]['product_name'] == 'Producto 2'


class TestFleetSearchResult:
    """Test aggregate counters."""

    def test_counters(self):
        result = FleetSearchResult(search='taladro', stores=[
            StoreScrapeOutcome('A', 'a.example', '', success=True, records=[record(1), record(2)]),
            StoreScrapeOutcome.failed('B', 'b.example', '', 'timeout'),
            StoreScrapeOutcome('C', 'c.example', '', success=True),
        ])

        assert result.total_stores == 3
        assert result.successful_stores == 2
        assert result.total_products == 2

    def test_to_dict(self):
        result = FleetSearchResult(search='taladro', filtered=True, filter_summary='Top 1')

        data = result.to_dict()

        assert data['search'] == 'taladro'
        assert data['totalStores'] == 0
        assert data['filtered'] is True
        assert data['filterSummary'] == 'Top 1'
