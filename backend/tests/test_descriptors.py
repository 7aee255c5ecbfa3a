"""
Tests for site descriptor validation.
"""

import pytest

from store_search.base import WaitStrategy
from store_search.descriptors import ExtractionKind, FieldRule, SiteDescriptor
from store_search.errors import DescriptorValidationError


class TestFieldRule:
    """Test the (selector, attribute) parsing."""

    def test_text_kind(self):
        rule = FieldRule.parse('.price', 'text')
        assert rule.kind == ExtractionKind.TEXT
        assert rule.attribute is None

    def test_html_kind(self):
        assert FieldRule.parse('.desc', 'html').kind == ExtractionKind.HTML

    def test_attribute_kind(self):
        rule = FieldRule.parse('img', 'data-src')
        assert rule.kind == ExtractionKind.ATTRIBUTE
        assert rule.attribute == 'data-src'


class TestSiteDescriptor:
    """Test descriptor validation."""

    def test_valid_descriptor(self, descriptor_mapping):
        descriptor = SiteDescriptor.from_mapping(descriptor_mapping('Tienda.Example', name='Tienda'))

        assert descriptor.domain == 'tienda.example'
        assert descriptor.name == 'Tienda'
        assert descriptor.currency == 'CRC'
        assert descriptor.listing.url.attribute == 'href'
        assert descriptor.listing.title.kind == ExtractionKind.TEXT
        assert descriptor.pagination.enabled is False

    def test_image_defaults_to_src(self, descriptor_mapping):
        descriptor = SiteDescriptor.from_mapping(descriptor_mapping())

        assert descriptor.listing.image.attribute == 'src'
        assert descriptor.listing.currency is None
        assert descriptor.listing.availability is None

    def test_render_options(self, descriptor_mapping):
        mapping = descriptor_mapping()
        mapping['scraping'] = {
            'wait_time': 1500,
            'scroll': False,
            'wait_until': 'networkidle',
            'wait_for_selectors': ['.results .product'],
            'user_agent': 'TestAgent/1.0',
        }

        descriptor = SiteDescriptor.from_mapping(mapping)

        assert descriptor.render.max_wait_ms == 1500
        assert descriptor.render.scroll_to_bottom is False
        assert descriptor.render.wait_strategy == WaitStrategy.NETWORK_IDLE
        assert descriptor.render.explicit_selectors == ('.results .product',)
        assert descriptor.user_agent == 'TestAgent/1.0'

    def test_render_defaults_without_scraping_section(self, descriptor_mapping):
        mapping = descriptor_mapping()
        del mapping['scraping']

        descriptor = SiteDescriptor.from_mapping(mapping)

        assert descriptor.render.max_wait_ms == 3000
        assert descriptor.render.scroll_to_bottom is True
        assert descriptor.render.wait_strategy == WaitStrategy.CONTENT_LOADED

    def test_pagination(self, descriptor_mapping):
        descriptor = SiteDescriptor.from_mapping(descriptor_mapping(pagination={
            'enabled': True,
            'next_button': 'a.next',
            'next_button_attribute': 'href',
            'max_pages': 3,
            'page_param': 'page',
        }))

        assert descriptor.pagination.enabled is True
        assert descriptor.pagination.max_pages == 3
        assert descriptor.pagination.next_button_attribute.attribute == 'href'
        assert descriptor.pagination.page_param == 'page'

    def test_to_summary(self, descriptor_mapping):
        summary = SiteDescriptor.from_mapping(descriptor_mapping('tienda.example', name='Tienda')).to_summary()

        assert summary == {
            'domain': 'tienda.example',
            'name': 'Tienda',
            'country': 'CR',
            'currency': 'CRC',
            'pagination': False,
            'max_pages': None,
        }


class TestDescriptorValidation:
    """Test that malformed descriptors are rejected at load time."""

    def test_template_without_query(self, descriptor_mapping):
        mapping = descriptor_mapping()
        mapping['search']['url_template'] = 'https://tienda.example/buscar'

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert exc_info.value.path == 'search.url_template'

    def test_missing_domain(self, descriptor_mapping):
        mapping = descriptor_mapping()
        del mapping['domain']

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert exc_info.value.path == 'domain'

    @pytest.mark.parametrize('field', ['url', 'title', 'price'])
    def test_missing_required_selector(self, descriptor_mapping, field):
        mapping = descriptor_mapping()
        del mapping['product_list']['selectors'][field]

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert exc_info.value.path == f'product_list.selectors.{field}'

    def test_missing_required_attribute(self, descriptor_mapping):
        mapping = descriptor_mapping()
        del mapping['product_list']['selectors']['price_attribute']

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert exc_info.value.path == 'product_list.selectors.price_attribute'

    def test_missing_container(self, descriptor_mapping):
        mapping = descriptor_mapping()
        del mapping['product_list']['container']

        with pytest.raises(DescriptorValidationError):
            SiteDescriptor.from_mapping(mapping)

    def test_enabled_pagination_needs_next_button(self, descriptor_mapping):
        mapping = descriptor_mapping(pagination={'enabled': True, 'max_pages': 2})

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert exc_info.value.path == 'scraping.pagination'

    @pytest.mark.parametrize('max_pages', [0, -1, 'dos', True])
    def test_invalid_max_pages(self, descriptor_mapping, max_pages):
        mapping = descriptor_mapping(pagination={
            'enabled': True,
            'next_button': 'a.next',
            'next_button_attribute': 'href',
            'max_pages': max_pages,
        })

        with pytest.raises(DescriptorValidationError):
            SiteDescriptor.from_mapping(mapping)

    def test_invalid_wait_until(self, descriptor_mapping):
        mapping = descriptor_mapping()
        mapping['scraping']['wait_until'] = 'whenever'

        with pytest.raises(DescriptorValidationError) as exc_info:
            SiteDescriptor.from_mapping(mapping)

        assert 'networkidle' in str(exc_info.value)

    def test_negative_wait_time(self, descriptor_mapping):
        mapping = descriptor_mapping()
        mapping['scraping']['wait_time'] = -5

        with pytest.raises(DescriptorValidationError):
            SiteDescriptor.from_mapping(mapping)

    def test_non_string_selector(self, descriptor_mapping):
        mapping = descriptor_mapping()
        mapping['product_list']['selectors']['title'] = ['a', 'b']

        with pytest.raises(DescriptorValidationError):
            SiteDescriptor.from_mapping(mapping)

    def test_not_a_mapping(self):
        with pytest.raises(DescriptorValidationError):
            SiteDescriptor.from_mapping(['tienda.example'])
