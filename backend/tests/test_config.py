"""
Tests for application settings and the descriptor registry.
"""

import json

import pytest

from store_search.config import DescriptorRegistry, domain_variants, encode_query
from store_search.errors import ConfigurationMissing, DescriptorValidationError
from store_search.settings import Settings


class TestSettings:
    """Test the Settings configuration class."""

    def test_settings_defaults(self):
        """Test that settings have sensible defaults."""
        from store_search.settings import settings

        assert settings.headless is True
        assert settings.navigation_timeout == 30.0
        assert settings.selector_timeout == 15.0
        assert settings.politeness_delay == 1.0
        assert settings.max_concurrent_stores == 4
        assert settings.log_level == "INFO"

    def test_settings_log_paths(self):
        """Test that log paths are valid."""
        config = Settings()

        assert config.log_dir is not None
        assert config.log_file.name == "store_search.log"

    def test_settings_env_prefix(self, monkeypatch):
        """Test that STORE_SEARCH_* variables override defaults."""
        monkeypatch.setenv("STORE_SEARCH_MAX_CONCURRENT_STORES", "0")
        monkeypatch.setenv("STORE_SEARCH_RELEVANCE_SERVICE_URL", "http://relevance.test")

        config = Settings()

        assert config.max_concurrent_stores == 0
        assert config.relevance_service_url == "http://relevance.test"


class TestDomainHelpers:
    """Test domain variants and query encoding."""

    def test_domain_variants_adds_www(self):
        assert domain_variants('tienda.example') == ['tienda.example', 'www.tienda.example']

    def test_domain_variants_strips_www(self):
        assert domain_variants('WWW.Tienda.example') == ['www.tienda.example', 'tienda.example']

    def test_encode_query(self):
        """Test that queries are encoded like encodeURIComponent."""
        assert encode_query('taladro inalámbrico & co') == 'taladro%20inal%C3%A1mbrico%20%26%20co'
        assert encode_query("a-b_c.d!e~f*g'h(i)") == "a-b_c.d!e~f*g'h(i)"
        assert encode_query('1/2"') == '1%2F2%22'


class TestDescriptorRegistry:
    """Test descriptor lookup."""

    def test_lookup_exact_domain(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example')])

        assert registry.get_descriptor('tienda.example').domain == 'tienda.example'

    def test_lookup_www_variant(self, descriptor_mapping):
        """Test that www and bare domains resolve to each other."""
        registry = DescriptorRegistry.from_mappings([
            descriptor_mapping('www.tienda.example'),
            descriptor_mapping('otra.example'),
        ])

        assert registry.get_descriptor('tienda.example').domain == 'www.tienda.example'
        assert registry.get_descriptor('www.otra.example').domain == 'otra.example'

    def test_lookup_by_name(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example', name='Mi Tienda')])

        assert registry.get_descriptor('mi tienda').domain == 'tienda.example'

    def test_lookup_missing(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example')])

        with pytest.raises(ConfigurationMissing) as exc_info:
            registry.get_descriptor('nada.example')

        assert exc_info.value.tried == ['nada.example', 'www.nada.example']
        assert 'nada.example' not in registry
        assert 'tienda.example' in registry

    def test_lookup_by_url(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example')])

        descriptor = registry.get_descriptor_for_url('https://www.tienda.example/buscar?q=sierra&page=2')

        assert descriptor.domain == 'tienda.example'

    def test_lookup_by_invalid_url(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example')])

        with pytest.raises(ConfigurationMissing):
            registry.get_descriptor_for_url('not a url')

    def test_build_search_url(self, descriptor_mapping):
        registry = DescriptorRegistry.from_mappings([descriptor_mapping('tienda.example')])

        url = registry.build_search_url('tienda.example', 'taladro inalámbrico')

        assert url == 'https://tienda.example/buscar?q=taladro%20inal%C3%A1mbrico'

    def test_list_domains_keeps_order(self, three_store_registry):
        assert three_store_registry.list_domains() == ['alfa.example', 'beta.example', 'gama.example']
        assert len(three_store_registry) == 3

    def test_site_summary(self, three_store_registry):
        summary = three_store_registry.get_site_summary()

        assert [s['name'] for s in summary] == ['Alfa', 'Beta', 'Gama']
        assert summary[0]['currency'] == 'CRC'
        assert summary[0]['pagination'] is False


class TestRegistryFromFile:
    """Test loading descriptors from JSON."""

    def test_from_list_file(self, tmp_path, descriptor_mapping):
        path = tmp_path / 'stores.json'
        path.write_text(json.dumps([descriptor_mapping('alfa.example'), descriptor_mapping('beta.example')]))

        registry = DescriptorRegistry.from_file(path)

        assert registry.list_domains() == ['alfa.example', 'beta.example']

    def test_from_mapping_file(self, tmp_path, descriptor_mapping):
        """Test that the mapping key fills in the domain."""
        entry = descriptor_mapping('alfa.example')
        del entry['domain']
        path = tmp_path / 'stores.json'
        path.write_text(json.dumps({'alfa.example': entry}))

        registry = DescriptorRegistry.from_file(str(path))

        assert registry.get_descriptor('alfa.example').name == 'Alfa'

    def test_from_file_rejects_invalid_descriptor(self, tmp_path, descriptor_mapping):
        entry = descriptor_mapping('alfa.example')
        entry['search']['url_template'] = 'https://alfa.example/buscar'
        path = tmp_path / 'stores.json'
        path.write_text(json.dumps([entry]))

        with pytest.raises(DescriptorValidationError):
            DescriptorRegistry.from_file(path)

    def test_from_file_rejects_scalar(self, tmp_path):
        path = tmp_path / 'stores.json'
        path.write_text('"not a store"')

        with pytest.raises(DescriptorValidationError):
            DescriptorRegistry.from_file(path)
