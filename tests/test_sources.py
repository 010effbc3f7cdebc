"""Tests for the crt.sh and AlienVault OTX sources."""

import logging
from unittest.mock import Mock

import pytest
import requests

from subscout.core.config import Config
from subscout.core.errors import SourceFetchError
from subscout.sources import (
    SOURCE_REGISTRY,
    AlienVaultOTXSource,
    BaseSource,
    CrtShSource,
    build_sources,
    register_source,
)


def make_response(status_code=200, payload=None, json_error=None):
    response = Mock()
    response.status_code = status_code
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    return response


def with_response(source, response=None, error=None):
    """Replace the source's HTTP session GET with a canned answer."""
    source.session.get = Mock(return_value=response, side_effect=error)
    return source


CRTSH_PAYLOAD = [
    {"issuer_name": "R3", "common_name": "example.com", "name_value": "example.com\nwww.example.com"},
    {"common_name": "*.example.com", "name_value": "*.example.com\nAPI.Example.com \n"},
    {"common_name": "mail.example.com", "name_value": "mail.example.com"},
    {"common_name": "other.org", "name_value": "other.org"},
    {"common_name": "no-names"},
]

OTX_PAYLOAD = {
    "passive_dns": [
        {"hostname": "www.example.com", "address": "93.184.216.34", "record_type": "A"},
        {"hostname": "VPN.example.com", "address": "93.184.216.35", "record_type": "A"},
        {"hostname": "unrelated.net", "address": "10.0.0.1", "record_type": "A"},
        {"address": "10.0.0.2"},
    ],
    "count": 4,
}


class TestCrtShSource:
    """Test the Certificate Transparency source."""

    def test_normalize(self, config):
        """Test names are split, trimmed, lowercased and suffix-filtered."""
        source = CrtShSource(config)
        names = source.normalize(CRTSH_PAYLOAD, "example.com")

        assert names == {
            "example.com",
            "www.example.com",
            "api.example.com",
            "mail.example.com",
        }

    def test_fetch_request(self, config):
        """Test the query URL, timeout and identifying headers."""
        source = with_response(CrtShSource(config), make_response(payload=[]))

        source.fetch("example.com")

        source.session.get.assert_called_once()
        args, kwargs = source.session.get.call_args
        assert args[0] == "https://crt.sh/?q=%25.example.com&output=json"
        assert kwargs["timeout"] == 15.0
        assert source.session.headers["User-Agent"] == "SubScout-Test/1.0"
        assert source.session.headers["Accept"] == "application/json"

    def test_run_success(self, config):
        source = with_response(CrtShSource(config), make_response(payload=CRTSH_PAYLOAD))

        result = source.run("example.com")

        assert result.ok
        assert result.source == "crtsh"
        assert "api.example.com" in result.subdomains
        assert result.duration_seconds is not None

    def test_non_object_payload_is_malformed(self, config):
        source = with_response(CrtShSource(config), make_response(payload={"error": "busy"}))

        with pytest.raises(SourceFetchError) as exc_info:
            source.fetch("example.com")
        assert exc_info.value.code == "SRC-004"

    def test_invalid_json(self, config):
        source = with_response(
            CrtShSource(config), make_response(json_error=ValueError("Expecting value"))
        )

        with pytest.raises(SourceFetchError) as exc_info:
            source.fetch("example.com")
        assert exc_info.value.code == "SRC-004"

    @pytest.mark.parametrize("status", [404, 429, 502, 503])
    def test_bad_status(self, config, status):
        source = with_response(CrtShSource(config), make_response(status_code=status))

        with pytest.raises(SourceFetchError) as exc_info:
            source.fetch("example.com")
        assert exc_info.value.code == "SRC-003"
        assert str(status) in str(exc_info.value)

    def test_timeout(self, config):
        source = with_response(CrtShSource(config), error=requests.exceptions.Timeout("read timed out"))

        with pytest.raises(SourceFetchError) as exc_info:
            source.fetch("example.com")
        assert exc_info.value.code == "SRC-002"
        assert exc_info.value.source == "crtsh"

    def test_run_isolates_failures(self, config):
        """Test run() reports failures instead of raising."""
        source = with_response(
            CrtShSource(config), error=requests.exceptions.ConnectionError("connection refused")
        )

        result = source.run("example.com")

        assert not result.ok
        assert result.subdomains == set()
        assert "SRC-001" in result.error

    def test_failure_logged_with_fields(self, config):
        """Test a failed fetch is logged with its source, domain and code."""
        source = with_response(CrtShSource(config), make_response(status_code=503))
        records = []
        handler = logging.Handler()
        handler.emit = records.append
        source.logger.addHandler(handler)
        try:
            source.run("example.com")
        finally:
            source.logger.removeHandler(handler)

        warnings = [r for r in records if r.levelno == logging.WARNING]
        assert warnings[0].extra_data == {"source": "crtsh", "domain": "example.com", "code": "SRC-003"}

    def test_run_isolates_unexpected_errors(self, config):
        source = CrtShSource(config)
        source.fetch = Mock(side_effect=RuntimeError("boom"))

        result = source.run("example.com")

        assert not result.ok
        assert "boom" in result.error

    def test_custom_url_template(self, config_file):
        config = Config(
            config_path=str(config_file),
            overrides={"sources": {"crtsh": {"url": "https://ct.internal/search?d={domain}"}}},
        )
        source = with_response(CrtShSource(config), make_response(payload=[]))

        source.fetch("example.com")

        assert source.session.get.call_args[0][0] == "https://ct.internal/search?d=example.com"
        assert source.is_enabled


class TestAlienVaultOTXSource:
    """Test the passive DNS source."""

    def test_normalize(self, config):
        source = AlienVaultOTXSource(config)
        names = source.normalize(OTX_PAYLOAD, "example.com")
        assert names == {"www.example.com", "vpn.example.com"}

    def test_fetch_request(self, config):
        source = with_response(AlienVaultOTXSource(config), make_response(payload=OTX_PAYLOAD))

        source.fetch("example.com")

        assert source.session.get.call_args[0][0] == (
            "https://otx.alienvault.com/api/v1/indicators/domain/example.com/passive_dns"
        )

    def test_missing_passive_dns_is_empty(self, config):
        source = with_response(AlienVaultOTXSource(config), make_response(payload={"count": 0}))

        result = source.run("example.com")

        assert result.ok
        assert result.subdomains == set()

    @pytest.mark.parametrize("payload", [
        ["www.example.com"],
        {"passive_dns": "www.example.com"},
    ])
    def test_malformed_payload(self, config, payload):
        source = with_response(AlienVaultOTXSource(config), make_response(payload=payload))

        result = source.run("example.com")

        assert not result.ok
        assert "SRC-004" in result.error

    def test_api_key_header(self, config_file, monkeypatch):
        monkeypatch.setenv("OTX_KEY", "secret-key")
        source = AlienVaultOTXSource(Config(config_path=str(config_file)))
        assert source.session.headers["X-OTX-API-KEY"] == "secret-key"

    def test_no_api_key_header_without_key(self, config_file, monkeypatch):
        monkeypatch.setenv("OTX_KEY", "")
        source = AlienVaultOTXSource(Config(config_path=str(config_file)))
        assert "X-OTX-API-KEY" not in source.session.headers


class TestSourceRegistry:
    """Test source registration and construction from config."""

    def test_builtin_sources_registered(self):
        assert SOURCE_REGISTRY["crtsh"] is CrtShSource
        assert SOURCE_REGISTRY["alienvault_otx"] is AlienVaultOTXSource

    def test_build_all_enabled(self, config):
        names = [source.name for source in build_sources(config)]
        assert names == ["crtsh", "alienvault_otx"]

    def test_disabled_source_skipped(self, config_file):
        config = Config(
            config_path=str(config_file),
            overrides={"sources": {"crtsh": {"enabled": False}}},
        )
        names = [source.name for source in build_sources(config)]
        assert names == ["alienvault_otx"]

    def test_unknown_source_skipped(self, config_file):
        config = Config(
            config_path=str(config_file),
            overrides={"sources": {"shodan": {"enabled": True}}},
        )
        names = [source.name for source in build_sources(config)]
        assert "shodan" not in names

    def test_registered_source_is_built(self, config_file, monkeypatch):
        """Test a new source plugs in without touching the aggregator."""
        registry = dict(SOURCE_REGISTRY)
        monkeypatch.setattr("subscout.sources.base.SOURCE_REGISTRY", registry)
        monkeypatch.setattr("subscout.sources.SOURCE_REGISTRY", registry)

        @register_source
        class HackerTargetSource(BaseSource):
            name = "hackertarget"

            def fetch(self, domain):
                return []

            def normalize(self, record, domain):
                return set()

        config = Config(
            config_path=str(config_file),
            overrides={"sources": {"hackertarget": {"enabled": True}}},
        )
        names = [source.name for source in build_sources(config)]
        assert names[-1] == "hackertarget"

    def test_duplicate_name_rejected(self):
        with pytest.raises(ValueError):
            @register_source
            class OtherCrtSh(BaseSource):
                name = "crtsh"

                def fetch(self, domain):
                    return []

                def normalize(self, record, domain):
                    return set()
