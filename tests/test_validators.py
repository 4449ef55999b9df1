"""
Tests for input validators: URLs, short codes, session ids and IP addresses.
"""

import ipaddress

import pytest

from app.core.exceptions import InvalidIPAddressError
from app.core.validators import (
    anonymize_ip,
    is_valid_url,
    is_well_formed_session_id,
    normalize_ip,
    parse_ip_or_network,
    sanitize_short_code,
)


class TestURLValidation:
    """Test URL validation function."""

    def test_valid_urls(self):
        """Test that valid URLs are accepted."""
        valid_urls = [
            "http://example.com",
            "https://example.com",
            "https://www.example.com/path/to/page",
            "http://subdomain.example.com:8080/path?query=value",
            "http://localhost:8000/product",
        ]
        for url in valid_urls:
            assert is_valid_url(url), f"Should be valid: {url}"

    def test_invalid_urls(self):
        """Test that invalid URLs are rejected."""
        invalid_urls = [
            "not-a-url",
            "ftp://example.com",  # FTP not supported
            "example.com",  # Missing scheme
            "",
            "http://",  # Missing domain
            "javascript:alert(1)",
            "https://example.com/?next=javascript:alert(1)",
        ]
        for url in invalid_urls:
            assert not is_valid_url(url), f"Should be invalid: {url}"

    def test_overlong_url_rejected(self):
        assert not is_valid_url("https://example.com/" + "a" * 3000)


class TestShortCodeSanitization:

    def test_accepts_affiliate_and_random_codes(self):
        assert sanitize_short_code("abc123") == "abc123"
        assert sanitize_short_code("bh-acme-dnak-x7k2") == "bh-acme-dnak-x7k2"

    def test_strips_whitespace(self):
        assert sanitize_short_code("  abc123 ") == "abc123"

    def test_rejects_malformed_codes(self):
        """Path traversal, SQL fragments and oversize codes never reach the store."""
        for code in ["", "   ", "../etc/passwd", "abc'; DROP TABLE", "a b", "x" * 65, None]:
            assert sanitize_short_code(code) is None, f"Should be rejected: {code!r}"


class TestSessionIdFormat:

    def test_issued_tokens_are_well_formed(self):
        assert is_well_formed_session_id("Zt3q0yJ8o1bXcA_-9kLmNw")

    def test_rejects_short_or_tampered_values(self):
        for value in [None, "", "short", "has spaces in it and is long enough", "a" * 129, "abc;def=ghi-jklmnopqrstuv"]:
            assert not is_well_formed_session_id(value), f"Should be rejected: {value!r}"


class TestIPParsing:

    def test_single_address_becomes_host_network(self):
        assert parse_ip_or_network("203.0.113.7") == ipaddress.ip_network("203.0.113.7/32")
        assert parse_ip_or_network("2001:db8::1") == ipaddress.ip_network("2001:db8::1/128")

    def test_cidr_range_with_host_bits(self):
        assert parse_ip_or_network("10.1.2.3/8") == ipaddress.ip_network("10.0.0.0/8")

    @pytest.mark.parametrize("value", ["", "unknown", "300.1.1.1", "10.0.0.0/33"])
    def test_invalid_values_raise(self, value):
        with pytest.raises(InvalidIPAddressError):
            parse_ip_or_network(value)


class TestIPNormalization:

    def test_addresses_are_canonical(self):
        assert normalize_ip("203.0.113.7") == "203.0.113.7"
        assert normalize_ip(" 2001:DB8::0:1 ") == "2001:db8::1"

    @pytest.mark.parametrize("value", [None, "", "unknown", "203.0.113.7/24", "a" * 300])
    def test_non_addresses_become_unknown(self, value):
        assert normalize_ip(value) == "unknown"


class TestIPAnonymization:

    def test_ipv4_keeps_first_three_octets(self):
        assert anonymize_ip("203.0.113.77") == "203.0.113.0"

    def test_ipv6_keeps_first_64_bits(self):
        assert anonymize_ip("2001:db8:1:2:3:4:5:6") == "2001:db8:1:2::"

    def test_non_addresses_unchanged(self):
        assert anonymize_ip("unknown") == "unknown"
