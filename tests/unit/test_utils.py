"""
Unit tests for lanchat.utils module.

Tests utility functions for formatting, address parsing and validation.
"""

import pytest

from lanchat.errors import ValidationError
from lanchat.utils import (
    format_fingerprint,
    format_timestamp,
    parse_address,
    validate_hostname,
    validate_ip,
    validate_port,
)


class TestPortValidation:
    """Test port number validation."""

    def test_valid_ports(self):
        """Test that valid port numbers are accepted."""
        assert validate_port(1) is True
        assert validate_port(8888) is True
        assert validate_port(65535) is True

    def test_invalid_ports(self):
        """Test that invalid port numbers are rejected."""
        assert validate_port(0) is False
        assert validate_port(65536) is False
        assert validate_port(-1) is False
        assert validate_port(True) is False


class TestIPValidation:
    """Test IP address validation."""

    def test_valid_ips(self):
        """LAN, loopback and IPv6 literals are all acceptable destinations."""
        assert validate_ip("192.168.1.1") is True
        assert validate_ip("127.0.0.1") is True
        assert validate_ip("::1") is True
        assert validate_ip("2001:0db8:85a3:0000:0000:8a2e:0370:7334") is True

    def test_invalid_ips(self):
        """Test that invalid IP addresses are rejected."""
        assert validate_ip("256.1.1.1") is False
        assert validate_ip("not_an_ip") is False
        assert validate_ip("") is False


class TestHostnameValidation:
    """Test hostname validation."""

    def test_valid_hostnames(self):
        """Test that valid hostnames are accepted."""
        assert validate_hostname("localhost") is True
        assert validate_hostname("desk-pc.local") is True
        assert validate_hostname("example.com.") is True

    def test_invalid_hostnames(self):
        """Test that invalid hostnames are rejected."""
        assert validate_hostname("") is False
        assert validate_hostname(".") is False
        assert validate_hostname("-example.com") is False
        assert validate_hostname("bad host") is False
        assert validate_hostname("a" * 256) is False


class TestParseAddress:
    """Test destination parsing."""

    def test_host_only(self):
        assert parse_address("192.168.1.20", 8888) == ("192.168.1.20", 8888)

    def test_host_and_port(self):
        assert parse_address("192.168.1.20:9000", 8888) == ("192.168.1.20", 9000)
        assert parse_address(" localhost:1234 ", 8888) == ("localhost", 1234)

    def test_ipv6(self):
        assert parse_address("::1", 8888) == ("::1", 8888)
        assert parse_address("[::1]", 8888) == ("::1", 8888)
        assert parse_address("[fe80::1]:9000", 8888) == ("fe80::1", 9000)

    @pytest.mark.parametrize("address", [
        "",
        "   ",
        "host:",
        "host:abc",
        "host:70000",
        "host:0",
        "[::1",
        "[::1]9000",
        "bad host",
    ])
    def test_invalid(self, address):
        with pytest.raises(ValidationError):
            parse_address(address, 8888)


class TestStringUtilities:
    """Test string utility functions."""

    def test_format_fingerprint(self):
        """Test fingerprint formatting."""
        fp = "0123456789abcdef"
        result = format_fingerprint(fp)
        assert result == "0123 4567 89ab cdef"

    def test_format_timestamp_naive(self):
        assert format_timestamp("2025-01-01T13:14:15") == "13:14:15"
        assert format_timestamp("2025-01-01T13:14:15", "%Y-%m-%d") == "2025-01-01"

    def test_format_timestamp_invalid(self):
        assert format_timestamp("yesterday") == "yesterday"
