"""
LanChat - Utility functions.

Provides formatting, address parsing and validation helpers.
"""

import ipaddress
import logging
import re
from datetime import datetime
from typing import Tuple

from .errors import ErrorCode, ValidationError

logger = logging.getLogger(__name__)

_HOSTNAME_PATTERN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def format_timestamp(iso_timestamp: str, format_str: str = "%H:%M:%S") -> str:
    """
    Format an ISO timestamp to a human-readable local time.

    Args:
        iso_timestamp: ISO 8601 timestamp string
        format_str: strftime format string

    Returns:
        Formatted timestamp string, or original if parsing fails
    """
    try:
        dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
        if dt.tzinfo is not None:
            dt = dt.astimezone()
        return dt.strftime(format_str)
    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Failed to parse timestamp '{iso_timestamp}': {e}")
        return iso_timestamp


def validate_port(port: int) -> bool:
    """
    Validate a destination port number.

    Args:
        port: Port number to validate

    Returns:
        True if valid, False otherwise
    """
    return isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535


def validate_ip(ip: str) -> bool:
    """
    Validate an IPv4 or IPv6 address literal.

    LAN chat talks to loopback and private addresses as a matter of
    course, so only syntax is checked.
    """
    try:
        ipaddress.ip_address(ip)
        return True
    except ValueError:
        return False


def validate_hostname(hostname: str) -> bool:
    """
    Validate a hostname.

    Args:
        hostname: Hostname string

    Returns:
        True if valid hostname, False otherwise
    """
    if not hostname or len(hostname) > 255:
        return False

    if hostname[-1] == ".":
        hostname = hostname[:-1]

    if not hostname:
        return False

    return bool(_HOSTNAME_PATTERN.match(hostname))


def parse_address(address: str, default_port: int) -> Tuple[str, int]:
    """
    Split a destination into host and port.

    Accepts "host", "host:port", "[v6addr]:port" and bare IPv6 literals.

    Args:
        address: Destination address string
        default_port: Port used when the address carries none

    Returns:
        (host, port) tuple

    Raises:
        ValidationError: If the address is empty or malformed
    """
    address = (address or "").strip()
    if not address:
        raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, "Destination address is empty")

    host, port_text = address, None
    if address.startswith("["):
        end = address.find("]")
        if end == -1:
            raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, f"Invalid address: {address}")
        host = address[1:end]
        rest = address[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, f"Invalid address: {address}")
            port_text = rest[1:]
    elif address.count(":") == 1:
        host, port_text = address.split(":")

    port = default_port
    if port_text is not None:
        try:
            port = int(port_text)
        except ValueError:
            raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, f"Invalid port in address: {address}")

    if not validate_port(port):
        raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, f"Port out of range: {port}")

    if not (validate_ip(host) or validate_hostname(host)):
        raise ValidationError(ErrorCode.E002_INVALID_ARGUMENT, f"Invalid host: {host}")

    return host, port


def format_fingerprint(fingerprint: str) -> str:
    """
    Format a fingerprint for display with spaces every 4 characters.

    Args:
        fingerprint: Hex fingerprint string

    Returns:
        Formatted fingerprint
    """
    return " ".join(fingerprint[i : i + 4] for i in range(0, len(fingerprint), 4))
