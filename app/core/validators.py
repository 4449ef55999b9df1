"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

Security Considerations:
- Input validation prevents injection attacks
- Length limits prevent DoS attacks
- Cookie values from the client are never trusted without a format check
"""

import ipaddress
import re
from typing import Optional, Union
from urllib.parse import urlparse

from app.core.exceptions import InvalidIPAddressError

SHORT_CODE_PATTERN = re.compile(r'^[0-9a-zA-Z-]+$')
SESSION_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{22,128}$')

MAX_SHORT_CODE_LENGTH = 64
MAX_URL_LENGTH = 2048
MAX_IP_LENGTH = 45
UNKNOWN_IP = "unknown"


def sanitize_short_code(short_code: str) -> Optional[str]:
    """
    Sanitize and validate short code format.

    Affiliate short codes are lowercase alphanumerics joined by hyphens
    (e.g. 'bh-acme-dna1-x7k2'); random codes are plain alphanumerics.

    Args:
        short_code: The short code to sanitize

    Returns:
        Sanitized short code if valid, None otherwise
    """
    if not short_code or not isinstance(short_code, str):
        return None

    short_code = short_code.strip()

    if not short_code or len(short_code) > MAX_SHORT_CODE_LENGTH:
        return None

    if not SHORT_CODE_PATTERN.match(short_code):
        return None

    return short_code


def is_well_formed_session_id(value: Optional[str]) -> bool:
    """
    Check that a session cookie value looks like one we issued.

    Session ids are URL-safe tokens with at least 128 bits of entropy.
    Anything else (tampered, truncated, empty) is treated as absent.
    """
    if not value or not isinstance(value, str):
        return False
    return bool(SESSION_ID_PATTERN.match(value))


def is_valid_url(url: str) -> bool:
    """
    Validate URL format and security.

    Checks that URL uses http/https, has valid domain, and doesn't contain
    malicious patterns. Prevents javascript:, file:, and other dangerous schemes.

    Args:
        url: The URL string to validate

    Returns:
        True if valid and safe, False otherwise
    """
    if not url or not isinstance(url, str):
        return False

    if len(url) > MAX_URL_LENGTH:
        return False

    try:
        result = urlparse(url)

        if not result.scheme or not result.netloc:
            return False

        if result.scheme.lower() not in {'http', 'https'}:
            return False

        domain = result.netloc.split(':')[0]
        if domain != 'localhost' and '.' not in domain:
            return False

        malicious_patterns = ['javascript:', 'data:', 'file:', 'vbscript:']
        url_lower = url.lower()
        if any(pattern in url_lower for pattern in malicious_patterns):
            return False

        return True
    except ValueError:
        return False


def parse_ip_or_network(
    value: str
) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
    """
    Parse a single IP address or CIDR range into a network.

    A bare address becomes a /32 (or /128) network so block list entries
    can be matched uniformly.

    Raises:
        InvalidIPAddressError: If the value is not an address or range
    """
    if not value or not isinstance(value, str):
        raise InvalidIPAddressError(str(value))
    try:
        return ipaddress.ip_network(value.strip(), strict=False)
    except ValueError:
        raise InvalidIPAddressError(value)


def normalize_ip(value: Optional[str]) -> str:
    """
    Return the canonical form of an IP address, or 'unknown'.

    Client addresses come from request headers, so anything that does not
    parse (or would not fit a 45-char column) is replaced.
    """
    if not value:
        return UNKNOWN_IP
    try:
        address = str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return UNKNOWN_IP
    return address if len(address) <= MAX_IP_LENGTH else UNKNOWN_IP


def anonymize_ip(ip: str) -> str:
    """
    Anonymize an IP address for storage.

    IPv4 keeps the first three octets, IPv6 keeps the first 64 bits.
    Values that are not IP addresses (e.g. 'unknown') are returned unchanged.
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return ip

    prefix = 24 if address.version == 4 else 64
    network = ipaddress.ip_network(f"{address}/{prefix}", strict=False)
    return str(network.network_address)
