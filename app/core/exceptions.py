"""
Custom Exceptions

This module defines custom exceptions for the affiliate redirect service.

Services raise these; admin endpoints translate them into HTTP status codes,
while the redirect endpoint maps every failure to a safe fallback redirect.
"""


class AffiliateRedirectException(Exception):
    """Base exception for the affiliate redirect service."""
    pass


class InvalidURLError(AffiliateRedirectException):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL format"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class PartnerNotFoundError(AffiliateRedirectException):
    """Raised when an affiliate partner does not exist."""

    def __init__(self, partner_id: int):
        self.partner_id = partner_id
        super().__init__(f"Partner '{partner_id}' not found")


class InvalidIPAddressError(AffiliateRedirectException):
    """Raised when an IP address or CIDR range cannot be parsed."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid IP address or range: {value}")


class DatabaseError(AffiliateRedirectException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
