"""Exception hierarchy shared by every layer."""

from __future__ import annotations

from typing import Optional


class BookmeterError(Exception):
    """Base class for errors raised by bookmeter."""


class InvalidIdentifierError(BookmeterError, ValueError):
    def __init__(self, identifier: Optional[str]):
        self.identifier = identifier
        super().__init__(f"not a convertible ISBN: {identifier!r}")


class TransportError(BookmeterError):
    """An HTTP request failed or returned an unusable status."""

    def __init__(self, message: str, *, url: str = "", status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(message)


class ProviderError(BookmeterError):
    """A metadata or holdings lookup could not be completed."""

    def __init__(self, source: str, identifier: str, status: str = ""):
        self.source = source
        self.identifier = identifier
        self.status = status
        super().__init__(f"{source} lookup failed for {identifier}: {status}".rstrip(": "))


class PersistenceError(BookmeterError):
    """A catalog write was rolled back."""

    def __init__(self, operation: str, table: str, reason: str = ""):
        self.operation = operation
        self.table = table
        self.reason = reason
        super().__init__(f"{operation} on table {table!r} failed: {reason}")


class ConfigError(BookmeterError, ValueError):
    """Invalid or incomplete configuration."""
