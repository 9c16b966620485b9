"""
Bibliographic metadata providers.

OpenBD answers in bulk; NDL, ISBNdb and Google Books are queried per record.
"""

from .google_books_provider import GoogleBooksProvider
from .isbndb_provider import ISBNdbProvider
from .ndl_provider import NDLProvider
from .openbd_provider import OpenBDProvider

__all__ = [
    "GoogleBooksProvider",
    "ISBNdbProvider",
    "NDLProvider",
    "OpenBDProvider",
]
