from __future__ import annotations

import re
from enum import Enum
from typing import List, Optional

from bookmeter.domain.errors import InvalidIdentifierError


_ISBN10_RE = re.compile(
    r"^(?:ISBN(?:-10)?:? )?"
    r"(?=[0-9X]{10}$|(?=(?:[0-9]+[- ]){3})[- 0-9X]{13}$)"
    r"[0-9]{1,5}[- ]?[0-9]+[- ]?[0-9]+[- ]?[0-9X]$"
)
_ISBN13_RE = re.compile(
    r"^(?:ISBN(?:-13)?:? )?"
    r"(?=[0-9]{13}$|(?=(?:[0-9]+[- ]){4})[- 0-9]{17}$)"
    r"97[89][- ]?[0-9]{1,5}[- ]?[0-9]+[- ]?[0-9]+[- ]?[0-9]$"
)
_STORE_CODE_RE = re.compile(r"^[A-Z0-9]{10}$")
_STORE_LINK_RE = re.compile(r"/(?:dp|gp/product|product|ASIN)/([A-Z0-9]{10})(?:[/?#]|$)")
_STORE_CODE_SEARCH_RE = re.compile(r"[A-Z0-9]{10}|[0-9-]{9,16}[0-9X]")

# Hyphens between digits are collapsed before scanning free text.
_DIGIT_HYPHEN_RE = re.compile(r"(?<=[0-9])[-‐‑‒–−](?=[0-9X])")
_FREE_TEXT_ISBN_RE = re.compile(r"(?<![0-9])(?:97[89][0-9]{10}|[0-9]{9}[0-9X])(?![0-9X])")


class IdentifierKind(str, Enum):
    """What a raw identifier string looks like."""

    ISBN10 = "isbn10"
    ISBN13 = "isbn13"
    STORE_CODE = "store_code"
    INVALID = "invalid"


def normalize_isbn(value: str | None) -> str:
    """Strip an optional ``ISBN`` prefix, separators and whitespace."""
    text = (value or "").strip().upper()
    text = re.sub(r"^ISBN(?:-1[03])?:?\s*", "", text)
    return re.sub(r"[- ]", "", text)


def is_isbn10(value: str | None) -> bool:
    text = (value or "").strip().upper()
    return bool(text) and _ISBN10_RE.match(text) is not None


def is_isbn13(value: str | None) -> bool:
    text = (value or "").strip().upper()
    return bool(text) and _ISBN13_RE.match(text) is not None


def is_isbn(value: str | None) -> bool:
    return is_isbn10(value) or is_isbn13(value)


def is_store_code(value: str | None) -> bool:
    """True for an online-store product code that is not also an ISBN."""
    text = (value or "").strip()
    if not text or is_isbn(text):
        return False
    return _STORE_CODE_RE.match(text) is not None


def classify_identifier(value: str | None) -> IdentifierKind:
    if is_isbn10(value):
        return IdentifierKind.ISBN10
    if is_isbn13(value):
        return IdentifierKind.ISBN13
    if is_store_code(value):
        return IdentifierKind.STORE_CODE
    return IdentifierKind.INVALID


def _isbn13_check_digit(first_twelve: str) -> str:
    total = sum(int(ch) * (1 if i % 2 == 0 else 3) for i, ch in enumerate(first_twelve))
    return str((10 - total % 10) % 10)


def _isbn10_check_digit(first_nine: str) -> str:
    total = sum(int(ch) * (10 - i) for i, ch in enumerate(first_nine))
    check = (11 - total % 11) % 11
    return "X" if check == 10 else str(check)


def to_isbn13(value: str) -> str:
    """
    Convert an ISBN-10 to its ISBN-13 form.

    An ISBN-13 input is returned normalized. Anything else raises
    InvalidIdentifierError.
    """
    if is_isbn13(value):
        return normalize_isbn(value)
    if not is_isbn10(value):
        raise InvalidIdentifierError(value)
    body = "978" + normalize_isbn(value)[:9]
    return body + _isbn13_check_digit(body)


def to_isbn10(value: str) -> Optional[str]:
    """ISBN-10 form of a 978-prefixed ISBN-13; None when there is none."""
    if is_isbn10(value):
        return normalize_isbn(value)
    if not is_isbn13(value):
        return None
    digits = normalize_isbn(value)
    if not digits.startswith("978"):
        return None
    body = digits[3:12]
    return body + _isbn10_check_digit(body)


def is_domestic_isbn(value: str | None) -> bool:
    """Japanese-registrant ISBN (group 4)."""
    if is_isbn10(value):
        return normalize_isbn(value).startswith("4")
    if is_isbn13(value):
        return normalize_isbn(value).startswith("9784")
    return False


def extract_isbns(text: str | None) -> List[str]:
    """Return normalized ISBNs found in free text, in order of appearance, without duplicates."""
    if not text:
        return []
    collapsed = _DIGIT_HYPHEN_RE.sub("", text)
    seen = set()
    found: List[str] = []
    for match in _FREE_TEXT_ISBN_RE.finditer(collapsed):
        candidate = match.group(0)
        if not is_isbn(candidate) or candidate in seen:
            continue
        seen.add(candidate)
        found.append(candidate)
    return found


def extract_store_code(url: str | None) -> Optional[str]:
    """Pull the product code out of an online-store link."""
    text = (url or "").strip()
    if not text:
        return None
    match = _STORE_LINK_RE.search(text)
    if match:
        return match.group(1)
    match = _STORE_CODE_SEARCH_RE.search(text.rsplit("/", 1)[-1] or text)
    if match:
        return match.group(0)
    return None
