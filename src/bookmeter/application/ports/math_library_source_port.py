"""MathLibrarySourcePort — raw text of the math library's holdings lists."""

from __future__ import annotations

from typing import List, Protocol, runtime_checkable


@runtime_checkable
class MathLibrarySourcePort(Protocol):
    async def fetch_texts(self) -> List[str]:
        """Extracted text of every holdings list that could be read."""
        ...

    async def close(self) -> None: ...
