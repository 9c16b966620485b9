"""Key-level comparison between a stored catalog and a freshly enriched one."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bookmeter.domain.book import BIBLIOGRAPHIC_FIELDS, BookRecord, Catalog
from bookmeter.domain.library import LIBRARY_TAGS

COMPARED_FIELDS = ("identifier", *BIBLIOGRAPHIC_FIELDS, "description", "mathlib_opac_link")


@dataclass(frozen=True)
class FieldChange:
    name: str
    before: Any
    after: Any


@dataclass
class CatalogDiff:
    """
    Partition of the union of keys of two catalogs.

    Every key lands in exactly one of added, removed, changed or unchanged.
    """

    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    changed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    field_changes: Dict[str, List[FieldChange]] = field(default_factory=dict)
    previous_missing: bool = False
    forced: bool = False

    @property
    def has_changes(self) -> bool:
        return (
            self.forced
            or self.previous_missing
            or bool(self.added or self.removed or self.changed)
        )

    def summary(self) -> str:
        if self.previous_missing:
            return f"no previous catalog; {len(self.added)} records to write"
        text = (
            f"+{len(self.added)} -{len(self.removed)} "
            f"~{len(self.changed)} ={len(self.unchanged)}"
        )
        if self.forced:
            text += " (comparison skipped)"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": list(self.added),
            "removed": list(self.removed),
            "changed": list(self.changed),
            "unchanged": list(self.unchanged),
            "previous_missing": self.previous_missing,
            "forced": self.forced,
            "has_changes": self.has_changes,
            "field_changes": {
                key: [{"field": c.name, "before": c.before, "after": c.after} for c in changes]
                for key, changes in self.field_changes.items()
            },
        }


def record_changes(before: BookRecord, after: BookRecord) -> List[FieldChange]:
    changes: List[FieldChange] = []
    for name in COMPARED_FIELDS:
        old, new = getattr(before, name), getattr(after, name)
        if old != new:
            changes.append(FieldChange(name, old, new))
    for tag in LIBRARY_TAGS:
        old_holding, new_holding = before.holding(tag), after.holding(tag)
        if old_holding != new_holding:
            changes.append(FieldChange(f"holdings.{tag}", old_holding, new_holding))
    return changes


def diff_catalogs(
    previous: Optional[Catalog],
    current: Catalog,
    *,
    skip_comparison: bool = False,
) -> CatalogDiff:
    """
    Compare ``current`` against ``previous``.

    A missing previous catalog (first run) puts every current key in ``added``
    and always reports changes, as does ``skip_comparison``.
    """
    if previous is None:
        return CatalogDiff(
            added=sorted(current),
            previous_missing=True,
            forced=skip_comparison,
        )

    diff = CatalogDiff(forced=skip_comparison)
    for key in sorted(set(previous) | set(current)):
        if key not in previous:
            diff.added.append(key)
        elif key not in current:
            diff.removed.append(key)
        else:
            changes = record_changes(previous[key], current[key])
            if changes:
                diff.changed.append(key)
                diff.field_changes[key] = changes
            else:
                diff.unchanged.append(key)
    return diff
