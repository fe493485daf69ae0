"""Data containers shared by the option builder, the datasource and the stores."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class Term:
    """A single label inside a taxonomy."""

    term_id: int
    name: str
    taxonomy: str
    parent: int = 0
    term_taxonomy_id: int = 0
    slug: str = ""
    count: int = 0
    link: Optional[str] = None
    edit_link: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Term":
        term_id = _as_int(payload.get("term_id", payload.get("id")))
        return cls(
            term_id=term_id,
            name=str(payload.get("name") or ""),
            taxonomy=str(payload.get("taxonomy") or ""),
            parent=_as_int(payload.get("parent")),
            term_taxonomy_id=_as_int(payload.get("term_taxonomy_id"), term_id),
            slug=str(payload.get("slug") or ""),
            count=_as_int(payload.get("count")),
            link=payload.get("link") or None,
            edit_link=payload.get("edit_link") or None,
        )

    def as_payload(self) -> Dict[str, Any]:
        return {
            "term_id": self.term_id,
            "name": self.name,
            "taxonomy": self.taxonomy,
            "parent": self.parent,
            "term_taxonomy_id": self.term_taxonomy_id,
            "slug": self.slug,
            "count": self.count,
            "link": self.link,
            "edit_link": self.edit_link,
        }


@dataclass
class FlatEntries:
    """Option entries keyed by term id (or term taxonomy id), in query order."""

    entries: Dict[int, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def is_empty(self) -> bool:
        return not self.entries


@dataclass
class GroupedEntries:
    """Option entries split into one group per taxonomy."""

    groups: Dict[str, Dict[int, str]] = field(default_factory=dict)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self.groups.values())

    def is_empty(self) -> bool:
        return len(self) == 0


@dataclass
class TaxonomyWrite:
    """Pending association for one taxonomy: the ids to set and the append policy."""

    term_ids: List[int] = field(default_factory=list)
    append: bool = False


@dataclass
class WritePlan:
    taxonomies: Dict[str, TaxonomyWrite] = field(default_factory=dict)

    def get(self, taxonomy: str) -> Optional[TaxonomyWrite]:
        return self.taxonomies.get(taxonomy)

    def __contains__(self, taxonomy: object) -> bool:
        return taxonomy in self.taxonomies


@dataclass
class SubmissionContext:
    """Owns the write plan for one save of a group of fields.

    Created by the outermost caller and passed to every field's presave so
    all contributions land in the same plan. ``write_plan`` is ``None`` once
    the plan has been flushed.
    """

    object_id: Optional[int] = None
    write_plan: Optional[WritePlan] = field(default_factory=WritePlan)
