"""Term store interface plus an in-memory implementation.

The datasource never talks to a backend directly; everything it needs is
expressed by :class:`TermStore`. :class:`InMemoryTermStore` implements the
whole interface on plain dictionaries and is used by the test-suite and by
the command-line tools when ``term_store.backend`` is ``memory``.
"""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Set, Tuple

from .config import ConfigError, load_yaml
from .models import Term

LOGGER = logging.getLogger(__name__)

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class TermStoreError(RuntimeError):
    """Raised when the term store cannot complete a request."""


class TermStore(Protocol):
    def query_terms(
        self, taxonomies: Sequence[str], params: Optional[Mapping[str, Any]] = None
    ) -> List[Term]:
        ...

    def get_term(self, term_id: int, taxonomies: Optional[Sequence[str]] = None) -> Optional[Term]:
        ...

    def get_term_by_taxonomy_id(self, term_taxonomy_id: int) -> Optional[Term]:
        ...

    def get_term_by_name(self, name: str, taxonomy: str) -> Optional[Term]:
        ...

    def create_term(self, name: str, taxonomy: str, *, parent: int = 0) -> Term:
        ...

    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        ...

    def set_object_terms(
        self, object_id: int, taxonomy: str, term_ids: Sequence[int], *, append: bool = False
    ) -> List[int]:
        ...

    def get_term_link(self, term: Term) -> Optional[str]:
        ...

    def get_edit_term_link(self, term: Term) -> Optional[str]:
        ...


def slugify(name: str) -> str:
    return _SLUG_PATTERN.sub("-", name.lower()).strip("-")


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _id_list(value: Any) -> List[int]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        parts: Iterable[Any] = [part for part in value.split(",") if part.strip()]
    elif isinstance(value, (list, tuple, set)):
        parts = value
    else:
        parts = [value]
    ids: List[int] = []
    for part in parts:
        try:
            ids.append(int(part))
        except (TypeError, ValueError):
            LOGGER.debug("Ignoring non-numeric id %r in term query", part)
    return ids


class InMemoryTermStore:
    """Dictionary backed :class:`TermStore`."""

    def __init__(
        self,
        terms: Iterable[Term] = (),
        *,
        link_template: Optional[str] = None,
        edit_link_template: Optional[str] = None,
    ) -> None:
        self._terms: Dict[int, Term] = {}
        self._object_terms: Dict[Tuple[int, str], List[int]] = {}
        self._next_term_id = 1
        self._next_term_taxonomy_id = 1
        self.link_template = link_template
        self.edit_link_template = edit_link_template
        for term in terms:
            self.add_term(term)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]], **kwargs: Any) -> "InMemoryTermStore":
        return cls((Term.from_payload(dict(record)) for record in records), **kwargs)

    @classmethod
    def from_fixture(cls, path: Path, **kwargs: Any) -> "InMemoryTermStore":
        """Load terms and object assignments from a YAML fixture file.

        The file holds a ``terms`` list of term payloads and an optional
        ``object_terms`` list of ``{object_id, taxonomy, term_ids}`` entries.
        """
        data = load_yaml(path) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Term fixture {path} must contain a mapping")
        store = cls.from_records(data.get("terms") or [], **kwargs)
        for entry in data.get("object_terms") or []:
            store.set_object_terms(
                int(entry["object_id"]),
                str(entry["taxonomy"]),
                _id_list(entry.get("term_ids")),
                append=True,
            )
        LOGGER.info("Loaded %s terms from fixture %s", len(store), path)
        return store

    def __len__(self) -> int:
        return len(self._terms)

    def add_term(self, term: Term) -> Term:
        if term.term_id <= 0:
            raise ValueError("Terms added to the store need a positive term_id")
        if not term.term_taxonomy_id:
            term = Term(**{**term.as_payload(), "term_taxonomy_id": term.term_id})
        if not term.slug:
            term = Term(**{**term.as_payload(), "slug": slugify(term.name)})
        self._terms[term.term_id] = term
        self._next_term_id = max(self._next_term_id, term.term_id + 1)
        self._next_term_taxonomy_id = max(self._next_term_taxonomy_id, term.term_taxonomy_id + 1)
        return term

    # -- Reads -----------------------------------------------------------------
    def query_terms(
        self, taxonomies: Sequence[str], params: Optional[Mapping[str, Any]] = None
    ) -> List[Term]:
        params = dict(params or {})
        wanted = set(taxonomies)
        results = [term for term in self._terms.values() if term.taxonomy in wanted]

        if params.get("parent") is not None:
            parent = int(params["parent"])
            results = [term for term in results if term.parent == parent]
        if params.get("child_of") is not None:
            descendants = self._descendants(int(params["child_of"]))
            results = [term for term in results if term.term_id in descendants]

        search = str(params.get("search") or "").strip().lower()
        if search:
            results = [
                term
                for term in results
                if search in term.name.lower() or search in term.slug.lower()
            ]
        if params.get("name") is not None:
            results = [term for term in results if term.name == params["name"]]
        if _flag(params.get("hide_empty", False)):
            results = [term for term in results if self._usage(term) > 0]

        include = _id_list(params.get("include"))
        if include:
            allowed = set(include)
            results = [term for term in results if term.term_id in allowed]
        exclude = set(_id_list(params.get("exclude")))
        if exclude:
            results = [term for term in results if term.term_id not in exclude]

        orderby = str(params.get("orderby") or "none").lower()
        if orderby == "name":
            results.sort(key=lambda term: term.name.lower())
        elif orderby in {"id", "term_id"}:
            results.sort(key=lambda term: term.term_id)
        if str(params.get("order") or "ASC").upper() == "DESC":
            results.reverse()

        offset = int(params.get("offset") or 0)
        number = int(params.get("number") or 0)
        if offset:
            results = results[offset:]
        if number:
            results = results[:number]
        return results

    def get_term(self, term_id: int, taxonomies: Optional[Sequence[str]] = None) -> Optional[Term]:
        term = self._terms.get(term_id)
        if term is None:
            return None
        if taxonomies and term.taxonomy not in taxonomies:
            return None
        return term

    def get_term_by_taxonomy_id(self, term_taxonomy_id: int) -> Optional[Term]:
        for term in self._terms.values():
            if term.term_taxonomy_id == term_taxonomy_id:
                return term
        return None

    def get_term_by_name(self, name: str, taxonomy: str) -> Optional[Term]:
        for term in self._terms.values():
            if term.taxonomy == taxonomy and term.name == name:
                return term
        return None

    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        ids = self._object_terms.get((object_id, taxonomy), [])
        return [self._terms[term_id] for term_id in ids if term_id in self._terms]

    def get_term_link(self, term: Term) -> Optional[str]:
        if term.link:
            return term.link
        if self.link_template:
            return self.link_template.format(
                taxonomy=term.taxonomy, slug=term.slug, term_id=term.term_id
            )
        return None

    def get_edit_term_link(self, term: Term) -> Optional[str]:
        if term.edit_link:
            return term.edit_link
        if self.edit_link_template:
            return self.edit_link_template.format(
                taxonomy=term.taxonomy, slug=term.slug, term_id=term.term_id
            )
        return None

    # -- Writes ----------------------------------------------------------------
    def create_term(self, name: str, taxonomy: str, *, parent: int = 0) -> Term:
        text = (name or "").strip()
        if not text:
            raise TermStoreError("A name is required for this term")
        for term in self._terms.values():
            if term.taxonomy == taxonomy and term.parent == parent and term.name == text:
                raise TermStoreError(
                    f"A term with the name '{text}' already exists in {taxonomy} under parent {parent}"
                )
        term = Term(
            term_id=self._next_term_id,
            name=text,
            taxonomy=taxonomy,
            parent=parent,
            term_taxonomy_id=self._next_term_taxonomy_id,
            slug=slugify(text),
        )
        LOGGER.info("Created term %s '%s' in %s", term.term_id, text, taxonomy)
        return self.add_term(term)

    def set_object_terms(
        self, object_id: int, taxonomy: str, term_ids: Sequence[int], *, append: bool = False
    ) -> List[int]:
        key = (object_id, taxonomy)
        current = list(self._object_terms.get(key, [])) if append else []
        seen: Set[int] = set(current)
        for term_id in term_ids:
            term = self._terms.get(int(term_id))
            if term is None or term.taxonomy != taxonomy:
                LOGGER.warning(
                    "Ignoring term %s for object %s: not a %s term", term_id, object_id, taxonomy
                )
                continue
            if term.term_id not in seen:
                current.append(term.term_id)
                seen.add(term.term_id)
        self._object_terms[key] = current
        LOGGER.debug(
            "Object %s %s terms set to %s (append=%s)", object_id, taxonomy, current, append
        )
        return list(current)

    # -- Helpers ---------------------------------------------------------------
    def _descendants(self, ancestor_id: int) -> Set[int]:
        found: Set[int] = set()
        frontier = [ancestor_id]
        while frontier:
            parent = frontier.pop()
            for term in self._terms.values():
                if term.parent == parent and term.term_id not in found:
                    found.add(term.term_id)
                    frontier.append(term.term_id)
        found.discard(ancestor_id)
        return found

    def _usage(self, term: Term) -> int:
        assigned = sum(
            1
            for (_, taxonomy), ids in self._object_terms.items()
            if taxonomy == term.taxonomy and term.term_id in ids
        )
        return term.count + assigned
