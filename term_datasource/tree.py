"""Build option lists (flat, grouped or indented) from term queries."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from .models import Term
from .store import TermStore, TermStoreError

LOGGER = logging.getLogger(__name__)

INDENT_MARKER = "--"


def indent_label(name: str, depth: int) -> str:
    """Prefix ``name`` with one ``--`` marker per level below the root."""
    if depth <= 0:
        return name
    return f"{INDENT_MARKER * depth} {name}"


class OptionTreeBuilder:
    """Turn term query results into ordered option entries.

    Entries are keyed by ``term_id`` or, with ``use_term_taxonomy_id``, by
    ``term_taxonomy_id``. Order is the order the store returned the terms in;
    nothing is re-sorted here.
    """

    def __init__(
        self,
        store: TermStore,
        taxonomies: Sequence[str],
        *,
        taxonomy_args: Optional[Mapping[str, Any]] = None,
        max_depth: int = 0,
        use_term_taxonomy_id: bool = False,
    ) -> None:
        self.store = store
        self.taxonomies = list(taxonomies)
        self.taxonomy_args: Dict[str, Any] = dict(taxonomy_args or {})
        self.max_depth = max(int(max_depth or 0), 0)
        self.use_term_taxonomy_id = use_term_taxonomy_id

    def key_for(self, term: Term) -> int:
        return term.term_taxonomy_id if self.use_term_taxonomy_id else term.term_id

    # -- Flat and grouped lists ----------------------------------------------------
    def flat_entries(self, fragment: Optional[str] = None) -> Dict[int, str]:
        return {self.key_for(term): term.name for term in self._flat_terms(fragment)}

    def grouped_entries(self, fragment: Optional[str] = None) -> Dict[str, Dict[int, str]]:
        """Group matching terms by taxonomy, groups ordered like :attr:`taxonomies`."""
        groups: Dict[str, Dict[int, str]] = {taxonomy: {} for taxonomy in self.taxonomies}
        for term in self._flat_terms(fragment):
            group = groups.get(term.taxonomy)
            if group is None:
                LOGGER.debug(
                    "Skipping term %s from unexpected taxonomy %s", term.term_id, term.taxonomy
                )
                continue
            group[self.key_for(term)] = term.name
        return groups

    def _flat_terms(self, fragment: Optional[str]) -> List[Term]:
        args = dict(self.taxonomy_args)
        if fragment:
            args["search"] = fragment
        return self._query(args)

    # -- Hierarchical list ---------------------------------------------------------
    def hierarchical_entries(self, fragment: Optional[str] = None) -> Dict[int, str]:
        """Walk the hierarchy from its roots and return indented entries.

        Without a ``parent`` or ``child_of`` argument the walk starts at the
        root terms. ``fragment`` filters every level of the walk.
        """
        args = dict(self.taxonomy_args)
        if "parent" not in args and "child_of" not in args:
            args["parent"] = 0
        if fragment:
            args["search"] = fragment
        roots = self._query(args)
        return self.build(roots, 0, {}, fragment)

    def build(
        self,
        terms: Sequence[Term],
        depth: int = 0,
        accumulated: Optional[Mapping[int, str]] = None,
        fragment: Optional[str] = None,
    ) -> Dict[int, str]:
        """Return ``accumulated`` extended with ``terms`` and their descendants.

        ``accumulated`` is copied, never modified.
        """
        entries: Dict[int, str] = dict(accumulated or {})
        for key, label in self._walk(terms, depth, fragment, set()):
            entries[key] = label
        return entries

    def _walk(
        self,
        terms: Sequence[Term],
        depth: int,
        fragment: Optional[str],
        visited: Set[int],
    ) -> List[Tuple[int, str]]:
        rows: List[Tuple[int, str]] = []
        for term in terms:
            if term.term_id in visited:
                LOGGER.warning(
                    "Term %s (%s) reached twice while walking %s; skipping the repeat",
                    term.term_id,
                    term.name,
                    ", ".join(self.taxonomies),
                )
                continue
            visited.add(term.term_id)
            rows.append((self.key_for(term), indent_label(term.name, depth)))

            if self.max_depth and depth + 1 >= self.max_depth:
                continue
            children = self._query(self._child_args(term, fragment))
            if children:
                rows.extend(self._walk(children, depth + 1, fragment, visited))
        return rows

    def _child_args(self, term: Term, fragment: Optional[str]) -> Dict[str, Any]:
        args = dict(self.taxonomy_args)
        args["parent"] = term.term_id
        if fragment:
            args["search"] = fragment
        return args

    def _query(self, args: Dict[str, Any]) -> List[Term]:
        try:
            return list(self.store.query_terms(self.taxonomies, args) or [])
        except TermStoreError as exc:
            LOGGER.error("Term query for %s failed: %s", ", ".join(self.taxonomies), exc)
            return []
