"""Collect term selections from several fields and save them once per taxonomy."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .models import SubmissionContext, TaxonomyWrite, Term
from .store import TermStore, TermStoreError

LOGGER = logging.getLogger(__name__)

TermLookup = Callable[[int], Optional[Term]]


def contribute(
    context: Optional[SubmissionContext],
    taxonomies: Sequence[str],
    term_ids: Iterable[int],
    append: bool,
    *,
    lookup: Optional[TermLookup] = None,
) -> None:
    """Add one field's selection to the shared write plan.

    A taxonomy's append flag is the AND of every contributing field's flag:
    one field asking to replace makes the whole taxonomy replace. With more
    than one taxonomy each id is routed to the taxonomy of its own term,
    found through ``lookup``.
    """
    plan = context.write_plan if context is not None else None
    if plan is None:
        LOGGER.debug("No write plan available; discarding terms for %s", ", ".join(taxonomies))
        return
    if not taxonomies:
        return

    for taxonomy in taxonomies:
        entry = plan.get(taxonomy)
        if entry is None:
            plan.taxonomies[taxonomy] = TaxonomyWrite(term_ids=[], append=bool(append))
        else:
            entry.append = entry.append and bool(append)

    term_ids = list(term_ids)
    if len(taxonomies) == 1:
        plan.taxonomies[taxonomies[0]].term_ids.extend(term_ids)
        return

    if lookup is None:
        raise ValueError("A term lookup is required to route terms across several taxonomies")
    for term_id in term_ids:
        term = lookup(term_id)
        if term is None:
            LOGGER.warning("Dropping term %s: it could not be found", term_id)
            continue
        entry = plan.get(term.taxonomy)
        if entry is None:
            LOGGER.warning(
                "Dropping term %s: taxonomy %s is not one of %s",
                term_id,
                term.taxonomy,
                ", ".join(taxonomies),
            )
            continue
        entry.term_ids.append(term_id)


def _unique(term_ids: Iterable[int]) -> List[int]:
    seen = set()
    unique: List[int] = []
    for term_id in term_ids:
        if term_id not in seen:
            seen.add(term_id)
            unique.append(term_id)
    return unique


def flush(context: SubmissionContext, store: TermStore) -> Dict[str, bool]:
    """Save every taxonomy in the plan and discard the plan.

    Returns whether each taxonomy was saved. A store failure is logged and
    does not stop the remaining taxonomies from being saved.
    """
    plan = context.write_plan
    if plan is None:
        LOGGER.debug("Write plan already flushed or missing; nothing to save")
        return {}
    if context.object_id is None:
        raise ValueError("SubmissionContext.object_id is required to save terms")

    results: Dict[str, bool] = {}
    for taxonomy, entry in plan.taxonomies.items():
        term_ids = _unique(entry.term_ids)
        try:
            store.set_object_terms(context.object_id, taxonomy, term_ids, append=entry.append)
        except TermStoreError as exc:
            LOGGER.error(
                "Saving %s terms %s for object %s failed: %s",
                taxonomy,
                term_ids,
                context.object_id,
                exc,
            )
            results[taxonomy] = False
            continue
        LOGGER.info(
            "Saved %s %s terms for object %s (append=%s)",
            len(term_ids),
            taxonomy,
            context.object_id,
            entry.append,
        )
        results[taxonomy] = True
    context.write_plan = None
    return results
