"""Expose taxonomy terms as field options and save selections back as terms."""
from __future__ import annotations

import json
import logging
import math
import re
import zlib
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from . import write_plan
from .fields import Field
from .models import FlatEntries, GroupedEntries, SubmissionContext, Term
from .options import DatasourceOptions
from .store import TermStore, TermStoreError
from .tree import OptionTreeBuilder

LOGGER = logging.getLogger(__name__)

OptionItems = Union[FlatEntries, GroupedEntries]
ValueFilter = Callable[[str, Optional[Term], "TermDatasource"], str]
ItemsFilter = Callable[[Dict[int, str], Optional[str], "TermDatasource"], Dict[int, str]]

# Prefix the search widget puts on a new term name that would otherwise look like an id.
NEW_TERM_MARKER = "="

_NUMERIC_PATTERN = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")
_INT_PREFIX_PATTERN = re.compile(r"^\s*([+-]?\d+)")
_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")


def is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, str):
        return bool(_NUMERIC_PATTERN.match(value))
    return False


def coerce_int(value: Any) -> int:
    """Integer value of ``value``.

    Numeric strings (``"1e3"``, ``".5"``) are read whole and truncated.
    Other strings use their leading digits; 0 when there are none.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        if _NUMERIC_PATTERN.match(value):
            number = float(value)
            return int(number) if math.isfinite(number) else 0
        match = _INT_PREFIX_PATTERN.match(value)
        return int(match.group(1)) if match else 0
    return 0


def is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and value == 0:
        return True
    if isinstance(value, str):
        return value in ("", "0")
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def sanitize_text(text: str) -> str:
    """Strip markup, collapse whitespace and trim."""
    text = _TAG_PATTERN.sub("", text)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


class TermDatasource:
    """Options for a field drawn from one or more taxonomies.

    ``value_filters`` run on every resolved display value and
    ``items_filters`` on flat option lists, letting callers adjust the
    output (translation, relabelling) without touching the lookups.
    """

    def __init__(
        self,
        store: TermStore,
        options: Optional[DatasourceOptions] = None,
        **kwargs: Any,
    ) -> None:
        if options is not None and kwargs:
            raise TypeError("Pass either a DatasourceOptions instance or keyword options, not both")
        self.store = store
        self.options = options if options is not None else DatasourceOptions(**kwargs)
        self.value_filters: List[ValueFilter] = []
        self.items_filters: List[ItemsFilter] = []
        self.builder = OptionTreeBuilder(
            store,
            self.get_taxonomies(),
            taxonomy_args=self.options.taxonomy_args,
            max_depth=self.options.taxonomy_hierarchical_depth,
            use_term_taxonomy_id=self.options.store_term_taxonomy_id,
        )

    def get_taxonomies(self) -> List[str]:
        return self.options.taxonomies

    def get_ajax_action(self) -> str:
        """Name the search endpoint after the options that shape the results.

        Identical configurations always give the same name. The hash is CRC32,
        chosen for speed; it makes no attempt to resist deliberate collisions.
        """
        if self.options.ajax_action:
            return self.options.ajax_action
        unique_key = json.dumps(
            self.options.taxonomy_args, sort_keys=True, separators=(",", ":"), default=str
        )
        unique_key += json.dumps(self.get_taxonomies(), separators=(",", ":"))
        unique_key += "1" if self.options.taxonomy_hierarchical else ""
        unique_key += str(self.options.taxonomy_hierarchical_depth)
        unique_key += f"{type(self).__module__}.{type(self).__qualname__}"
        return f"term_datasource_{zlib.crc32(unique_key.encode('utf-8'))}"

    # -- Options ---------------------------------------------------------------
    def get_items(self, fragment: Optional[str] = None) -> OptionItems:
        if self.options.taxonomy_hierarchical:
            return FlatEntries(self.builder.hierarchical_entries(fragment))
        if self.options.grouped_output:
            return GroupedEntries(self.builder.grouped_entries(fragment))

        entries = self.builder.flat_entries(fragment)
        for items_filter in self.items_filters:
            entries = items_filter(entries, fragment, self)
        return FlatEntries(entries)

    # -- Display values --------------------------------------------------------
    def get_value(self, value: Any) -> Optional[str]:
        """Translate a stored id into the term name, e.g. for autocomplete."""
        term_id = coerce_int(value)
        if term_id <= 0:
            return None

        term = self.get_term(term_id)
        name = term.name if term is not None else ""
        for value_filter in self.value_filters:
            name = value_filter(name, term, self)
        return name

    def get_term(self, term_id: int) -> Optional[Term]:
        """Look a term up by the configured id kind (term or term taxonomy id)."""
        try:
            if self.options.store_term_taxonomy_id:
                return self.store.get_term_by_taxonomy_id(term_id)
            return self.store.get_term(term_id, self.get_taxonomies())
        except TermStoreError as exc:
            LOGGER.error("Looking up term %s failed: %s", term_id, exc)
            return None

    def get_view_link(self, value: Any) -> str:
        term = self._term_for_link(value)
        if term is None:
            return ""
        try:
            return self.store.get_term_link(term) or ""
        except TermStoreError as exc:
            LOGGER.error("Building the view link for term %s failed: %s", term.term_id, exc)
            return ""

    def get_edit_link(self, value: Any) -> str:
        term = self._term_for_link(value)
        if term is None:
            return ""
        try:
            return self.store.get_edit_term_link(term) or ""
        except TermStoreError as exc:
            LOGGER.error("Building the edit link for term %s failed: %s", term.term_id, exc)
            return ""

    def _term_for_link(self, value: Any) -> Optional[Term]:
        term_id = coerce_int(value)
        return self.get_term(term_id) if term_id > 0 else None

    # -- Saving ----------------------------------------------------------------
    def presave(self, field: Field, value: Any, current_value: Any = None) -> Any:
        return value if is_empty(value) else coerce_int(value)

    def presave_alter_values(
        self,
        field: Field,
        values: Any,
        current_values: Any = None,
        context: Optional[SubmissionContext] = None,
        *,
        create_missing: bool = True,
    ) -> List[Any]:
        """Resolve submitted values to term ids and queue them for saving.

        Values may mix existing ids and, for fields without exact matching,
        names of terms to find or create. Names that cannot be created are
        dropped, as are unknown names when ``create_missing`` is False. The
        returned list is what the field itself stores; it is empty when the
        field only saves to the taxonomy.
        """
        if isinstance(values, (list, tuple)):
            values = list(values)
        else:
            values = [values]

        if field.allows_free_text:
            taxonomy = self.get_taxonomies()[0]
            resolved: List[Any] = []
            for value in values:
                if not isinstance(value, str) or is_numeric(value):
                    resolved.append(value)
                    continue
                term_key = self._find_or_create(value, taxonomy, create_missing=create_missing)
                if term_key is not None:
                    resolved.append(term_key)
            values = resolved

        if self.options.taxonomy_save_to_terms and values:
            tax_values: List[Any] = []
            for value in values:
                if is_empty(value):
                    continue
                if is_numeric(value):
                    tax_values.append(value)
                elif isinstance(value, (list, tuple)):
                    tax_values.extend(item for item in value if is_numeric(item))
            self.pre_save_taxonomy(tax_values, context, field=field)

        if self.options.only_save_to_taxonomy:
            if not values and not self.options.append_taxonomy:
                self.pre_save_taxonomy([], context, field=field)
            return []
        return values

    def _find_or_create(self, raw: str, taxonomy: str, *, create_missing: bool = True) -> Optional[int]:
        text = raw[len(NEW_TERM_MARKER):] if raw.startswith(NEW_TERM_MARKER) else raw
        name = sanitize_text(text)
        if not name:
            LOGGER.debug("Dropping empty term name %r", raw)
            return None
        try:
            term = self.store.get_term_by_name(name, taxonomy)
        except TermStoreError as exc:
            LOGGER.warning("Dropping '%s': looking it up in %s failed: %s", name, taxonomy, exc)
            return None
        if term is None and not create_missing:
            LOGGER.info("Skipping '%s': no such term in %s and creation is disabled", name, taxonomy)
            return None
        if term is None:
            try:
                term = self.store.create_term(name, taxonomy)
            except TermStoreError as exc:
                LOGGER.warning("Dropping '%s': it could not be created in %s: %s", name, taxonomy, exc)
                return None
        return self.builder.key_for(term)

    def pre_save_taxonomy(
        self,
        tax_values: Sequence[Any],
        context: Optional[SubmissionContext],
        *,
        field: Optional[Field] = None,
    ) -> None:
        """Queue ``tax_values`` in the submission's write plan."""
        keys: List[int] = []
        for value in tax_values:
            key = coerce_int(value)
            if key > 0 and key not in keys:
                keys.append(key)
        term_ids = self._to_term_ids(keys)
        LOGGER.debug(
            "Field %s contributes terms %s to %s",
            field.name if field is not None else "<unnamed>",
            term_ids,
            ", ".join(self.get_taxonomies()),
        )
        write_plan.contribute(
            context,
            self.get_taxonomies(),
            term_ids,
            self.options.append_taxonomy,
            lookup=self._lookup_term_id,
        )

    def _to_term_ids(self, keys: List[int]) -> List[int]:
        if not self.options.store_term_taxonomy_id:
            return keys
        term_ids: List[int] = []
        for key in keys:
            term = self.get_term(key)
            if term is None:
                LOGGER.warning("Dropping term taxonomy id %s: no matching term", key)
                continue
            term_ids.append(term.term_id)
        return term_ids

    def _lookup_term_id(self, term_id: int) -> Optional[Term]:
        try:
            return self.store.get_term(term_id, self.get_taxonomies())
        except TermStoreError as exc:
            LOGGER.error("Looking up term %s failed: %s", term_id, exc)
            return None

    # -- Loading ---------------------------------------------------------------
    def preload_alter_values(self, field: Field, values: Any, object_id: Optional[int]) -> Any:
        """Load values kept only as object terms back into the field."""
        if not self.options.only_save_to_taxonomy:
            return values
        if object_id is None:
            return []
        taxonomy = self.get_taxonomies()[0]
        try:
            terms = self.store.get_object_terms(object_id, taxonomy)
        except TermStoreError as exc:
            LOGGER.error("Loading %s terms for object %s failed: %s", taxonomy, object_id, exc)
            return []
        if not terms:
            return []
        keys = [self.builder.key_for(term) for term in terms]
        if field.single_valued:
            return keys[0]
        return keys
