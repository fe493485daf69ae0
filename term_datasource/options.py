"""Configuration for a :class:`~term_datasource.datasource.TermDatasource`."""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import ConfigError


@dataclass
class DatasourceOptions:
    """Options controlling how terms are listed and saved.

    ``taxonomy`` accepts a single taxonomy name or a list of names; the
    normalised list is available as :attr:`taxonomies`.
    """

    taxonomy: Union[str, List[str], None] = None
    # Extra query arguments passed to every term query.
    taxonomy_args: Dict[str, Any] = field(default_factory=dict)
    # Indent child terms below their parents instead of listing them flat.
    taxonomy_hierarchical: bool = False
    # How far to descend into the hierarchy (0 for no limit).
    taxonomy_hierarchical_depth: int = 0
    append_taxonomy: bool = False
    # Also record selections as object/term associations.
    taxonomy_save_to_terms: bool = True
    # Only record selections as object/term associations; the field value itself stays empty.
    only_save_to_taxonomy: bool = False
    # Key options by term_taxonomy_id instead of term_id.
    store_term_taxonomy_id: bool = False
    grouped: bool = False
    allow_optgroups: bool = True
    use_ajax: bool = True
    ajax_action: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.taxonomy, (list, tuple)):
            names = [str(name).strip() for name in self.taxonomy if str(name).strip()]
            self.taxonomy = names or None
        elif isinstance(self.taxonomy, str):
            self.taxonomy = self.taxonomy.strip() or None
        if self.taxonomy is None:
            raise ConfigError("A term datasource needs at least one taxonomy")

        if self.taxonomy_args is None:
            self.taxonomy_args = {}
        if not isinstance(self.taxonomy_args, Mapping):
            raise ConfigError("datasource.taxonomy_args must be a mapping")
        self.taxonomy_args = dict(self.taxonomy_args)
        # Empty terms are still valid choices for a form field.
        self.taxonomy_args.setdefault("hide_empty", False)

        try:
            self.taxonomy_hierarchical_depth = int(self.taxonomy_hierarchical_depth or 0)
        except (TypeError, ValueError) as exc:
            raise ConfigError("datasource.taxonomy_hierarchical_depth must be an integer") from exc
        if self.taxonomy_hierarchical_depth < 0:
            raise ConfigError("datasource.taxonomy_hierarchical_depth cannot be negative")

        if self.only_save_to_taxonomy:
            self.taxonomy_save_to_terms = True

    @property
    def taxonomies(self) -> List[str]:
        if isinstance(self.taxonomy, list):
            return list(self.taxonomy)
        return [self.taxonomy]  # type: ignore[list-item]

    @property
    def grouped_output(self) -> bool:
        """Whether :meth:`get_items` yields :class:`~.models.GroupedEntries`."""
        return (
            not self.taxonomy_hierarchical
            and len(self.taxonomies) > 1
            and self.grouped
            and self.allow_optgroups
        )

    @classmethod
    def from_config(cls, section: Optional[Mapping[str, Any]], **overrides: Any) -> "DatasourceOptions":
        """Build options from the ``datasource`` config section plus overrides."""
        values: Dict[str, Any] = dict(section or {})
        values.update(overrides)
        known = {item.name for item in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigError(f"Unknown datasource option(s): {', '.join(unknown)}")
        return cls(**values)
