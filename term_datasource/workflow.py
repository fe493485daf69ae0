"""Higher level workflows used by the command-line tools."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from . import write_plan
from .config import ConfigError, config_section, resolve_path
from .datasource import OptionItems, TermDatasource
from .fields import Field
from .models import FlatEntries, GroupedEntries, SubmissionContext
from .options import DatasourceOptions
from .rest_client import RestTermStore
from .store import InMemoryTermStore, TermStore

LOGGER = logging.getLogger(__name__)


def create_store(config: Mapping[str, Any], *, base_dir: Optional[Path] = None) -> TermStore:
    store_cfg = config_section(config, "term_store")
    backend = str(store_cfg.get("backend", "rest")).lower()
    if backend == "memory":
        fixture = store_cfg.get("fixture")
        kwargs = {
            "link_template": store_cfg.get("link_template"),
            "edit_link_template": store_cfg.get("edit_link_template"),
        }
        if fixture:
            return InMemoryTermStore.from_fixture(resolve_path(fixture, base=base_dir), **kwargs)
        return InMemoryTermStore(**kwargs)
    if backend != "rest":
        raise ConfigError(f"Unsupported term_store.backend '{backend}'")

    base_url = store_cfg.get("base_url")
    if not base_url:
        raise ConfigError("Configuration missing term_store.base_url")
    return RestTermStore(
        base_url=base_url,
        api_key=store_cfg.get("api_key"),
        verify_ssl=store_cfg.get("verify_ssl", True),
        timeout=int(store_cfg.get("timeout", 30)),
        per_page=int(store_cfg.get("per_page", 100)),
        rate_limit_per_minute=store_cfg.get("rate_limit_per_minute"),
    )


def build_datasource(config: Mapping[str, Any], store: TermStore, **overrides: Any) -> TermDatasource:
    options = DatasourceOptions.from_config(config_section(config, "datasource"), **overrides)
    return TermDatasource(store, options)


def render_items(items: OptionItems) -> List[str]:
    """Turn option items into printable lines, one per option or group heading."""
    lines: List[str] = []
    if isinstance(items, GroupedEntries):
        for taxonomy, entries in items.groups.items():
            lines.append(f"[{taxonomy}]")
            lines.extend(f"  {key}: {label}" for key, label in entries.items())
    elif isinstance(items, FlatEntries):
        lines.extend(f"{key}: {label}" for key, label in items.entries.items())
    return lines


@dataclass
class FieldSubmission:
    field: Field
    values: Any
    current_values: Any = None
    datasource_overrides: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, entry: Mapping[str, Any]) -> "FieldSubmission":
        name = str(entry.get("name") or "").strip()
        if not name:
            raise ConfigError("Each submitted field needs a 'name'")
        return cls(
            field=Field(
                name=name,
                exact_match=bool(entry.get("exact_match", True)),
                limit=int(entry.get("limit", 0 if entry.get("multiple") else 1)),
                multiple=bool(entry.get("multiple", False)),
            ),
            values=entry.get("values"),
            current_values=entry.get("current_values"),
            datasource_overrides=dict(entry.get("datasource") or {}),
        )


@dataclass
class SubmissionResult:
    field_values: Dict[str, List[Any]]
    planned: Dict[str, Dict[str, Any]]
    saved: Dict[str, bool]


def save_submission(
    config: Mapping[str, Any],
    store: TermStore,
    object_id: int,
    submissions: List[FieldSubmission],
    *,
    dry_run: bool = False,
) -> SubmissionResult:
    """Run every field's presave against one shared context, then flush once.

    A dry run creates no terms and saves nothing; free-text names that do not
    exist yet are left out of the plan.
    """
    context = SubmissionContext(object_id=object_id)
    field_values: Dict[str, List[Any]] = {}
    for submission in submissions:
        datasource = build_datasource(config, store, **submission.datasource_overrides)
        field_values[submission.field.name] = datasource.presave_alter_values(
            submission.field,
            submission.values,
            submission.current_values,
            context,
            create_missing=not dry_run,
        )

    planned: Dict[str, Dict[str, Any]] = {}
    if context.write_plan is not None:
        for taxonomy, entry in context.write_plan.taxonomies.items():
            planned[taxonomy] = {"term_ids": list(entry.term_ids), "append": entry.append}

    if dry_run:
        LOGGER.info("Dry run: object %s would be saved with %s", object_id, planned)
        return SubmissionResult(field_values=field_values, planned=planned, saved={})
    saved = write_plan.flush(context, store)
    return SubmissionResult(field_values=field_values, planned=planned, saved=saved)
