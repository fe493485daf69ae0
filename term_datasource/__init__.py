"""Expose taxonomy terms as form field options and save selections back as terms."""

from .config import ConfigError, load_config, resolve_path
from .logging_setup import configure_logging
from .datasource import TermDatasource
from .fields import Field
from .models import FlatEntries, GroupedEntries, SubmissionContext, Term, WritePlan
from .options import DatasourceOptions
from .rest_client import RestTermStore
from .store import InMemoryTermStore, TermStore, TermStoreError
from .tree import OptionTreeBuilder

__all__ = [
    "ConfigError",
    "load_config",
    "resolve_path",
    "configure_logging",
    "TermDatasource",
    "Field",
    "FlatEntries",
    "GroupedEntries",
    "SubmissionContext",
    "Term",
    "WritePlan",
    "DatasourceOptions",
    "RestTermStore",
    "InMemoryTermStore",
    "TermStore",
    "TermStoreError",
    "OptionTreeBuilder",
]
