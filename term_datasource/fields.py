"""Minimal description of the form field a datasource is attached to."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Field:
    name: str
    # With exact_match disabled the field accepts free text that becomes new terms.
    exact_match: bool = True
    limit: int = 1
    multiple: bool = False

    @property
    def allows_free_text(self) -> bool:
        return not self.exact_match

    @property
    def single_valued(self) -> bool:
        return self.limit == 1 and not self.multiple
