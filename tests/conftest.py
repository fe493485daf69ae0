from __future__ import annotations

from typing import Any, Dict, List

import pytest

from term_datasource.models import Term
from term_datasource.store import InMemoryTermStore

# category:            post_tag:
#   1 News               10 breaking
#     2 World            11 analysis
#       3 Europe
#     4 Local
#   5 Sports
#     6 Football
SAMPLE_TERMS: List[Dict[str, Any]] = [
    {"term_id": 1, "name": "News", "taxonomy": "category"},
    {"term_id": 2, "name": "World", "taxonomy": "category", "parent": 1},
    {"term_id": 3, "name": "Europe", "taxonomy": "category", "parent": 2},
    {"term_id": 4, "name": "Local", "taxonomy": "category", "parent": 1},
    {"term_id": 5, "name": "Sports", "taxonomy": "category"},
    {"term_id": 6, "name": "Football", "taxonomy": "category", "parent": 5},
    {"term_id": 10, "name": "breaking", "taxonomy": "post_tag"},
    {"term_id": 11, "name": "analysis", "taxonomy": "post_tag"},
]


def make_terms() -> List[Term]:
    return [Term(term_taxonomy_id=100 + record["term_id"], **record) for record in SAMPLE_TERMS]


@pytest.fixture(name="store")
def fixture_store() -> InMemoryTermStore:
    return InMemoryTermStore(make_terms())
