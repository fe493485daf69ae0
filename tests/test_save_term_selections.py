from __future__ import annotations

import sys
from importlib import util
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from term_datasource.store import InMemoryTermStore

from conftest import make_terms

PROJECT_ROOT = Path(__file__).resolve().parents[1]
MODULE_PATH = PROJECT_ROOT / "tools" / "save_term_selections.py"
spec = util.spec_from_file_location("term_datasource_tools.save_term_selections", MODULE_PATH)
assert spec and spec.loader
save_term_selections = util.module_from_spec(spec)
sys.modules[spec.name] = save_term_selections
spec.loader.exec_module(save_term_selections)

CONFIG: Dict[str, Any] = {
    "term_store": {"backend": "memory"},
    "datasource": {"taxonomy": "category"},
    "logging": {"console": {"enabled": False}, "file": {"enabled": False}},
}


@pytest.fixture(name="store")
def fixture_tool_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryTermStore:
    store = InMemoryTermStore(make_terms())
    monkeypatch.setattr(save_term_selections, "load_config", lambda path=None: CONFIG)
    monkeypatch.setattr(save_term_selections, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(save_term_selections, "create_store", lambda cfg, base_dir=None: store)
    return store


def _write_submission(tmp_path: Path, data: Dict[str, Any]) -> Path:
    path = tmp_path / "submission.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_saves_merged_selection(tmp_path: Path, capsys, store: InMemoryTermStore) -> None:
    submission = _write_submission(
        tmp_path,
        {
            "object_id": 42,
            "fields": [
                {"name": "primary", "values": [2], "datasource": {"append_taxonomy": True}},
                {"name": "extra", "exact_match": False, "values": [6, "Opinion"]},
            ],
        },
    )

    save_term_selections.main([str(submission)])

    opinion = store.get_term_by_name("Opinion", "category")
    assert opinion is not None
    assert capsys.readouterr().out.strip().splitlines() == [
        "field primary: [2]",
        f"field extra: [6, {opinion.term_id}]",
        f"category (replace): [2, 6, {opinion.term_id}] saved",
    ]
    assert [term.term_id for term in store.get_object_terms(42, "category")] == [2, 6, opinion.term_id]


def test_dry_run_leaves_store_untouched(tmp_path: Path, capsys, store: InMemoryTermStore) -> None:
    submission = _write_submission(
        tmp_path, {"object_id": 42, "fields": [{"name": "primary", "values": [2]}]}
    )

    save_term_selections.main([str(submission), "--dry-run"])

    assert capsys.readouterr().out.strip().splitlines() == [
        "field primary: [2]",
        "category (replace): [2]",
    ]
    assert store.get_object_terms(42, "category") == []


def test_submission_requires_object_id(tmp_path: Path, store: InMemoryTermStore) -> None:
    submission = _write_submission(tmp_path, {"fields": []})

    with pytest.raises(save_term_selections.ConfigError):
        save_term_selections.main([str(submission)])
