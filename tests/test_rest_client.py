"""Tests for the REST term store."""
from __future__ import annotations

from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest
import requests

from term_datasource import rest_client
from term_datasource.models import Term
from term_datasource.rest_client import RestTermStore, describe_http_error
from term_datasource.store import TermStoreError


def _store(**kwargs: Any) -> RestTermStore:
    store = RestTermStore(base_url="https://terms.example.com", api_key="dummy", **kwargs)
    store.session = MagicMock()
    return store


def _mock_response(payload: Dict[str, Any] | None = None) -> MagicMock:
    response = MagicMock()
    response.content = b"{}"
    response.json.return_value = payload or {}
    response.status_code = 200
    response.raise_for_status.return_value = None
    return response


def _http_error(status: int, payload: Dict[str, Any] | None = None) -> requests.HTTPError:
    response = MagicMock()
    response.status_code = status
    response.reason = "Reason"
    response.json.return_value = payload or {}
    response.text = ""
    return requests.HTTPError(f"{status} error", response=response)


def _term(term_id: int, name: str, taxonomy: str = "category", **extra: Any) -> Dict[str, Any]:
    return {"term_id": term_id, "name": name, "taxonomy": taxonomy, **extra}


@pytest.mark.parametrize(
    "base_url",
    [
        "https://terms.example.com",
        "https://terms.example.com/",
        "https://terms.example.com/api/v2",
        "https://terms.example.com/api/v2/",
    ],
)
def test_request_url_normalisation(base_url: str) -> None:
    store = RestTermStore(base_url=base_url, api_key="dummy")
    store.session = MagicMock()
    store.session.request.return_value = _mock_response()

    store._request("GET", "/api/v2/terms")

    method, url, *_ = store.session.request.call_args[0]
    assert method == "GET"
    assert url == "https://terms.example.com/api/v2/terms"


def test_api_key_sent_as_bearer_token() -> None:
    store = RestTermStore(base_url="https://terms.example.com", api_key="secret")

    assert store.session.headers["Authorization"] == "Bearer secret"


def test_query_terms_paginates_and_encodes_params() -> None:
    store = _store(per_page=2)
    pages = [
        {"terms": [_term(1, "News"), _term(2, "World", parent=1)]},
        {"terms": [_term(5, "Sports")]},
    ]
    captured: List[Dict[str, Any]] = []

    def fake_request(method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        assert method == "GET"
        assert path == "/api/v2/terms"
        captured.append(kwargs["params"])
        return pages.pop(0)

    store._request = fake_request  # type: ignore[method-assign]

    terms = store.query_terms(
        ["category", "post_tag"], {"hide_empty": False, "include": [1, 2, 5], "parent": None}
    )

    assert [term.term_id for term in terms] == [1, 2, 5]
    assert terms[1].parent == 1
    assert captured[0] == {
        "hide_empty": "false",
        "include": "1,2,5",
        "taxonomy": "category,post_tag",
        "per_page": 2,
        "page": 1,
    }
    assert captured[1]["page"] == 2


def test_query_terms_number_caps_results() -> None:
    store = _store(per_page=2)
    store._request = lambda method, path, **kwargs: {  # type: ignore[method-assign]
        "terms": [_term(1, "News"), _term(2, "World")]
    }

    assert len(store.query_terms(["category"], {"number": 3})) == 3


def test_get_term_missing_returns_none() -> None:
    store = _store()

    def fake_request(method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        raise _http_error(404)

    store._request = fake_request  # type: ignore[method-assign]

    assert store.get_term(5) is None
    assert store.get_term_by_taxonomy_id(5) is None


def test_get_term_filters_taxonomies() -> None:
    store = _store()
    store._request = lambda method, path, **kwargs: {"term": _term(10, "breaking", "post_tag")}  # type: ignore[method-assign]

    assert store.get_term(10) == Term(term_id=10, name="breaking", taxonomy="post_tag", term_taxonomy_id=10)
    assert store.get_term(10, ["category"]) is None


def test_get_term_by_name_requires_exact_match() -> None:
    store = _store()
    store._request = lambda method, path, **kwargs: {  # type: ignore[method-assign]
        "terms": [_term(3, "news"), _term(4, "News")]
    }

    term = store.get_term_by_name("News", "category")

    assert term is not None and term.term_id == 4


def test_server_errors_raise_term_store_error() -> None:
    store = _store()

    def fake_request(method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        raise _http_error(500, {"message": "database offline"})

    store._request = fake_request  # type: ignore[method-assign]

    with pytest.raises(TermStoreError) as excinfo:
        store.query_terms(["category"])
    assert "status 500" in str(excinfo.value)
    assert "database offline" in str(excinfo.value)


def test_connection_errors_raise_term_store_error() -> None:
    store = _store()
    store.session.request.side_effect = requests.ConnectionError("refused")

    with pytest.raises(TermStoreError):
        store.get_term(1)


def test_create_term_posts_payload() -> None:
    store = _store()
    response = _mock_response({"term": _term(12, "Opinion", term_taxonomy_id=112)})
    store.session.request.return_value = response

    term = store.create_term("Opinion", "category")

    method, url = store.session.request.call_args[0][:2]
    assert method == "POST"
    assert url == "https://terms.example.com/api/v2/terms"
    assert store.session.request.call_args[1]["json"] == {
        "term": {"name": "Opinion", "taxonomy": "category", "parent": 0}
    }
    assert term.term_id == 12 and term.term_taxonomy_id == 112


def test_create_term_without_term_in_response_fails() -> None:
    store = _store()
    store.session.request.return_value = _mock_response({})

    with pytest.raises(TermStoreError):
        store.create_term("Opinion", "category")


def test_get_object_terms() -> None:
    store = _store()
    store.session.request.return_value = _mock_response({"terms": [_term(2, "World")]})

    terms = store.get_object_terms(42, "category")

    assert [term.term_id for term in terms] == [2]
    assert store.session.request.call_args[1]["params"] == {"taxonomy": "category"}


def test_set_object_terms_retries_rate_limits(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store()
    sleeps: List[float] = []
    monkeypatch.setattr(rest_client.time, "sleep", sleeps.append)
    calls: List[Dict[str, Any]] = []
    outcomes: List[Any] = [_http_error(429), {"term_ids": [2, 6]}]

    def fake_request(method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        assert method == "PUT"
        assert path == "/api/v2/objects/42/terms"
        calls.append(kwargs["json"])
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    store._request = fake_request  # type: ignore[method-assign]

    assert store.set_object_terms(42, "category", [2, 6], append=True) == [2, 6]
    assert calls == [{"taxonomy": "category", "term_ids": [2, 6], "append": True}] * 2
    assert sleeps == [1.0]


def test_set_object_terms_gives_up_after_max_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    store = _store(max_write_attempts=2)
    monkeypatch.setattr(rest_client.time, "sleep", lambda seconds: None)

    def fake_request(method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        raise _http_error(429)

    store._request = fake_request  # type: ignore[method-assign]

    with pytest.raises(TermStoreError) as excinfo:
        store.set_object_terms(42, "category", [2])
    assert "Too Many Requests" in str(excinfo.value)


def test_set_object_terms_malformed_response_raises_term_store_error() -> None:
    store = _store()
    store._request = lambda method, path, **kwargs: {"term_ids": [2, "six"]}  # type: ignore[method-assign]

    with pytest.raises(TermStoreError, match="malformed term_ids"):
        store.set_object_terms(42, "category", [2, 6])


def test_describe_http_error_lists_api_errors() -> None:
    error = _http_error(422, {"errors": ["name is too long", "parent missing"]})

    message = describe_http_error(error, "/api/v2/terms")

    assert message == (
        "Term API request failed for /api/v2/terms with status 422 Reason "
        "(Unprocessable Entity - the term API rejected the values): "
        "name is too long; parent missing"
    )
