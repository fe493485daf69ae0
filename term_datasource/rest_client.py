"""HTTP term store backed by a JSON REST API."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urljoin

import requests

from .models import Term
from .store import TermStoreError

LOGGER = logging.getLogger(__name__)

_LIST_PARAMS = ("include", "exclude")


class RestTermStore:
    """Wrapper around the term REST API implementing :class:`~.store.TermStore`."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        verify_ssl: bool = True,
        timeout: int = 30,
        per_page: int = 100,
        rate_limit_per_minute: Optional[int] = None,
        max_write_attempts: int = 3,
    ) -> None:
        self.base_url = self._normalise_base_url(base_url)
        if self.base_url.rstrip("/") != base_url.rstrip("/"):
            LOGGER.debug("Normalised term API base URL from %s to %s", base_url, self.base_url)
        self.session = requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.per_page = min(max(per_page, 1), 100)
        self.max_write_attempts = max(max_write_attempts, 1)
        self.rate_limit_per_minute = rate_limit_per_minute
        self._sleep_between_requests = (
            60.0 / rate_limit_per_minute if rate_limit_per_minute else 0.0
        )
        self._last_request_time: float | None = None

    # -- Low level request helpers -------------------------------------------------
    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._build_url(path)
        if self._sleep_between_requests and self._last_request_time is not None:
            elapsed = time.monotonic() - self._last_request_time
            remaining = self._sleep_between_requests - elapsed
            if remaining > 0:
                LOGGER.debug(
                    "Sleeping %.2fs before %s %s to respect rate limits",
                    remaining,
                    method,
                    url,
                )
                time.sleep(remaining)
        LOGGER.debug("HTTP %s %s params=%s payload=%s", method, url, kwargs.get("params"), kwargs.get("json"))
        response = self.session.request(
            method,
            url,
            timeout=self.timeout,
            verify=self.verify_ssl,
            **kwargs,
        )
        self._last_request_time = time.monotonic()
        LOGGER.debug("Response status=%s", response.status_code)
        response.raise_for_status()
        if response.content:
            return response.json()
        return {}

    def _call(self, method: str, path: str, *, missing_ok: bool = False, **kwargs: Any) -> Optional[Dict[str, Any]]:
        """Run :meth:`_request`, translating transport failures to :class:`TermStoreError`.

        With ``missing_ok`` a 404 answer returns ``None`` instead of raising.
        """
        try:
            payload = self._request(method, path, **kwargs)
        except requests.HTTPError as exc:
            if missing_ok and _status_code(exc) == 404:
                return None
            raise TermStoreError(describe_http_error(exc, path)) from exc
        except requests.RequestException as exc:
            raise TermStoreError(f"Term API request {method} {path} failed: {exc}") from exc
        return payload if isinstance(payload, dict) else {}

    def _normalise_base_url(self, base_url: str) -> str:
        """Trim common API suffixes and return a clean base domain."""

        cleaned = base_url.strip()
        cleaned = cleaned.rstrip("/")
        if cleaned.lower().endswith("/api/v2"):
            cleaned = cleaned[: -len("/api/v2")]
        cleaned = cleaned.rstrip("/")
        return cleaned or base_url.rstrip("/")

    def _build_url(self, path: str) -> str:
        """Safely join the base URL and request path."""

        normalised_path = path.lstrip("/")
        base = self.base_url.rstrip("/") + "/"
        return urljoin(base, normalised_path)

    # -- Reads ---------------------------------------------------------------------
    def query_terms(
        self, taxonomies: Sequence[str], params: Optional[Mapping[str, Any]] = None
    ) -> List[Term]:
        """Return every term matching ``params``, following pagination.

        ``number`` caps the total number of terms returned; the remaining
        parameters are passed through to the API.
        """
        query = _encode_params(params or {})
        limit = int(query.pop("number", 0) or 0)
        query["taxonomy"] = ",".join(taxonomies)

        terms: List[Term] = []
        page = 1
        while True:
            page_params = dict(query, per_page=self.per_page, page=page)
            payload = self._call("GET", "/api/v2/terms", params=page_params) or {}
            records = payload.get("terms") or []
            LOGGER.debug("Fetched %s terms from page %s", len(records), page)
            terms.extend(Term.from_payload(record) for record in records)
            if limit and len(terms) >= limit:
                return terms[:limit]
            if len(records) < self.per_page:
                break
            page += 1
        return terms

    def get_term(self, term_id: int, taxonomies: Optional[Sequence[str]] = None) -> Optional[Term]:
        payload = self._call("GET", f"/api/v2/terms/{term_id}", missing_ok=True)
        term = _term_from(payload)
        if term is not None and taxonomies and term.taxonomy not in taxonomies:
            return None
        return term

    def get_term_by_taxonomy_id(self, term_taxonomy_id: int) -> Optional[Term]:
        payload = self._call(
            "GET", f"/api/v2/term_taxonomies/{term_taxonomy_id}", missing_ok=True
        )
        return _term_from(payload)

    def get_term_by_name(self, name: str, taxonomy: str) -> Optional[Term]:
        for term in self.query_terms([taxonomy], {"name": name, "hide_empty": False}):
            # The API matches case-insensitively; only an exact match counts.
            if term.name == name:
                return term
        return None

    def get_object_terms(self, object_id: int, taxonomy: str) -> List[Term]:
        payload = self._call(
            "GET", f"/api/v2/objects/{object_id}/terms", params={"taxonomy": taxonomy}
        ) or {}
        return [Term.from_payload(record) for record in payload.get("terms") or []]

    def get_term_link(self, term: Term) -> Optional[str]:
        return term.link

    def get_edit_term_link(self, term: Term) -> Optional[str]:
        return term.edit_link

    # -- Writes --------------------------------------------------------------------
    def create_term(self, name: str, taxonomy: str, *, parent: int = 0) -> Term:
        LOGGER.info("Creating term '%s' in %s", name, taxonomy)
        payload = self._call(
            "POST",
            "/api/v2/terms",
            json={"term": {"name": name, "taxonomy": taxonomy, "parent": parent}},
        )
        term = _term_from(payload)
        if term is None or term.term_id <= 0:
            raise TermStoreError(f"Term API returned no term after creating '{name}' in {taxonomy}")
        return term

    def set_object_terms(
        self, object_id: int, taxonomy: str, term_ids: Sequence[int], *, append: bool = False
    ) -> List[int]:
        body = {"taxonomy": taxonomy, "term_ids": [int(term_id) for term_id in term_ids], "append": append}
        LOGGER.info("Setting %s terms for object %s to %s (append=%s)", taxonomy, object_id, body["term_ids"], append)
        attempt = 0
        while True:
            attempt += 1
            try:
                payload = self._request("PUT", f"/api/v2/objects/{object_id}/terms", json=body)
            except requests.HTTPError as exc:
                if _status_code(exc) == 429 and attempt < self.max_write_attempts:
                    delay = self._sleep_between_requests or 1.0
                    LOGGER.warning(
                        "Received 429 while saving %s terms for object %s; sleeping %.2fs before retry",
                        taxonomy,
                        object_id,
                        delay,
                    )
                    time.sleep(delay)
                    continue
                raise TermStoreError(describe_http_error(exc, f"object {object_id}")) from exc
            except requests.RequestException as exc:
                raise TermStoreError(
                    f"Saving {taxonomy} terms for object {object_id} failed: {exc}"
                ) from exc
            break
        returned = payload.get("term_ids") if isinstance(payload, dict) else None
        if not isinstance(returned, list):
            return body["term_ids"]
        try:
            return [int(term_id) for term_id in returned]
        except (TypeError, ValueError) as exc:
            raise TermStoreError(
                f"Term API returned malformed term_ids for object {object_id}: {returned!r}"
            ) from exc


def _term_from(payload: Optional[Dict[str, Any]]) -> Optional[Term]:
    if not payload:
        return None
    record = payload.get("term")
    if not isinstance(record, dict):
        return None
    return Term.from_payload(record)


def _encode_params(params: Mapping[str, Any]) -> Dict[str, Any]:
    encoded: Dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif key in _LIST_PARAMS and isinstance(value, (list, tuple, set)):
            encoded[key] = ",".join(str(item) for item in value)
        else:
            encoded[key] = value
    return encoded


def _status_code(error: requests.RequestException) -> Optional[int]:
    return getattr(getattr(error, "response", None), "status_code", None)


def describe_http_error(error: requests.RequestException, target: Optional[str] = None) -> str:
    """Build a readable message for a failed term API request."""
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    reason = getattr(response, "reason", "") or ""
    hint_map = {
        400: "Bad Request - verify the term payload",
        401: "Unauthorized - check the API key",
        403: "Forbidden - the API key lacks permission",
        404: "Not Found - the term or endpoint may be incorrect",
        409: "Conflict - a term with this name may already exist",
        422: "Unprocessable Entity - the term API rejected the values",
        429: "Too Many Requests - rate limit exceeded",
        500: "Internal Server Error",
        502: "Bad Gateway",
        503: "Service Unavailable",
        504: "Gateway Timeout",
    }
    prefix = "Term API request failed"
    if target is not None:
        prefix = f"Term API request failed for {target}"
    if status is not None:
        hint = hint_map.get(status)
        status_part = f"status {status}"
        if reason:
            status_part += f" {reason}".rstrip()
        if hint:
            status_part += f" ({hint})"
        prefix = f"{prefix} with {status_part}"

    detail = ""
    if response is not None:
        try:
            parsed = response.json()
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            errors = parsed.get("errors")
            message = parsed.get("message")
            if isinstance(errors, list):
                detail = "; ".join(str(item) for item in errors if item)
            elif isinstance(errors, dict):
                detail = "; ".join(f"{key}: {value}" for key, value in errors.items())
            elif message:
                detail = str(message)
        if not detail:
            text = getattr(response, "text", "")
            if isinstance(text, str) and text:
                detail = text.strip()
    if detail:
        snippet = detail if len(detail) <= 500 else detail[:497] + "..."
        prefix = f"{prefix}: {snippet}"
    return prefix
