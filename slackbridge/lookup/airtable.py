"""Airtable record lookup: substring search over a fixed field list.

The query is lower-cased and matched case-insensitively against every
searched field with an Airtable formula:

    OR(SEARCH('<q>', LOWER({Feature})) > 0, SEARCH('<q>', LOWER({Roadmap})) > 0, ...)

Cells are requested in string format so every field comes back as text.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import requests

from slackbridge.errors import LookupFailure
from slackbridge.models import Record

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    "Feature",
    "Roadmap",
    "Team responsible",
    "Plan",
    "Feature flag",
    "Entitlements",
    "Documentation",
)

_TIME_ZONE = "America/New_York"
_USER_LOCALE = "en-us"
# Guard against a misbehaving offset loop
_MAX_PAGES = 50


@runtime_checkable
class RecordLookup(Protocol):
    """Anything that can resolve a query into records."""

    def search(self, query: str) -> list[Record]:
        ...


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


def build_formula(query: str, fields: tuple[str, ...] = SEARCH_FIELDS) -> str:
    """Airtable filterByFormula matching the query in any of the fields."""
    needle = _quote(query.lower())
    statements = [f"SEARCH('{needle}', LOWER({{{name}}})) > 0" for name in fields]
    return f"OR({', '.join(statements)})"


class AirtableLookup:
    """Searches one Airtable table/view over the REST API."""

    def __init__(
        self,
        api_key: str,
        base_id: str,
        table_id: str,
        view_id: str,
        *,
        api_url: str = "https://api.airtable.com/v0",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self._api_key = api_key
        self._url = f"{api_url.rstrip('/')}/{base_id}/{table_id}"
        self._view_id = view_id
        self._timeout = timeout
        self._session = session or requests.Session()

    def _params(self, query: str, offset: str | None) -> dict[str, Any]:
        params: dict[str, Any] = {
            "cellFormat": "string",
            "fields[]": list(SEARCH_FIELDS),
            "filterByFormula": build_formula(query),
            "timeZone": _TIME_ZONE,
            "userLocale": _USER_LOCALE,
            "view": self._view_id,
        }
        if offset:
            params["offset"] = offset
        return params

    def search(self, query: str) -> list[Record]:
        """Return every record matching the query, following pagination.

        Raises:
            LookupFailure: on transport errors, non-2xx, or an unexpected body.
        """
        records: list[Record] = []
        offset: str | None = None
        for _ in range(_MAX_PAGES):
            page = self._get_page(query, offset)
            for item in page.get("records", []):
                records.append(
                    Record(
                        id=str(item.get("id", "")),
                        fields={k: str(v) for k, v in (item.get("fields") or {}).items()},
                    )
                )
            offset = page.get("offset")
            if not offset:
                break
        else:
            logger.warning("Airtable pagination stopped after %d pages", _MAX_PAGES)

        logger.info("Airtable search returned %d records", len(records))
        return records

    def _get_page(self, query: str, offset: str | None) -> dict[str, Any]:
        try:
            resp = self._session.get(
                self._url,
                params=self._params(query, offset),
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            page = resp.json()
        except requests.RequestException as exc:
            raise LookupFailure(f"error querying Airtable: {exc}") from exc
        except ValueError as exc:
            raise LookupFailure(f"Airtable returned invalid JSON: {exc}") from exc
        if not isinstance(page, dict):
            raise LookupFailure("Airtable returned an unexpected response body")
        return page
