from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List

import requests

from ..config import SQL_TIMEOUT_SEC, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_URL

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class SupabaseRestError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SupabaseRestClient:
    """Thin PostgREST client for the retirement tables.

    Only the service-role key is supported; row scoping is done by the caller
    through ``eq.`` filters on ``user_id`` and ``company_id``.
    """

    def __init__(
        self,
        *,
        supabase_url: str | None = None,
        service_key: str | None = None,
        timeout: int = SQL_TIMEOUT_SEC,
    ) -> None:
        raw_url = SUPABASE_URL if supabase_url is None else supabase_url
        raw_key = SUPABASE_SERVICE_ROLE_KEY if service_key is None else service_key
        self.project_url = raw_url.strip().rstrip("/")
        self.service_key = raw_key.strip()
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.project_url and self.service_key)

    def _headers(self, extra: Dict[str, str] | None = None) -> Dict[str, str]:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra or {})
        return headers

    def _send(
        self,
        method: str,
        table: str,
        *,
        params: Dict[str, Any] | None = None,
        body: Any = None,
        extra_headers: Dict[str, str] | None = None,
    ) -> Any:
        if not self.configured:
            raise SupabaseRestError("Supabase is not configured. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY.")
        response = requests.request(
            method=method,
            url=f"{self.project_url}/rest/v1/{table}",
            params=params,
            json=body,
            headers=self._headers(extra_headers),
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise SupabaseRestError(
                f"{method} {table} returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code,
            )
        if not response.text or "application/json" not in response.headers.get("content-type", ""):
            return None
        return response.json()

    def _pages(self, table: str, params: Dict[str, Any], limit: int | None, page_size: int) -> Iterator[List[Row]]:
        offset = 0
        remaining = limit
        while remaining is None or remaining > 0:
            size = page_size if remaining is None else min(page_size, remaining)
            page = self._send("GET", table, params={**params, "limit": size, "offset": offset})
            if not isinstance(page, list):
                raise SupabaseRestError(f"GET {table} did not return a list")
            yield page
            if len(page) < size:
                return
            offset += size
            if remaining is not None:
                remaining -= size

    def fetch_rows(
        self,
        table: str,
        *,
        select: str = "*",
        filters: Dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
        page_size: int = 1000,
    ) -> List[Row]:
        """Read rows with PostgREST filters such as ``{"user_id": "eq.u1"}``.

        ``limit`` caps the total row count; without it pages are followed
        until a short page comes back.
        """
        params: Dict[str, Any] = {"select": select}
        if order:
            params["order"] = order
        params.update(filters or {})
        rows: List[Row] = []
        for page in self._pages(table, params, limit, page_size):
            rows.extend(page)
        logger.debug("supabase_fetch table=%s rows=%s", table, len(rows))
        return rows

    def insert_rows(self, table: str, rows: List[Row]) -> None:
        if rows:
            self._send("POST", table, body=rows, extra_headers={"Prefer": "return=minimal"})


_client: SupabaseRestClient | None = None


def get_supabase_client() -> SupabaseRestClient:
    global _client
    if _client is None:
        _client = SupabaseRestClient()
    return _client
