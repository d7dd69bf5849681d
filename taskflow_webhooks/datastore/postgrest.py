"""PostgREST (Supabase REST) datastore adapter."""

import logging
from typing import Any, Sequence

import httpx

from taskflow_webhooks.errors import DatastoreError, parse_postgrest_error

from .base import Datastore, Filters, Row

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _filter_params(filters: Filters | None) -> dict[str, str]:
    return {column: _encode_value(value) for column, value in (filters or {}).items()}


class PostgrestDatastore(Datastore):
    """Datastore over a PostgREST endpoint, e.g. `https://<ref>.supabase.co/rest/v1`.

    The caller owns nothing: the adapter creates its pooled `httpx.AsyncClient`
    unless one is passed in, and `close()` releases it.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> list[Row]:
        """Make a PostgREST request and return the decoded rows."""
        url = f"{self.base_url}/{table}"
        logger.debug(f"{method} {table} params={params}")
        try:
            resp = await self._client.request(
                method, url, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.HTTPError as e:
            raise DatastoreError(f"Datastore unreachable ({method} {table}): {e}") from e

        if not resp.is_success:
            raise DatastoreError(
                f"Datastore error {resp.status_code} on {method} {table}: {parse_postgrest_error(resp.text)}"
            )
        if not resp.content:
            return []
        data = resp.json()
        return data if isinstance(data, list) else [data]

    async def select(self, table: str, filters: Filters | None = None) -> list[Row]:
        params = {"select": "*", **_filter_params(filters)}
        return await self._request("GET", table, params=params)

    async def insert(self, table: str, row: Row) -> Row:
        rows = await self._request("POST", table, json=row, prefer="return=representation")
        if not rows:
            raise DatastoreError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(self, table: str, filters: Filters, patch: Row) -> list[Row]:
        if not filters:
            # PostgREST refuses unfiltered PATCH; make it explicit here
            raise DatastoreError(f"Refusing unfiltered update on {table}")
        return await self._request(
            "PATCH", table, params=_filter_params(filters), json=patch, prefer="return=representation"
        )

    async def upsert(self, table: str, row: Row, conflict_keys: Sequence[str]) -> Row:
        if not conflict_keys:
            raise DatastoreError("upsert requires at least one conflict key")
        rows = await self._request(
            "POST",
            table,
            params={"on_conflict": ",".join(conflict_keys)},
            json=row,
            prefer="resolution=merge-duplicates,return=representation",
        )
        if not rows:
            raise DatastoreError(f"Upsert into {table} returned no row")
        return rows[0]

    async def delete(self, table: str, filters: Filters) -> None:
        if not filters:
            raise DatastoreError(f"Refusing unfiltered delete on {table}")
        await self._request("DELETE", table, params=_filter_params(filters))

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
