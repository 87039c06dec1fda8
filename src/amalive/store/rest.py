"""RestStore -- PostgREST-style adapter for the hosted data store.

Reads and writes go over HTTP (``/rest/v1/<table>``). Row changes are
not polled: the realtime transport that fronts the hosted store
publishes into :attr:`RestStore.feed`, and subscriptions are served
from there.

Usage::

    async with RestStore("https://xyz.example.co", api_key=key) as store:
        rows = await store.batch_query(Table.QUESTIONS_WITH_VOTES, {"ama_id": ama_id})
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

import httpx

from amalive.core.errors import (
    StoreError,
    StoreRateLimitError,
    StoreTimeoutError,
    StoreUnavailableError,
    TransientWriteError,
)
from amalive.store.base import WriteOp
from amalive.store.feed import ChangeFeed

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from amalive.store.base import QueryOrder, RowChange, Table
    from amalive.store.feed import Subscription


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def filter_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
    """Translate equality filters into PostgREST query parameters."""
    params: dict[str, str] = {}
    for column, value in (filters or {}).items():
        if value is None:
            params[column] = "is.null"
        else:
            params[column] = f"eq.{_format_value(value)}"
    return params


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("detail") or body)
    return response.text


class RestStore:
    """Async HTTP adapter satisfying :class:`~amalive.store.base.DataStore`."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        *,
        timeout: float = 10.0,
        feed: ChangeFeed | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/rest/v1",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.feed = feed or ChangeFeed()

    async def __aenter__(self) -> RestStore:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Reads ────────────────────────────────────────────────────

    def _raise_for_read(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 429:
            header = response.headers.get("Retry-After")
            try:
                retry_after = float(header) if header is not None else None
            except ValueError:
                retry_after = None
            raise StoreRateLimitError(retry_after)
        if status >= 500:
            msg = f"HTTP {status}: {_detail(response)}"
            raise StoreUnavailableError(msg)
        msg = f"HTTP {status}: {_detail(response)}"
        raise StoreError(msg)

    async def batch_query(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        order: QueryOrder | None = None,
    ) -> list[dict[str, Any]]:
        params = filter_params(filters)
        params["select"] = "*"
        if order is not None:
            direction = "desc" if order.descending else "asc"
            params["order"] = f"{order.column}.{direction}"

        try:
            resp = await self._client.get(f"/{table.value}", params=params)
        except httpx.TimeoutException as e:
            msg = f"Timed out reading {table.value}"
            raise StoreTimeoutError(msg) from e
        except httpx.TransportError as e:
            msg = f"Cannot reach store reading {table.value}: {e}"
            raise StoreUnavailableError(msg) from e

        self._raise_for_read(resp)
        return cast("list[dict[str, Any]]", resp.json())

    # ── Subscriptions ────────────────────────────────────────────

    def subscribe(
        self,
        table: Table,
        filters: Mapping[str, Any] | None,
        on_change: Callable[[RowChange], Awaitable[None]],
    ) -> Subscription:
        return self.feed.subscribe(table, filters, on_change)

    def unsubscribe(self, subscription: Subscription) -> None:
        self.feed.unsubscribe(subscription)

    # ── Writes ───────────────────────────────────────────────────

    async def write(
        self,
        table: Table,
        op: WriteOp,
        payload: Mapping[str, Any] | None = None,
        match: Mapping[str, Any] | None = None,
    ) -> None:
        if table.is_view:
            msg = f"{table.value} is a read-only view"
            raise ValueError(msg)
        if op is not WriteOp.INSERT and not match:
            msg = f"{op.value} requires a match filter"
            raise ValueError(msg)

        url = f"/{table.value}"
        headers = {"Prefer": "return=minimal"}
        try:
            if op is WriteOp.INSERT:
                resp = await self._client.post(
                    url, json=dict(payload or {}), headers=headers
                )
            elif op is WriteOp.UPDATE:
                resp = await self._client.patch(
                    url,
                    params=filter_params(match),
                    json=dict(payload or {}),
                    headers=headers,
                )
            else:
                resp = await self._client.delete(
                    url, params=filter_params(match), headers=headers
                )
        except httpx.HTTPError as e:
            raise TransientWriteError(table.value, f"{op.value} failed: {e}") from e

        if resp.status_code >= 400:
            msg = f"{op.value} rejected (HTTP {resp.status_code}): {_detail(resp)}"
            raise TransientWriteError(table.value, msg)
