"""List screen controller: server-side search and filters plus stats cards."""
from __future__ import annotations

import asyncio
from typing import Any

from opengrc.client.api import ApiClient, ApiError
from opengrc.client.hooks import Resource, ResourceCache

LOADING = "loading"
ERROR = "error"
EMPTY = "empty"
READY = "ready"


class ListView:
    """
    Rows and stats are independent fetches; the row state never waits on
    stats. The view does no filtering of its own: every control becomes a
    query parameter on ``GET /{resource}``.
    """

    def __init__(
        self,
        client: ApiClient,
        resource: str,
        model: Any = None,
        stats_model: Any = None,
        *,
        cache: ResourceCache | None = None,
        with_stats: bool = True,
    ):
        self.resource = resource
        self.search = ""
        self.filters: dict[str, Any] = {}
        self.selected_id: int | None = None
        self._rows: Resource[list[Any]] = Resource(
            client, f"/{resource}",
            model=list[model] if model is not None else None,
            cache=cache, cache_key=(resource, None),
        )
        self._stats: Resource[Any] | None = None
        if with_stats:
            self._stats = Resource(
                client, f"/{resource}/stats", model=stats_model,
                cache=cache, cache_key=(resource, "stats"),
            )

    def _params(self) -> dict[str, Any]:
        return {"search": self.search, **self.filters}

    async def load(self) -> None:
        fetches = [self._rows.set_path(params=self._params(), enabled=True)]
        if self._stats is not None:
            fetches.append(self._stats.set_path(enabled=True))
        await asyncio.gather(*fetches)

    async def refresh(self) -> None:
        await self.load()

    async def _reload_rows(self) -> None:
        await self._rows.set_path(params=self._params(), enabled=True)

    async def set_search(self, text: str) -> None:
        self.search = text.strip()
        await self._reload_rows()

    async def set_filter(self, name: str, value: Any) -> None:
        if value is None or value == "":
            self.filters.pop(name, None)
        else:
            self.filters[name] = value
        await self._reload_rows()

    async def clear_filters(self) -> None:
        self.search = ""
        self.filters.clear()
        await self._reload_rows()

    async def retry(self) -> None:
        await self._rows.refetch()

    # ── state ──

    @property
    def rows(self) -> list[Any]:
        return self._rows.data or []

    @property
    def stats(self) -> Any:
        return self._stats.data if self._stats is not None else None

    @property
    def stats_error(self) -> ApiError | None:
        return self._stats.error if self._stats is not None else None

    @property
    def error(self) -> ApiError | None:
        return self._rows.error

    @property
    def is_empty(self) -> bool:
        return self.state == EMPTY

    @property
    def state(self) -> str:
        if self._rows.is_loading:
            return LOADING
        if self._rows.error is not None:
            return ERROR
        if not self._rows.data:
            return EMPTY
        return READY

    def open_row(self, entity_id: int) -> int:
        """Hand only the id to the detail sheet; it fetches the entity itself."""
        self.selected_id = entity_id
        return entity_id

    async def on_sheet_closed(self, changed: bool = False) -> None:
        self.selected_id = None
        if changed:
            await self.refresh()

    async def close(self) -> None:
        await self._rows.close()
        if self._stats is not None:
            await self._stats.close()
