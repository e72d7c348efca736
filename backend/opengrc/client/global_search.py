"""Quick-search overlay (Ctrl/Cmd+K)."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from opengrc.client.api import ApiClient, ApiError
from opengrc.schemas.search import SearchResponse, SearchResult, SearchStatus

log = logging.getLogger(__name__)

# Single-letter type badges
TYPE_CODES = {
    "control": "C",
    "risk": "R",
    "policy": "P",
    "evidence": "E",
    "vendor": "V",
    "framework": "F",
    "asset": "A",
    "task": "T",
}


class GlobalSearch:
    """
    Keystrokes are debounced; only the latest query's response is kept.
    Selecting a result returns the server-provided ``path`` verbatim.
    When the status endpoint reports search disabled, or cannot be
    reached, every method is a no-op.
    """

    def __init__(self, client: ApiClient, debounce: float = 0.3, limit: int = 10):
        self.client = client
        self.debounce = debounce
        self.limit = limit
        self.enabled = False
        self.is_open = False
        self.is_loading = False
        self.query = ""
        self.results: list[SearchResult] = []
        self.total = 0
        self.active_index = 0
        self.error: ApiError | None = None
        self._pending: asyncio.Task | None = None

    async def check_status(self) -> bool:
        try:
            status: SearchStatus = await self.client.get("/search/status", model=SearchStatus)
        except ApiError as exc:
            log.warning("Search status unavailable: %s", exc.message)
            self.enabled = False
        else:
            self.enabled = status.enabled
        return self.enabled

    def open(self) -> None:
        if not self.enabled:
            return
        self._clear()
        self.is_open = True

    def _clear(self) -> None:
        self._cancel_pending()
        self.query = ""
        self.results = []
        self.total = 0
        self.active_index = 0
        self.error = None
        self.is_loading = False

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self.is_loading = False

    def set_query(self, text: str) -> asyncio.Task | None:
        if not self.enabled or not self.is_open:
            return None
        self.query = text
        self._cancel_pending()
        if not text.strip():
            self.results = []
            self.total = 0
            return None
        self._pending = asyncio.ensure_future(self._debounced(text))
        return self._pending

    async def _debounced(self, text: str) -> None:
        await asyncio.sleep(self.debounce)
        await self._run(text)

    async def _run(self, text: str) -> None:
        self.is_loading = True
        try:
            resp: SearchResponse = await self.client.get(
                "/search", params={"q": text, "limit": self.limit}, model=SearchResponse,
            )
        except ApiError as exc:
            if text == self.query:
                self.results, self.total, self.error = [], 0, exc
            return
        finally:
            if text == self.query:
                self.is_loading = False
        if text != self.query:
            return
        self.results = resp.results
        self.total = resp.total
        self.active_index = 0
        self.error = None

    async def settle(self) -> None:
        """Wait for the pending debounced query, if any."""
        task = self._pending
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def move_down(self) -> None:
        if self.results:
            self.active_index = min(self.active_index + 1, len(self.results) - 1)

    def move_up(self) -> None:
        if self.results:
            self.active_index = max(self.active_index - 1, 0)

    @property
    def active(self) -> SearchResult | None:
        if not self.results:
            return None
        return self.results[self.active_index]

    def badge(self, result: SearchResult) -> str:
        return TYPE_CODES.get(result.type, "?")

    def select(self, index: int | None = None) -> str | None:
        """Close the overlay and return the route to navigate to."""
        if not self.enabled or not self.is_open or not self.results:
            return None
        if index is not None:
            if not 0 <= index < len(self.results):
                return None
            self.active_index = index
        result = self.results[self.active_index]
        self.close()
        return result.path

    def close(self) -> None:
        self._clear()
        self.is_open = False

    def items(self) -> list[dict[str, Any]]:
        return [
            {"badge": self.badge(r), "title": r.title, "code": r.code, "active": i == self.active_index}
            for i, r in enumerate(self.results)
        ]
