"""Multi-select dialog for batch-adding many-to-many relationships."""
from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import BaseModel

from opengrc.client.api import ApiError


def _field(item: Any, name: str) -> Any:
    if isinstance(item, BaseModel):
        return getattr(item, name, None)
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class RelationshipSelector:
    """
    ``load_candidates(context)`` returns the full candidate set for a
    context (a framework id, say, or None when there is no nesting).
    ``existing_ids()`` is read on every open so exclusion always reflects
    the current relationships. ``submit(ids)`` sends one batch request.
    Closing resets selection, search text and the chosen context.
    """

    def __init__(
        self,
        load_candidates: Callable[[Any], Awaitable[list[Any]]],
        existing_ids: Callable[[], Iterable[Any]],
        submit: Callable[[list[Any]], Awaitable[Any]],
        *,
        search_fields: tuple[str, ...] = ("code", "name", "title", "description"),
        group_field: str = "category",
        id_field: str = "id",
    ):
        self._load = load_candidates
        self._existing = existing_ids
        self._submit = submit
        self.search_fields = search_fields
        self.group_field = group_field
        self.id_field = id_field
        self._reset()

    def _reset(self) -> None:
        self.is_open = False
        self.context: Any = None
        self.candidates: list[Any] = []
        self.selected: set[Any] = set()
        self.search = ""
        self.error: ApiError | None = None
        self.is_loading = False
        self._excluded: set[Any] = set()

    async def open(self, context: Any = None) -> None:
        self._reset()
        self.is_open = True
        self._excluded = set(self._existing())
        if context is not None:
            await self.choose_context(context)

    async def choose_context(self, context: Any) -> None:
        self.context = context
        self.selected.clear()
        self.search = ""
        self.error = None
        self.is_loading = True
        try:
            self.candidates = list(await self._load(context))
        except ApiError as exc:
            self.candidates = []
            self.error = exc
        finally:
            self.is_loading = False

    def _id(self, item: Any) -> Any:
        return _field(item, self.id_field)

    @property
    def available(self) -> list[Any]:
        """Candidates not already related, narrowed by the search text."""
        term = self.search.lower()
        out = []
        for item in self.candidates:
            if self._id(item) in self._excluded:
                continue
            if term and not any(
                term in str(_field(item, f) or "").lower() for f in self.search_fields
            ):
                continue
            out.append(item)
        return out

    def set_search(self, text: str) -> None:
        self.search = text.strip()

    def toggle(self, item_id: Any) -> None:
        if item_id in self.selected:
            self.selected.discard(item_id)
        elif item_id not in self._excluded:
            self.selected.add(item_id)

    def select_all(self) -> None:
        self.selected.update(self._id(item) for item in self.available)

    def clear_all(self) -> None:
        self.selected.clear()

    def grouped(self) -> dict[str, list[Any]]:
        groups: dict[str, list[Any]] = {}
        for item in self.available:
            key = _field(item, self.group_field) or "Other"
            groups.setdefault(str(key), []).append(item)
        return groups

    async def confirm(self) -> bool:
        if not self.selected:
            return False
        ids = sorted(self.selected)
        try:
            result = await self._submit(ids)
        except ApiError as exc:
            self.error = exc
            return False
        # submitters built on Mutation report failure as False
        if result is False:
            return False
        self.close()
        return True

    def close(self) -> None:
        self._reset()
