"""
Side-panel controller for a single entity.

    CLOSED --open(id)--> LOADING --fetched--> VIEWING <--cancel/save-- EDITING
                                                 |  --edit()-->
                                                 +--delete(confirm)--> CLOSED

Relationship collections load alongside the entity. Removing an item
deletes only the association row.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from opengrc.client.api import ApiClient, ApiError
from opengrc.client.hooks import Mutation, Resource, ResourceCache

log = logging.getLogger(__name__)


class SheetState(str, enum.Enum):
    CLOSED = "closed"
    LOADING = "loading"
    VIEWING = "viewing"
    EDITING = "editing"


def _as_form(entity: Any) -> dict[str, Any]:
    if isinstance(entity, BaseModel):
        return entity.model_dump(mode="json")
    return dict(entity or {})


class Relation:
    """
    A related collection shown in the sheet.

    ``ids_field`` marks a many-to-many mapping managed by batch
    POST/DELETE ``/{resource}/{id}/{path}`` with ``{ids_field: [...]}``.
    Without it the collection holds owned child records created via
    ``create(body)``. ``embedded`` names a field of the parent entity that
    already carries the items, so no separate GET is issued.
    """

    def __init__(
        self,
        path: str,
        *,
        model: Any = None,
        ids_field: str | None = None,
        embedded: str | None = None,
        item_id: str = "id",
    ):
        self.path = path
        self.model = model
        self.ids_field = ids_field
        self.embedded = embedded
        self.item_id = item_id
        self.sheet: DetailSheet | None = None
        self._resource: Resource[list[Any]] | None = None
        self._mutation = Mutation(self._write)

    def bind(self, sheet: DetailSheet) -> None:
        self.sheet = sheet
        if self.embedded is None:
            self._resource = Resource(
                sheet.client, "", model=list[self.model] if self.model is not None else None,
                enabled=False,
            )

    def _url(self) -> str:
        assert self.sheet is not None and self.sheet.entity_id is not None
        return f"/{self.sheet.resource}/{self.sheet.entity_id}/{self.path}"

    async def load(self) -> None:
        if self._resource is not None:
            await self._resource.set_path(self._url(), enabled=True)

    @property
    def items(self) -> list[Any]:
        if self.embedded is not None:
            entity = self.sheet.entity if self.sheet else None
            if entity is None:
                return []
            if isinstance(entity, BaseModel):
                return list(getattr(entity, self.embedded, None) or [])
            return list(entity.get(self.embedded) or [])
        return (self._resource.data if self._resource else None) or []

    @property
    def is_loading(self) -> bool:
        if self.embedded is not None:
            return self.sheet.is_loading if self.sheet else False
        return self._resource.is_loading if self._resource else False

    @property
    def load_error(self) -> ApiError | None:
        return self._resource.error if self._resource else None

    @property
    def error(self) -> ApiError | None:
        return self._mutation.error

    @property
    def existing_ids(self) -> set[Any]:
        ids = set()
        for item in self.items:
            ids.add(getattr(item, self.item_id) if isinstance(item, BaseModel) else item[self.item_id])
        return ids

    async def _write(self, method: str, body: Any) -> Any:
        return await self.sheet.client.request(method, self._url(), body)

    async def _refresh(self) -> None:
        if self.embedded is not None:
            await self.sheet.reload()
        else:
            await self.load()

    async def add(self, ids: list[Any], **extra: Any) -> bool:
        if not self.ids_field:
            raise TypeError(f"{self.path} is not a mapping relation")
        if not ids:
            return True
        await self._mutation.mutate("POST", {self.ids_field: list(ids), **extra})
        if self._mutation.error is not None:
            return False
        await self._refresh()
        return True

    async def remove(self, item_id: Any) -> bool:
        if not self.ids_field:
            raise TypeError(f"{self.path} is not a mapping relation")
        await self._mutation.mutate("DELETE", {self.ids_field: [item_id]})
        if self._mutation.error is not None:
            return False
        await self._refresh()
        return True

    async def create(self, body: dict[str, Any]) -> bool:
        if self.ids_field:
            raise TypeError(f"{self.path} is a mapping relation, use add()")
        await self._mutation.mutate("POST", body)
        if self._mutation.error is not None:
            return False
        await self._refresh()
        return True

    async def close(self) -> None:
        if self._resource is not None:
            await self._resource.close()
            self._resource = None
        self._mutation.reset()


class DetailSheet:
    def __init__(
        self,
        client: ApiClient,
        resource: str,
        model: Any = None,
        relations: dict[str, Relation] | None = None,
        *,
        cache: ResourceCache | None = None,
        on_change: Callable[[], Awaitable[None]] | None = None,
    ):
        self.client = client
        self.resource = resource
        self.model = model
        self.cache = cache
        self.on_change = on_change
        self.relations = relations or {}
        self.state = SheetState.CLOSED
        self.entity_id: int | None = None
        self.form: dict[str, Any] | None = None
        self.error: ApiError | None = None
        self._entity: Resource[Any] | None = None
        self._save = Mutation(self._put, cache=cache, invalidates=[resource])
        self._delete = Mutation(self._remove, cache=cache, invalidates=[resource])
        for rel in self.relations.values():
            rel.bind(self)

    async def _put(self, body: dict[str, Any]) -> Any:
        return await self.client.put(f"/{self.resource}/{self.entity_id}", body)

    async def _remove(self) -> Any:
        return await self.client.delete(f"/{self.resource}/{self.entity_id}")

    # ── state ──

    @property
    def entity(self) -> Any:
        return self._entity.data if self._entity else None

    @property
    def is_loading(self) -> bool:
        return self._entity.is_loading if self._entity else False

    @property
    def load_error(self) -> ApiError | None:
        return self._entity.error if self._entity else None

    @property
    def values(self) -> dict[str, Any]:
        """What the sheet shows: the local form while editing, else the fetched entity."""
        if self.state is SheetState.EDITING and self.form is not None:
            return self.form
        return _as_form(self.entity)

    # ── transitions ──

    async def open(self, entity_id: int) -> None:
        if self.state is not SheetState.CLOSED:
            await self.close()
        self.entity_id = entity_id
        self.error = None
        self.form = None
        self.state = SheetState.LOADING
        self._entity = Resource(self.client, f"/{self.resource}/{entity_id}", model=self.model)
        await asyncio.gather(self._entity.start(), *(r.load() for r in self.relations.values()))
        # a later open() may have taken over while this one was loading
        if self.entity_id == entity_id and self.state is SheetState.LOADING and self.entity is not None:
            self.state = SheetState.VIEWING

    async def reload(self) -> None:
        if self._entity is not None:
            await self._entity.refetch()

    def edit(self) -> None:
        if self.state is not SheetState.VIEWING:
            raise RuntimeError(f"Cannot edit from state {self.state.value}")
        self.form = _as_form(self.entity)
        self.error = None
        self.state = SheetState.EDITING

    def update_field(self, name: str, value: Any) -> None:
        if self.state is not SheetState.EDITING or self.form is None:
            raise RuntimeError("Sheet is not in edit mode")
        self.form[name] = value

    def cancel(self) -> None:
        if self.state is SheetState.EDITING:
            self.form = None
            self.error = None
            self.state = SheetState.VIEWING

    async def save(self) -> bool:
        if self.state is not SheetState.EDITING or self.form is None:
            raise RuntimeError("Sheet is not in edit mode")
        await self._save.mutate(dict(self.form))
        if self._save.error is not None:
            self.error = self._save.error
            return False
        await self.reload()
        self.form = None
        self.error = None
        self.state = SheetState.VIEWING
        if self.on_change is not None:
            await self.on_change()
        return True

    async def delete(self, confirm: Callable[[], bool]) -> bool:
        if self.state is not SheetState.VIEWING:
            return False
        if not confirm():
            return False
        await self._delete.mutate()
        if self._delete.error is not None:
            self.error = self._delete.error
            return False
        log.debug("Deleted %s %s", self.resource, self.entity_id)
        await self.close()
        if self.on_change is not None:
            await self.on_change()
        return True

    async def close(self) -> None:
        self.state = SheetState.CLOSED
        self.form = None
        self.error = None
        if self._entity is not None:
            await self._entity.close()
            self._entity = None
        for rel in self.relations.values():
            await rel.close()
            rel.bind(self)
        self.entity_id = None
