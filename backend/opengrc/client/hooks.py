"""
Fetch and mutation state holders.

A Resource issues one GET per trigger and keeps the last result, a
loading flag and the last error. Each request gets a generation number;
a response from an older generation, or one arriving after close(), is
dropped. Mutations invalidate ResourceCache keys on success, so every
subscribed Resource refetches without the caller wiring refetch calls.
"""
from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Generic, TypeVar

from opengrc.client.api import ApiClient, ApiError

log = logging.getLogger(__name__)

T = TypeVar("T")

CacheKey = tuple[str, Any]


class ResourceCache:
    """Subscription registry keyed by ``(resource, id)``; id ``None`` means the collection."""

    def __init__(self) -> None:
        self._subscribers: dict[CacheKey, set[Resource]] = defaultdict(set)

    def subscribe(self, key: CacheKey, resource: Resource) -> None:
        self._subscribers[key].add(resource)

    def unsubscribe(self, key: CacheKey, resource: Resource) -> None:
        subs = self._subscribers.get(key)
        if subs is None:
            return
        subs.discard(resource)
        if not subs:
            del self._subscribers[key]

    def subscribers(self, resource: str, id: Any = None) -> list[Resource]:
        if id is not None:
            return list(self._subscribers.get((resource, id), ()))
        found: list[Resource] = []
        for (name, _), subs in self._subscribers.items():
            if name == resource:
                found.extend(subs)
        return found

    async def invalidate(self, resource: str, id: Any = None) -> None:
        """Refetch subscribers of one entity, or of every key under ``resource`` when id is None."""
        targets = self.subscribers(resource, id)
        if targets:
            log.debug("Invalidating %s:%s (%d subscribers)", resource, id, len(targets))
            await asyncio.gather(*(r.refetch() for r in targets))


class Resource(Generic[T]):
    def __init__(
        self,
        client: ApiClient,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        model: Any = None,
        enabled: bool = True,
        cache: ResourceCache | None = None,
        cache_key: CacheKey | None = None,
    ):
        self.client = client
        self.path = path
        self.params = dict(params or {})
        self.model = model
        self.enabled = enabled
        self.data: T | None = None
        self.error: ApiError | None = None
        self.is_loading = enabled
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self._cache = cache
        self._cache_key = cache_key
        if cache is not None and cache_key is not None:
            cache.subscribe(cache_key, self)

    @property
    def closed(self) -> bool:
        return self._closed

    async def refetch(self) -> None:
        if self._closed:
            return
        if not self.enabled:
            self.data, self.error, self.is_loading = None, None, False
            return

        self._generation += 1
        generation = self._generation
        self.is_loading = True
        self.error = None
        try:
            data = await self.client.get(self.path, params=self.params, model=self.model)
        except ApiError as exc:
            if self._current(generation):
                self.data, self.error, self.is_loading = None, exc, False
            return
        if self._current(generation):
            self.data, self.is_loading = data, False
        else:
            log.debug("Dropping stale response for %s", self.path)

    def _current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def start(self) -> asyncio.Task:
        """
        Schedule a fetch. A fetch already in flight is left to finish and
        its response is dropped as stale, so anyone awaiting the older
        task still gets a normal return.
        """
        task = asyncio.ensure_future(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self) -> None:
        # refetch() takes this generation before its first await
        generation = self._generation + 1
        try:
            await self.refetch()
        except asyncio.CancelledError:
            # cancelled by close(), or a newer fetch has taken over
            if self._closed or generation != self._generation:
                return
            raise

    def set_path(
        self,
        path: str | None = None,
        *,
        params: dict[str, Any] | None = None,
        enabled: bool | None = None,
        cache_key: CacheKey | None = None,
    ) -> asyncio.Task:
        if path is not None:
            self.path = path
        if params is not None:
            self.params = dict(params)
        if enabled is not None:
            self.enabled = enabled
        if cache_key is not None and cache_key != self._cache_key and self._cache is not None:
            if self._cache_key is not None:
                self._cache.unsubscribe(self._cache_key, self)
            self._cache_key = cache_key
            self._cache.subscribe(cache_key, self)
        return self.start()

    async def close(self) -> None:
        self._closed = True
        self.is_loading = False
        if self._cache is not None and self._cache_key is not None:
            self._cache.unsubscribe(self._cache_key, self)
        pending = [t for t in self._tasks if not t.done()]
        self._tasks.clear()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def __aenter__(self) -> Resource[T]:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


class Mutation(Generic[T]):
    """
    Wraps an async write. Errors are captured in ``error`` and mutate()
    returns None; on success the listed cache keys are invalidated.

    ``invalidates`` entries are resource names or ``(resource, id)`` pairs.
    """

    def __init__(
        self,
        fn: Callable[..., Awaitable[T]],
        *,
        cache: ResourceCache | None = None,
        invalidates: Iterable[str | CacheKey] = (),
    ):
        self.fn = fn
        self.cache = cache
        self.invalidates = list(invalidates)
        self.data: T | None = None
        self.error: ApiError | None = None
        self.is_loading = False

    async def mutate(self, *args: Any, **kwargs: Any) -> T | None:
        self.is_loading = True
        self.error = None
        try:
            result = await self.fn(*args, **kwargs)
        except ApiError as exc:
            self.error = exc
            return None
        finally:
            self.is_loading = False
        self.data = result
        if self.cache is not None:
            for key in self.invalidates:
                if isinstance(key, tuple):
                    await self.cache.invalidate(*key)
                else:
                    await self.cache.invalidate(key)
        return result

    def reset(self) -> None:
        self.data = None
        self.error = None
