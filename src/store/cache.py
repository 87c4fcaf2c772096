from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from utils.logger import get_logger

_logger = get_logger(__name__)

QueryKey = Tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]
Subscriber = Callable[["QueryState"], Any]


@dataclass(frozen=True)
class QueryState:
    """
    Snapshot of one cache entry.

    Fields:
      - data: last successfully fetched value (kept when a later fetch fails)
      - has_data: False until the first successful fetch
      - error: exception of the last fetch, None if it succeeded
      - stale: True when the next read must go to the server
    """

    key: QueryKey
    data: Any = None
    has_data: bool = False
    error: Optional[BaseException] = None
    stale: bool = True
    updated_at: Optional[datetime] = None


@dataclass
class _Entry:
    state: QueryState
    fetcher: Optional[Fetcher] = None
    inflight: Optional[asyncio.Task] = None
    # generation the in-flight fetch was started for
    inflight_generation: int = 0
    generation: int = 0
    # bumped by remove(), answers of fetches started earlier are dropped
    resets: int = 0
    subscribers: List[Subscriber] = field(default_factory=list)


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """
    Key-indexed cache of server responses.

    Writes never patch cached values. After a mutation the caller invalidates
    the affected keys, and the next read (or the refetch triggered for
    subscribed consumers) brings the server's answer.
    """

    def __init__(self) -> None:
        self._entries: Dict[QueryKey, _Entry] = {}

    def _entry(self, key: QueryKey) -> _Entry:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry(state=QueryState(key=key))
            self._entries[key] = entry
        return entry

    # ---------------------------
    # Reads
    # ---------------------------

    async def query(self, key: QueryKey, fetcher: Optional[Fetcher] = None) -> QueryState:
        """
        Return the cached state for ``key``, fetching it first when missing or
        stale. Readers of the same key share one in-flight fetch. Fetch
        failures are reported through ``QueryState.error``, never raised.
        """
        entry = self._entry(key)
        if fetcher is not None:
            entry.fetcher = fetcher
        if entry.fetcher is None:
            raise LookupError(f"No fetcher registered for {key!r}")

        if entry.state.has_data and not entry.state.stale:
            return entry.state
        return await self._fetch(entry)

    def peek(self, key: QueryKey) -> Any:
        """Cached data without touching the network, None if never fetched."""
        entry = self._entries.get(key)
        return entry.state.data if entry else None

    def get_state(self, key: QueryKey) -> Optional[QueryState]:
        entry = self._entries.get(key)
        return entry.state if entry else None

    async def _fetch(self, entry: _Entry) -> QueryState:
        while entry.inflight is not None and entry.inflight_generation != entry.generation:
            # started before an invalidation, its answer may predate the write
            await asyncio.shield(entry.inflight)
            if entry.state.has_data and not entry.state.stale:
                return entry.state
        if entry.inflight is None:
            entry.inflight_generation = entry.generation
            entry.inflight = asyncio.ensure_future(self._run_fetch(entry, entry.generation))
        # a cancelled reader must not cancel the fetch other readers wait on
        return await asyncio.shield(entry.inflight)

    async def _run_fetch(self, entry: _Entry, generation: int) -> QueryState:
        key = entry.state.key
        resets = entry.resets
        error: Optional[Exception] = None
        try:
            data = await entry.fetcher()
        except Exception as e:
            error = e
        finally:
            if entry.resets == resets:
                entry.inflight = None

        if entry.resets != resets:
            _logger.debug(f"Dropping answer for {key!r}, the entry was reset meanwhile")
            return entry.state

        if error is not None:
            _logger.warning(f"Fetch of {key!r} failed, keeping previous data: {error}")
            entry.state = replace(entry.state, error=error)
        else:
            entry.state = replace(
                entry.state,
                data=data,
                has_data=True,
                error=None,
                # invalidated while the request was out: still stale
                stale=generation != entry.generation,
                updated_at=datetime.now(),
            )

        await self._notify(entry)
        return entry.state

    # ---------------------------
    # Writes
    # ---------------------------

    async def invalidate(self, prefix: QueryKey) -> None:
        """
        Mark every entry whose key starts with ``prefix`` stale and refetch the
        ones that currently have subscribers. Returns once those refetches
        settled.
        """
        matched = [e for k, e in self._entries.items() if _matches(k, prefix)]
        for entry in matched:
            entry.generation += 1
            entry.state = replace(entry.state, stale=True)
        _logger.debug(f"Invalidated {len(matched)} entries under {prefix!r}")

        active = [e for e in matched if e.subscribers and e.fetcher is not None]
        if active:
            await asyncio.gather(*(self._refetch(e) for e in active))

    async def _refetch(self, entry: _Entry) -> None:
        if entry.state.stale:
            await self._fetch(entry)

    async def set_data(self, key: QueryKey, data: Any) -> None:
        """Seed an entry with a value the server already returned."""
        entry = self._entry(key)
        entry.generation += 1
        entry.state = replace(
            entry.state,
            data=data,
            has_data=True,
            error=None,
            stale=False,
            updated_at=datetime.now(),
        )
        await self._notify(entry)

    def remove(self, prefix: QueryKey) -> None:
        for key in [k for k in self._entries if _matches(k, prefix)]:
            entry = self._entries[key]
            # a fetch still out belongs to the forgotten data
            entry.resets += 1
            entry.inflight = None
            if entry.subscribers:
                # keep the subscription alive, forget the data
                entry.generation += 1
                entry.state = QueryState(key=key)
            else:
                del self._entries[key]

    def clear(self) -> None:
        """Forget every cached value, used on logout."""
        self.remove(())

    # ---------------------------
    # Subscriptions
    # ---------------------------

    def subscribe(self, key: QueryKey, callback: Subscriber) -> Callable[[], None]:
        """
        Call ``callback(state)`` after every settled fetch of ``key``.
        Returns a function that removes the subscription.
        """
        entry = self._entry(key)
        entry.subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in entry.subscribers:
                entry.subscribers.remove(callback)

        return unsubscribe

    async def _notify(self, entry: _Entry) -> None:
        for callback in list(entry.subscribers):
            try:
                result = callback(entry.state)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                _logger.exception(f"Subscriber of {entry.state.key!r} failed")
