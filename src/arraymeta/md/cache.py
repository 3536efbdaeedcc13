"""
Time-bounded cache of array descriptors.

A single :class:`MetadataCache` is created at process start and shared by all
request threads. Lookups, staleness checks, backend fetches and writes for a
given array name run under that name's lock, so concurrent requests for the
same missing array trigger one backend call and never observe a half-written
entry. A name's lock lives only while some thread holds or waits for it.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence

from ..errors import BackendError, CoverageNotDefinedError, MetadataUnavailableError
from ..typing import Clock, MetadataSource
from .decoder import MetadataRecord, decode_records
from .descriptors import ArrayDescriptor

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_AFTER_SEC = 5 * 60


class CacheEntry(NamedTuple):
    descriptor: ArrayDescriptor
    fetched_at: float  # clock seconds


class _KeyLock:
    """Per-name lock with the number of threads holding or awaiting it."""

    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class MetadataCache:
    """
    Descriptor cache backed by a metadata transport.

    Args:
        transport: Source of raw metadata records
        refresh_after: Seconds after which an entry is refetched
        clock: Monotonic clock in seconds
        decode: Batch decoder turning records into descriptors
    """

    def __init__(
        self,
        transport: MetadataSource,
        *,
        refresh_after: float = DEFAULT_REFRESH_AFTER_SEC,
        clock: Clock = time.monotonic,
        decode: Callable[[Iterable[MetadataRecord]], List[ArrayDescriptor]] = decode_records,
    ) -> None:
        if refresh_after < 0:
            raise ValueError("refresh_after must not be negative")
        self.transport = transport
        self.refresh_after = float(refresh_after)
        self._clock = clock
        self._decode = decode
        self._entries: Dict[str, CacheEntry] = {}
        self._key_locks: Dict[str, _KeyLock] = {}
        self._registry_lock = threading.Lock()
        self._reload_lock = threading.Lock()

    def __contains__(self, name: object) -> bool:
        with self._registry_lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, name: str) -> ArrayDescriptor:
        """
        Descriptor of a single array.

        Raises:
            CoverageNotDefinedError: If the backend does not know the array
                or its metadata cannot be decoded
            MetadataUnavailableError: If the backend cannot be reached
        """
        found = self.get_many([name])
        if not found:
            raise CoverageNotDefinedError(name)
        return found[0]

    def get_many(self, names: Optional[Sequence[str]] = None) -> List[ArrayDescriptor]:
        """
        Descriptors for `names`, in request order.

        Fresh entries are served from the cache; all others are fetched in a
        single backend call. Names the backend does not return (or returns
        undecodable) are omitted. An empty or missing `names` reloads every
        array from the backend.
        """
        if not names:
            return self.reload_all()

        requested = list(dict.fromkeys(names))
        found: Dict[str, ArrayDescriptor] = {}
        with self._locked(requested):
            now = self._clock()
            missing = []
            for name in requested:
                descriptor = self._fresh(name, now)
                if descriptor is None:
                    missing.append(name)
                else:
                    found[name] = descriptor

            if missing:
                wanted = set(missing)
                fetched = [d for d in self._fetch(missing) if d.name in wanted]
                self._store(fetched)
                found.update((d.name, d) for d in fetched)

        return [found[name] for name in requested if name in found]

    def reload_all(self) -> List[ArrayDescriptor]:
        """
        Fetch every array from the backend, overwriting cached entries.

        If the backend is unreachable, still-valid cached entries are returned
        instead.
        """
        with self._reload_lock:
            try:
                records = self.transport.fetch([])
            except BackendError as exc:
                cached = self._valid_descriptors()
                if not cached:
                    raise MetadataUnavailableError([], exc) from exc
                logger.warning("Full metadata reload failed, serving %d cached arrays: %s", len(cached), exc)
                return cached

            descriptors = self._decode(records)
            for descriptor in descriptors:
                with self._locked([descriptor.name]):
                    self._store([descriptor])
            return descriptors

    def invalidate(self, name: str) -> bool:
        """Drop the entry for `name`; return whether one existed."""
        with self._locked([name]):
            with self._registry_lock:
                return self._entries.pop(name, None) is not None

    def clear(self) -> None:
        with self._registry_lock:
            self._entries.clear()

    def cached_names(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._entries)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _locked(self, names: Iterable[str]) -> Iterator[None]:
        """Hold the locks of `names`, dropping each lock once nobody uses it."""
        with self._registry_lock:
            slots = []
            for name in sorted(set(names)):
                slot = self._key_locks.get(name)
                if slot is None:
                    slot = self._key_locks[name] = _KeyLock()
                slot.users += 1
                slots.append((name, slot))

        acquired = []
        try:
            # sorted acquisition keeps overlapping batches deadlock-free
            for _, slot in slots:
                slot.lock.acquire()
                acquired.append(slot)
            yield
        finally:
            for slot in reversed(acquired):
                slot.lock.release()
            with self._registry_lock:
                for name, slot in slots:
                    slot.users -= 1
                    if slot.users == 0:
                        del self._key_locks[name]

    def _is_fresh(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.fetched_at <= self.refresh_after

    def _fresh(self, name: str, now: float) -> Optional[ArrayDescriptor]:
        with self._registry_lock:
            entry = self._entries.get(name)
            if entry is None:
                return None
            if self._is_fresh(entry, now):
                return entry.descriptor
            del self._entries[name]
        logger.debug("Cached metadata of array '%s' expired", name)
        return None

    def _valid_descriptors(self) -> List[ArrayDescriptor]:
        now = self._clock()
        with self._registry_lock:
            return [
                entry.descriptor
                for _, entry in sorted(self._entries.items())
                if self._is_fresh(entry, now)
            ]

    def _fetch(self, names: List[str]) -> List[ArrayDescriptor]:
        logger.debug("Fetching metadata of %d arrays: %s", len(names), ", ".join(names))
        try:
            records = self.transport.fetch(names)
        except BackendError as exc:
            raise MetadataUnavailableError(names, exc) from exc
        return self._decode(records)

    def _store(self, descriptors: List[ArrayDescriptor]) -> None:
        now = self._clock()
        with self._registry_lock:
            for descriptor in descriptors:
                self._entries[descriptor.name] = CacheEntry(descriptor, now)
