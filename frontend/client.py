"""
Replay API Client

Fetches timelines and reconstructed snapshots from the read API.

CACHING:
========
Snapshots are immutable per (file_id, event_index) as long as the log
does not grow, so recently fetched indices are kept in a small LRU cache
to avoid refetching while scrubbing. invalidate() drops a file's entries
after its timeline is reloaded.

FAILURES:
=========
Every transport or HTTP failure surfaces as LoadError. The presentation
layer decides whether to offer a retry.
"""

from __future__ import annotations
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple
import logging

import httpx

from backend.contracts.errors import LoadError
from frontend.dtos import DiffDTO, SessionDTO, SnapshotDTO, TimelineDTO
from frontend.mapper import DTOMapper

logger = logging.getLogger(__name__)


DEFAULT_SNAPSHOT_CACHE_SIZE = 64


class SnapshotCache:
    """Least-recently-used cache keyed by (file_id, event_index)."""

    def __init__(self, max_entries: int = DEFAULT_SNAPSHOT_CACHE_SIZE):
        self._max_entries = max_entries
        self._entries: "OrderedDict[Tuple[str, int], SnapshotDTO]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return key in self._entries

    def get(self, key: Tuple[str, int]) -> Optional[SnapshotDTO]:
        snapshot = self._entries.get(key)
        if snapshot is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return snapshot

    def put(self, key: Tuple[str, int], snapshot: SnapshotDTO) -> None:
        if self._max_entries <= 0:
            return
        self._entries[key] = snapshot
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def invalidate(self, file_id: Optional[str] = None) -> int:
        """Drop entries for one file, or all entries. Returns entries removed."""
        if file_id is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed
        stale = [key for key in self._entries if key[0] == file_id]
        for key in stale:
            del self._entries[key]
        return len(stale)


class TimelineClient:
    """
    Synchronous client for the replay read API.

    A custom httpx transport may be injected (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        cache_size: int = DEFAULT_SNAPSHOT_CACHE_SIZE,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self._mapper = DTOMapper()
        self._cache = SnapshotCache(cache_size)

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> 'TimelineClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # REQUESTS
    # =========================================================================

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._http.get(path, params=params)
        except httpx.TimeoutException as e:
            raise LoadError(f"Timed out fetching {path}", context={"path": path}) from e
        except httpx.HTTPError as e:
            raise LoadError(f"Could not reach replay API for {path}: {e}", context={"path": path}) from e

        if response.status_code != 200:
            raise LoadError(
                f"HTTP {response.status_code} fetching {path}: {self._error_message(response)}",
                status_code=response.status_code,
                context={"path": path},
            )
        try:
            return response.json()
        except ValueError as e:
            raise LoadError(f"Invalid JSON from {path}", status_code=200, context={"path": path}) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and "message" in error:
                return str(error["message"])
            if "detail" in body:
                return str(body["detail"])
        return str(body)[:200]

    def fetch_timeline(
        self,
        file_id: str,
        session_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> TimelineDTO:
        """
        Timeline metadata, optionally windowed. Drops cached snapshots of the file.

        Only the window bounds that are given are sent.
        """
        params: Dict[str, Any] = {}
        if session_id is not None:
            params["session_id"] = session_id
        if start_time is not None:
            params["start_time"] = start_time.isoformat()
        if end_time is not None:
            params["end_time"] = end_time.isoformat()
        if limit is not None:
            params["limit"] = limit
        timeline = self._mapper.map_timeline(
            self._get(f"/files/{file_id}/timeline", params=params or None)
        )
        self._cache.invalidate(file_id)
        logger.info(
            "Fetched timeline %s (%d of %d events)",
            file_id, timeline.total_events, timeline.document_events,
        )
        return timeline

    def fetch_sessions(self, file_id: str) -> Tuple[SessionDTO, ...]:
        return self._mapper.map_sessions(self._get(f"/files/{file_id}/sessions"))

    def fetch_snapshot(self, file_id: str, event_index: int) -> SnapshotDTO:
        key = (file_id, event_index)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Snapshot cache hit %s@%d", file_id, event_index)
            return cached
        snapshot = self._mapper.map_snapshot(self._get(f"/files/{file_id}/snapshot/{event_index}"))
        self._cache.put(key, snapshot)
        return snapshot

    def prefetch(self, file_id: str, indices: Iterable[int]) -> int:
        """Warm the cache around the playhead. Returns snapshots fetched."""
        fetched = 0
        for index in indices:
            if (file_id, index) in self._cache:
                continue
            self.fetch_snapshot(file_id, index)
            fetched += 1
        return fetched

    def fetch_diff(self, file_id: str, from_index: int, to_index: int) -> DiffDTO:
        return self._mapper.map_diff(
            self._get(f"/files/{file_id}/diff", params={"from": from_index, "to": to_index})
        )

    def export_timeline(self, file_id: str) -> Dict[str, Any]:
        return self._get(f"/files/{file_id}/export")
