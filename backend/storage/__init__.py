"""
Document Storage Layer

RESPONSIBILITY: Append-only persistence of recorded edit histories
ALLOWED INPUTS: Document headers and TimelineEvents
OUTPUTS: The same values, in the order they were written

WHAT THIS LAYER MUST NOT DO:
============================
- Reorder, rewrite or delete stored events
- Materialize content (keyframes are rebuilt from the log on load)
- Validate history semantics (the event log does that on replay)

BOUNDARY ENFORCEMENT:
=====================
- ONLY stores immutable contract values
- All writes are append operations
- One document per file id; headers are written once
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
import json
import logging
import os

from ..contracts.events import Author, TimelineEvent
from ..domain.serialization import (
    SerializationError, author_from_dict, author_to_dict, dumps,
    event_from_dict, event_to_dict,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentHeader:
    """Descriptive metadata of a tracked document."""
    file_id: str
    file_name: str
    project_name: str = ""
    authors: Tuple[Author, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": "document",
            "fileId": self.file_id,
            "fileName": self.file_name,
            "projectName": self.project_name,
            "authors": [author_to_dict(a) for a in self.authors],
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> 'DocumentHeader':
        authors = tuple(
            author_from_dict(a, ordinal=i)
            for i, a in enumerate(data.get("authors", ()))
        )
        return DocumentHeader(
            file_id=str(data["fileId"]),
            file_name=str(data.get("fileName", "")),
            project_name=str(data.get("projectName", "")),
            authors=authors,
        )


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class StorageBackend:
    """
    Abstract storage backend interface.

    Implementations can use different storage systems (memory, file)
    while maintaining the same append-only semantics.
    """

    def create_document(self, header: DocumentHeader) -> None:
        """Register a new document. Fails if the id is taken."""
        raise NotImplementedError

    def append_event(self, file_id: str, event: TimelineEvent) -> None:
        """Persist one event (append-only)."""
        raise NotImplementedError

    def list_file_ids(self) -> List[str]:
        raise NotImplementedError

    def load_header(self, file_id: str) -> Optional[DocumentHeader]:
        raise NotImplementedError

    def load_events(self, file_id: str) -> Iterator[TimelineEvent]:
        """Stored events in write order."""
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORAGE BACKEND (Reference Implementation)
# =============================================================================

class InMemoryStorageBackend(StorageBackend):
    """
    In-memory implementation of storage backend.

    Suitable for testing and single-process deployments.
    """

    def __init__(self):
        self._headers: Dict[str, DocumentHeader] = {}
        self._events: Dict[str, List[TimelineEvent]] = {}

    def create_document(self, header: DocumentHeader) -> None:
        if header.file_id in self._headers:
            raise ValueError(f"Document {header.file_id} already exists")
        self._headers[header.file_id] = header
        self._events[header.file_id] = []

    def append_event(self, file_id: str, event: TimelineEvent) -> None:
        if file_id not in self._headers:
            raise KeyError(file_id)
        self._events[file_id].append(event)

    def list_file_ids(self) -> List[str]:
        return list(self._headers)

    def load_header(self, file_id: str) -> Optional[DocumentHeader]:
        return self._headers.get(file_id)

    def load_events(self, file_id: str) -> Iterator[TimelineEvent]:
        return iter(list(self._events.get(file_id, ())))


# =============================================================================
# FILE STORAGE BACKEND (JSON Lines)
# =============================================================================

class FileStorageBackend(StorageBackend):
    """
    One JSONL file per document.

    Line 1 is the document header; every following line is one event.
    Files are only ever opened for append after creation.
    """

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        # Ensure storage directory exists
        os.makedirs(storage_dir, exist_ok=True)

    def _path(self, file_id: str) -> str:
        safe = "".join(c for c in file_id if c.isalnum() or c in "-_")
        if not safe or safe != file_id:
            raise ValueError(f"Unsupported file id for file storage: {file_id!r}")
        return os.path.join(self._storage_dir, f"{safe}.jsonl")

    def create_document(self, header: DocumentHeader) -> None:
        path = self._path(header.file_id)
        if os.path.exists(path):
            raise ValueError(f"Document {header.file_id} already exists")
        with open(path, 'x', encoding='utf-8') as f:
            f.write(dumps(header.to_dict()) + "\n")

    def append_event(self, file_id: str, event: TimelineEvent) -> None:
        path = self._path(file_id)
        if not os.path.exists(path):
            raise KeyError(file_id)
        record = event_to_dict(event)
        record["type"] = "event"
        with open(path, 'a', encoding='utf-8') as f:
            f.write(dumps(record) + "\n")

    def list_file_ids(self) -> List[str]:
        return sorted(
            name[:-len(".jsonl")]
            for name in os.listdir(self._storage_dir)
            if name.endswith(".jsonl")
        )

    def _read_lines(self, file_id: str) -> Iterator[Tuple[int, Dict[str, object]]]:
        path = self._path(file_id)
        if not os.path.exists(path):
            return
        with open(path, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    yield line_no, json.loads(line)
                except json.JSONDecodeError as e:
                    raise SerializationError(f"{path}:{line_no}: invalid JSON ({e.msg})") from e

    def load_header(self, file_id: str) -> Optional[DocumentHeader]:
        for line_no, data in self._read_lines(file_id):
            if data.get("type") != "document":
                raise SerializationError(f"{file_id}: line {line_no} is not a document header")
            return DocumentHeader.from_dict(data)
        return None

    def load_events(self, file_id: str) -> Iterator[TimelineEvent]:
        for _, data in self._read_lines(file_id):
            if data.get("type") == "event":
                yield event_from_dict(data)


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class StorageConfig:
    """Configuration for document storage."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None


def create_backend(config: Optional[StorageConfig] = None) -> StorageBackend:
    """Create storage backend based on configuration."""
    config = config or StorageConfig()
    if config.backend_type == "file" and config.storage_dir:
        logger.info("Using file storage at %s", config.storage_dir)
        return FileStorageBackend(config.storage_dir)
    return InMemoryStorageBackend()
