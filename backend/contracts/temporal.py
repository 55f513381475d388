from __future__ import annotations
from dataclasses import dataclass
import hashlib

from .events import TimelineEvent


@dataclass(frozen=True)
class LogEntry:
    """
    Immutable log entry.
    INVARIANTS:
    - Once written, never modified.
    - Entries form a hash chain for integrity verification.
    """
    event: TimelineEvent
    previous_hash: str
    entry_hash: str

    @property
    def sequence_index(self) -> int:
        return self.event.sequence_index

    @staticmethod
    def compute_hash(event: TimelineEvent, previous_hash: str) -> str:
        hash_content = (
            f"{event.sequence_index}|"
            f"{event.fingerprint()}|"
            f"{previous_hash}"
        )
        return hashlib.sha256(hash_content.encode()).hexdigest()

    @staticmethod
    def create(event: TimelineEvent, previous_hash: str) -> 'LogEntry':
        """Factory for deterministic entry creation."""
        return LogEntry(
            event=event,
            previous_hash=previous_hash,
            entry_hash=LogEntry.compute_hash(event, previous_hash),
        )
