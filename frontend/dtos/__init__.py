"""
Frontend DTO Package

Read-only, immutable Data Transfer Objects for frontend consumption.

BOUNDARY ENFORCEMENT:
=====================
1. All DTOs are frozen (immutable)
2. All DTOs are versioned
3. Frontend receives ONLY these types, never backend entities
4. Missing data is EXPLICIT, never inferred
"""

from .core import CURRENT_DTO_VERSION, DTOVersion
from .timeline import (
    AuthorDTO, DiffDTO, DiffSpanDTO, FlagDTO, SessionDTO, SnapshotDTO, TimelineDTO,
    TimelineEventDTO,
)

__all__ = [
    'CURRENT_DTO_VERSION',
    'DTOVersion',
    'AuthorDTO',
    'DiffDTO',
    'DiffSpanDTO',
    'FlagDTO',
    'SessionDTO',
    'SnapshotDTO',
    'TimelineDTO',
    'TimelineEventDTO',
]
