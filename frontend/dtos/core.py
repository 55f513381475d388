"""
Core DTO Types

Version type shared by all frontend DTOs.

VERSIONING REQUIREMENT:
=======================
Every DTO built by the mapper carries a version.
Frontend MUST fail fast on unknown versions.
"""

from __future__ import annotations
from enum import Enum
from typing import Final


class DTOVersion(Enum):
    """
    DTO schema versions.

    Frontend MUST reject unknown versions.
    """
    V1 = "v1"

    @classmethod
    def current(cls) -> 'DTOVersion':
        return cls.V1


CURRENT_DTO_VERSION: Final[DTOVersion] = DTOVersion.V1
