"""
Presentation State Layer

Responsibility:
Display-only state of a replay view (status indicator, captions,
fullscreen, help overlay, retry affordance).

PRINCIPLES:
1. Immutable (Frozen) snapshots
2. Driven by controller events, never by controller internals
3. No Rendering Logic
"""

from .view import PresentationState, StatusIndicator, ViewState

__all__ = [
    'PresentationState',
    'StatusIndicator',
    'ViewState',
]
