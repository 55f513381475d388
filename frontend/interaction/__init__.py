from .temporal import IntentType, InteractionRequest, TemporalControlState
from .shortcuts import ShortcutDispatcher, build_bindings, normalize_key, shortcut_help

__all__ = [
    'IntentType',
    'InteractionRequest',
    'TemporalControlState',
    'ShortcutDispatcher',
    'build_bindings',
    'normalize_key',
    'shortcut_help',
]
