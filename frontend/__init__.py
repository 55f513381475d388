"""
Replay Frontend

Client-side layers of the replay view. Each layer consumes the one
below it through frozen DTOs and never mutates backend state.

LAYER STRUCTURE:
================
1. client.py / mapper.py  - API access, LRU snapshot cache, DTO mapping
2. dtos/                  - Read-only views of API payloads
3. state/                 - Display-only view state driven by controller events
4. interaction/           - Keyboard shortcuts and user intents
5. visualization/         - Scrubber markers and attribution emphasis
6. presentation/          - ViewModels for UI components
"""
