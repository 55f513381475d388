"""
Document Replay Engine Backend

This package implements a strictly layered backend for recording and
replaying the edit history of collaboratively written documents. Each
layer communicates only through explicit contracts, never through shared
mutable state.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Responsibility: Immutable data types and the error taxonomy
   - Outputs: TimelineEvent, ContentDelta, Keyframe, ReconstructedState
   - MUST NOT: Depend on any other layer

2. TEMPORAL CORE (temporal/)
   - Responsibility: Event log, keyframes, reconstruction, attribution,
     playback state machine
   - Allowed inputs: TimelineEvents in sequence order
   - Outputs: ReconstructedState, AuthorStats, controller events
   - MUST NOT: Persist data, mutate appended events

3. STORAGE (storage/)
   - Responsibility: Append-only persistence of recorded histories
   - Allowed inputs: Document headers and TimelineEvents
   - MUST NOT: Derive content or validate history semantics

4. DOMAIN (domain/)
   - Responsibility: JSON wire format of every contract type

5. READ API (api/)
   - Responsibility: Read-only HTTP access to timelines and snapshots
   - MUST NOT: Write to an event log

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: All data structures are frozen/immutable
- Append-only: No in-place mutation of recorded history
- Deterministic: Identical logs always reconstruct identical documents
- Explicit errors: Inconsistent history fails loudly, never silently
- Display-only filtering: Author filters never change content
"""
