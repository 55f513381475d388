"""
Integration Tests Package

End-to-end tests across engine, storage and the read API.

TEST AXIOMS:
=============
1. Determinism: same recorded history = identical snapshots
2. One-way authority: readers never mutate the event log
3. Explicit failure: no silent fallbacks
"""
