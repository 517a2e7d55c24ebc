# tests/property/__init__.py
"""Property-based tests for b2ctrace.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of.

Test categories:
- trace/: parse determinism, ordering, visit tracking, tree invariants
"""
