# tests/strategies/__init__.py
"""Hypothesis strategies for property-based tests.

Re-exports commonly used strategies for convenience:
    from tests.strategies import step_sequences, trace_steps
"""

from tests.strategies.trace import profile_ids, step_sequences, trace_steps, tree_operations

__all__ = [
    "profile_ids",
    "step_sequences",
    "trace_steps",
    "tree_operations",
]
