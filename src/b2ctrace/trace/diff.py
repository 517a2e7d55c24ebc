# src/b2ctrace/trace/diff.py
"""Claims diff between two snapshots."""

from collections.abc import Mapping

from b2ctrace.contracts.trace import ClaimsDiff


def compute_claims_diff(before: Mapping[str, str], after: Mapping[str, str]) -> ClaimsDiff:
    """Compare two claims snapshots.

    Args:
        before: Claims at the earlier step
        after: Claims at the later step

    Returns:
        ClaimsDiff with added claims, modified claims as (old, new), and
        removed claim names (sorted)
    """
    added = {k: v for k, v in after.items() if k not in before}
    modified = {k: (before[k], v) for k, v in after.items() if k in before and before[k] != v}
    removed = sorted(k for k in before if k not in after)
    return ClaimsDiff(added=added, modified=modified, removed=removed)
