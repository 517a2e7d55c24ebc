# src/b2ctrace/trace/statebag.py
"""Running statebag and claims for one parse.

Merge rule for an incoming delta:
- None values are ignored
- Complex-CLMS is merged key-by-key into the running claims
- ComplexItems is a marker and is skipped
- every other key is a timestamped entry whose value overwrites the
  running statebag value for that key
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from b2ctrace.core.keys import StatebagKey
from b2ctrace.trace.records import statebag_value


class StatebagAccumulator:
    """Accumulates statebag and claims state across handler results.

    Snapshots are always copies; nothing returned aliases the running maps.
    """

    __slots__ = ("_claims", "_statebag")

    def __init__(self) -> None:
        self._statebag: dict[str, str] = {}
        self._claims: dict[str, str] = {}

    def merge(self, delta: Mapping[str, Any] | None) -> None:
        """Merge one HandlerResult statebag delta into running state."""
        if not delta:
            return
        for key, raw in delta.items():
            if raw is None:
                continue
            if key == StatebagKey.COMPLEX_CLAIMS:
                if isinstance(raw, Mapping):
                    for claim, value in raw.items():
                        if value is not None:
                            self._claims[claim] = value if isinstance(value, str) else str(value)
                continue
            if key == StatebagKey.COMPLEX_ITEMS:
                continue
            value = statebag_value(raw)
            if value is not None:
                self._statebag[key] = value

    def get(self, key: str) -> str | None:
        return self._statebag.get(key)

    @property
    def orch_step(self) -> int | None:
        """Current ORCH_CS as an int, None when absent or non-numeric."""
        raw = self._statebag.get(StatebagKey.ORCH_CS)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    def statebag_snapshot(self) -> dict[str, str]:
        return dict(self._statebag)

    def claims_snapshot(self) -> dict[str, str]:
        return dict(self._claims)

    def reset(self) -> None:
        """Clear all state (session boundary)."""
        self._statebag = {}
        self._claims = {}
