# src/b2ctrace/trace/journey_stack.py
"""Journey stack owned by a single parser instance.

The bottom entry is always the root (main) journey. Each sub-journey
invocation pushes a context; pops never remove the root.
"""

from __future__ import annotations

from datetime import datetime

from b2ctrace.contracts.errors import JourneyStackError
from b2ctrace.contracts.trace import JourneyContext


class JourneyStack:
    """Stack of JourneyContext entries, root at index 0."""

    __slots__ = ("_stack",)

    def __init__(self, root: JourneyContext | None = None) -> None:
        self._stack: list[JourneyContext] = [root] if root is not None else []

    @classmethod
    def with_root(cls, journey_id: str, journey_name: str, entry_timestamp: datetime) -> JourneyStack:
        return cls(
            JourneyContext(
                journey_id=journey_id,
                journey_name=journey_name,
                last_orch_step=0,
                entry_timestamp=entry_timestamp,
            )
        )

    # === Inspection ===

    @property
    def depth(self) -> int:
        return len(self._stack)

    def current(self) -> JourneyContext | None:
        return self._stack[-1] if self._stack else None

    def root(self) -> JourneyContext:
        """Return the root context.

        Raises:
            JourneyStackError: If the stack is empty
        """
        if not self._stack:
            raise JourneyStackError("journey stack is empty")
        return self._stack[0]

    def is_in_sub_journey(self) -> bool:
        return len(self._stack) > 1

    def display_path(self) -> str:
        return " > ".join(c.journey_name for c in self._stack)

    # === Mutation ===

    def push(self, context: JourneyContext) -> None:
        self._stack.append(context)

    def pop(self) -> JourneyContext | None:
        """Pop the current context. Returns None (and pops nothing) at root."""
        if len(self._stack) <= 1:
            return None
        return self._stack.pop()

    def pop_to_root(self) -> list[JourneyContext]:
        popped: list[JourneyContext] = []
        while len(self._stack) > 1:
            popped.append(self._stack.pop())
        return popped

    def update_orch_step(self, step: int) -> None:
        """Advance the current context's last_orch_step (never decreases it)."""
        current = self.current()
        if current is not None and step > current.last_orch_step:
            current.last_orch_step = step

    def reset_root_step(self) -> None:
        if self._stack:
            self._stack[0].last_orch_step = 0
