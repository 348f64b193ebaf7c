"""Execution context stack shared by everything running on a thread."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import copy
from dataclasses import dataclass, field
import logging
import threading
from typing import Any


logger = logging.getLogger(__name__)

USER_PROPERTY = "user"
VARIABLES_PROPERTY = "variables"


@dataclass(slots=True)
class ExecutionContext:
    """Ambient environment of a rendering: current user, scripting state, etc."""

    properties: dict[str, Any] = field(default_factory=dict)
    shared: set[str] = field(default_factory=set)

    def get(self, name: str, default: Any = None) -> Any:
        """Return a property value."""
        return self.properties.get(name, default)

    def set(self, name: str, value: Any, *, shared: bool = False) -> None:
        """Store a property; shared properties are not copied by :meth:`clone`."""
        self.properties[name] = value
        if shared:
            self.shared.add(name)
        else:
            self.shared.discard(name)

    def remove(self, name: str) -> None:
        """Drop a property if present."""
        self.properties.pop(name, None)
        self.shared.discard(name)

    def __contains__(self, name: object) -> bool:
        return name in self.properties

    def clone(self) -> ExecutionContext:
        """Return a copy whose non-shared properties are fully independent."""
        memo: dict[int, Any] = {}
        for name in self.shared:
            if name in self.properties:
                value = self.properties[name]
                memo[id(value)] = value
        return ExecutionContext(
            properties=copy.deepcopy(self.properties, memo),
            shared=set(self.shared),
        )


class Execution:
    """Stack of execution contexts confined to the calling thread."""

    def __init__(self, initial: ExecutionContext | None = None) -> None:
        self._local = threading.local()
        self._initial = initial

    @property
    def _stack(self) -> list[ExecutionContext]:
        stack = getattr(self._local, "stack", None)
        if stack is None:
            stack = [self._initial.clone()] if self._initial is not None else []
            self._local.stack = stack
        return stack

    @property
    def context(self) -> ExecutionContext | None:
        """Return the context on top of the stack."""
        stack = self._stack
        return stack[-1] if stack else None

    @property
    def depth(self) -> int:
        """Return the number of contexts currently stacked."""
        return len(self._stack)

    def set_context(self, context: ExecutionContext) -> None:
        """Reset the stack so that ``context`` is the only entry."""
        stack = self._stack
        stack.clear()
        stack.append(context)

    def ensure_context(self) -> ExecutionContext:
        """Return the current context, creating an empty one when needed."""
        current = self.context
        if current is None:
            current = ExecutionContext()
            self._stack.append(current)
        return current

    def clone_current(self) -> ExecutionContext:
        """Return an isolated copy of the current context."""
        current = self.context
        return current.clone() if current is not None else ExecutionContext()

    def push_context(self, context: ExecutionContext) -> None:
        """Make ``context`` the current one."""
        self._stack.append(context)

    def pop_context(self) -> ExecutionContext:
        """Remove and return the current context."""
        stack = self._stack
        if not stack:
            raise RuntimeError("Cannot pop from an empty execution context stack")
        return stack.pop()

    @contextmanager
    def pushed(self, context: ExecutionContext) -> Iterator[ExecutionContext]:
        """Push ``context`` for the duration of the block and always pop it."""
        self.push_context(context)
        try:
            yield context
        finally:
            popped = self.pop_context()
            if popped is not context:  # pragma: no cover - misuse by nested callers
                logger.warning("Execution context stack was unbalanced while popping")


__all__ = ["USER_PROPERTY", "VARIABLES_PROPERTY", "Execution", "ExecutionContext"]
