"""Macro transformation pass executed over a syntax tree.

Architecture
: :class:`TransformationContext` travels with every macro call. It carries the
  syntax of the content being transformed, the transformation identity used to
  scope per-pass state, the root being transformed, and the macro block that is
  currently executing.
: :class:`MacroTransformation` repeatedly picks the pending
  :class:`~transclusion.core.blocks.MacroBlock` with the highest priority (ties
  are broken by document order), executes it and swaps it for a
  :class:`~transclusion.core.blocks.MacroMarker` wrapping the output. Because the
  pending list is collected again after every execution, macros brought in by
  a macro (for instance by an inclusion in the current context) are ordered
  together with the ones already present.

Implementation Rationale
: A failing macro never aborts the pass. Its output is replaced by an
  :class:`~transclusion.core.blocks.Error` node describing the failure so the
  problem is reported where the macro was written, and the failure is sent to
  the diagnostic emitter.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
import logging
from typing import TYPE_CHECKING, Any, Protocol

from .blocks import XDOM, AbstractMacroBlock, Block, Error, MacroBlock, MacroMarker
from .config import EngineConfig
from .diagnostics import DiagnosticEmitter, LoggingEmitter
from .exceptions import MacroExecutionError, UnknownMacroError, exception_messages
from .syntax import DEFAULT_SYNTAX, Syntax


if TYPE_CHECKING:  # pragma: no cover - typing only
    from transclusion.macros.base import Macro


logger = logging.getLogger(__name__)


@dataclass
class TransformationContext:
    """State shared by the macros executed during one transformation."""

    id: str | None = None
    syntax: Syntax = DEFAULT_SYNTAX
    xdom: XDOM | None = None
    current_macro_block: AbstractMacroBlock | None = None
    inline: bool = False
    restricted: bool = False

    def clone(self) -> TransformationContext:
        """Return an independent copy that can be adapted freely."""
        return replace(self)


class MacroLookup(Protocol):
    """Source of macro implementations."""

    def get(self, macro_id: str) -> Macro | None: ...


class MacroTransformation:
    """Execute the macros of a tree in priority order."""

    def __init__(
        self,
        macros: MacroLookup,
        *,
        config: EngineConfig | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.macros = macros
        self.config = config or EngineConfig()
        self.emitter = emitter or LoggingEmitter(logger_obj=logger)

    def transform(self, xdom: XDOM, context: TransformationContext) -> XDOM:
        """Execute every pending macro of ``xdom`` in place and return it."""
        limit = self.config.max_macro_executions
        executions = 0
        while True:
            pending = xdom.find_all(MacroBlock)
            if not pending:
                break
            if executions >= limit:
                self.emitter.event("macro_limit", {"limit": limit, "pending": len(pending)})
                logger.warning(
                    "Macro transformation %s stopped with %d pending macros",
                    context.id,
                    len(pending),
                )
                break
            block = self._next_macro(pending)
            executions += 1
            self._execute(block, xdom, context)
        return xdom

    def _priority(self, block: MacroBlock) -> int:
        macro = self.macros.get(block.id)
        return macro.priority if macro is not None else 0

    def _next_macro(self, pending: list[MacroBlock]) -> MacroBlock:
        _, block = max(
            enumerate(pending),
            key=lambda item: (self._priority(item[1]), -item[0]),
        )
        return block

    def _execute(self, block: MacroBlock, xdom: XDOM, context: TransformationContext) -> None:
        macro_context = context.clone()
        macro_context.xdom = xdom
        macro_context.current_macro_block = block
        macro_context.inline = block.inline

        try:
            result = self._run_macro(block, macro_context)
        except Exception as exc:
            result = self._error_blocks(block, exc)
        marker = MacroMarker.from_macro(block, result)
        parent = block.parent
        if parent is None:  # pragma: no cover - pending macros always live below the root
            raise MacroExecutionError(f"Macro [{block.id}] is detached from the tree")
        parent.replace_child(block, marker)

    def _run_macro(self, block: MacroBlock, context: TransformationContext) -> list[Block]:
        macro = self.macros.get(block.id)
        if macro is None:
            raise UnknownMacroError(block.id)
        if block.inline and not macro.supports_inline_mode:
            raise MacroExecutionError(
                f"The [{block.id}] macro is a standalone macro and it cannot be used inline"
            )
        if context.restricted and not macro.restricted_safe:
            raise MacroExecutionError(
                f"The [{block.id}] macro cannot be executed in restricted mode"
            )
        parameters = macro.parse_parameters(block.parameters)
        logger.debug("Executing macro %s in transformation %s", block.id, context.id)
        return list(macro.execute(parameters, block.content, context))

    def _error_blocks(self, block: MacroBlock, exc: BaseException) -> list[Block]:
        messages = exception_messages(exc) or [type(exc).__name__]
        summary = f"Failed to execute the [{block.id}] macro"
        payload: Mapping[str, Any] = {"macro": block.id, "reason": messages[0]}
        self.emitter.event("macro_failed", payload)
        if isinstance(exc, MacroExecutionError):
            self.emitter.warning(f"{summary}: {messages[0]}", exc)
        else:
            self.emitter.error(f"{summary}: {messages[0]}", exc)
        return [Error(messages[0], "\n".join(messages), inline=block.inline)]


__all__ = ["MacroLookup", "MacroTransformation", "TransformationContext"]
