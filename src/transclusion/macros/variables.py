"""Macros storing and reading variables in the execution context.

Variables are kept in the ``variables`` property of the current execution
context, grouped by transformation identity. A document included with
``context="new"`` runs in a cloned context under its own identity, so the
variables it sets never reach the including document. Content included with
``context="current"`` is transformed by the including pass and shares its
variables.
"""

from __future__ import annotations

import logging
from typing import Any

from transclusion.adapters.parsers.base import text_blocks
from transclusion.core.blocks import Block, Paragraph
from transclusion.core.execution import VARIABLES_PROPERTY, Execution
from transclusion.core.transformation import TransformationContext

from .base import Macro, MacroParameters


logger = logging.getLogger(__name__)


class SetMacroParameters(MacroParameters):
    name: str
    value: str = ""


class GetMacroParameters(MacroParameters):
    name: str
    default: str = ""


class VariableScope:
    """Access to the variables of one transformation."""

    def __init__(self, execution: Execution) -> None:
        self.execution = execution

    def set(self, context: TransformationContext, name: str, value: str) -> None:
        current = self.execution.ensure_context()
        scopes = current.get(VARIABLES_PROPERTY)
        if scopes is None:
            scopes = {}
            current.set(VARIABLES_PROPERTY, scopes)
        scopes.setdefault(context.id, {})[name] = value

    def get(self, context: TransformationContext, name: str) -> str | None:
        current = self.execution.context
        if current is None:
            return None
        scopes = current.get(VARIABLES_PROPERTY) or {}
        return scopes.get(context.id, {}).get(name)


class SetMacro(Macro[SetMacroParameters]):
    """Assign a variable for the rest of the transformation."""

    id = "set"
    name = "Set"
    description = "Store a variable in the current execution context."
    restricted_safe = False
    supports_inline_mode = True
    parameters_model = SetMacroParameters

    def __init__(self, execution: Execution) -> None:
        self.scope = VariableScope(execution)

    def execute(
        self,
        parameters: SetMacroParameters,
        content: str | None,
        context: TransformationContext,
    ) -> list[Block]:
        value = parameters.value if content is None else content
        self.scope.set(context, parameters.name, value)
        logger.debug("Set variable %s in transformation %s", parameters.name, context.id)
        return []


class GetMacro(Macro[GetMacroParameters]):
    """Output the value of a variable."""

    id = "get"
    name = "Get"
    description = "Print a variable stored by the set macro."
    supports_inline_mode = True
    parameters_model = GetMacroParameters

    def __init__(self, execution: Execution) -> None:
        self.scope = VariableScope(execution)

    def execute(
        self,
        parameters: GetMacroParameters,
        content: str | None,
        context: TransformationContext,
    ) -> list[Block]:
        value: Any = self.scope.get(context, parameters.name)
        if value is None:
            value = parameters.default
        words = text_blocks(str(value))
        if not words:
            return []
        if context.inline:
            return words
        return [Paragraph(words)]


__all__ = ["GetMacro", "GetMacroParameters", "SetMacro", "SetMacroParameters", "VariableScope"]
