"""Macros shipped with the engine."""

from __future__ import annotations

from .base import DEFAULT_PRIORITY, Macro, MacroParameters
from .include import (
    INCLUDE_MACRO_ID,
    INCLUDE_PRIORITY,
    Context,
    IncludeMacro,
    IncludeMacroParameters,
    IsolatedContextStrategy,
    RecursionGuard,
    SharedContextStrategy,
)
from .registry import MacroRegistry
from .variables import GetMacro, SetMacro


__all__ = [
    "DEFAULT_PRIORITY",
    "INCLUDE_MACRO_ID",
    "INCLUDE_PRIORITY",
    "Context",
    "GetMacro",
    "IncludeMacro",
    "IncludeMacroParameters",
    "IsolatedContextStrategy",
    "Macro",
    "MacroParameters",
    "MacroRegistry",
    "RecursionGuard",
    "SetMacro",
    "SharedContextStrategy",
]
