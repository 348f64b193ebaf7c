"""Registry of the macros available to transformations."""

from __future__ import annotations

import logging

from .base import Macro


logger = logging.getLogger(__name__)


class MacroRegistry:
    """Container mapping macro identifiers to implementations."""

    def __init__(self) -> None:
        self._macros: dict[str, Macro] = {}

    def register(self, macro: Macro) -> Macro:
        """Register ``macro`` under its identifier, replacing any previous one."""
        key = macro.id.lower()
        if key in self._macros:
            logger.debug("Replacing macro %s", macro.id)
        self._macros[key] = macro
        return macro

    def unregister(self, macro_id: str) -> None:
        """Forget the macro registered under ``macro_id``."""
        self._macros.pop(macro_id.lower(), None)

    def get(self, macro_id: str) -> Macro | None:
        """Return the macro registered under ``macro_id``."""
        return self._macros.get(macro_id.lower())

    def __contains__(self, macro_id: object) -> bool:
        return isinstance(macro_id, str) and macro_id.lower() in self._macros

    def ordered(self) -> list[Macro]:
        """Return macros in execution order: highest priority first, then by id."""
        return sorted(self._macros.values(), key=lambda macro: (-macro.priority, macro.id))

    def describe(self) -> list[dict[str, object]]:
        """Return a serialisable snapshot of the registered macros."""
        return [
            {
                "id": macro.id,
                "name": macro.name or macro.id,
                "priority": macro.priority,
                "inline": macro.supports_inline_mode,
                "restricted_safe": macro.restricted_safe,
                "parameters": sorted(macro.parameters_model.model_fields),
                "description": macro.description,
            }
            for macro in self.ordered()
        ]


__all__ = ["MacroRegistry"]
