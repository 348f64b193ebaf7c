"""CLI command implementations exposed via `transclusion.ui.cli`."""

from __future__ import annotations

from .documents import macros, resolve, show, title


__all__ = ["macros", "resolve", "show", "title"]
