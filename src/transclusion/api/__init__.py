"""Facade exposing the inclusion engine to embedding code.

Architecture
: `Engine` assembles a document store, the markup parsers, the macro registry
  (`include`, `set`, `get`), the macro transformation and the display service
  around a single execution context stack.
: `Engine.from_directory` serves `<root>/<Space>/<Page>.<ext>` files and picks
  up `transclusion.yml` from the root when no configuration is passed.

Usage Example
:
    >>> from transclusion.api import Engine
    >>> engine = Engine()
    >>> _ = engine.store.add(engine.reference("Intro"), "Welcome **home**.")
    >>> _ = engine.store.add(
    ...     engine.reference("Home"), '{{include document="Intro"/}}'
    ... )
    >>> engine.content("Home")
    'Welcome home.'
"""

from __future__ import annotations

from .engine import Engine


__all__ = ["Engine"]
