"""Document references and their string forms.

Architecture
: :class:`DocumentReference` is the typed identity of a document. It is only
  ever produced by :class:`DocumentReferenceResolver`, which turns a string such
  as ``Page``, ``Space.Page`` or ``wiki:Space.Page`` into a complete reference.
: Missing parts are borrowed from a *base reference* found relative to an
  anchor node of the syntax tree. The closest ancestor carrying a ``source``
  provenance entry wins, then the document currently bound in the store, then
  the configured defaults. Because the provenance entry may itself be relative,
  it is resolved against its own ancestors first.
: :class:`DocumentReferenceSerializer` produces the canonical
  ``wiki:Space.Page`` form used in messages and as a transformation identity.

Usage Example
:
    >>> resolver = DocumentReferenceResolver()
    >>> str(resolver.resolve("Sandbox.Test"))
    'xwiki:Sandbox.Test'
    >>> resolver.resolve("Test") == resolver.resolve("xwiki:Main.Test")
    True
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .blocks import XDOM, Block, MetaData
from .config import EngineConfig


WIKI_SEPARATOR = ":"
SPACE_SEPARATOR = "."
ESCAPE = "\\"
_SPECIAL_CHARACTERS = (ESCAPE, WIKI_SEPARATOR, SPACE_SEPARATOR)


@dataclass(frozen=True, slots=True)
class DocumentReference:
    """Fully qualified reference to a document."""

    wiki: str
    space: str
    page: str

    def __str__(self) -> str:
        return serialize_reference(self)


def _escape(part: str) -> str:
    escaped = part
    for character in _SPECIAL_CHARACTERS:
        escaped = escaped.replace(character, ESCAPE + character)
    return escaped


def serialize_reference(reference: DocumentReference) -> str:
    """Return the canonical ``wiki:Space.Page`` form of a reference."""
    return (
        f"{_escape(reference.wiki)}{WIKI_SEPARATOR}"
        f"{_escape(reference.space)}{SPACE_SEPARATOR}{_escape(reference.page)}"
    )


def _split(value: str) -> tuple[str | None, str | None, str]:
    """Split a reference string into wiki, space and page, honouring escapes."""
    wiki: str | None = None
    segments: list[str] = []
    current: list[str] = []
    escaped = False
    for character in value:
        if escaped:
            current.append(character)
            escaped = False
        elif character == ESCAPE:
            escaped = True
        elif character == WIKI_SEPARATOR and wiki is None and not segments:
            wiki = "".join(current)
            current = []
        elif character == SPACE_SEPARATOR:
            segments.append("".join(current))
            current = []
        else:
            current.append(character)
    if escaped:
        current.append(ESCAPE)
    segments.append("".join(current))

    page = segments[-1]
    space = SPACE_SEPARATOR.join(segments[:-1]) if len(segments) > 1 else None
    return wiki or None, space or None, page


class DocumentReferenceSerializer:
    """Serialize references into their canonical string form."""

    def serialize(self, reference: DocumentReference) -> str:
        """Return the canonical representation of ``reference``."""
        return serialize_reference(reference)


class DocumentReferenceResolver:
    """Resolve reference strings relative to an anchor node."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        current_document: Callable[[], DocumentReference | None] | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._current_document = current_document

    def resolve(self, reference: str | None, anchor: Block | None = None) -> DocumentReference:
        """Resolve ``reference`` using the base reference found from ``anchor``."""
        base = self.base_reference(anchor)
        wiki, space, page = _split((reference or "").strip())
        return DocumentReference(
            wiki=wiki or base.wiki,
            space=space or base.space,
            page=page or self.config.default_page,
        )

    def base_reference(self, anchor: Block | None = None) -> DocumentReference:
        """Return the reference relative paths are resolved against."""
        if anchor is not None:
            for node in (anchor, *anchor.ancestors()):
                source = node.source if isinstance(node, (MetaData, XDOM)) else None
                if source:
                    return self.resolve(source, node.parent)

        if self._current_document is not None:
            current = self._current_document()
            if current is not None:
                return current

        return DocumentReference(
            wiki=self.config.default_wiki,
            space=self.config.default_space,
            page=self.config.default_page,
        )


__all__ = [
    "DocumentReference",
    "DocumentReferenceResolver",
    "DocumentReferenceSerializer",
    "serialize_reference",
]
