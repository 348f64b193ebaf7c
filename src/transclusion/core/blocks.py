"""Syntax tree produced by the parsers and rewritten by macro transformations.

Architecture
: Every node derives from :class:`Block`. Nodes own their children through a
  plain list (ownership is strictly top-down) while the upward relation is a
  :mod:`weakref` so that a parent link never keeps a detached subtree alive.
: Macro calls are represented twice. :class:`MacroBlock` is a call that has
  not been executed yet; once a transformation runs it, the call is replaced
  by a :class:`MacroMarker` wrapping the produced nodes and still remembering
  the macro identifier and its raw parameters.
: :class:`MetaData` attaches key/value provenance to a group of nodes. The
  ``source`` entry records which document a fragment came from so relative
  references found inside it can be rebased.

Implementation Rationale
: Upward walks (recursion detection, relative reference resolution) only read
  the tree, so exposing ``parent`` as a read-only property and funnelling all
  structural edits through ``set_children``/``replace_child`` keeps the parent
  links consistent without any bookkeeping on the callers' side.

Usage Example
:
    >>> root = XDOM([Paragraph([Word("Hello"), Space(), Word("world")])])
    >>> paragraph = root.children[0]
    >>> paragraph.parent is root
    True
    >>> root.text_content()
    'Hello world'
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
import copy
from typing import Any, ClassVar, TypeVar
import weakref

from slugify import slugify


B = TypeVar("B", bound="Block")


class Block:
    """Base syntax tree node."""

    def __init__(
        self,
        children: Iterable[Block] = (),
        parameters: Mapping[str, str] | None = None,
    ) -> None:
        self._parent: weakref.ReferenceType[Block] | None = None
        self._children: list[Block] = []
        self.parameters: dict[str, str] = dict(parameters or {})
        self.set_children(children)

    # ------------------------------------------------------------------ tree

    @property
    def parent(self) -> Block | None:
        """Return the enclosing node, if it is still alive."""
        if self._parent is None:
            return None
        return self._parent()

    @property
    def children(self) -> tuple[Block, ...]:
        """Return the child nodes in document order."""
        return tuple(self._children)

    @property
    def root(self) -> Block:
        """Return the top-most reachable ancestor."""
        node: Block = self
        for ancestor in self.ancestors():
            node = ancestor
        return node

    def attach_to(self, parent: Block | None) -> None:
        """Point the upward relation at ``parent`` without changing ownership."""
        self._parent = weakref.ref(parent) if parent is not None else None

    def set_children(self, children: Iterable[Block]) -> None:
        """Replace every child, detaching the previous ones."""
        for child in self._children:
            child.attach_to(None)
        self._children = []
        self.add_children(children)

    def add_child(self, child: Block) -> None:
        """Append a child node."""
        child.attach_to(self)
        self._children.append(child)

    def add_children(self, children: Iterable[Block]) -> None:
        """Append several child nodes."""
        for child in children:
            self.add_child(child)

    def index_of(self, child: Block) -> int:
        """Return the position of ``child`` compared by identity."""
        for index, candidate in enumerate(self._children):
            if candidate is child:
                return index
        raise ValueError(f"{child!r} is not a child of {self!r}")

    def replace_child(self, old: Block, new: Block | Iterable[Block]) -> None:
        """Replace ``old`` by one or several nodes at the same position."""
        index = self.index_of(old)
        replacements = [new] if isinstance(new, Block) else list(new)
        old.attach_to(None)
        for block in replacements:
            block.attach_to(self)
        self._children[index : index + 1] = replacements

    def remove_child(self, child: Block) -> None:
        """Detach ``child`` from this node."""
        index = self.index_of(child)
        child.attach_to(None)
        del self._children[index]

    def ancestors(self) -> Iterator[Block]:
        """Yield the parent chain from the closest ancestor up to the root."""
        node = self.parent
        while node is not None:
            yield node
            node = node.parent

    def traverse(self) -> Iterator[Block]:
        """Yield this node and its descendants depth-first in document order."""
        yield self
        for child in self._children:
            yield from child.traverse()

    def find_all(self, kind: type[B]) -> list[B]:
        """Return the descendants (self included) that are instances of ``kind``."""
        return [node for node in self.traverse() if isinstance(node, kind)]

    def clone(self: B) -> B:
        """Return a detached deep copy of this subtree."""
        duplicate = copy.copy(self)
        duplicate._parent = None
        duplicate._children = []
        duplicate.parameters = dict(self.parameters)
        duplicate._clone_state(self)
        duplicate.add_children(child.clone() for child in self._children)
        return duplicate

    def _clone_state(self, source: Block) -> None:
        """Hook for subclasses holding mutable attributes."""

    # ------------------------------------------------------------ parameters

    def get_parameter(self, name: str, default: str | None = None) -> str | None:
        """Return a parameter value, matching the name case-insensitively."""
        if name in self.parameters:
            return self.parameters[name]
        lowered = name.lower()
        for key, value in self.parameters.items():
            if key.lower() == lowered:
                return value
        return default

    # ------------------------------------------------------------------ text

    def text_content(self) -> str:
        """Return the plain text carried by this subtree."""
        return "".join(child.text_content() for child in self._children)

    def describe(self) -> str:
        """Return a compact one-line label used by presenters."""
        details = self._describe_details()
        name = type(self).__name__
        return f"{name}({details})" if details else name

    def _describe_details(self) -> str:
        if not self.parameters:
            return ""
        return ", ".join(f"{key}={value!r}" for key, value in self.parameters.items())

    def __repr__(self) -> str:
        return f"<{self.describe()} children={len(self._children)}>"


class XDOM(Block):
    """Root of a parsed document."""

    def __init__(
        self,
        children: Iterable[Block] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(children)
        self.metadata: dict[str, Any] = dict(metadata or {})

    @property
    def source(self) -> str | None:
        """Return the reference of the document this tree was parsed from."""
        value = self.metadata.get(MetaData.SOURCE)
        return str(value) if value else None

    def _clone_state(self, source: Block) -> None:
        self.metadata = dict(getattr(source, "metadata", {}))

    def _describe_details(self) -> str:
        return ", ".join(f"{key}={value!r}" for key, value in self.metadata.items())


class Group(Block):
    """Generic container used to keep nodes together."""


class Paragraph(Block):
    """Paragraph of inline nodes."""


class Heading(Block):
    """Section heading."""

    def __init__(
        self,
        level: int,
        children: Iterable[Block] = (),
        id: str | None = None,
        parameters: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(children, parameters)
        self.level = max(1, min(6, int(level)))
        self._id = id

    @property
    def id(self) -> str:
        """Return the heading anchor, derived from its text when not set."""
        if self._id:
            return self._id
        slug = slugify(self.text_content(), separator="", lowercase=False)
        return f"H{slug}"

    def _describe_details(self) -> str:
        return f"level={self.level}, id={self.id!r}"


class Word(Block):
    """Single word of text."""

    def __init__(self, text: str) -> None:
        super().__init__()
        self.text = text

    def text_content(self) -> str:
        return self.text

    def _describe_details(self) -> str:
        return repr(self.text)


class Space(Block):
    """Whitespace between two words."""

    def text_content(self) -> str:
        return " "


class NewLine(Block):
    """Explicit line break inside a paragraph."""

    def text_content(self) -> str:
        return "\n"


class Format(Block):
    """Inline formatting such as bold or italic text."""

    BOLD: ClassVar[str] = "bold"
    ITALIC: ClassVar[str] = "italic"
    MONOSPACE: ClassVar[str] = "monospace"

    def __init__(self, kind: str, children: Iterable[Block] = ()) -> None:
        super().__init__(children)
        self.kind = kind

    def _describe_details(self) -> str:
        return self.kind


class Link(Block):
    """Link to a document or an external resource; children form the label."""

    def __init__(
        self,
        reference: str,
        children: Iterable[Block] = (),
        freestanding: bool = False,
    ) -> None:
        super().__init__(children)
        self.reference = reference
        self.freestanding = freestanding

    def text_content(self) -> str:
        label = super().text_content()
        return label or self.reference

    def _describe_details(self) -> str:
        return repr(self.reference)


class Image(Block):
    """Image referencing an attachment or an external resource."""

    def __init__(self, reference: str, alt: str = "") -> None:
        super().__init__()
        self.reference = reference
        self.alt = alt

    def text_content(self) -> str:
        return self.alt

    def _describe_details(self) -> str:
        return repr(self.reference)


class MetaData(Block):
    """Attach metadata to a group of nodes."""

    SOURCE: ClassVar[str] = "source"
    SYNTAX: ClassVar[str] = "syntax"

    def __init__(
        self,
        children: Iterable[Block] = (),
        metadata: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(children)
        self.metadata: dict[str, Any] = dict(metadata or {})

    @classmethod
    def with_source(cls, children: Iterable[Block], source: str) -> MetaData:
        """Wrap ``children`` in a provenance node recording ``source``."""
        return cls(children, {cls.SOURCE: source})

    @property
    def source(self) -> str | None:
        """Return the recorded source reference, if any."""
        value = self.metadata.get(self.SOURCE)
        return str(value) if value else None

    def _clone_state(self, source: Block) -> None:
        self.metadata = dict(getattr(source, "metadata", {}))

    def _describe_details(self) -> str:
        return ", ".join(f"{key}={value!r}" for key, value in self.metadata.items())


class AbstractMacroBlock(Block):
    """Shared shape of executed and pending macro calls."""

    def __init__(
        self,
        id: str,
        parameters: Mapping[str, str] | None = None,
        content: str | None = None,
        inline: bool = False,
        children: Iterable[Block] = (),
    ) -> None:
        super().__init__(children, parameters)
        self.id = id
        self.content = content
        self.inline = inline

    def _describe_details(self) -> str:
        details = [repr(self.id)]
        details.extend(f"{key}={value!r}" for key, value in self.parameters.items())
        if self.inline:
            details.append("inline")
        return ", ".join(details)


class MacroBlock(AbstractMacroBlock):
    """Macro call waiting to be executed by a transformation."""

    def __init__(
        self,
        id: str,
        parameters: Mapping[str, str] | None = None,
        content: str | None = None,
        inline: bool = False,
    ) -> None:
        super().__init__(id, parameters, content, inline)


class MacroMarker(AbstractMacroBlock):
    """Executed macro call wrapping the nodes it produced."""

    @classmethod
    def from_macro(cls, macro: MacroBlock, children: Iterable[Block]) -> MacroMarker:
        """Build the marker replacing ``macro`` once it has been executed."""
        return cls(
            macro.id,
            macro.parameters,
            macro.content,
            macro.inline,
            children,
        )


class Error(Block):
    """Failure reported in place of a macro output."""

    def __init__(self, message: str, description: str = "", inline: bool = False) -> None:
        super().__init__()
        self.message = message
        self.description = description
        self.inline = inline

    def text_content(self) -> str:
        return self.message

    def _describe_details(self) -> str:
        return repr(self.message)


__all__ = [
    "XDOM",
    "AbstractMacroBlock",
    "Block",
    "Error",
    "Format",
    "Group",
    "Heading",
    "Image",
    "Link",
    "MacroBlock",
    "MacroMarker",
    "MetaData",
    "NewLine",
    "Paragraph",
    "Space",
    "Word",
]
