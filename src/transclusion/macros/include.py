"""The ``include`` macro: splice another document into the current tree.

Architecture
: :class:`IncludeMacro` validates its parameters, resolves the target
  reference relative to the macro call, rejects recursive chains through
  :class:`RecursionGuard`, enforces view rights, loads the document and hands
  its content to one of two strategies before wrapping the result in a single
  provenance node.
: :class:`IsolatedContextStrategy` (``context="new"``) renders the included
  content on its own: the execution context is cloned and pushed, the included
  document is bound as the current document, and the content is parsed *and*
  transformed under a transformation identity derived from the included
  reference. Both the binding and the pushed context are always unwound.
: :class:`SharedContextStrategy` (``context="current"``) only parses the
  content. The macros it contains stay pending and are executed later by the
  running transformation together with the macros of the including document,
  in priority order. This relies on ``include`` having the highest priority so
  that inclusions are expanded before any other macro runs.

Usage Example
:
    >>> from transclusion.api import Engine
    >>> engine = Engine()
    >>> _ = engine.store.add(engine.reference("Chapter1"), "== Title ==")
    >>> _ = engine.store.add(
    ...     engine.reference("Home"), '{{include document="Chapter1" context="new"/}}'
    ... )
    >>> tree = engine.display("Home")
    >>> [block.describe() for block in tree.children[0].children]
    ["MetaData(source='Chapter1')"]
"""

from __future__ import annotations

from enum import Enum
import logging

from pydantic import ConfigDict, field_validator

from transclusion.core.blocks import XDOM, AbstractMacroBlock, Block, MetaData
from transclusion.core.config import EngineConfig
from transclusion.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from transclusion.core.exceptions import (
    ContextSwitchError,
    DocumentLoadError,
    InclusionDepthError,
    MissingParameterError,
    PermissionDeniedError,
    RecursiveInclusionError,
)
from transclusion.core.execution import Execution
from transclusion.core.parser import MacroContentParser
from transclusion.core.references import (
    DocumentReference,
    DocumentReferenceResolver,
    DocumentReferenceSerializer,
)
from transclusion.core.store import DocumentAccessBridge
from transclusion.core.transformation import TransformationContext

from .base import Macro, MacroParameters


logger = logging.getLogger(__name__)

INCLUDE_MACRO_ID = "include"
INCLUDE_PRIORITY = 1000


class Context(str, Enum):
    """Execution context used to render the included document."""

    NEW = "new"
    CURRENT = "current"


class IncludeMacroParameters(MacroParameters):
    """Parameters accepted by the ``include`` macro."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=False)

    document: str | None = None
    context: Context | None = None

    @field_validator("context", mode="before")
    @classmethod
    def normalise_context(cls, value: object) -> object:
        """Accept any letter case for the context name."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


class RecursionGuard:
    """Detect inclusions of a document that is already being included."""

    def __init__(
        self,
        resolver: DocumentReferenceResolver,
        *,
        macro_id: str = INCLUDE_MACRO_ID,
        max_depth: int | None = None,
    ) -> None:
        self.resolver = resolver
        self.macro_id = macro_id.lower()
        self.max_depth = max_depth

    def enclosing_reference(self, node: Block) -> DocumentReference | None:
        """Return the document an ancestor node stands for, if any."""
        if isinstance(node, AbstractMacroBlock):
            if node.id.lower() != self.macro_id:
                return None
            return self.resolver.resolve(node.get_parameter("document"), node)
        if isinstance(node, XDOM) and node.source:
            return self.resolver.resolve(node.source, node.parent)
        return None

    def check(self, block: Block, reference: DocumentReference) -> None:
        """Raise when ``reference`` is already included above ``block``."""
        depth = 0
        for ancestor in block.ancestors():
            if isinstance(ancestor, AbstractMacroBlock) and ancestor.id.lower() == self.macro_id:
                depth += 1
            enclosing = self.enclosing_reference(ancestor)
            if enclosing is not None and enclosing == reference:
                raise RecursiveInclusionError(reference)
        if self.max_depth is not None and depth >= self.max_depth:
            raise InclusionDepthError(reference, self.max_depth)


class IsolatedContextStrategy:
    """Render included content in a cloned execution context."""

    def __init__(
        self,
        execution: Execution,
        bridge: DocumentAccessBridge,
        content_parser: MacroContentParser,
        serializer: DocumentReferenceSerializer,
    ) -> None:
        self.execution = execution
        self.bridge = bridge
        self.content_parser = content_parser
        self.serializer = serializer

    def run(
        self,
        reference: DocumentReference,
        content: str,
        context: TransformationContext,
    ) -> list[Block]:
        """Parse and transform ``content``; the context stack is always restored."""
        source = self.serializer.serialize(reference)
        try:
            cloned = self.execution.clone_current()
            with self.execution.pushed(cloned), self.bridge.document_in_context(reference):
                return self.content_parser.parse(
                    content, context, True, False, source=source, reference=reference
                )
        except Exception as exc:
            raise ContextSwitchError(reference) from exc


class SharedContextStrategy:
    """Parse included content for the running transformation to execute."""

    def __init__(
        self,
        content_parser: MacroContentParser,
        serializer: DocumentReferenceSerializer,
    ) -> None:
        self.content_parser = content_parser
        self.serializer = serializer

    def run(
        self,
        reference: DocumentReference,
        content: str,
        context: TransformationContext,
    ) -> list[Block]:
        """Parse ``content`` without executing the macros it contains."""
        return self.content_parser.parse(
            content,
            context,
            False,
            False,
            source=self.serializer.serialize(reference),
            reference=reference,
        )


class IncludeMacro(Macro[IncludeMacroParameters]):
    """Include other pages into the current page."""

    id = INCLUDE_MACRO_ID
    name = "Include"
    description = "Include other pages into the current page."
    priority = INCLUDE_PRIORITY
    supports_inline_mode = True
    parameters_model = IncludeMacroParameters

    def __init__(
        self,
        *,
        bridge: DocumentAccessBridge,
        resolver: DocumentReferenceResolver,
        serializer: DocumentReferenceSerializer,
        content_parser: MacroContentParser,
        execution: Execution,
        config: EngineConfig | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.bridge = bridge
        self.resolver = resolver
        self.serializer = serializer
        self.emitter = emitter or LoggingEmitter(logger_obj=logger)
        self.guard = RecursionGuard(resolver, max_depth=self.config.max_inclusion_depth)
        self.isolated = IsolatedContextStrategy(execution, bridge, content_parser, serializer)
        self.shared = SharedContextStrategy(content_parser, serializer)

    def execute(
        self,
        parameters: IncludeMacroParameters,
        content: str | None,
        context: TransformationContext,
    ) -> list[Block]:
        """Return a single provenance node wrapping the included document."""
        if parameters.document is None or not parameters.document.strip():
            raise MissingParameterError(
                "You must specify a 'document' parameter pointing to the document to include."
            )

        current_block = context.current_macro_block
        anchor = current_block if current_block is not None else context.xdom
        reference = self.resolver.resolve(parameters.document, anchor)

        if current_block is not None:
            self.guard.check(current_block, reference)

        try:
            viewable = self.bridge.is_viewable(reference)
        except Exception as exc:
            raise DocumentLoadError(reference) from exc
        if not viewable:
            raise PermissionDeniedError(reference)

        try:
            document = self.bridge.get_document(reference)
        except Exception as exc:
            raise DocumentLoadError(reference) from exc

        child_context = context.clone()
        child_context.syntax = document.syntax

        mode = parameters.context or Context(self.config.default_include_context)
        if mode is Context.NEW:
            child_context.id = self.serializer.serialize(reference)
            blocks = self.isolated.run(reference, document.content, child_context)
        else:
            blocks = self.shared.run(reference, document.content, child_context)

        self.emitter.event(
            "document_included",
            {"document": self.serializer.serialize(reference), "context": mode.value},
        )
        return [MetaData.with_source(blocks, parameters.document)]


__all__ = [
    "INCLUDE_MACRO_ID",
    "INCLUDE_PRIORITY",
    "Context",
    "IncludeMacro",
    "IncludeMacroParameters",
    "IsolatedContextStrategy",
    "RecursionGuard",
    "SharedContextStrategy",
]
