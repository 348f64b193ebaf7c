"""Engine facade wiring stores, parsers, macros and the display service."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import logging
from pathlib import Path

from transclusion.adapters.parsers import ParserRegistry
from transclusion.core.blocks import XDOM, Block
from transclusion.core.config import DEFAULT_CONFIG_FILENAME, EngineConfig, load_config
from transclusion.core.diagnostics import DiagnosticEmitter, LoggingEmitter
from transclusion.core.display import DocumentDisplayer
from transclusion.core.execution import USER_PROPERTY, ExecutionContext
from transclusion.core.parser import MacroContentParser
from transclusion.core.references import (
    DocumentReference,
    DocumentReferenceResolver,
    DocumentReferenceSerializer,
)
from transclusion.core.store import BaseDocumentStore, FileSystemDocumentStore, InMemoryDocumentStore
from transclusion.core.transformation import MacroTransformation
from transclusion.macros import GetMacro, IncludeMacro, MacroRegistry, SetMacro


logger = logging.getLogger(__name__)


class Engine:
    """Ready-to-use inclusion engine over a document store."""

    def __init__(
        self,
        store: BaseDocumentStore | None = None,
        *,
        config: EngineConfig | None = None,
        emitter: DiagnosticEmitter | None = None,
        parsers: ParserRegistry | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.store = store if store is not None else InMemoryDocumentStore()
        self.execution = self.store.execution
        self.emitter = emitter or LoggingEmitter(logger_obj=logger)
        self.serializer = DocumentReferenceSerializer()
        self.resolver = DocumentReferenceResolver(
            self.config, self.store.current_document_reference
        )
        self.parsers = parsers or ParserRegistry()
        self.macros = MacroRegistry()
        self.transformation = MacroTransformation(
            self.macros, config=self.config, emitter=self.emitter
        )
        self.content_parser = MacroContentParser(self.parsers, self.transformation)

        self.macros.register(
            IncludeMacro(
                bridge=self.store,
                resolver=self.resolver,
                serializer=self.serializer,
                content_parser=self.content_parser,
                execution=self.execution,
                config=self.config,
                emitter=self.emitter,
            )
        )
        self.macros.register(SetMacro(self.execution))
        self.macros.register(GetMacro(self.execution))

        self.displayer = DocumentDisplayer(
            bridge=self.store,
            resolver=self.resolver,
            serializer=self.serializer,
            parsers=self.parsers,
            transformation=self.transformation,
            execution=self.execution,
            config=self.config,
        )

    @classmethod
    def from_directory(
        cls,
        path: Path | str,
        config: EngineConfig | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> Engine:
        """Build an engine serving the documents stored under ``path``.

        When no configuration is given, ``transclusion.yml`` at the root of
        ``path`` is loaded if present.
        """
        root = Path(path)
        if config is None:
            candidate = root / DEFAULT_CONFIG_FILENAME
            config = load_config(candidate) if candidate.is_file() else EngineConfig()
        store = FileSystemDocumentStore(root, config)
        return cls(store, config=config, emitter=emitter)

    def reference(self, value: str, anchor: Block | None = None) -> DocumentReference:
        """Resolve ``value`` into a complete document reference."""
        return self.resolver.resolve(value, anchor)

    @contextmanager
    def as_user(self, user: str | None) -> Iterator[ExecutionContext]:
        """Run the block in a cloned execution context bound to ``user``."""
        context = self.execution.clone_current()
        if user is None:
            context.remove(USER_PROPERTY)
        else:
            context.set(USER_PROPERTY, user)
        with self.execution.pushed(context):
            yield context

    def display(self, reference: DocumentReference | str, *, isolated: bool = True) -> XDOM:
        """Return the executed tree of a document."""
        return self.displayer.display(reference, isolated=isolated)

    def content(self, reference: DocumentReference | str) -> str:
        """Return the plain text rendering of a document."""
        return self.displayer.content(reference)

    def title(self, reference: DocumentReference | str) -> str:
        """Return the title of a document."""
        return self.displayer.title(reference)


__all__ = ["Engine"]
