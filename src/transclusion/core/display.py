"""Display documents: parse, execute macros and render.

Architecture
: :class:`DocumentDisplayer` is the entry point used to show a whole document.
  It checks view rights, binds the document as the current document (inside a
  cloned execution context unless asked otherwise), parses it into a tree whose
  ``source`` is the serialized reference and runs the macro transformation
  under the same identity. Inclusions found in the document therefore treat
  the displayed document as already included.
: :meth:`DocumentDisplayer.content` renders the tree as plain text through a
  :class:`RenderingCache` keyed by reference, content digest and user. Each
  entry also records the documents its inclusions pulled in; a hit is served
  only while the user may still view them and their content is unchanged.
: :meth:`DocumentDisplayer.title` returns the declared title, falling back to
  the first heading and then to the page name.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
import hashlib
import logging
from threading import Lock
from typing import TYPE_CHECKING

from .blocks import XDOM, Heading, MetaData
from .config import EngineConfig
from .exceptions import ContentParseError, PermissionDeniedError, TransclusionError
from .execution import USER_PROPERTY, Execution
from .references import DocumentReference, DocumentReferenceResolver, DocumentReferenceSerializer
from .renderers import PlainTextRenderer
from .store import DocumentAccessBridge, DocumentModel
from .transformation import MacroTransformation, TransformationContext


if TYPE_CHECKING:  # pragma: no cover - typing only
    from transclusion.adapters.parsers import ParserRegistry


logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str | None]
Dependencies = tuple[tuple[DocumentReference, str], ...]


@dataclass(frozen=True, slots=True)
class CachedRendering:
    """Rendered text plus the digests of the documents it included."""

    text: str
    dependencies: Dependencies = ()


class RenderingCache:
    """Thread-safe LRU cache of rendered document content.

    Entries remember the documents pulled in by inclusions. A ``validate``
    callable given to :meth:`get` decides whether those are still current;
    entries it rejects count as misses.
    """

    def __init__(self, size: int = 128) -> None:
        self.size = size
        self._entries: OrderedDict[CacheKey, CachedRendering] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def digest(document: DocumentModel) -> str:
        return hashlib.sha256(f"{document.syntax.id}\n{document.content}".encode()).hexdigest()

    @classmethod
    def key(cls, document: DocumentModel, user: str | None) -> CacheKey:
        return str(document.reference), cls.digest(document), user

    def get(
        self,
        key: CacheKey,
        validate: Callable[[Dependencies], bool] | None = None,
    ) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and validate is not None and not validate(entry.dependencies):
            entry = None
        with self._lock:
            if entry is None:
                self.misses += 1
                return None
            if key in self._entries:
                self._entries.move_to_end(key)
            self.hits += 1
            return entry.text

    def put(self, key: CacheKey, value: str, dependencies: Dependencies = ()) -> None:
        with self._lock:
            self._entries[key] = CachedRendering(value, dependencies)
            self._entries.move_to_end(key)
            while len(self._entries) > self.size:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DocumentDisplayer:
    """Produce the executed syntax tree of a document."""

    def __init__(
        self,
        *,
        bridge: DocumentAccessBridge,
        resolver: DocumentReferenceResolver,
        serializer: DocumentReferenceSerializer,
        parsers: ParserRegistry,
        transformation: MacroTransformation,
        execution: Execution,
        config: EngineConfig | None = None,
        renderer: PlainTextRenderer | None = None,
    ) -> None:
        self.bridge = bridge
        self.resolver = resolver
        self.serializer = serializer
        self.parsers = parsers
        self.transformation = transformation
        self.execution = execution
        self.config = config or EngineConfig()
        self.renderer = renderer or PlainTextRenderer()
        self.cache = RenderingCache(self.config.cache_size)

    def _reference(self, reference: DocumentReference | str) -> DocumentReference:
        if isinstance(reference, DocumentReference):
            return reference
        return self.resolver.resolve(reference)

    def _load(self, reference: DocumentReference) -> DocumentModel:
        if not self.bridge.is_viewable(reference):
            raise PermissionDeniedError(reference)
        return self.bridge.get_document(reference)

    @contextmanager
    def _isolated(self, isolated: bool) -> Iterator[None]:
        if not isolated:
            yield
            return
        with self.execution.pushed(self.execution.clone_current()):
            yield

    def display(self, reference: DocumentReference | str, isolated: bool = True) -> XDOM:
        """Return the tree of ``reference`` with every macro executed."""
        target = self._reference(reference)
        try:
            document = self._load(target)
            with self._isolated(isolated), self.bridge.document_in_context(target):
                return self._transform(document)
        except TransclusionError as exc:
            logger.debug("Failed to display document %s: %s", target, exc)
            raise

    def _transform(self, document: DocumentModel) -> XDOM:
        reference = document.reference
        parser = self.parsers.get(document.syntax)
        if parser is None:
            raise ContentParseError(reference, f"no parser available for syntax [{document.syntax}]")
        try:
            xdom = parser.parse(document.content)
        except Exception as exc:
            raise ContentParseError(reference, str(exc)) from exc

        source = self.serializer.serialize(reference)
        xdom.metadata[MetaData.SOURCE] = source
        xdom.metadata[MetaData.SYNTAX] = document.syntax.id
        context = TransformationContext(id=source, syntax=document.syntax, xdom=xdom)
        logger.debug("Displaying %s (%s)", source, document.syntax)
        self.transformation.transform(xdom, context)
        return xdom

    def content(self, reference: DocumentReference | str) -> str:
        """Return the plain text rendering of ``reference``."""
        target = self._reference(reference)
        document = self._load(target)
        if not self.config.cache_enabled:
            return self.renderer.render(self.display(target))

        context = self.execution.context
        user = context.get(USER_PROPERTY) if context is not None else None
        key = self.cache.key(document, user)
        cached = self.cache.get(key, self._dependencies_current)
        if cached is not None:
            logger.debug("Rendering cache hit for %s", target)
            return cached
        xdom = self.display(target)
        text = self.renderer.render(xdom)
        dependencies = self._dependencies(xdom, target)
        if dependencies is None:
            logger.debug("Not caching %s: an included document is no longer readable", target)
        else:
            self.cache.put(key, text, dependencies)
        return text

    def _dependencies(self, xdom: XDOM, target: DocumentReference) -> Dependencies | None:
        """Return the digest of every document included in ``xdom``."""
        found: dict[DocumentReference, str] = {}
        for node in xdom.traverse():
            if node is xdom or not isinstance(node, (MetaData, XDOM)) or not node.source:
                continue
            reference = self.resolver.resolve(node.source, node.parent)
            if reference == target or reference in found:
                continue
            try:
                found[reference] = RenderingCache.digest(self.bridge.get_document(reference))
            except TransclusionError:
                return None
        return tuple(found.items())

    def _dependencies_current(self, dependencies: Dependencies) -> bool:
        """Return whether the current user still sees the same included documents."""
        for reference, digest in dependencies:
            try:
                if not self.bridge.is_viewable(reference):
                    return False
                if RenderingCache.digest(self.bridge.get_document(reference)) != digest:
                    return False
            except TransclusionError:
                return False
        return True

    def title(self, reference: DocumentReference | str) -> str:
        """Return the title of ``reference``."""
        target = self._reference(reference)
        document = self._load(target)
        if document.title:
            return document.title
        for heading in self.display(target).find_all(Heading):
            text = heading.text_content().strip()
            if text:
                return text
        return target.page


__all__ = ["CachedRendering", "DocumentDisplayer", "RenderingCache"]
