"""Document stores and the access bridge consumed by macros.

Architecture
: :class:`DocumentAccessBridge` is the contract macros rely on: view rights,
  document retrieval and the "current document" binding. The binding lives in
  the current execution context so that pushing an isolated context also
  isolates it.
: :class:`BaseDocumentStore` implements everything but the lookup.
  :class:`InMemoryDocumentStore` keeps documents in a dictionary and
  :class:`FileSystemDocumentStore` maps ``<root>/<Space>/<Page>.<ext>`` files,
  reading an optional YAML front matter block for the title, syntax and
  viewers.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from ..adapters.markdown import split_front_matter
from .config import EngineConfig
from .exceptions import DocumentNotFoundError, InvalidDocumentError
from .execution import USER_PROPERTY, Execution
from .references import DocumentReference
from .syntax import DEFAULT_SYNTAX, Syntax


logger = logging.getLogger(__name__)

DOCUMENT_PROPERTY = "document"


@dataclass(frozen=True, slots=True)
class DocumentModel:
    """Stored document: markup content plus the syntax it is written in."""

    reference: DocumentReference
    content: str
    syntax: Syntax = DEFAULT_SYNTAX
    title: str | None = None
    viewers: frozenset[str] | None = None

    def is_viewable_by(self, user: str | None) -> bool:
        """Return whether ``user`` may view this document."""
        if self.viewers is None:
            return True
        return user is not None and user in self.viewers


@runtime_checkable
class DocumentAccessBridge(Protocol):
    """Interface used by macros to reach documents."""

    def current_document_reference(self) -> DocumentReference | None: ...

    def is_viewable(self, reference: DocumentReference) -> bool: ...

    def get_document(self, reference: DocumentReference) -> DocumentModel: ...

    def push_document_in_context(self, reference: DocumentReference) -> dict[str, Any]: ...

    def pop_document_from_context(self, backup: dict[str, Any]) -> None: ...

    def document_in_context(
        self, reference: DocumentReference
    ) -> AbstractContextManager[DocumentReference]: ...


class BaseDocumentStore:
    """Access bridge implementation delegating lookups to subclasses."""

    def __init__(self, execution: Execution | None = None) -> None:
        self.execution = execution or Execution()

    # -------------------------------------------------------------- lookups

    def _lookup(self, reference: DocumentReference) -> DocumentModel | None:
        raise NotImplementedError

    def exists(self, reference: DocumentReference) -> bool:
        """Return whether the document is stored."""
        return self._lookup(reference) is not None

    def get_document(self, reference: DocumentReference) -> DocumentModel:
        """Return the stored document or raise :class:`DocumentNotFoundError`."""
        document = self._lookup(reference)
        if document is None:
            raise DocumentNotFoundError(reference)
        return document

    # ---------------------------------------------------------------- rights

    def current_user(self) -> str | None:
        """Return the user bound to the current execution context."""
        context = self.execution.context
        return context.get(USER_PROPERTY) if context is not None else None

    def is_viewable(self, reference: DocumentReference) -> bool:
        """Return whether the current user may view ``reference``.

        Missing documents are reported as viewable so that retrieving them
        surfaces a load failure rather than a rights failure.
        """
        document = self._lookup(reference)
        if document is None:
            return True
        return document.is_viewable_by(self.current_user())

    # --------------------------------------------------------------- binding

    def current_document_reference(self) -> DocumentReference | None:
        """Return the document bound as current, if any."""
        context = self.execution.context
        return context.get(DOCUMENT_PROPERTY) if context is not None else None

    def push_document_in_context(self, reference: DocumentReference) -> dict[str, Any]:
        """Bind ``reference`` as the current document and return a backup token."""
        context = self.execution.ensure_context()
        backup = {
            "context": context,
            "present": DOCUMENT_PROPERTY in context,
            "document": context.get(DOCUMENT_PROPERTY),
        }
        context.set(DOCUMENT_PROPERTY, reference, shared=True)
        logger.debug("Bound document %s as current document", reference)
        return backup

    def pop_document_from_context(self, backup: dict[str, Any]) -> None:
        """Restore the binding captured by :meth:`push_document_in_context`."""
        context = backup["context"]
        if backup["present"]:
            context.set(DOCUMENT_PROPERTY, backup["document"], shared=True)
        else:
            context.remove(DOCUMENT_PROPERTY)

    @contextmanager
    def document_in_context(self, reference: DocumentReference) -> Iterator[DocumentReference]:
        """Bind ``reference`` for the duration of the block."""
        backup = self.push_document_in_context(reference)
        try:
            yield reference
        finally:
            self.pop_document_from_context(backup)


class InMemoryDocumentStore(BaseDocumentStore):
    """Document store backed by a dictionary."""

    def __init__(
        self,
        documents: Iterable[DocumentModel] = (),
        execution: Execution | None = None,
    ) -> None:
        super().__init__(execution)
        self._documents: dict[DocumentReference, DocumentModel] = {}
        for document in documents:
            self.save(document)

    def _lookup(self, reference: DocumentReference) -> DocumentModel | None:
        return self._documents.get(reference)

    def save(self, document: DocumentModel) -> DocumentModel:
        """Store or replace a document."""
        self._documents[document.reference] = document
        return document

    def add(
        self,
        reference: DocumentReference,
        content: str,
        *,
        syntax: Syntax | str = DEFAULT_SYNTAX,
        title: str | None = None,
        viewers: Iterable[str] | None = None,
    ) -> DocumentModel:
        """Create a document from its parts."""
        return self.save(
            DocumentModel(
                reference=reference,
                content=content,
                syntax=Syntax.parse(syntax),
                title=title,
                viewers=frozenset(viewers) if viewers is not None else None,
            )
        )

    def delete(self, reference: DocumentReference) -> None:
        """Remove a document if it is stored."""
        self._documents.pop(reference, None)

    def references(self) -> list[DocumentReference]:
        """Return the stored references sorted by their canonical form."""
        return sorted(self._documents, key=str)


_UNSAFE_PARTS = frozenset({"", ".", ".."})


def _is_safe_part(part: str) -> bool:
    return part not in _UNSAFE_PARTS and not any(char in part for char in "/\\\0")


def _viewers(value: Any) -> frozenset[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return frozenset([value])
    if not isinstance(value, (list, tuple, set)):
        raise TypeError(
            f"'viewers' must be a user name or a list of user names, got {type(value).__name__}"
        )
    return frozenset(str(user) for user in value)


class FileSystemDocumentStore(BaseDocumentStore):
    """Document store reading ``<root>/<Space>/<Page>.<ext>`` files.

    Only files below ``root`` are served: spaces or pages holding path
    separators or dot segments, and paths escaping the root through symbolic
    links, are reported as missing. Unreadable files and malformed front
    matter raise :class:`InvalidDocumentError`.
    """

    def __init__(
        self,
        root: Path | str,
        config: EngineConfig | None = None,
        execution: Execution | None = None,
    ) -> None:
        super().__init__(execution)
        self.root = Path(root)
        self.config = config or EngineConfig()

    def _candidates(self, reference: DocumentReference) -> Iterator[Path]:
        if reference.wiki != self.config.default_wiki:
            return
        if not (_is_safe_part(reference.space) and _is_safe_part(reference.page)):
            logger.debug("Rejected reference %s: unsafe path segment", reference)
            return
        root = self.root.resolve()
        folder = self.root / reference.space
        for extension in self.config.syntax_extensions:
            candidate = folder / f"{reference.page}{extension}"
            if candidate.resolve().is_relative_to(root):
                yield candidate

    def exists(self, reference: DocumentReference) -> bool:
        """Return whether a file backs ``reference``, readable or not."""
        return self.path_for(reference) is not None

    def path_for(self, reference: DocumentReference) -> Path | None:
        """Return the file backing ``reference`` if it exists."""
        for candidate in self._candidates(reference):
            if candidate.is_file():
                return candidate
        return None

    def _lookup(self, reference: DocumentReference) -> DocumentModel | None:
        path = self.path_for(reference)
        if path is None:
            return None
        try:
            return self._load(reference, path)
        except (OSError, UnicodeDecodeError, ValueError, TypeError) as exc:
            raise InvalidDocumentError(reference, str(exc)) from exc

    def _load(self, reference: DocumentReference, path: Path) -> DocumentModel:
        raw = path.read_text(encoding="utf-8")
        metadata, content = split_front_matter(raw, strict=True)
        declared_syntax = metadata.get("syntax")
        syntax = (
            Syntax.parse(declared_syntax)
            if declared_syntax
            else self.config.syntax_for(path) or DEFAULT_SYNTAX
        )
        title = metadata.get("title")
        return DocumentModel(
            reference=reference,
            content=content,
            syntax=syntax,
            title=str(title) if title else None,
            viewers=_viewers(metadata.get("viewers")),
        )

    def references(self) -> list[DocumentReference]:
        """Return every document found under the root directory."""
        found: set[DocumentReference] = set()
        if not self.root.is_dir():
            return []
        for space in sorted(path for path in self.root.iterdir() if path.is_dir()):
            for path in sorted(space.iterdir()):
                if path.is_file() and path.suffix.lower() in self.config.syntax_extensions:
                    found.add(DocumentReference(self.config.default_wiki, space.name, path.stem))
        return sorted(found, key=str)


__all__ = [
    "DOCUMENT_PROPERTY",
    "BaseDocumentStore",
    "DocumentAccessBridge",
    "DocumentModel",
    "FileSystemDocumentStore",
    "InMemoryDocumentStore",
]
