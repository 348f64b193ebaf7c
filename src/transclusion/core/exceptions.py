"""Custom exception hierarchy for the inclusion engine."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .references import DocumentReference


class TransclusionError(RuntimeError):
    """Base exception for inclusion and display failures."""


class ConfigurationError(TransclusionError):
    """Raised when the engine configuration cannot be loaded or validated."""


class DocumentNotFoundError(TransclusionError):
    """Raised by document stores when a reference points nowhere."""

    def __init__(self, reference: DocumentReference) -> None:
        super().__init__(f"Document [{reference}] does not exist")
        self.reference = reference


class MacroExecutionError(TransclusionError):
    """Raised when a macro cannot produce its output."""


class UnknownMacroError(MacroExecutionError):
    """Raised when no macro is registered under the requested identifier."""

    def __init__(self, macro_id: str) -> None:
        super().__init__(f"Unknown macro: {macro_id}")
        self.macro_id = macro_id


class MacroParameterError(MacroExecutionError):
    """Raised when macro parameters fail validation."""


class MissingParameterError(MacroParameterError):
    """Raised when a mandatory macro parameter is absent."""


class DocumentError(MacroExecutionError):
    """Macro failure tied to a specific document reference."""

    def __init__(self, message: str, reference: DocumentReference | None) -> None:
        super().__init__(message)
        self.reference = reference


class RecursiveInclusionError(DocumentError):
    """Raised when a document is already being included by an enclosing macro."""

    def __init__(self, reference: DocumentReference) -> None:
        super().__init__(f"Found recursive inclusion of document [{reference}]", reference)


class InclusionDepthError(DocumentError):
    """Raised when an acyclic inclusion chain grows past the configured ceiling."""

    def __init__(self, reference: DocumentReference, depth: int) -> None:
        super().__init__(
            f"Maximum inclusion depth ({depth}) reached while including document [{reference}]",
            reference,
        )
        self.depth = depth


class PermissionDeniedError(DocumentError):
    """Raised when the current user cannot view the requested document."""

    def __init__(self, reference: DocumentReference) -> None:
        super().__init__(
            f"Current user doesn't have view rights on document [{reference}]", reference
        )


class InvalidDocumentError(DocumentError):
    """Raised by document stores when a stored document cannot be read."""

    def __init__(self, reference: DocumentReference, detail: str) -> None:
        super().__init__(f"Document [{reference}] is invalid: {detail}", reference)
        self.detail = detail


class DocumentLoadError(DocumentError):
    """Raised when the document store fails to return a document."""

    def __init__(self, reference: DocumentReference) -> None:
        super().__init__(f"Failed to load document [{reference}]", reference)


class ContentParseError(DocumentError):
    """Raised when included content cannot be parsed."""

    def __init__(self, reference: DocumentReference | None, detail: str = "") -> None:
        target = f"included page [{reference}]" if reference is not None else "content"
        message = f"Failed to parse {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, reference)


class ContextSwitchError(DocumentError):
    """Raised when rendering a document inside an isolated context fails."""

    def __init__(self, reference: DocumentReference) -> None:
        super().__init__(f"Failed to render page [{reference}] in new context", reference)


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "ConfigurationError",
    "ContentParseError",
    "ContextSwitchError",
    "DocumentError",
    "DocumentLoadError",
    "DocumentNotFoundError",
    "InclusionDepthError",
    "InvalidDocumentError",
    "MacroExecutionError",
    "MacroParameterError",
    "MissingParameterError",
    "PermissionDeniedError",
    "RecursiveInclusionError",
    "TransclusionError",
    "UnknownMacroError",
    "exception_messages",
    "exception_hint",
]
