"""Primary public API for transclusion."""

from __future__ import annotations

from transclusion.api import Engine
from transclusion.core.blocks import (
    XDOM,
    Block,
    Error,
    Heading,
    MacroBlock,
    MacroMarker,
    MetaData,
    Paragraph,
)
from transclusion.core.config import EngineConfig, load_config
from transclusion.core.exceptions import (
    ContentParseError,
    ContextSwitchError,
    DocumentLoadError,
    DocumentNotFoundError,
    InclusionDepthError,
    MacroExecutionError,
    MissingParameterError,
    PermissionDeniedError,
    RecursiveInclusionError,
    TransclusionError,
)
from transclusion.core.references import DocumentReference
from transclusion.core.store import FileSystemDocumentStore, InMemoryDocumentStore
from transclusion.macros import IncludeMacro, Macro, MacroParameters

from .version import get_version


__version__ = get_version()

__all__ = [
    "XDOM",
    "Block",
    "ContentParseError",
    "ContextSwitchError",
    "DocumentLoadError",
    "DocumentNotFoundError",
    "DocumentReference",
    "Engine",
    "EngineConfig",
    "Error",
    "FileSystemDocumentStore",
    "Heading",
    "InMemoryDocumentStore",
    "InclusionDepthError",
    "IncludeMacro",
    "Macro",
    "MacroBlock",
    "MacroExecutionError",
    "MacroMarker",
    "MacroParameters",
    "MetaData",
    "MissingParameterError",
    "Paragraph",
    "PermissionDeniedError",
    "RecursiveInclusionError",
    "TransclusionError",
    "__version__",
    "get_version",
    "load_config",
]
