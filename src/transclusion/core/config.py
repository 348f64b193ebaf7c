"""Configuration model used by the inclusion engine.

EngineConfig

`default_wiki` (`str`)
: Wiki used when a reference does not name one and no base reference is
  available.

`default_space` (`str`)
: Space used when a reference does not name one and no base reference is
  available.

`default_page` (`str`)
: Page used when a reference is empty.

`default_include_context` (`str`)
: Context strategy applied by the `include` macro when its `context`
  parameter is omitted. Either `current` (default) or `new`.

`max_inclusion_depth` (`int | None`)
: Maximum number of nested inclusions allowed on a single chain. Long but
  acyclic chains fail with an inclusion depth error once the ceiling is hit.
  `None` disables the ceiling and leaves the interpreter stack as the only
  bound.

`max_macro_executions` (`int`)
: Upper bound on macro executions performed by a single transformation pass.

`cache_enabled` (`bool`)
: Toggle the rendering cache used when displaying document content.

`cache_size` (`int`)
: Maximum number of rendered documents kept by the rendering cache.

`syntax_extensions` (`dict[str, str]`)
: Mapping of file extensions to syntax identifiers used by the filesystem
  document store.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError
from .syntax import Syntax


DEFAULT_CONFIG_FILENAME = "transclusion.yml"


class EngineConfig(BaseModel):
    """Settings shared by every component of the engine."""

    model_config = ConfigDict(extra="forbid")

    default_wiki: str = "xwiki"
    default_space: str = "Main"
    default_page: str = "WebHome"
    default_include_context: str = Field(default="current", description="new or current")
    max_inclusion_depth: int | None = Field(default=32, ge=1)
    max_macro_executions: int = Field(default=1000, ge=1)
    cache_enabled: bool = True
    cache_size: int = Field(default=128, ge=1)
    syntax_extensions: dict[str, str] = Field(
        default_factory=lambda: {
            ".xwiki": "xwiki/2.1",
            ".md": "markdown/1.2",
            ".markdown": "markdown/1.2",
            ".txt": "plain/1.0",
        }
    )

    @field_validator("default_include_context")
    @classmethod
    def check_context(cls, value: str) -> str:
        normalised = value.strip().lower()
        if normalised not in {"new", "current"}:
            msg = f"default_include_context must be 'new' or 'current', got '{value}'"
            raise ValueError(msg)
        return normalised

    @field_validator("syntax_extensions")
    @classmethod
    def check_syntaxes(cls, value: dict[str, str]) -> dict[str, str]:
        normalised: dict[str, str] = {}
        for extension, syntax in value.items():
            suffix = extension if extension.startswith(".") else f".{extension}"
            normalised[suffix.lower()] = Syntax.parse(syntax).id
        return normalised

    def syntax_for(self, path: Path) -> Syntax | None:
        """Return the syntax registered for the file extension of ``path``."""
        identifier = self.syntax_extensions.get(path.suffix.lower())
        return Syntax.parse(identifier) if identifier else None


def load_config(path: Path | str | None = None, **overrides: Any) -> EngineConfig:
    """Load the engine configuration from a YAML file, applying overrides."""
    data: dict[str, Any] = {}
    if path is not None:
        source = Path(path)
        try:
            raw = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
        except OSError as exc:
            raise ConfigurationError(f"Unable to read configuration file '{source}'") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in configuration file '{source}'") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(
                f"Configuration file '{source}' must contain a mapping at the top level"
            )
        data.update(raw.get("transclusion", raw))
    data.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid engine configuration: {exc}") from exc


__all__ = ["DEFAULT_CONFIG_FILENAME", "EngineConfig", "load_config"]
