"""Base class shared by every macro implementation."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import ClassVar, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from transclusion.core.blocks import Block
from transclusion.core.exceptions import MacroParameterError
from transclusion.core.transformation import TransformationContext


DEFAULT_PRIORITY = 100


class MacroParameters(BaseModel):
    """Base model for macro parameters; names are matched case-insensitively."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


P = TypeVar("P", bound=MacroParameters)


class Macro(Generic[P]):
    """A named operation turning parameters and content into syntax tree nodes.

    Higher ``priority`` values execute first within a transformation pass.
    """

    id: ClassVar[str]
    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    priority: ClassVar[int] = DEFAULT_PRIORITY
    supports_inline_mode: ClassVar[bool] = False
    restricted_safe: ClassVar[bool] = True
    parameters_model: ClassVar[type[MacroParameters]] = MacroParameters

    def parse_parameters(self, raw: Mapping[str, str]) -> P:
        """Validate raw string parameters into the macro's parameter model."""
        fields = {name.lower(): name for name in self.parameters_model.model_fields}
        data: dict[str, str] = {}
        for key, value in raw.items():
            data[fields.get(key.lower(), key)] = value
        try:
            return self.parameters_model.model_validate(data)  # type: ignore[return-value]
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc']) or 'parameters'}: {error['msg']}"
                for error in exc.errors()
            )
            raise MacroParameterError(
                f"Invalid parameters for the [{self.id}] macro: {details}"
            ) from exc

    def execute(
        self,
        parameters: P,
        content: str | None,
        context: TransformationContext,
    ) -> Sequence[Block]:
        """Return the nodes replacing the macro call."""
        raise NotImplementedError


__all__ = ["DEFAULT_PRIORITY", "Macro", "MacroParameters"]
