from __future__ import annotations

from transclusion.api import Engine
from transclusion.core.blocks import Paragraph, Word
from transclusion.core.diagnostics import NullEmitter
from transclusion.core.execution import VARIABLES_PROPERTY, Execution
from transclusion.core.transformation import TransformationContext
from transclusion.macros import GetMacro, SetMacro


def _engine(**documents: str) -> Engine:
    engine = Engine(emitter=NullEmitter())
    for name, content in documents.items():
        engine.store.add(engine.reference(name), content)
    return engine


def test_value_set_earlier_is_printed() -> None:
    engine = _engine(Home='{{set name="who" value="world"/}}\n\nHello {{get name="who"/}}!')

    assert engine.content("Home") == "Hello world!"


def test_get_falls_back_to_default() -> None:
    engine = _engine(Home='{{get name="missing" default="nobody home"/}}')

    assert engine.content("Home") == "nobody home"


def test_missing_variable_without_default_renders_nothing() -> None:
    engine = _engine(Home='Value: {{get name="missing"/}}')

    assert engine.content("Home") == "Value:"


def test_set_prefers_macro_content() -> None:
    engine = _engine(Home='{{set name="x" value="ignored"}}from content{{/set}}\n\n{{get name="x"/}}')

    assert engine.content("Home") == "from content"


def test_variables_are_scoped_by_transformation_identity() -> None:
    execution = Execution()
    setter = SetMacro(execution)
    getter = GetMacro(execution)
    first = TransformationContext(id="first")
    second = TransformationContext(id="second")

    setter.execute(setter.parse_parameters({"name": "x", "value": "1"}), None, first)

    assert getter.scope.get(first, "x") == "1"
    assert getter.scope.get(second, "x") is None
    assert execution.context.get(VARIABLES_PROPERTY) == {"first": {"x": "1"}}


def test_get_returns_a_paragraph_outside_inline_mode() -> None:
    execution = Execution()
    getter = GetMacro(execution)
    parameters = getter.parse_parameters({"NAME": "x", "default": "two words"})

    [paragraph] = getter.execute(parameters, None, TransformationContext())
    inline = getter.execute(parameters, None, TransformationContext(inline=True))

    assert isinstance(paragraph, Paragraph)
    assert paragraph.text_content() == "two words"
    assert isinstance(inline[0], Word)
    assert "".join(block.text_content() for block in inline) == "two words"


def test_get_without_execution_context_uses_default() -> None:
    getter = GetMacro(Execution())

    blocks = getter.execute(
        getter.parse_parameters({"name": "x", "default": "d"}), None, TransformationContext()
    )

    assert [block.text_content() for block in blocks] == ["d"]
