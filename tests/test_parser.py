"""Tests for the Markdown scanner."""

from __future__ import annotations

from pathlib import Path

import pytest

from mdexpand.conditions import Comparison, Literal, Reference
from mdexpand.errors import GuardSyntaxError, MarkdownSyntaxError
from mdexpand.models import CodeBlock, ConditionalSpan, Directive, Prose
from mdexpand.parser import parse_info, parse_markdown


def test_scanner_splits_prose_directives_and_blocks(tmp_path: Path) -> None:
    text = (
        "# Title\n"
        "\n"
        "Intro\n"
        "!include parts/setup.md#install\n"
        "```python {hide-output}\n"
        "x = 1\n"
        "```\n"
        "After\n"
    )
    document = parse_markdown(text, tmp_path / "main.md")

    assert [type(node) for node in document.nodes] == [Prose, Directive, CodeBlock, Prose]
    prose, directive, block, tail = document.nodes
    assert prose.text == "# Title\n\nIntro\n"
    assert prose.location.line == 1
    assert directive.target == "parts/setup.md"
    assert directive.section == "install"
    assert directive.reference == "parts/setup.md#install"
    assert directive.location.line == 4
    assert block.language == "python"
    assert block.tags == ("hide-output",)
    assert block.source == "x = 1\n"
    assert block.location.line == 5
    assert tail.text == "After\n"
    assert tail.location.line == 8


def test_directives_inside_code_fences_stay_literal(tmp_path: Path) -> None:
    text = "```markdown\n!include other.md\n!if x\n```\n"
    document = parse_markdown(text, tmp_path / "main.md")

    assert len(document.nodes) == 1
    block = document.nodes[0]
    assert isinstance(block, CodeBlock)
    assert block.source == "!include other.md\n!if x\n"
    assert document.directives() == []


def test_longer_fence_contains_shorter_fences(tmp_path: Path) -> None:
    text = "````markdown\n```python\nprint(1)\n```\n````\nTail\n"
    document = parse_markdown(text, tmp_path / "main.md")

    block, tail = document.nodes
    assert isinstance(block, CodeBlock)
    assert block.fence == "````"
    assert block.source == "```python\nprint(1)\n```\n"
    assert tail.text == "Tail\n"


def test_tilde_fences_are_recognised(tmp_path: Path) -> None:
    document = parse_markdown("~~~bash\nls -la\n~~~\n", tmp_path / "main.md")

    block = document.nodes[0]
    assert isinstance(block, CodeBlock)
    assert block.fence == "~~~"
    assert block.language == "bash"
    assert block.tags == ()


def test_conditionals_nest_and_support_else(tmp_path: Path) -> None:
    text = "!if x > 1\nA\n!if y\nB\n!endif\n!else\nC\n!endif\nD\n"
    document = parse_markdown(text, tmp_path / "main.md")

    span, tail = document.nodes
    assert isinstance(span, ConditionalSpan)
    assert span.expression == "x > 1"
    assert span.guard == Comparison(Reference("x"), (">",), (Literal(1),))
    assert span.location.line == 1
    first, inner = span.children
    assert first.text == "A\n"
    assert isinstance(inner, ConditionalSpan)
    assert inner.guard == Reference("y")
    assert [node.text for node in inner.children] == ["B\n"]
    assert [node.text for node in span.orelse] == ["C\n"]
    assert tail.text == "D\n"


def test_escaped_marker_lines_become_prose(tmp_path: Path) -> None:
    document = parse_markdown("\\!include not-a-directive.md\n", tmp_path / "main.md")

    assert document.nodes == (Prose("!include not-a-directive.md\n", document.nodes[0].location),)


def test_marker_like_words_are_plain_prose(tmp_path: Path) -> None:
    text = "!includes are great\n![image](a.png)\n!iffy\n"
    document = parse_markdown(text, tmp_path / "main.md")

    assert len(document.nodes) == 1
    assert document.nodes[0].text == text


@pytest.mark.parametrize(
    ("text", "line"),
    [
        ("Intro\n```python\nx = 1\n", 2),
        ("!endif\n", 1),
        ("Intro\n!if x\nbody\n", 2),
        ("!if x\n!else\n!else\n!endif\n", 3),
        ("!else\n", 1),
    ],
)
def test_structural_errors_report_their_line(tmp_path: Path, text: str, line: int) -> None:
    with pytest.raises(MarkdownSyntaxError) as excinfo:
        parse_markdown(text, tmp_path / "main.md")

    assert excinfo.value.location is not None
    assert excinfo.value.location.line == line


def test_invalid_guard_fails_at_parse_time(tmp_path: Path) -> None:
    with pytest.raises(GuardSyntaxError) as excinfo:
        parse_markdown("!if compute()\nx\n!endif\n", tmp_path / "main.md")

    assert excinfo.value.location.line == 1


def test_first_line_offsets_locations(tmp_path: Path) -> None:
    document = parse_markdown("## Part\n```python\npass\n```\n", tmp_path / "part.md", first_line=12)

    heading, block = document.nodes
    assert heading.location.line == 12
    assert block.location.line == 13


def test_parse_info_strips_modifier_tags() -> None:
    assert parse_info("python {hide-output, label=fig}") == (
        "python",
        "python",
        ("hide-output", "label=fig"),
    )
    assert parse_info('Python title="demo" {no-exec}') == ("python", 'Python title="demo"', ("no-exec",))
    assert parse_info("") == ("", "", ())
