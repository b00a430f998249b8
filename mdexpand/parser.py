"""Single-pass scanner turning Markdown text into a :class:`Document`.

Recognised line-level markers (column 0, outside fenced code only)::

    !include path/to/file.md
    !include path/to/file.md#section-name
    !if <guard>
    !else
    !endif

A line starting with ``\\!`` is emitted literally without the backslash.
Everything else is prose, except fenced code blocks (``` or ~~~), whose
opening line may carry a brace-delimited modifier list::

    ```python {hide-output, label=scatter}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .conditions import compile_guard
from .errors import MarkdownSyntaxError
from .models import CodeBlock, ConditionalSpan, Directive, Document, Node, Prose, SourceLocation

FENCE_OPEN = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>[^\n]*)$")
_INCLUDE = re.compile(r"^!include\s+(?P<target>\S+)\s*$")
_IF = re.compile(r"^!if\s+(?P<expr>.+?)\s*$")
_ELSE = re.compile(r"^!else\s*$")
_ENDIF = re.compile(r"^!endif\s*$")
_TAGS = re.compile(r"\{(?P<tags>[^}]*)\}\s*$")
_TAG_SPLIT = re.compile(r"[,\s]+")


def is_fence_close(line: str, fence: str) -> bool:
    """Return True when ``line`` closes a block opened with ``fence``."""
    stripped = line.rstrip("\r\n")
    body = stripped.lstrip(" ")
    if len(stripped) - len(body) > 3:
        return False
    body = body.rstrip()
    return len(body) >= len(fence) and set(body) == {fence[0]}


def parse_info(info: str) -> Tuple[str, str, Tuple[str, ...]]:
    """Split a fence info string into ``(language, info_without_tags, tags)``."""
    info = info.strip()
    tags: Tuple[str, ...] = ()
    match = _TAGS.search(info)
    if match:
        tags = tuple(token for token in _TAG_SPLIT.split(match.group("tags").strip()) if token)
        info = info[: match.start()].rstrip()
    language = info.split(None, 1)[0].lower() if info else ""
    return language, info, tags


@dataclass
class _Frame:
    """An open ``!if`` while scanning."""

    expression: str
    location: SourceLocation
    children: List[Node] = field(default_factory=list)
    orelse: Optional[List[Node]] = None

    @property
    def target(self) -> List[Node]:
        return self.orelse if self.orelse is not None else self.children


class MarkdownScanner:
    """Parses one file (or a slice of one) into nodes."""

    def parse(self, text: str, path: Path, *, first_line: int = 1) -> Document:
        root: List[Node] = []
        stack: List[_Frame] = []
        prose: List[str] = []
        prose_start = first_line
        lines = text.splitlines(keepends=True)
        index = 0

        def target() -> List[Node]:
            return stack[-1].target if stack else root

        def flush() -> None:
            if prose:
                target().append(Prose("".join(prose), SourceLocation(path, prose_start)))
                prose.clear()

        while index < len(lines):
            line = lines[index]
            line_no = first_line + index
            location = SourceLocation(path, line_no)
            bare = line.rstrip("\r\n")

            fence_match = FENCE_OPEN.match(bare)
            if fence_match and not (
                fence_match.group("fence")[0] == "`" and "`" in fence_match.group("info")
            ):
                flush()
                block, index = self._read_block(lines, index, fence_match, location)
                target().append(block)
                continue

            include = _INCLUDE.match(bare)
            if_match = _IF.match(bare)
            if include or if_match or _ELSE.match(bare) or _ENDIF.match(bare):
                flush()
                if include:
                    target().append(self._directive(include.group("target"), location))
                elif if_match:
                    stack.append(_Frame(expression=if_match.group("expr"), location=location))
                elif _ELSE.match(bare):
                    if not stack or stack[-1].orelse is not None:
                        raise MarkdownSyntaxError("'!else' without a matching '!if'", location=location)
                    stack[-1].orelse = []
                else:
                    if not stack:
                        raise MarkdownSyntaxError("'!endif' without a matching '!if'", location=location)
                    frame = stack.pop()
                    target().append(self._span(frame))
                index += 1
                continue

            if not prose:
                prose_start = line_no
            prose.append(line[1:] if line.startswith("\\!") else line)
            index += 1

        flush()
        if stack:
            raise MarkdownSyntaxError(
                f"'!if {stack[-1].expression}' is never closed with '!endif'",
                location=stack[-1].location,
            )
        return Document(nodes=tuple(root), path=path)

    def _read_block(
        self,
        lines: List[str],
        start: int,
        match: "re.Match[str]",
        location: SourceLocation,
    ) -> Tuple[CodeBlock, int]:
        indent = match.group("indent")
        fence = match.group("fence")
        language, info, tags = parse_info(match.group("info"))
        body: List[str] = []
        index = start + 1
        while index < len(lines):
            line = lines[index]
            if is_fence_close(line, fence):
                block = CodeBlock(
                    source="".join(body),
                    language=language,
                    location=location,
                    fence=fence,
                    info=info,
                    tags=tags,
                    indent=indent,
                )
                return block, index + 1
            if indent and line.startswith(indent):
                line = line[len(indent):]
            elif indent:
                line = line.lstrip(" ")
            body.append(line)
            index += 1
        raise MarkdownSyntaxError(f"code fence '{fence}' is never closed", location=location)

    @staticmethod
    def _directive(reference: str, location: SourceLocation) -> Directive:
        target, _, section = reference.partition("#")
        if not target:
            raise MarkdownSyntaxError(f"include directive '{reference}' has no path", location=location)
        return Directive(target=target, section=section or None, location=location)

    @staticmethod
    def _span(frame: _Frame) -> ConditionalSpan:
        return ConditionalSpan(
            expression=frame.expression,
            guard=compile_guard(frame.expression, location=frame.location),
            children=tuple(frame.children),
            orelse=tuple(frame.orelse or ()),
            location=frame.location,
        )


def parse_markdown(text: str, path: Path, *, first_line: int = 1) -> Document:
    """Convenience wrapper around :class:`MarkdownScanner`."""
    return MarkdownScanner().parse(text, path, first_line=first_line)


__all__ = ["FENCE_OPEN", "MarkdownScanner", "is_fence_close", "parse_info", "parse_markdown"]
