"""Core document model shared across mdexpand components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .conditions import Guard


@dataclass(frozen=True)
class SourceLocation:
    """File and 1-based line a node was read from."""

    path: Path
    line: int

    def shifted(self, offset: int) -> "SourceLocation":
        return SourceLocation(path=self.path, line=self.line + offset)

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


@dataclass(frozen=True)
class Prose:
    """Literal Markdown text, passed through unchanged."""

    text: str
    location: SourceLocation


@dataclass(frozen=True)
class Directive:
    """An include reference, resolved before execution begins."""

    target: str
    location: SourceLocation
    section: Optional[str] = None

    @property
    def reference(self) -> str:
        return f"{self.target}#{self.section}" if self.section else self.target


@dataclass(frozen=True)
class BlockPlan:
    """Resolved behaviour of a classified code block."""

    modifiers: Tuple[str, ...] = ()
    execute: bool = False
    show_code: bool = True
    show_output: bool = True
    show_artifacts: bool = True
    require_artifact: bool = False
    label: Optional[str] = None


@dataclass(frozen=True)
class CodeBlock:
    """A fenced code block with its raw modifier tags.

    ``index`` and ``plan`` are filled in by the classifier; a freshly parsed
    block has ``index == 0`` and no plan.
    """

    source: str
    language: str
    location: SourceLocation
    fence: str = "```"
    info: str = ""
    tags: Tuple[str, ...] = ()
    indent: str = ""
    index: int = 0
    plan: Optional[BlockPlan] = None


@dataclass(frozen=True)
class ConditionalSpan:
    """Child nodes emitted only when ``guard`` is truthy (``orelse`` otherwise)."""

    expression: str
    guard: "Guard"
    children: Tuple["Node", ...]
    location: SourceLocation
    orelse: Tuple["Node", ...] = ()


Node = Union[Prose, Directive, CodeBlock, ConditionalSpan]


@dataclass(frozen=True)
class Document:
    """Ordered, immutable sequence of nodes."""

    nodes: Tuple[Node, ...]
    path: Optional[Path] = None

    def walk(self) -> Iterator[Node]:
        """Yield every node depth-first, including both branches of conditionals."""
        yield from _walk(self.nodes)

    def code_blocks(self) -> list[CodeBlock]:
        return [node for node in self.walk() if isinstance(node, CodeBlock)]

    def directives(self) -> list[Directive]:
        return [node for node in self.walk() if isinstance(node, Directive)]


def _walk(nodes: Tuple[Node, ...]) -> Iterator[Node]:
    for node in nodes:
        yield node
        if isinstance(node, ConditionalSpan):
            yield from _walk(node.children)
            yield from _walk(node.orelse)


@dataclass(frozen=True)
class Artifact:
    """A generated file held in memory until the pipeline commits it."""

    name: str
    data: bytes
    block_index: int

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix.lower()


@dataclass
class ExecutedBlock:
    """A code block paired with what its execution produced."""

    block: CodeBlock
    output: str = ""
    artifacts: list[Artifact] = field(default_factory=list)


@dataclass
class EvaluatedSpan:
    """A conditional span after its guard has been evaluated."""

    span: ConditionalSpan
    taken: bool
    children: list["Evaluated"] = field(default_factory=list)


Evaluated = Union[Prose, ExecutedBlock, EvaluatedSpan]


__all__ = [
    "Artifact",
    "BlockPlan",
    "CodeBlock",
    "ConditionalSpan",
    "Directive",
    "Document",
    "Evaluated",
    "EvaluatedSpan",
    "ExecutedBlock",
    "Node",
    "Prose",
    "SourceLocation",
]
