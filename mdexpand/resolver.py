"""Include directive resolution.

Directives are replaced depth-first and in place by the parsed nodes of their
target. Paths resolve against the directory of the file that contains the
directive; directives in the root document resolve against the base
directory. The active inclusion stack is tracked so that cycles and runaway
nesting fail deterministically instead of exhausting the interpreter stack.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

from .config import DEFAULT_MAX_INCLUDE_DEPTH
from .errors import CircularIncludeError, IncludeDepthError, IncludeNotFoundError, SectionNotFoundError
from .logging import get_logger
from .models import ConditionalSpan, Directive, Document, Node
from .parser import MarkdownScanner
from .sections import available_sections, select_section

_StackKey = Tuple[Path, Optional[str]]


class IncludeResolver:
    """Flattens include directives into a single document."""

    def __init__(
        self,
        *,
        max_depth: int = DEFAULT_MAX_INCLUDE_DEPTH,
        scanner: MarkdownScanner | None = None,
    ) -> None:
        self.max_depth = max_depth
        self.scanner = scanner or MarkdownScanner()
        self.logger = get_logger("resolver")

    def load(self, root: Path, *, base_dir: Path | None = None) -> Document:
        """Parse ``root`` and return its fully flattened document."""
        root = root.expanduser().resolve()
        text = self._read(root)
        document = self.scanner.parse(text, root)
        return self.resolve(document, base_dir=base_dir or root.parent)

    def resolve(self, document: Document, *, base_dir: Path) -> Document:
        """Return a new document with every directive inlined.

        A document without directives comes back equal to the input.
        """
        stack: List[_StackKey] = []
        if document.path is not None:
            stack.append((document.path.resolve(), None))
        nodes = self._resolve_nodes(document.nodes, base_dir.expanduser().resolve(), stack, 0)
        return Document(nodes=nodes, path=document.path)

    def _resolve_nodes(
        self,
        nodes: Tuple[Node, ...],
        base_dir: Path,
        stack: List[_StackKey],
        depth: int,
    ) -> Tuple[Node, ...]:
        resolved: List[Node] = []
        for node in nodes:
            if isinstance(node, Directive):
                resolved.extend(self._inline(node, base_dir, stack, depth + 1))
            elif isinstance(node, ConditionalSpan):
                resolved.append(
                    replace(
                        node,
                        children=self._resolve_nodes(node.children, base_dir, stack, depth),
                        orelse=self._resolve_nodes(node.orelse, base_dir, stack, depth),
                    )
                )
            else:
                resolved.append(node)
        return tuple(resolved)

    def _inline(
        self,
        directive: Directive,
        base_dir: Path,
        stack: List[_StackKey],
        depth: int,
    ) -> Tuple[Node, ...]:
        target = (base_dir / directive.target).resolve()
        key: _StackKey = (target, directive.section)
        if key in stack or (target, None) in stack:
            start = stack.index(key) if key in stack else stack.index((target, None))
            cycle = [_describe(entry) for entry in stack[start:]] + [_describe(key)]
            raise CircularIncludeError(cycle, location=directive.location)
        if depth > self.max_depth:
            raise IncludeDepthError(self.max_depth, location=directive.location)
        if not target.is_file():
            raise IncludeNotFoundError(directive.target, target, location=directive.location)

        text = self._read(target)
        first_line = 1
        if directive.section:
            selected = select_section(text, directive.section)
            if selected is None:
                raise SectionNotFoundError(
                    directive.section,
                    target,
                    available_sections(text),
                    location=directive.location,
                )
            text, offset = selected
            first_line += offset

        self.logger.debug("Including %s at depth %d from %s", directive.reference, depth, directive.location)
        fragment = self.scanner.parse(text, target, first_line=first_line)
        stack.append(key)
        try:
            return self._resolve_nodes(fragment.nodes, target.parent, stack, depth)
        finally:
            stack.pop()

    @staticmethod
    def _read(path: Path) -> str:
        return path.read_text(encoding="utf-8")


def _describe(key: _StackKey) -> str:
    path, section = key
    return f"{path}#{section}" if section else str(path)


__all__ = ["IncludeResolver"]
