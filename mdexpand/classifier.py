"""Block classification: resolve modifier tags into an execution plan."""

from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import ModifierConflictError, UnknownModifierError
from .logging import get_logger
from .models import BlockPlan, CodeBlock, ConditionalSpan, Document, Node
from .modifiers import ModifierRegistry, default_registry
from .sections import slugify


class BlockClassifier:
    """Annotates every code block with a validated :class:`BlockPlan`.

    The whole document is classified, including both branches of every
    conditional, before anything executes, so tagging mistakes in dead
    branches still fail the run. Blocks are numbered from 1 in document order.
    """

    def __init__(
        self,
        registry: ModifierRegistry | None = None,
        *,
        languages: Iterable[str] = ("python", "py", "python3"),
        execute_by_default: bool = True,
    ) -> None:
        self.registry = registry or default_registry()
        self.languages = {language.lower() for language in languages}
        self.execute_by_default = execute_by_default
        self.logger = get_logger("classifier")

    def classify(self, document: Document) -> Document:
        counter = [0]
        nodes = self._classify_nodes(document.nodes, counter)
        executable = sum(
            1 for block in _iter_blocks(nodes) if block.plan is not None and block.plan.execute
        )
        self.logger.debug("Classified %d code blocks (%d executable)", counter[0], executable)
        return Document(nodes=nodes, path=document.path)

    def plan(self, block: CodeBlock) -> BlockPlan:
        """Validate ``block.tags`` and return the resulting plan."""
        names: List[str] = []
        values: Dict[str, str] = {}
        for token in block.tags:
            name, has_value, value = token.partition("=")
            modifier = self.registry.get(name)
            if (
                modifier is None
                or modifier.takes_value != bool(has_value)
                or (has_value and not slugify(value))
            ):
                raise UnknownModifierError(token, known=self.registry.names(), location=block.location)
            if modifier.name in names:
                continue
            names.append(modifier.name)
            if has_value:
                values[modifier.name] = value

        for position, first in enumerate(names):
            for second in names[position + 1:]:
                if self.registry.conflicts(first, second):
                    raise ModifierConflictError(first, second, location=block.location)

        modifiers = [self.registry.get(name) for name in names]
        executable_language = block.language in self.languages
        if not executable_language:
            for modifier in modifiers:
                if modifier is not None and modifier.requires_execution:
                    raise ModifierConflictError(
                        modifier.name,
                        "no-exec",
                        reason=f"'{block.language or 'plain'}' blocks are never executed",
                        location=block.location,
                    )

        skip = any(m is not None and m.skip_execution for m in modifiers)
        forced = any(m is not None and m.force_execution for m in modifiers)
        requested = any(m is not None and m.requires_execution for m in modifiers)
        execute = executable_language and not skip and (
            self.execute_by_default or forced or requested
        )
        label = values.get("label")
        return BlockPlan(
            modifiers=tuple(sorted(names)),
            execute=execute,
            show_code=not any(m is not None and m.hide_code for m in modifiers),
            show_output=execute and not any(m is not None and m.hide_output for m in modifiers),
            show_artifacts=execute and not any(m is not None and m.hide_artifacts for m in modifiers),
            require_artifact=execute and any(m is not None and m.require_artifact for m in modifiers),
            label=slugify(label) if label else None,
        )

    def _classify_nodes(self, nodes: Tuple[Node, ...], counter: List[int]) -> Tuple[Node, ...]:
        classified: List[Node] = []
        for node in nodes:
            if isinstance(node, CodeBlock):
                counter[0] += 1
                classified.append(replace(node, index=counter[0], plan=self.plan(node)))
            elif isinstance(node, ConditionalSpan):
                classified.append(
                    replace(
                        node,
                        children=self._classify_nodes(node.children, counter),
                        orelse=self._classify_nodes(node.orelse, counter),
                    )
                )
            else:
                classified.append(node)
        return tuple(classified)


def _iter_blocks(nodes: Tuple[Node, ...]) -> Iterable[CodeBlock]:
    return Document(nodes=nodes).code_blocks()


def describe_plan(plan: Optional[BlockPlan]) -> str:
    if plan is None:
        return "unclassified"
    parts = ["execute" if plan.execute else "literal"]
    if plan.modifiers:
        parts.append(",".join(plan.modifiers))
    return " ".join(parts)


__all__ = ["BlockClassifier", "describe_plan"]
