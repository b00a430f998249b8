"""Pipeline orchestration: resolve, classify, execute, assemble, write."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .artifacts import ArtifactStore, artifact_prefix, write_atomic
from .assembler import OutputAssembler
from .classifier import BlockClassifier
from .conditions import ConditionalEvaluator
from .config import ExpandConfig, load_config
from .engine import ExecutionEngine, SessionState
from .executors import Executor, create_executor
from .logging import get_logger
from .models import (
    Artifact,
    CodeBlock,
    ConditionalSpan,
    Directive,
    Document,
    EvaluatedSpan,
    Evaluated,
    Node,
    Prose,
)
from .modifiers import ModifierRegistry
from .postproc.lint import MarkdownLinter
from .resolver import IncludeResolver

EXPANDED_SUFFIX = ".expanded.md"


@dataclass
class ExpansionResult:
    """Outcome of a successful expansion run."""

    text: str
    document: Document
    artifacts: List[Artifact] = field(default_factory=list)
    output_path: Optional[Path] = None
    artifact_paths: List[Path] = field(default_factory=list)


@dataclass
class CheckReport:
    """What a dry validation pass found, without executing anything."""

    document: Document
    blocks: List[CodeBlock]
    files: List[Path]
    conditionals: int

    @property
    def executable(self) -> List[CodeBlock]:
        return [block for block in self.blocks if block.plan is not None and block.plan.execute]


def default_output_path(root: Path) -> Path:
    """``chapter.md`` expands to ``chapter.expanded.md`` beside it."""
    return root.with_name(f"{root.stem}{EXPANDED_SUFFIX}")


class Preprocessor:
    """Coordinates the expansion stages for one root document per call.

    Every call builds a fresh :class:`SessionState`; nothing survives between
    runs. Errors propagate as :class:`~mdexpand.errors.ExpansionError`
    subclasses before anything is written.
    """

    def __init__(
        self,
        config: ExpandConfig | None = None,
        *,
        registry: ModifierRegistry | None = None,
        executor: Executor | None = None,
        evaluator: ConditionalEvaluator | None = None,
        linter: MarkdownLinter | None = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._executor = executor
        self.evaluator = evaluator or ConditionalEvaluator()
        self.linter = linter or MarkdownLinter()
        self.logger = get_logger("pipeline")

    def expand(
        self,
        root: Path | str,
        *,
        base_dir: Path | None = None,
        output: Path | None = None,
        artifacts_dir: Path | None = None,
    ) -> ExpansionResult:
        """Expand ``root``; write ``output`` and artifacts only when everything succeeds.

        With ``output=None`` the text is returned but not written; artifacts
        are still committed so the returned references resolve.
        """
        root_path = Path(root).expanduser().resolve()
        config = self._resolve_config(root_path, base_dir)
        self.logger.info("Expanding %s", root_path)

        document = self.prepare(root_path, base_dir=base_dir, config=config)

        output_path = output.expanduser().resolve() if output is not None else None
        output_dir = output_path.parent if output_path is not None else root_path.parent
        stem = output_path.stem if output_path is not None else root_path.stem
        artifact_dir = self._artifact_dir(config, output_dir, stem, artifacts_dir)
        prefix = artifact_prefix(root_path)

        engine = ExecutionEngine(
            self._executor or create_executor(config.executor),
            SessionState(),
            artifact_prefix=prefix,
        )
        try:
            evaluated = self.evaluate(document.nodes, engine)
        finally:
            engine.close()

        assembler = OutputAssembler(
            config.output.templates_dir,
            artifact_base=Path(os.path.relpath(artifact_dir, output_dir)).as_posix(),
            result_language=config.output.result_language,
        )
        text = assembler.assemble(evaluated)
        if config.output.normalise:
            text = self.linter.lint(text)

        artifacts = engine.artifacts
        self.logger.info(
            "Executed %d block(s), collected %d artifact(s)",
            len(engine.runs),
            len(artifacts),
        )

        artifact_paths = ArtifactStore(artifact_dir, prefix).commit(artifacts)
        if output_path is not None:
            write_atomic(output_path, text.encode("utf-8"))
            self.logger.info("Expanded document written to %s", output_path)

        return ExpansionResult(
            text=text,
            document=document,
            artifacts=artifacts,
            output_path=output_path,
            artifact_paths=artifact_paths,
        )

    def check(self, root: Path | str, *, base_dir: Path | None = None) -> CheckReport:
        """Resolve and classify ``root`` without executing any block."""
        root_path = Path(root).expanduser().resolve()
        config = self._resolve_config(root_path, base_dir)
        document = self.prepare(root_path, base_dir=base_dir, config=config)
        files: List[Path] = []
        conditionals = 0
        for node in document.walk():
            if isinstance(node, ConditionalSpan):
                conditionals += 1
            location = getattr(node, "location", None)
            if location is not None and location.path not in files:
                files.append(location.path)
        return CheckReport(
            document=document,
            blocks=document.code_blocks(),
            files=files,
            conditionals=conditionals,
        )

    def prepare(
        self,
        root: Path,
        *,
        base_dir: Path | None = None,
        config: ExpandConfig | None = None,
    ) -> Document:
        """Flatten includes and classify every block; nothing executes here."""
        config = config or self._resolve_config(root, base_dir)
        resolver = IncludeResolver(max_depth=config.includes.max_depth)
        flattened = resolver.load(root, base_dir=base_dir)
        classifier = BlockClassifier(
            self._registry,
            languages=config.executor.languages,
            execute_by_default=config.executor.execute_by_default,
        )
        return classifier.classify(flattened)

    def evaluate(self, nodes: Sequence[Node], engine: ExecutionEngine) -> List[Evaluated]:
        """Walk nodes in order, running blocks and deciding conditionals as they come."""
        evaluated: List[Evaluated] = []
        for node in nodes:
            if isinstance(node, Prose):
                evaluated.append(node)
            elif isinstance(node, CodeBlock):
                evaluated.append(engine.run(node))
            elif isinstance(node, ConditionalSpan):
                taken = self.evaluator.evaluate(node, engine.bindings())
                branch = node.children if taken else node.orelse
                evaluated.append(
                    EvaluatedSpan(span=node, taken=taken, children=self.evaluate(branch, engine))
                )
            elif isinstance(node, Directive):
                raise ValueError(f"unresolved include directive at {node.location}")
            else:  # pragma: no cover - exhaustive
                raise TypeError(f"Unknown node type {type(node).__name__}")
        return evaluated

    def _resolve_config(self, root: Path, base_dir: Path | None) -> ExpandConfig:
        if self._config is not None:
            return self._config
        return load_config(base_dir or root.parent)

    @staticmethod
    def _artifact_dir(
        config: ExpandConfig,
        output_dir: Path,
        stem: str,
        override: Path | None,
    ) -> Path:
        if override is not None:
            return override.expanduser().resolve()
        if config.output.artifacts_dir:
            return (output_dir / config.output.artifacts_dir).resolve()
        return output_dir / f"{stem}_files"


__all__ = ["CheckReport", "ExpansionResult", "Preprocessor", "default_output_path"]
