"""Stitches evaluated nodes back into one Markdown document."""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Sequence

from jinja2 import Environment, FileSystemLoader

from .artifacts import is_image
from .logging import get_logger
from .models import Artifact, EvaluatedSpan, Evaluated, ExecutedBlock, Prose

_DEFAULT_TEMPLATES = Path(__file__).with_name("templates")
_BACKTICK_RUN = re.compile(r"`+")


class OutputAssembler:
    """Renders prose, code, console output and artifact references in order.

    Code, output and artifact snippets go through the ``code.j2``,
    ``output.j2`` and ``artifact.j2`` templates; a user templates directory is
    searched before the packaged defaults.
    """

    def __init__(
        self,
        templates_dir: Path | None = None,
        *,
        artifact_base: str = "",
        result_language: str = "text",
    ) -> None:
        self.templates_dir = templates_dir
        self.artifact_base = artifact_base.strip("/")
        self.result_language = result_language
        self._env = self._create_env(templates_dir)
        self.logger = get_logger("assembler")

    def assemble(self, evaluated: Sequence[Evaluated]) -> str:
        parts: List[str] = []
        self._emit(evaluated, parts)
        return "".join(parts)

    def render_block(self, executed: ExecutedBlock) -> str:
        block = executed.block
        plan = block.plan
        pieces: List[str] = []
        if plan is None or plan.show_code:
            pieces.append(self._render_code(executed))
        if plan is not None and plan.show_output and executed.output:
            pieces.append(self._render_output(executed.output))
        if plan is not None and plan.show_artifacts:
            pieces.extend(self._render_artifact(artifact, plan.label) for artifact in executed.artifacts)
        return "\n".join(pieces)

    def _emit(self, evaluated: Sequence[Evaluated], parts: List[str]) -> None:
        for item in evaluated:
            if isinstance(item, Prose):
                parts.append(item.text)
            elif isinstance(item, ExecutedBlock):
                parts.append(self.render_block(item))
            elif isinstance(item, EvaluatedSpan):
                # Untaken spans without an else branch have no children and leave no trace.
                self._emit(item.children, parts)
            else:  # pragma: no cover - exhaustive
                raise TypeError(f"Cannot assemble {type(item).__name__}")

    def _render_code(self, executed: ExecutedBlock) -> str:
        block = executed.block
        indent = block.indent
        body = "".join(
            f"{indent}{line}" if line.strip() else line
            for line in block.source.splitlines(keepends=True)
        )
        if body and not body.endswith("\n"):
            body += "\n"
        template = self._env.get_template("code.j2")
        return template.render(
            opening=f"{indent}{block.fence}{block.info}",
            body=body,
            closing=f"{indent}{block.fence}",
            block=block,
        )

    def _render_output(self, output: str) -> str:
        body = output if output.endswith("\n") else output + "\n"
        longest = max((len(run) for run in _BACKTICK_RUN.findall(body)), default=0)
        fence = "`" * max(3, longest + 1)
        template = self._env.get_template("output.j2")
        return template.render(fence=fence, language=self.result_language, body=body)

    def _render_artifact(self, artifact: Artifact, label: str | None) -> str:
        path = f"{self.artifact_base}/{artifact.name}" if self.artifact_base else artifact.name
        template = self._env.get_template("artifact.j2")
        return template.render(
            image=is_image(artifact),
            alt=label or Path(artifact.name).stem,
            name=artifact.name,
            path=path,
            artifact=artifact,
        )

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        directories.append(str(_DEFAULT_TEMPLATES))
        loader = FileSystemLoader(directories)
        return Environment(
            loader=loader,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )


__all__ = ["OutputAssembler"]
