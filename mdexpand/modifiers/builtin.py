"""Modifiers available without any plugin."""

from __future__ import annotations

from .base import Modifier

EXEC = Modifier(
    name="exec",
    description="Execute the block even when execution is off by default.",
    requires_execution=True,
    force_execution=True,
)

NO_EXEC = Modifier(
    name="no-exec",
    description="Render the block as literate code only.",
    skip_execution=True,
    conflicts=frozenset({"exec", "hide-output", "output-only", "render-only", "silent"}),
)

HIDE_OUTPUT = Modifier(
    name="hide-output",
    description="Execute and show the code, but drop printed output.",
    requires_execution=True,
    hide_output=True,
)

OUTPUT_ONLY = Modifier(
    name="output-only",
    description="Execute and show only printed output and artifacts.",
    requires_execution=True,
    hide_code=True,
    conflicts=frozenset({"hide-output", "render-only", "silent"}),
)

RENDER_ONLY = Modifier(
    name="render-only",
    description="Execute and embed only the artifacts the block declares.",
    requires_execution=True,
    hide_code=True,
    hide_output=True,
    require_artifact=True,
    conflicts=frozenset({"silent"}),
)

SILENT = Modifier(
    name="silent",
    description="Execute for side effects on the session and emit nothing.",
    requires_execution=True,
    hide_code=True,
    hide_output=True,
    hide_artifacts=True,
)

LABEL = Modifier(
    name="label",
    description="Name used for the block's artifact files (label=name).",
    takes_value=True,
)

BUILTIN_MODIFIERS: tuple[Modifier, ...] = (
    EXEC,
    NO_EXEC,
    HIDE_OUTPUT,
    OUTPUT_ONLY,
    RENDER_ONLY,
    SILENT,
    LABEL,
)

__all__ = ["BUILTIN_MODIFIERS"]
