"""Modifier definitions for fenced code blocks."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True)
class Modifier:
    """A tag that changes how a code block is executed or displayed.

    ``conflicts`` is declared on one side only; the registry checks it in
    both directions. Parameterised modifiers (``label=name``) set
    ``takes_value``.
    """

    name: str
    description: str
    requires_execution: bool = False
    skip_execution: bool = False
    force_execution: bool = False
    hide_code: bool = False
    hide_output: bool = False
    hide_artifacts: bool = False
    require_artifact: bool = False
    takes_value: bool = False
    conflicts: FrozenSet[str] = field(default_factory=frozenset)
