"""Executor capability interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Protocol

from ..models import Artifact, CodeBlock

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..engine import SessionState


@dataclass
class ExecutionError:
    """Details of an exception raised by user code."""

    type_name: str
    message: str
    traceback_text: str = ""
    line: Optional[int] = None


@dataclass
class ExecutionResult:
    """Everything one block produced, successful or not."""

    output: str = ""
    artifacts: List[Artifact] = field(default_factory=list)
    error: Optional[ExecutionError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ExecutionContext:
    """Per-block information an executor needs beyond the source text."""

    block: CodeBlock
    artifact_prefix: str


class Executor(Protocol):
    """Runs source code against a session and reports what happened.

    Implementations must never raise for errors in user code; those are
    returned in :attr:`ExecutionResult.error` together with any partial output.
    """

    def execute(self, code: str, state: "SessionState", *, context: ExecutionContext) -> ExecutionResult:
        """Execute ``code`` against ``state``."""
