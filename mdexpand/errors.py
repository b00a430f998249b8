"""Error taxonomy for expansion runs.

Every error is terminal: the pipeline stops at the first one and writes
nothing. Each carries the location of the defect so that ``report()`` can
produce a single positional line for the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from .models import SourceLocation


class ExpansionError(RuntimeError):
    """Base class for all run-terminating preprocessing errors."""

    def __init__(self, message: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(message)
        self.message = message
        self.location = location

    def report(self) -> str:
        prefix = f"{self.location}: " if self.location is not None else ""
        return f"{prefix}{type(self).__name__}: {self.message}"

    def __str__(self) -> str:
        return self.report()


class MarkdownSyntaxError(ExpansionError):
    """Unterminated fences or unbalanced conditional markers."""


class ResolutionError(ExpansionError):
    """Base class for include directive failures."""


class IncludeNotFoundError(ResolutionError):
    def __init__(self, target: str, resolved: Path, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(f"include target '{target}' not found (looked for {resolved})", location=location)
        self.target = target
        self.resolved = resolved


class CircularIncludeError(ResolutionError):
    def __init__(self, cycle: Sequence[str], *, location: Optional[SourceLocation] = None) -> None:
        super().__init__("circular include: " + " -> ".join(cycle), location=location)
        self.cycle = list(cycle)


class IncludeDepthError(ResolutionError):
    def __init__(self, max_depth: int, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(f"include nesting exceeds the maximum depth of {max_depth}", location=location)
        self.max_depth = max_depth


class SectionNotFoundError(ResolutionError):
    def __init__(
        self,
        section: str,
        target: Path,
        available: Sequence[str] = (),
        *,
        location: Optional[SourceLocation] = None,
    ) -> None:
        message = f"section '{section}' not found in {target}"
        if available:
            message += f" (available: {', '.join(available)})"
        super().__init__(message, location=location)
        self.section = section
        self.target = target


class ClassificationError(ExpansionError):
    """Base class for code block modifier failures."""


class UnknownModifierError(ClassificationError):
    def __init__(
        self,
        token: str,
        *,
        known: Sequence[str] = (),
        location: Optional[SourceLocation] = None,
    ) -> None:
        message = f"unknown code block modifier '{token}'"
        if known:
            message += f" (known: {', '.join(sorted(known))})"
        super().__init__(message, location=location)
        self.token = token


class ModifierConflictError(ClassificationError):
    def __init__(
        self,
        first: str,
        second: str,
        *,
        reason: str | None = None,
        location: Optional[SourceLocation] = None,
    ) -> None:
        message = f"modifiers '{first}' and '{second}' cannot be combined"
        if reason:
            message += f" ({reason})"
        super().__init__(message, location=location)
        self.first = first
        self.second = second


class ExecutionFailure(ExpansionError):
    """A code block raised; wraps the underlying error with its position."""

    def __init__(
        self,
        message: str,
        *,
        block_index: int,
        output: str = "",
        traceback_text: str = "",
        location: Optional[SourceLocation] = None,
    ) -> None:
        super().__init__(message, location=location)
        self.block_index = block_index
        self.output = output
        self.traceback_text = traceback_text

    def report(self) -> str:
        lines = [super().report()]
        if self.output.strip():
            lines.append("captured output before the failure:")
            lines.extend(f"  {line}" for line in self.output.rstrip("\n").splitlines())
        if self.traceback_text.strip():
            lines.extend(self.traceback_text.rstrip("\n").splitlines())
        return "\n".join(lines)


class GuardError(ExpansionError):
    """Base class for conditional guard failures."""


class GuardSyntaxError(GuardError):
    """The guard uses syntax outside the restricted expression language."""


class UndefinedReferenceError(GuardError):
    def __init__(self, name: str, *, location: Optional[SourceLocation] = None) -> None:
        super().__init__(f"guard references undefined name '{name}'", location=location)
        self.name = name


__all__ = [
    "CircularIncludeError",
    "ClassificationError",
    "ExecutionFailure",
    "ExpansionError",
    "GuardError",
    "GuardSyntaxError",
    "IncludeDepthError",
    "IncludeNotFoundError",
    "MarkdownSyntaxError",
    "ModifierConflictError",
    "ResolutionError",
    "SectionNotFoundError",
    "UndefinedReferenceError",
    "UnknownModifierError",
]
