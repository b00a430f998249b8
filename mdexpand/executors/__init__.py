"""Executors run code block source against the session state."""

from __future__ import annotations

from ..config import ExecutorConfig
from .base import ExecutionContext, ExecutionError, ExecutionResult, Executor
from .python import ARTIFACT_HANDLE, ArtifactRecorder, PythonExecutor


def create_executor(config: ExecutorConfig | None = None) -> Executor:
    """Return the host-language executor configured for this run."""
    config = config or ExecutorConfig()
    return PythonExecutor(
        echo_last_expression=config.echo_last_expression,
        capture_figures=config.capture_figures,
    )


__all__ = [
    "ARTIFACT_HANDLE",
    "ArtifactRecorder",
    "ExecutionContext",
    "ExecutionError",
    "ExecutionResult",
    "Executor",
    "PythonExecutor",
    "create_executor",
]
