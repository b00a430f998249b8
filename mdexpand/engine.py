"""Sequential execution of classified code blocks against one session."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from .errors import ExecutionFailure
from .executors import ExecutionContext, ExecutionResult, Executor, create_executor
from .logging import get_logger
from .models import Artifact, CodeBlock, ExecutedBlock


class SessionState:
    """The single namespace shared by every executed block in one run.

    Only executors write to :attr:`namespace`; everyone else gets
    :meth:`view`, a read-only proxy that always reflects the current bindings.
    """

    def __init__(self) -> None:
        self._namespace: Dict[str, Any] = {"__name__": "__main__"}

    @property
    def namespace(self) -> Dict[str, Any]:
        return self._namespace

    def view(self) -> Mapping[str, Any]:
        return MappingProxyType(self._namespace)

    def bindings(self) -> List[str]:
        """Return user-visible names in sorted order."""
        return sorted(name for name in self._namespace if not name.startswith("__"))

    def __contains__(self, name: object) -> bool:
        return name in self._namespace


class BlockState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class BlockRun:
    """Execution record for one block."""

    block: CodeBlock
    state: BlockState = BlockState.PENDING
    result: Optional[ExecutionResult] = None


class ExecutionEngine:
    """Runs blocks one at a time, in the order they are handed in.

    There are no retries: a failing block is a defect in the document, and the
    engine raises :class:`ExecutionFailure` immediately.
    """

    def __init__(
        self,
        executor: Executor | None = None,
        state: SessionState | None = None,
        *,
        artifact_prefix: str = "document",
    ) -> None:
        self.executor = executor or create_executor()
        self.state = state or SessionState()
        self.artifact_prefix = artifact_prefix
        self.runs: List[BlockRun] = []
        self.logger = get_logger("engine")

    def run(self, block: CodeBlock) -> ExecutedBlock:
        """Execute ``block`` when its plan says so and return what it produced."""
        plan = block.plan
        if plan is None:
            raise ValueError(f"block at {block.location} has not been classified")
        if not plan.execute:
            return ExecutedBlock(block=block)

        record = BlockRun(block=block)
        self.runs.append(record)
        record.state = BlockState.RUNNING
        self.logger.debug("Running block #%d at %s", block.index, block.location)
        result = self.executor.execute(
            block.source,
            self.state,
            context=ExecutionContext(block=block, artifact_prefix=self.artifact_prefix),
        )
        record.result = result

        if result.error is not None:
            record.state = BlockState.FAILED
            error = result.error
            location = block.location.shifted(error.line) if error.line else block.location
            raise ExecutionFailure(
                f"block #{block.index} raised {error.type_name}: {error.message}",
                block_index=block.index,
                output=result.output,
                traceback_text=error.traceback_text,
                location=location,
            )
        if plan.require_artifact and not result.artifacts:
            record.state = BlockState.FAILED
            raise ExecutionFailure(
                f"block #{block.index} is render-only but saved no artifact",
                block_index=block.index,
                output=result.output,
                location=block.location,
            )

        record.state = BlockState.SUCCEEDED
        self.logger.debug(
            "Block #%d succeeded (%d chars of output, %d artifacts)",
            block.index,
            len(result.output),
            len(result.artifacts),
        )
        return ExecutedBlock(block=block, output=result.output, artifacts=list(result.artifacts))

    def bindings(self) -> Mapping[str, Any]:
        """Read-only view of the session for guard evaluation."""
        return self.state.view()

    @property
    def artifacts(self) -> List[Artifact]:
        collected: List[Artifact] = []
        for record in self.runs:
            if record.state is BlockState.SUCCEEDED and record.result is not None:
                collected.extend(record.result.artifacts)
        return collected

    def close(self) -> None:
        close = getattr(self.executor, "close", None)
        if callable(close):
            close()


__all__ = ["BlockRun", "BlockState", "ExecutionEngine", "SessionState"]
