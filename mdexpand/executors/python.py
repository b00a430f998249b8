"""In-process Python executor backed by one shared namespace."""

from __future__ import annotations

import ast
import io
import linecache
import re
import sys
import traceback
from contextlib import redirect_stderr, redirect_stdout
from typing import TYPE_CHECKING, Any, List, Optional, Set

from ..artifacts import artifact_name, normalise_suffix
from ..logging import get_logger
from ..models import Artifact
from .base import ExecutionContext, ExecutionError, ExecutionResult

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from ..engine import SessionState

ARTIFACT_HANDLE = "artifacts"
_FILENAME_PREFIX = "<mdexpand block "
_PIL_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "tif": "TIFF"}
# Default object reprs embed a memory address and differ between runs.
_ADDRESS_REPR = re.compile(r" at 0x[0-9a-fA-F]+>")
_UNBOUND = object()


class ArtifactRecorder:
    """Collects the artifacts a block declares; bound as ``artifacts`` in the session.

    The handle is bound only while its block runs and only when the name is
    free, so a user variable called ``artifacts`` survives across blocks.
    """

    def __init__(self, prefix: str, block_index: int, *, label: str | None = None) -> None:
        self._prefix = prefix
        self._block_index = block_index
        self._label = label
        self._saved: List[Artifact] = []
        self._sources: List[Any] = []

    @property
    def saved(self) -> List[Artifact]:
        return list(self._saved)

    def has_saved(self, obj: Any) -> bool:
        """Return True when ``obj`` itself was already recorded by this block."""
        return any(source is obj for source in self._sources)

    def save(self, obj: Any, suffix: str = ".png", *, label: str | None = None) -> str:
        """Record ``obj`` as an artifact and return its file name.

        Accepts bytes, text, matplotlib figures (anything with ``savefig``)
        and PIL images (anything with ``save``).
        """
        suffix = normalise_suffix(suffix)
        data = _to_bytes(obj, suffix)
        ordinal = len(self._saved) + 1
        name = artifact_name(
            self._prefix,
            self._block_index,
            ordinal,
            suffix,
            label=label or self._label,
        )
        if any(existing.name == name for existing in self._saved):
            raise ValueError(f"artifact '{name}' was already saved by this block")
        self._saved.append(Artifact(name=name, data=data, block_index=self._block_index))
        if not isinstance(obj, (bytes, bytearray, memoryview, str)):
            self._sources.append(obj)
        return name

    def __repr__(self) -> str:
        return f"<artifacts block={self._block_index} saved={len(self._saved)}>"


def _to_bytes(obj: Any, suffix: str) -> bytes:
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj)
    if isinstance(obj, str):
        return obj.encode("utf-8")
    fmt = suffix.lstrip(".")
    buffer = io.BytesIO()
    if hasattr(obj, "savefig"):
        obj.savefig(buffer, format=fmt)
        return buffer.getvalue()
    if hasattr(obj, "save"):
        obj.save(buffer, format=_PIL_FORMATS.get(fmt, fmt.upper()))
        return buffer.getvalue()
    raise TypeError(
        f"cannot save {type(obj).__name__} as an artifact; pass bytes, str, "
        "or an object with savefig()/save()"
    )


class PythonExecutor:
    """Runs Python blocks with ``exec`` against the session namespace.

    stdout and stderr are redirected into one buffer so their interleaving is
    preserved. When the last statement is an expression its ``repr`` is
    printed, as in an interactive interpreter.
    """

    def __init__(self, *, echo_last_expression: bool = True, capture_figures: bool = True) -> None:
        self.echo_last_expression = echo_last_expression
        self.capture_figures = capture_figures
        self.logger = get_logger("executors.python")
        self._filenames: Set[str] = set()

    def execute(self, code: str, state: "SessionState", *, context: ExecutionContext) -> ExecutionResult:
        block = context.block
        filename = f"{_FILENAME_PREFIX}{block.index}: {block.location}>"
        self._register_source(filename, code)
        plan = block.plan
        recorder = ArtifactRecorder(
            context.artifact_prefix,
            block.index,
            label=plan.label if plan is not None else None,
        )
        namespace = state.namespace
        if namespace.get(ARTIFACT_HANDLE, _UNBOUND) is _UNBOUND:
            namespace[ARTIFACT_HANDLE] = recorder
        buffer = io.StringIO()
        error: Optional[ExecutionError] = None

        try:
            with redirect_stdout(buffer), redirect_stderr(buffer):
                self._run(code, filename, namespace)
                if self.capture_figures:
                    self._capture_figures(recorder)
        except (Exception, SystemExit) as exc:
            error = self._describe(exc, filename)
            self._close_figures()
        finally:
            if namespace.get(ARTIFACT_HANDLE) is recorder:
                del namespace[ARTIFACT_HANDLE]

        return ExecutionResult(output=buffer.getvalue(), artifacts=recorder.saved, error=error)

    def close(self) -> None:
        """Drop the block sources registered with :mod:`linecache`."""
        for filename in self._filenames:
            linecache.cache.pop(filename, None)
        self._filenames.clear()

    def _run(self, code: str, filename: str, namespace: dict) -> None:
        tree = ast.parse(code, filename, "exec")
        trailing: Optional[ast.Expression] = None
        if self.echo_last_expression and tree.body and isinstance(tree.body[-1], ast.Expr):
            trailing = ast.Expression(body=tree.body.pop().value)
            ast.fix_missing_locations(trailing)
        exec(compile(tree, filename, "exec"), namespace)
        if trailing is not None:
            value = eval(compile(trailing, filename, "eval"), namespace)
            text = repr(value) if value is not None else None
            if text is not None and not _ADDRESS_REPR.search(text):
                print(text)

    def _register_source(self, filename: str, code: str) -> None:
        linecache.cache[filename] = (len(code), None, code.splitlines(keepends=True), filename)
        self._filenames.add(filename)

    def _describe(self, exc: BaseException, filename: str) -> ExecutionError:
        summary = traceback.TracebackException.from_exception(exc)
        frames = [frame for frame in summary.stack if frame.filename.startswith(_FILENAME_PREFIX)]
        summary.stack = traceback.StackSummary.from_list(frames)

        line: Optional[int] = None
        if isinstance(exc, SyntaxError) and exc.filename == filename:
            line = exc.lineno
        for frame in frames:
            if frame.filename == filename:
                line = frame.lineno
        return ExecutionError(
            type_name=type(exc).__name__,
            message=str(exc),
            traceback_text="".join(summary.format()),
            line=line,
        )

    def _capture_figures(self, recorder: ArtifactRecorder) -> None:
        # Only figures from a pyplot the user already imported; never import it here.
        pyplot = sys.modules.get("matplotlib.pyplot")
        if pyplot is None:
            return
        for number in pyplot.get_fignums():
            figure = pyplot.figure(number)
            if not recorder.has_saved(figure):
                recorder.save(figure, ".png")
        pyplot.close("all")

    @staticmethod
    def _close_figures() -> None:
        pyplot = sys.modules.get("matplotlib.pyplot")
        if pyplot is not None:
            pyplot.close("all")


__all__ = ["ARTIFACT_HANDLE", "ArtifactRecorder", "PythonExecutor"]
