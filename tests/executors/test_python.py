"""Tests for the in-process Python executor."""

from __future__ import annotations

import sys
import types
from pathlib import Path

import pytest

from mdexpand.engine import SessionState
from mdexpand.executors import ArtifactRecorder, ExecutionContext, PythonExecutor
from mdexpand.models import BlockPlan, CodeBlock, SourceLocation


def _context(source: str, *, index: int = 1, label: str | None = None) -> ExecutionContext:
    block = CodeBlock(
        source=source,
        language="python",
        location=SourceLocation(Path("doc.md"), 10),
        index=index,
        plan=BlockPlan(execute=True, label=label),
    )
    return ExecutionContext(block=block, artifact_prefix="doc")


def _run(executor: PythonExecutor, source: str, state: SessionState | None = None, **kwargs):
    state = state or SessionState()
    return executor.execute(source, state, context=_context(source, **kwargs))


def test_stdout_and_stderr_share_one_stream() -> None:
    source = "import sys\nprint('out')\nprint('err', file=sys.stderr)\nprint('out again')\n"

    result = _run(PythonExecutor(), source)

    assert result.ok
    assert result.output == "out\nerr\nout again\n"


def test_trailing_expression_is_echoed() -> None:
    result = _run(PythonExecutor(), "x = 2\nx * 3\n")

    assert result.output == "6\n"


def test_echo_can_be_disabled() -> None:
    result = _run(PythonExecutor(echo_last_expression=False), "x = 2\nx * 3\n")

    assert result.output == ""


def test_none_results_are_not_echoed() -> None:
    result = _run(PythonExecutor(), "print('once')\n")

    assert result.output == "once\n"


def test_address_bearing_reprs_are_not_echoed() -> None:
    executor = PythonExecutor()

    assert _run(executor, "object()\n").output == ""
    assert _run(executor, "class Line:\n    pass\nLine()\n").output == ""
    assert _run(executor, "['stable', 1]\n").output == "['stable', 1]\n"


def test_user_binding_named_artifacts_survives() -> None:
    executor = PythonExecutor()
    state = SessionState()

    _run(executor, "artifacts = ['a', 'b']\n", state)
    result = _run(executor, "print(len(artifacts))\n", state, index=2)

    assert result.output == "2\n"
    assert state.namespace["artifacts"] == ["a", "b"]


def test_artifact_handle_is_unbound_after_each_block() -> None:
    executor = PythonExecutor()
    state = SessionState()

    _run(executor, "handle = artifacts\n", state)
    failed = _run(executor, "raise RuntimeError('x')\n", state, index=2)

    assert not failed.ok
    assert "artifacts" not in state
    assert state.bindings() == ["handle"]


def test_state_persists_between_blocks() -> None:
    executor = PythonExecutor()
    state = SessionState()

    _run(executor, "import math\nradius = 2\n", state)
    result = _run(executor, "print(round(math.pi * radius ** 2, 2))\n", state, index=2)

    assert result.output == "12.57\n"
    assert "radius" in state
    assert state.bindings() == ["math", "radius"]


def test_errors_are_returned_with_partial_output() -> None:
    source = "print('before')\nraise ValueError('boom')\nprint('after')\n"

    result = _run(PythonExecutor(), source)

    assert not result.ok
    assert result.output == "before\n"
    assert result.error.type_name == "ValueError"
    assert result.error.message == "boom"
    assert result.error.line == 2
    assert "ValueError: boom" in result.error.traceback_text
    assert "raise ValueError('boom')" in result.error.traceback_text
    assert "python.py" not in result.error.traceback_text


def test_error_line_points_into_the_block_not_helpers() -> None:
    source = "def explode():\n    return 1 / 0\n\nexplode()\n"

    result = _run(PythonExecutor(), source)

    assert result.error.type_name == "ZeroDivisionError"
    assert result.error.line == 2


def test_syntax_errors_are_reported() -> None:
    result = _run(PythonExecutor(), "x = 1\ndef broken(:\n    pass\n")

    assert result.error.type_name == "SyntaxError"
    assert result.error.line == 2


def test_system_exit_does_not_escape() -> None:
    result = _run(PythonExecutor(), "import sys\nsys.exit(3)\n")

    assert result.error.type_name == "SystemExit"


def test_artifacts_are_named_by_position() -> None:
    source = "first = artifacts.save(b'1,2\\n', '.csv')\nsecond = artifacts.save('text', 'txt')\n"
    state = SessionState()

    result = _run(PythonExecutor(), source, state, index=7)

    assert [artifact.name for artifact in result.artifacts] == ["doc-007-01.csv", "doc-007-02.txt"]
    assert result.artifacts[0].data == b"1,2\n"
    assert result.artifacts[1].data == b"text"
    assert state.namespace["first"] == "doc-007-01.csv"


def test_labelled_artifacts_use_the_label() -> None:
    source = "artifacts.save(b'a', '.png')\nartifacts.save(b'b', '.png')\n"

    result = _run(PythonExecutor(echo_last_expression=False), source, index=3, label="scatter")

    assert [artifact.name for artifact in result.artifacts] == ["doc-003-scatter.png", "doc-003-scatter-02.png"]


def test_objects_with_savefig_are_rendered() -> None:
    class FakeFigure:
        def savefig(self, buffer, format):
            buffer.write(f"figure:{format}".encode())

    state = SessionState()
    state.namespace["fig"] = FakeFigure()

    result = _run(PythonExecutor(), "_ = artifacts.save(fig, 'svg')\n", state)

    assert result.artifacts[0].name == "doc-001-01.svg"
    assert result.artifacts[0].data == b"figure:svg"


def test_unsupported_artifact_type_is_a_block_error() -> None:
    result = _run(PythonExecutor(), "artifacts.save(object())\n")

    assert result.error.type_name == "TypeError"
    assert result.artifacts == []


def test_recorder_rejects_duplicate_names() -> None:
    recorder = ArtifactRecorder("doc", 1)
    assert recorder.save(b"a", ".png", label="plot-02") == "doc-001-plot-02.png"

    with pytest.raises(ValueError):
        recorder.save(b"b", ".png", label="plot")


def test_open_pyplot_figures_are_captured(monkeypatch: pytest.MonkeyPatch) -> None:
    closed = []

    class FakeFigure:
        def __init__(self, number: int) -> None:
            self.number = number

        def savefig(self, buffer, format):
            buffer.write(f"fig{self.number}".encode())

    pyplot = types.ModuleType("matplotlib.pyplot")
    pyplot.get_fignums = lambda: [1, 2]
    pyplot.figure = FakeFigure
    pyplot.close = closed.append
    monkeypatch.setitem(sys.modules, "matplotlib.pyplot", pyplot)

    result = _run(PythonExecutor(), "pass\n")

    assert [artifact.data for artifact in result.artifacts] == [b"fig1", b"fig2"]
    assert [artifact.suffix for artifact in result.artifacts] == [".png", ".png"]
    assert closed == ["all"]


def test_explicitly_saved_figures_are_not_captured_again(monkeypatch: pytest.MonkeyPatch) -> None:
    class FakeFigure:
        def savefig(self, buffer, format):
            buffer.write(b"figure")

    figures = {1: FakeFigure(), 2: FakeFigure()}
    pyplot = types.ModuleType("matplotlib.pyplot")
    pyplot.get_fignums = lambda: sorted(figures)
    pyplot.figure = figures.__getitem__
    pyplot.close = lambda which: figures.clear()
    monkeypatch.setitem(sys.modules, "matplotlib.pyplot", pyplot)
    state = SessionState()
    state.namespace["first"] = figures[1]

    result = _run(PythonExecutor(), "_ = artifacts.save(first, '.svg')\n", state)

    assert [artifact.name for artifact in result.artifacts] == ["doc-001-01.svg", "doc-001-02.png"]
    assert figures == {}


def test_figure_capture_can_be_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    pyplot = types.ModuleType("matplotlib.pyplot")
    pyplot.get_fignums = lambda: pytest.fail("figures should not be inspected")
    monkeypatch.setitem(sys.modules, "matplotlib.pyplot", pyplot)

    result = _run(PythonExecutor(capture_figures=False), "pass\n")

    assert result.ok
    assert result.artifacts == []


def test_close_forgets_registered_sources() -> None:
    import linecache

    executor = PythonExecutor()
    _run(executor, "x = 1\n")
    registered = [name for name in linecache.cache if name.startswith("<mdexpand block 1:")]
    assert registered

    executor.close()

    assert not any(name in linecache.cache for name in registered)
