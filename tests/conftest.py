from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.doc_builder import DocBuilder


@pytest.fixture
def doc_builder(tmp_path: Path) -> DocBuilder:
    """Provide a reusable Markdown tree builder rooted at the pytest tmp_path."""
    return DocBuilder(tmp_path)
