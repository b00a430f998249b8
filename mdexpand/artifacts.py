"""Deterministic artifact naming and the on-disk artifact store."""

from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Iterable, List, Sequence

from .logging import get_logger
from .models import Artifact

IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".svg", ".pdf", ".webp"})

_LOGGER = get_logger("artifacts")


def artifact_name(
    prefix: str,
    block_index: int,
    ordinal: int,
    suffix: str,
    *,
    label: str | None = None,
) -> str:
    """Return the file name for the ``ordinal``-th artifact of a block.

    Names depend only on document position, so unchanged inputs always map
    to the same files.
    """
    if label:
        stem = label if ordinal == 1 else f"{label}-{ordinal:02d}"
    else:
        stem = f"{ordinal:02d}"
    return f"{prefix}-{block_index:03d}-{stem}{normalise_suffix(suffix)}"


def normalise_suffix(suffix: str) -> str:
    suffix = suffix.strip().lower()
    if not suffix:
        raise ValueError("artifact suffix must not be empty")
    return suffix if suffix.startswith(".") else f".{suffix}"


def artifact_prefix(document_path: Path | None) -> str:
    stem = document_path.stem if document_path is not None else "document"
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", stem).strip("-") or "document"


def is_image(artifact: Artifact) -> bool:
    return artifact.suffix in IMAGE_SUFFIXES


class ArtifactStore:
    """Writes committed artifacts into a single directory.

    One writer per directory per run; serialising concurrent runs is the
    caller's job.
    """

    def __init__(self, directory: Path, prefix: str) -> None:
        self.directory = directory
        self.prefix = prefix
        self._pattern = re.compile(rf"^{re.escape(prefix)}-\d{{3}}-[^/]+$")

    def commit(self, artifacts: Sequence[Artifact]) -> List[Path]:
        """Write ``artifacts`` and remove stale files left by earlier runs."""
        written: List[Path] = []
        if artifacts:
            self.directory.mkdir(parents=True, exist_ok=True)
        for artifact in artifacts:
            target = self.directory / artifact.name
            write_atomic(target, artifact.data)
            written.append(target)
        self._prune(keep={artifact.name for artifact in artifacts})
        if written:
            _LOGGER.info("Wrote %d artifact(s) to %s", len(written), self.directory)
        return written

    def _prune(self, keep: Iterable[str]) -> None:
        if not self.directory.is_dir():
            return
        keep_set = set(keep)
        for candidate in sorted(self.directory.iterdir()):
            if candidate.is_file() and self._pattern.match(candidate.name) and candidate.name not in keep_set:
                _LOGGER.debug("Removing stale artifact %s", candidate)
                candidate.unlink()


def write_atomic(target: Path, data: bytes) -> None:
    """Write ``data`` to ``target`` through a temporary file in the same directory."""
    target.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(prefix=f".{target.name}.", dir=target.parent)
    try:
        with os.fdopen(handle, "wb") as stream:
            stream.write(data)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


__all__ = [
    "ArtifactStore",
    "IMAGE_SUFFIXES",
    "artifact_name",
    "artifact_prefix",
    "is_image",
    "normalise_suffix",
    "write_atomic",
]
