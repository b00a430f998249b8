"""Whitespace normalisation for expanded markdown."""

from __future__ import annotations

import re
from typing import List, Optional

from ..parser import FENCE_OPEN, is_fence_close

_HEADING = re.compile(r"^#{1,6}(\s|$)")


class MarkdownLinter:
    """Collapses blank-line runs left behind by hidden blocks and dropped spans.

    Fenced code is copied verbatim; outside it, trailing whitespace is removed,
    headings get a blank line before them and runs of blank lines shrink to one.
    """

    def lint(self, markdown: str) -> str:
        normalized = markdown.replace("\r\n", "\n").replace("\r", "\n")
        cleaned: List[str] = []
        fence: Optional[str] = None
        previous_blank = False

        for line in normalized.split("\n"):
            if fence is not None:
                cleaned.append(line)
                if is_fence_close(line, fence):
                    fence = None
                continue

            stripped = line.rstrip()
            opening = FENCE_OPEN.match(stripped)
            if opening:
                fence = opening.group("fence")
                cleaned.append(stripped)
                previous_blank = False
                continue

            if _HEADING.match(stripped) and cleaned and cleaned[-1] != "":
                cleaned.append("")
            if not stripped:
                if previous_blank or not cleaned:
                    continue
                previous_blank = True
                cleaned.append("")
                continue

            cleaned.append(stripped)
            previous_blank = False

        while cleaned and cleaned[-1] == "":
            cleaned.pop()

        return "\n".join(cleaned) + "\n"
