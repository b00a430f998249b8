"""Heading scanning and named-section selection for include directives."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .parser import FENCE_OPEN, is_fence_close

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")


@dataclass(frozen=True)
class Heading:
    """An ATX heading found outside fenced code."""

    level: int
    title: str
    slug: str
    line_index: int


def slugify(title: str) -> str:
    """Return the GitHub-style anchor for a heading title."""
    slug = title.strip().lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"\s", "-", slug)
    return slug


def scan_headings(lines: List[str]) -> List[Heading]:
    headings: List[Heading] = []
    fence: Optional[str] = None
    for index, line in enumerate(lines):
        bare = line.rstrip("\r\n")
        if fence is not None:
            if is_fence_close(bare, fence):
                fence = None
            continue
        opening = FENCE_OPEN.match(bare)
        if opening:
            fence = opening.group("fence")
            continue
        match = _HEADING.match(bare)
        if match:
            title = match.group(2).strip()
            headings.append(
                Heading(level=len(match.group(1)), title=title, slug=slugify(title), line_index=index)
            )
    return headings


def select_section(text: str, name: str) -> Optional[Tuple[str, int]]:
    """Return the text of section ``name`` and its 0-based first line, or None.

    The section runs from its heading through the line before the next heading
    of the same or a higher level. ``name`` matches either the heading's slug
    or its title, case-insensitively.
    """
    lines = text.splitlines(keepends=True)
    headings = scan_headings(lines)
    wanted = name.strip().lower()
    for position, heading in enumerate(headings):
        if wanted not in (heading.slug, heading.title.lower()):
            continue
        end = len(lines)
        for following in headings[position + 1:]:
            if following.level <= heading.level:
                end = following.line_index
                break
        return "".join(lines[heading.line_index:end]), heading.line_index
    return None


def available_sections(text: str) -> List[str]:
    return [heading.slug for heading in scan_headings(text.splitlines(keepends=True))]


__all__ = ["Heading", "available_sections", "scan_headings", "select_section", "slugify"]
