"""Post-processing passes applied to the expanded document."""

from .lint import MarkdownLinter

__all__ = ["MarkdownLinter"]
