"""Markdown preprocessor that resolves includes, runs code blocks and assembles output."""

from .pipeline import ExpansionResult, Preprocessor

__all__ = ["ExpansionResult", "Preprocessor"]

__version__ = "0.3.0"
