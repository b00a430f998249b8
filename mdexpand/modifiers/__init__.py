"""Code block modifier registry and plugin discovery."""

from __future__ import annotations

from importlib import metadata
from typing import Dict, Iterable, Iterator, List, Optional

from .base import Modifier
from .builtin import BUILTIN_MODIFIERS

_ENTRY_POINT_GROUP = "mdexpand.modifiers"


class ModifierRegistry:
    """Explicitly enumerated set of modifiers accepted by the classifier."""

    def __init__(self, modifiers: Iterable[Modifier] = ()) -> None:
        self._modifiers: Dict[str, Modifier] = {}
        for modifier in modifiers:
            self.register(modifier)

    def register(self, modifier: Modifier) -> None:
        if not isinstance(modifier, Modifier):
            raise TypeError(f"Expected a Modifier, got {type(modifier).__name__}")
        key = modifier.name.lower()
        if key in self._modifiers:
            raise ValueError(f"Modifier '{modifier.name}' is already registered")
        self._modifiers[key] = modifier

    def get(self, name: str) -> Optional[Modifier]:
        return self._modifiers.get(name.lower())

    def conflicts(self, first: str, second: str) -> bool:
        left = self.get(first)
        right = self.get(second)
        if left is None or right is None:
            return False
        return right.name in left.conflicts or left.name in right.conflicts

    def names(self) -> List[str]:
        return list(self._modifiers)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._modifiers

    def __iter__(self) -> Iterator[Modifier]:
        return iter(self._modifiers.values())

    def __len__(self) -> int:
        return len(self._modifiers)


def default_registry(*, include_plugins: bool = True) -> ModifierRegistry:
    """Return the built-in modifiers plus any registered through entry points."""
    registry = ModifierRegistry(BUILTIN_MODIFIERS)
    if not include_plugins:
        return registry
    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - plugin import failure
            raise RuntimeError(f"Failed to load modifier entry point '{entry.name}': {exc}") from exc
        registry.register(_coerce_modifier(loaded))
    return registry


def _coerce_modifier(obj: object) -> Modifier:
    if isinstance(obj, Modifier):
        return obj
    if callable(obj):
        instance = obj()
        if isinstance(instance, Modifier):
            return instance
    raise TypeError("Modifier entry point must be a Modifier instance or a factory returning one")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = ["Modifier", "ModifierRegistry", "default_registry"]
