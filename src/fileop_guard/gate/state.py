"""GateState: everything a FileOpGate learns during one session.

Owned by exactly one gate. Never share an instance between sessions:
two requests feeding one state would spend each other's touch budget
and see each other's created files.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from fileop_guard.domain.events import PatchMode
from fileop_guard.domain.types import NormalizedPath, PathKey, PurposeKey
from fileop_guard.gate.profiles import purpose_key
from fileop_guard.paths import path_key


@dataclass(slots=True)
class ActivePatch:
    """An open patch buffer, cleared on END."""
    path: NormalizedPath
    mode: PatchMode
    created: bool = False          # this START added path to created_paths
    registered: bool = False       # this START added path to the purpose registry
    buffer: list[str] = field(default_factory=list)

    def append(self, chunk: str) -> None:
        self.buffer.append(chunk)

    @property
    def content(self) -> str:
        return "".join(self.buffer)


@dataclass(slots=True)
class GateState:
    touched_paths: set[PathKey] = field(default_factory=set)
    created_paths: set[PathKey] = field(default_factory=set)
    purpose_registry: dict[PurposeKey, NormalizedPath] = field(default_factory=dict)
    purpose_by_path: dict[PathKey, PurposeKey] = field(default_factory=dict)
    active_patches: dict[PathKey, ActivePatch] = field(default_factory=dict)
    seen_html_in_run: bool = False

    def register(self, path: NormalizedPath) -> None:
        """Record path under its purpose; the first path registered stays canonical."""
        if not path:
            return
        purpose = purpose_key(path)
        self.purpose_by_path[path_key(path)] = purpose
        self.purpose_registry.setdefault(purpose, path)

    def unregister(self, path: NormalizedPath) -> None:
        key = path_key(path)
        purpose = self.purpose_by_path.pop(key, None)
        if purpose is None:
            return
        current = self.purpose_registry.get(purpose)
        if current is not None and path_key(current) == key:
            del self.purpose_registry[purpose]

    def canonical_for(self, path: NormalizedPath) -> NormalizedPath | None:
        return self.purpose_registry.get(purpose_key(path))

    def new_touches(self, *paths: NormalizedPath) -> list[PathKey]:
        """Distinct keys among paths that are not already counted."""
        fresh: list[PathKey] = []
        for path in paths:
            key = path_key(path)
            if key and key not in self.touched_paths and key not in fresh:
                fresh.append(key)
        return fresh
