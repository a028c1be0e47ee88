"""File-operation events exchanged between the router and the gate.

An event is one of three variants:

    PatchEvent   create or edit a file; streamed as start -> chunk* -> end
    DeleteEvent  remove a file; single phase, observed at END
    MoveEvent    rename a file; single phase, observed at END

Per path, a patch stream is well-ordered: exactly one START, zero or more
CHUNKs, exactly one END. Different paths may interleave freely.

The wire shape (to_dict / event_from_dict) is the flat camelCase dict the
browser and backend callers exchange:

    {"op": "patch", "phase": "chunk", "path": "src/app.js",
     "mode": "create", "chunk": "...", "reason": null}
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from fileop_guard.domain.types import RawPath


class OpKind(Enum):
    PATCH = "patch"
    DELETE = "delete"
    MOVE = "move"


class Phase(Enum):
    START = "start"
    CHUNK = "chunk"
    END = "end"


class PatchMode(Enum):
    CREATE = "create"
    EDIT = "edit"

    @classmethod
    def parse(cls, value: object, default: PatchMode | None = None) -> PatchMode:
        """Lenient parse: anything that is not "edit" falls back to default (CREATE)."""
        if isinstance(value, PatchMode):
            return value
        if str(value or "").strip().lower() == "edit":
            return cls.EDIT
        return default or cls.CREATE


@dataclass(frozen=True, slots=True)
class PatchEvent:
    """One phase of a streamed file write."""
    path: RawPath
    phase: Phase
    mode: PatchMode = PatchMode.CREATE
    chunk: str = ""
    reason: str | None = None
    continuation: bool = False   # START of a path already completed this session

    @property
    def op(self) -> OpKind:
        return OpKind.PATCH

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "op": self.op.value,
            "phase": self.phase.value,
            "path": self.path,
            "mode": self.mode.value,
        }
        if self.phase is Phase.CHUNK:
            out["chunk"] = self.chunk
        if self.reason is not None:
            out["reason"] = self.reason
        if self.continuation:
            out["continuation"] = True
        return out


@dataclass(frozen=True, slots=True)
class DeleteEvent:
    """Remove a file."""
    path: RawPath
    reason: str | None = None

    @property
    def op(self) -> OpKind:
        return OpKind.DELETE

    @property
    def phase(self) -> Phase:
        return Phase.END

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"op": self.op.value, "phase": "end", "path": self.path}
        if self.reason is not None:
            out["reason"] = self.reason
        return out


@dataclass(frozen=True, slots=True)
class MoveEvent:
    """Rename a file from path to to_path."""
    path: RawPath
    to_path: RawPath
    reason: str | None = None

    @property
    def op(self) -> OpKind:
        return OpKind.MOVE

    @property
    def phase(self) -> Phase:
        return Phase.END

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "op": self.op.value,
            "phase": "end",
            "path": self.path,
            "toPath": self.to_path,
        }
        if self.reason is not None:
            out["reason"] = self.reason
        return out


FileOpEvent = Union[PatchEvent, DeleteEvent, MoveEvent]


def event_from_dict(obj: dict[str, Any]) -> FileOpEvent | None:
    """Build the matching event variant from its wire dict.

    Returns None for an unknown op or phase. Missing string fields become
    empty strings so the gate can report INVALID_PATH rather than the
    caller crashing on a KeyError.
    """
    op = str(obj.get("op") or "").strip().lower()
    path = str(obj.get("path") or "")
    reason = obj.get("reason")
    reason = str(reason) if reason is not None else None

    if op == OpKind.PATCH.value:
        try:
            phase = Phase(str(obj.get("phase") or "").strip().lower())
        except ValueError:
            return None
        return PatchEvent(
            path=path,
            phase=phase,
            mode=PatchMode.parse(obj.get("mode")),
            chunk=str(obj.get("chunk") or ""),
            reason=reason,
            continuation=bool(obj.get("continuation", False)),
        )
    if op == OpKind.DELETE.value:
        return DeleteEvent(path=path, reason=reason)
    if op == OpKind.MOVE.value:
        to_path = obj.get("toPath", obj.get("to_path"))
        return MoveEvent(path=path, to_path=str(to_path or ""), reason=reason)
    return None
