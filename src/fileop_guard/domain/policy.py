"""WritePolicy: the per-session limits a generation turn must respect.

A policy contains:
  - allowed_edit_paths: existing files the model may edit
  - allowed_create_rules: glob patterns new files must match
  - max_touched_files / touch_budget_mode: how many distinct paths a turn may affect
  - interaction_mode: "edit" turns enforce the edit scope strictly
  - manifest_paths: files that existed when the session started

The policy is immutable and supplied by the caller. Everything that
changes during a session lives in GateState, never here.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from fileop_guard.domain.types import GlobPattern, RawPath

ADAPTIVE_BUDGET_FLOOR = 2
ADAPTIVE_BUDGET_CEILING = 48
ADAPTIVE_HEADROOM_DIVISOR = 6   # one spare slot per six editable files, min 2
MINIMAL_BUDGET = 1


class TouchBudgetMode(Enum):
    MINIMAL = "minimal"
    ADAPTIVE = "adaptive"


class InteractionMode(Enum):
    EDIT = "edit"
    OTHER = "other"


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    text = str(value or "").strip().lower()
    for member in enum_cls:
        if member.value == text:
            return member
    return default


def _rule_pattern(rule: Any) -> str:
    """Create rules arrive as bare strings or as {"pattern": ...} objects."""
    if isinstance(rule, dict):
        return str(rule.get("pattern") or "").strip()
    return str(rule or "").strip()


@dataclass(frozen=True, slots=True)
class WritePolicy:
    """Write limits for one generation session."""
    allowed_edit_paths: frozenset[RawPath] = field(default_factory=frozenset)
    allowed_create_rules: tuple[GlobPattern, ...] = ()
    max_touched_files: int = 0          # 0 = derive from touch_budget_mode
    touch_budget_mode: TouchBudgetMode = TouchBudgetMode.MINIMAL
    interaction_mode: InteractionMode = InteractionMode.OTHER
    manifest_paths: tuple[RawPath, ...] = ()

    def __post_init__(self) -> None:
        """Coerce collection fields and validate the budget."""
        object.__setattr__(
            self,
            "allowed_edit_paths",
            frozenset(p for p in self.allowed_edit_paths if str(p).strip()),
        )
        object.__setattr__(
            self,
            "allowed_create_rules",
            tuple(p for p in (_rule_pattern(r) for r in self.allowed_create_rules) if p),
        )
        object.__setattr__(
            self,
            "manifest_paths",
            tuple(p for p in self.manifest_paths if str(p).strip()),
        )
        object.__setattr__(
            self,
            "touch_budget_mode",
            _coerce_enum(TouchBudgetMode, self.touch_budget_mode, TouchBudgetMode.MINIMAL),
        )
        object.__setattr__(
            self,
            "interaction_mode",
            _coerce_enum(InteractionMode, self.interaction_mode, InteractionMode.OTHER),
        )
        if isinstance(self.max_touched_files, bool) or not isinstance(self.max_touched_files, int):
            raise ValueError(
                f"max_touched_files must be an int, got {type(self.max_touched_files).__name__}"
            )
        if self.max_touched_files < 0:
            raise ValueError("max_touched_files must be >= 0 (0 derives the budget)")

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> WritePolicy:
        """Build from the camelCase dict sent by the browser/backend callers.

        Unknown keys are ignored; a non-numeric maxTouchedFiles means "derive".
        """
        try:
            max_touched = int(obj.get("maxTouchedFiles") or 0)
        except (TypeError, ValueError):
            max_touched = 0
        return cls(
            allowed_edit_paths=frozenset(_as_list(obj.get("allowedEditPaths"))),
            allowed_create_rules=tuple(_as_list(obj.get("allowedCreateRules"))),
            max_touched_files=max(0, max_touched),
            touch_budget_mode=obj.get("touchBudgetMode") or "minimal",
            interaction_mode=obj.get("interactionMode") or "other",
            manifest_paths=tuple(str(p) for p in _as_list(obj.get("manifestPaths"))),
        )

    def to_dict(self) -> dict[str, Any]:
        """camelCase rendering, used when restating the policy to the model."""
        return {
            "allowedEditPaths": sorted(self.allowed_edit_paths),
            "allowedCreateRules": list(self.allowed_create_rules),
            "maxTouchedFiles": self.touch_budget(),
            "touchBudgetMode": self.touch_budget_mode.value,
            "interactionMode": self.interaction_mode.value,
        }

    def touch_budget(self) -> int:
        """Effective number of distinct paths one turn may touch.

        An explicit max_touched_files wins. Otherwise ADAPTIVE sizes the
        budget from the policy's own breadth, MINIMAL allows one file.
        """
        if self.max_touched_files > 0:
            return self.max_touched_files
        if self.touch_budget_mode is TouchBudgetMode.ADAPTIVE:
            edits = len(self.allowed_edit_paths)
            headroom = max(2, math.ceil(edits / ADAPTIVE_HEADROOM_DIVISOR))
            size = edits + len(self.allowed_create_rules) + headroom
            return max(ADAPTIVE_BUDGET_FLOOR, min(ADAPTIVE_BUDGET_CEILING, size))
        return MINIMAL_BUDGET

    @property
    def strict_edit_scope(self) -> bool:
        """Edit-mode turns with a declared edit set may only touch that set."""
        return bool(self.allowed_edit_paths) and self.interaction_mode is InteractionMode.EDIT


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (str, bytes, dict)):
        return [value]
    if isinstance(value, Iterable):
        return list(value)
    return []
