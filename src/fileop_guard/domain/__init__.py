"""Domain model for fileop-guard.

Re-exports all public types for convenient access:
    from fileop_guard.domain import PatchEvent, WritePolicy, Verdict, ViolationCode
"""
from fileop_guard.domain.events import (
    DeleteEvent,
    FileOpEvent,
    MoveEvent,
    OpKind,
    PatchEvent,
    PatchMode,
    Phase,
    event_from_dict,
)
from fileop_guard.domain.policy import (
    InteractionMode,
    TouchBudgetMode,
    WritePolicy,
)
from fileop_guard.domain.types import (
    GlobPattern,
    NormalizedPath,
    PathKey,
    PurposeKey,
    RawPath,
)
from fileop_guard.domain.verdicts import Verdict, Violation, ViolationCode

__all__ = [
    "DeleteEvent",
    "FileOpEvent",
    "MoveEvent",
    "OpKind",
    "PatchEvent",
    "PatchMode",
    "Phase",
    "event_from_dict",
    "InteractionMode",
    "TouchBudgetMode",
    "WritePolicy",
    "GlobPattern",
    "NormalizedPath",
    "PathKey",
    "PurposeKey",
    "RawPath",
    "Verdict",
    "Violation",
    "ViolationCode",
]
