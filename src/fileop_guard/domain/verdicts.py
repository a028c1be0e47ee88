"""Gate verdicts and violation codes."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fileop_guard.domain.types import NormalizedPath


class ViolationCode(Enum):
    INVALID_PATH = "INVALID_PATH"
    INVALID_MOVE = "INVALID_MOVE"
    TOUCH_BUDGET_EXCEEDED = "TOUCH_BUDGET_EXCEEDED"
    PATCH_OUT_OF_SCOPE = "PATCH_OUT_OF_SCOPE"
    CREATE_OUT_OF_SCOPE = "CREATE_OUT_OF_SCOPE"
    DELETE_OUT_OF_SCOPE = "DELETE_OUT_OF_SCOPE"
    MOVE_OUT_OF_SCOPE = "MOVE_OUT_OF_SCOPE"
    MOVE_TARGET_OUT_OF_SCOPE = "MOVE_TARGET_OUT_OF_SCOPE"
    STATIC_UNSUPPORTED_FILETYPE = "STATIC_UNSUPPORTED_FILETYPE"
    FORBIDDEN_STATIC_FILENAME = "FORBIDDEN_STATIC_FILENAME"
    STATIC_ORDER_HTML_FIRST = "STATIC_ORDER_HTML_FIRST"
    DUPLICATE_PURPOSE_CREATE = "DUPLICATE_PURPOSE_CREATE"
    DUPLICATE_PURPOSE_MOVE = "DUPLICATE_PURPOSE_MOVE"
    EMPTY_CREATE_CONTENT = "EMPTY_CREATE_CONTENT"
    LANGUAGE_MISMATCH_JS = "LANGUAGE_MISMATCH_JS"
    LANGUAGE_MISMATCH_CSS = "LANGUAGE_MISMATCH_CSS"
    LANGUAGE_MISMATCH_HTML = "LANGUAGE_MISMATCH_HTML"
    STATIC_INLINE_LANGUAGE_MIXED = "STATIC_INLINE_LANGUAGE_MIXED"
    SENSITIVE_DELETE_BLOCKED = "SENSITIVE_DELETE_BLOCKED"
    SENSITIVE_MOVE_BLOCKED = "SENSITIVE_MOVE_BLOCKED"


@dataclass(frozen=True, slots=True)
class Violation:
    """Why an event was blocked.

    extra carries code-specific data the repair prompt needs, e.g.
    {"existingPath": "style.css"} for DUPLICATE_PURPOSE_CREATE.
    """
    code: ViolationCode
    message: str
    path: NormalizedPath
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "path": self.path,
            **self.extra,
        }


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of FileOpGate.check()."""
    allowed: bool
    violation: Violation | None = None

    @classmethod
    def allow(cls) -> Verdict:
        return _ALLOW

    @classmethod
    def block(
        cls,
        code: ViolationCode,
        message: str,
        path: NormalizedPath,
        **extra: Any,
    ) -> Verdict:
        return cls(allowed=False, violation=Violation(code, message, path, dict(extra)))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"allowed": self.allowed}
        if self.violation is not None:
            out["violation"] = self.violation.to_dict()
        return out


_ALLOW = Verdict(allowed=True)
