"""Marker grammar for the inline file-operation protocol.

    [[START_FILE: path]] ... [[END_FILE]]
    [[EDIT_NODE: path]]
      [[SEARCH]] <exact existing text> [[REPLACE]] <new text> [[END_EDIT]]
    [[END_FILE]]
    [[DELETE_FILE: path | reason: text]]
    [[MOVE_FILE: from -> to | reason: text]]

Older prompts also produce [[PATCH_FILE: path | mode: edit]] and
[[EDIT_FILE: path]]; both are accepted. Delimiters are case-sensitive.
Option keys inside a payload ("mode:", "reason:") are not.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from fileop_guard.domain.events import PatchMode

PATCH_TOKEN = "[[PATCH_FILE:"
START_TOKEN = "[[START_FILE:"
EDIT_TOKEN = "[[EDIT_FILE:"
EDIT_NODE_TOKEN = "[[EDIT_NODE:"
DELETE_TOKEN = "[[DELETE_FILE:"
MOVE_TOKEN = "[[MOVE_FILE:"
END_TOKEN = "[[END_FILE]]"
MARKER_CLOSE = "]]"

SEARCH_TOKEN = "[[SEARCH]]"
REPLACE_TOKEN = "[[REPLACE]]"
END_EDIT_TOKEN = "[[END_EDIT]]"

# Every marker that opens an operation. Order is irrelevant; the router
# always picks the earliest occurrence in the buffer.
OPENERS: tuple[str, ...] = (
    PATCH_TOKEN,
    START_TOKEN,
    EDIT_TOKEN,
    EDIT_NODE_TOKEN,
    DELETE_TOKEN,
    MOVE_TOKEN,
)
# Default mode per patch opener.
OPENER_MODES: dict[str, PatchMode] = {
    PATCH_TOKEN: PatchMode.CREATE,
    START_TOKEN: PatchMode.CREATE,
    EDIT_TOKEN: PatchMode.EDIT,
    EDIT_NODE_TOKEN: PatchMode.EDIT,
}
LONGEST_TOKEN = max(len(t) for t in OPENERS + (END_TOKEN,))

_MODE_RE = re.compile(r"^mode\s*[:=]\s*(create|edit)\s*$", re.IGNORECASE)
_REASON_PREFIX_RE = re.compile(r"^reason\s*[:=]\s*", re.IGNORECASE)

_CONTROL_LINE_RE = re.compile(
    r"^[ \t]*\[\[(?:PATCH_FILE|START_FILE|EDIT_FILE|EDIT_NODE|DELETE_FILE|MOVE_FILE|END_FILE"
    r"|PARTIAL_FILE_CLOSED|ACTIVE_FILE|END_ACTIVE_FILE|CTX_FILE|END_CTX_FILE)\b[^\]]*\]\][ \t]*\r?\n?",
    re.MULTILINE,
)
_DANGLING_RE = re.compile(r"\[\[[A-Z_:\- |./>]*$")


@dataclass(frozen=True, slots=True)
class MarkerPayload:
    """Parsed text between an opener and its closing "]]"."""
    path: str
    to_path: str = ""
    mode: PatchMode = PatchMode.CREATE
    reason: str | None = None


def _split_options(payload: str) -> list[str]:
    return [part.strip() for part in payload.split("|") if part.strip()]


def _reason_text(text: str) -> str | None:
    reason = _REASON_PREFIX_RE.sub("", text.strip()).strip()
    return reason or None


def parse_patch_payload(payload: str, default_mode: PatchMode) -> MarkerPayload:
    """'src/app.js | mode: edit | reason: fix header' -> MarkerPayload."""
    parts = _split_options(payload)
    if not parts:
        return MarkerPayload(path="", mode=default_mode)
    mode = default_mode
    reason: str | None = None
    for part in parts[1:]:
        m = _MODE_RE.match(part)
        if m:
            mode = PatchMode.parse(m.group(1))
        elif _REASON_PREFIX_RE.match(part):
            reason = _reason_text(part)
    return MarkerPayload(path=parts[0], mode=mode, reason=reason)


def parse_delete_payload(payload: str) -> MarkerPayload:
    """'old.js | reason: unused' -> MarkerPayload. Everything after the first "|" is the reason."""
    parts = _split_options(payload)
    if not parts:
        return MarkerPayload(path="")
    rest = " | ".join(parts[1:])
    return MarkerPayload(path=parts[0], reason=_reason_text(rest) if rest else None)


def parse_move_payload(payload: str) -> MarkerPayload:
    """'src/a.ts -> src/b.ts | reason: rename' -> MarkerPayload. No arrow, no move."""
    route, _, rest = payload.partition("|")
    source, arrow, target = route.partition("->")
    if not arrow:
        return MarkerPayload(path="")
    rest = rest.strip()
    return MarkerPayload(
        path=source.strip(),
        to_path=target.strip(),
        reason=_reason_text(rest) if rest else None,
    )


def find_next_opener(text: str, start: int = 0) -> tuple[int, str | None]:
    """Earliest opener at or after start, as (index, token); (-1, None) if none."""
    best_idx, best_token = -1, None
    for token in OPENERS:
        idx = text.find(token, start)
        if idx != -1 and (best_idx == -1 or idx < best_idx):
            best_idx, best_token = idx, token
    return best_idx, best_token


def strip_trailing_fragment(content: str) -> str:
    """Cut a marker that was cut off by the end of the stream.

    "body{}\\n[[END_FI" -> "body{}\\n". A complete marker at the very end
    is left alone; removing those is strip_markers()' job.
    """
    if not content:
        return ""
    cut_at = -1
    for prefix in OPENERS + (END_TOKEN,):
        idx = content.rfind(prefix)
        if idx == -1:
            continue
        if content.find(MARKER_CLOSE, idx) == -1:
            cut_at = max(cut_at, idx)
    dangling = _DANGLING_RE.search(content)
    if dangling:
        cut_at = max(cut_at, dangling.start())
    return content[:cut_at] if cut_at >= 0 else content


def strip_markers(content: str) -> str:
    """Remove whole control-marker lines plus any trailing partial marker."""
    return strip_trailing_fragment(_CONTROL_LINE_RE.sub("", content or ""))
