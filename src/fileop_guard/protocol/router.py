"""Streaming router for the inline marker protocol.

Architecture:
    push(fragment) appends to a scan buffer, then drains it:
      - outside a file: skip free text up to the earliest opener, wait
        until its closing "]]" arrives, emit or open
      - inside a file: emit content up to the next END_FILE or opener,
        holding back a short tail in case a marker is split across
        fragments

Recovery rules (the producer is an LLM, so the grammar is a suggestion):
    - an opener while a file is open closes that file first
    - END_FILE with no open file is dropped with the surrounding text
    - openers with an empty path, and MOVE_FILE without "->", are dropped
    - START_FILE for a path already completed this session is a
      continuation: content is appended, not a fresh create
    - finish() closes a file left open by a truncated stream

The buffer is advanced before every emit, so an exception raised by the
callback propagates to the caller of push() without corrupting state.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from fileop_guard.domain.events import (
    DeleteEvent,
    FileOpEvent,
    MoveEvent,
    PatchEvent,
    PatchMode,
    Phase,
)
from fileop_guard.paths import path_key
from fileop_guard.protocol import markers

log = logging.getLogger(__name__)

EventSink = Callable[[FileOpEvent], None]

# Content held back while a file is open, so a marker split across two
# fragments is never emitted as file content.
HOLDBACK = markers.LONGEST_TOKEN + 8
# An opener whose "]]" has not shown up within this many chars, or whose
# payload spans a line break, is not a marker.
MAX_PAYLOAD = 1024


class StreamRouter(ABC):
    """Interface shared by the marker, JSON-envelope and auto-detecting routers."""

    def __init__(self, on_event: EventSink) -> None:
        if not callable(on_event):
            raise TypeError("router requires a callable on_event sink")
        self._on_event = on_event
        self._completed: list[str] = []
        self._completed_keys: set[str] = set()

    @abstractmethod
    def push(self, fragment: str) -> None:
        """Feed the next fragment of model output."""
        ...

    @abstractmethod
    def finish(self) -> list[str]:
        """Signal end of stream (clean end, abort or timeout). Returns completed_paths."""
        ...

    @property
    def completed_paths(self) -> list[str]:
        """Paths whose END was emitted, in completion order. The resume checkpoint."""
        return list(self._completed)

    def is_completed(self, path: str) -> bool:
        return path_key(path) in self._completed_keys

    def _mark_completed(self, path: str) -> None:
        key = path_key(path) or path
        if key not in self._completed_keys:
            self._completed_keys.add(key)
            self._completed.append(path)

    def _emit(self, event: FileOpEvent) -> None:
        self._on_event(event)


@dataclass(slots=True)
class _OpenPatch:
    path: str
    mode: PatchMode
    reason: str | None
    continuation: bool
    at_line_start: bool = True   # strip the newline that follows the opener


class MarkerRouter(StreamRouter):
    """Decode [[START_FILE]]-style markers into FileOpEvents as they arrive.

    Usage:
        router = MarkerRouter(events.append)
        for fragment in stream:
            router.push(fragment)
        router.finish()
    """

    def __init__(self, on_event: EventSink) -> None:
        super().__init__(on_event)
        self._scan = ""
        self._open: _OpenPatch | None = None

    @property
    def open_path(self) -> str | None:
        return self._open.path if self._open else None

    def push(self, fragment: str) -> None:
        if not fragment:
            return
        self._scan += fragment
        self._drain()

    def finish(self) -> list[str]:
        if self._open is not None:
            tail = markers.strip_trailing_fragment(self._scan)
            self._scan = ""
            self._flush(tail)
            self._close()
        elif self._scan.strip():
            log.debug("dropping %d trailing chars outside any file", len(self._scan))
        self._scan = ""
        return self.completed_paths

    def _drain(self) -> None:
        while self._scan:
            if self._open is None:
                if not self._take_opener():
                    return
                continue

            end_idx = self._scan.find(markers.END_TOKEN)
            next_idx, _ = markers.find_next_opener(self._scan)
            if next_idx != -1 and (end_idx == -1 or next_idx < end_idx):
                # new operation before END_FILE: implicit close
                content, self._scan = self._scan[:next_idx], self._scan[next_idx:]
                self._flush(content)
                self._close()
                continue
            if end_idx != -1:
                content = self._scan[:end_idx]
                self._scan = self._scan[end_idx + len(markers.END_TOKEN):]
                self._flush(content)
                self._close()
                continue

            if len(self._scan) <= HOLDBACK:
                return
            content = self._scan[:-HOLDBACK]
            self._scan = self._scan[-HOLDBACK:]
            self._flush(content)

    def _take_opener(self) -> bool:
        """Consume free text and at most one opener. False means wait for more input."""
        idx, token = markers.find_next_opener(self._scan)
        if token is None:
            skipped = self._scan[: max(0, len(self._scan) - (markers.LONGEST_TOKEN - 1))]
            if markers.END_TOKEN in skipped:
                log.debug("dropping unmatched %s", markers.END_TOKEN)
            self._scan = self._scan[len(skipped):]
            return False

        close_idx = self._scan.find(markers.MARKER_CLOSE, idx + len(token))
        if (
            close_idx == -1
            and len(self._scan) - idx <= MAX_PAYLOAD
            and "\n" not in self._scan[idx + len(token):]
        ):
            self._scan = self._scan[idx:]
            return False
        raw_payload = self._scan[idx + len(token):close_idx] if close_idx != -1 else ""
        if close_idx == -1 or "\n" in raw_payload or len(raw_payload) > MAX_PAYLOAD:
            log.debug("dropping unterminated %s", token)
            self._scan = self._scan[idx + len(token):]
            return True
        payload = raw_payload.strip()
        self._scan = self._scan[close_idx + len(markers.MARKER_CLOSE):]

        if token == markers.DELETE_TOKEN:
            parsed = markers.parse_delete_payload(payload)
            if parsed.path:
                self._emit(DeleteEvent(path=parsed.path, reason=parsed.reason))
            else:
                log.debug("dropping DELETE_FILE without path")
        elif token == markers.MOVE_TOKEN:
            parsed = markers.parse_move_payload(payload)
            if parsed.path and parsed.to_path:
                self._emit(MoveEvent(path=parsed.path, to_path=parsed.to_path, reason=parsed.reason))
            else:
                log.debug("dropping malformed MOVE_FILE payload %r", payload)
        else:
            self._open_patch(markers.parse_patch_payload(payload, markers.OPENER_MODES[token]))
        return True

    def _open_patch(self, parsed: markers.MarkerPayload) -> None:
        if not parsed.path:
            log.debug("dropping file opener without path")
            return
        continuation = parsed.mode is PatchMode.CREATE and self.is_completed(parsed.path)
        if continuation:
            log.debug("continuing completed file %s", parsed.path)
        self._open = _OpenPatch(
            path=parsed.path,
            mode=parsed.mode,
            reason=parsed.reason,
            continuation=continuation,
        )
        self._emit(PatchEvent(
            path=parsed.path,
            phase=Phase.START,
            mode=parsed.mode,
            reason=parsed.reason,
            continuation=continuation,
        ))

    def _flush(self, content: str) -> None:
        current = self._open
        if current is None or not content:
            return
        if current.at_line_start:
            current.at_line_start = False
            if content.startswith("\r\n"):
                content = content[2:]
            elif content.startswith("\n"):
                content = content[1:]
            if not content:
                return
        self._emit(PatchEvent(
            path=current.path,
            phase=Phase.CHUNK,
            mode=current.mode,
            chunk=content,
            reason=current.reason,
        ))

    def _close(self) -> None:
        current = self._open
        if current is None:
            return
        self._open = None
        self._mark_completed(current.path)
        self._emit(PatchEvent(
            path=current.path,
            phase=Phase.END,
            mode=current.mode,
            reason=current.reason,
            continuation=current.continuation,
        ))
