"""Streaming router for the JSON envelope wire form.

Envelope:
    {
        "project_files": [
            {"name": "index.html", "content": "<!doctype html>..."},
            {"name": "style.css", "content": "body { ... }"}
        ],
        "metadata": {...},
        "instructions": "..."
    }

The model may stop anywhere (token limit, timeout, abort), so the
envelope as a whole often never parses. Instead of waiting for it, the
router runs a small character-level state machine that tracks object
and array nesting, whether the next string is a key or a value, and the
escape state inside strings. A file record is complete the instant its
"content" string closes, even though the array and the outer object are
still open.

Each completed record is emitted as a PatchEvent START / CHUNK / END
triple in one go; nothing is emitted for a record whose content is still
open. On finish(), a buffer that parses as JSON is authoritative;
otherwise the records completed so far are the recovery output.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from fileop_guard.domain.events import PatchEvent, PatchMode, Phase
from fileop_guard.paths import path_key
from fileop_guard.protocol.router import EventSink, StreamRouter

log = logging.getLogger(__name__)

FILES_KEY = "project_files"
NAME_KEYS = frozenset({"name", "path"})
CONTENT_KEY = "content"

_OBJECT = "object"
_ARRAY = "array"
_LENIENT = json.JSONDecoder(strict=False)


@dataclass(frozen=True, slots=True)
class FileRecord:
    """One complete {name, content} entry."""
    name: str
    content: str


@dataclass(slots=True)
class EnvelopeResult:
    """What finish() knows about the stream."""
    records: list[FileRecord]
    complete: bool                  # the whole buffer parsed as JSON
    metadata: dict[str, Any] = field(default_factory=dict)
    instructions: str = ""


def decode_json_string(raw: str) -> str:
    """Decode the body of a JSON string literal; fall back to raw text if it is malformed.

    Literal newlines and tabs inside the string are tolerated, since
    models emit them constantly.
    """
    try:
        return _LENIENT.decode(f'"{raw}"')
    except ValueError:
        return raw


def _extract_object(text: str) -> str:
    """Drop markdown fences and chatter around the outermost {...}."""
    first, last = text.find("{"), text.rfind("}")
    if first == -1 or last <= first:
        return ""
    return text[first:last + 1]


class JsonEnvelopeRouter(StreamRouter):
    """Extract file records from a streamed project_files envelope.

    Usage:
        router = JsonEnvelopeRouter(events.append)
        for fragment in stream:
            router.push(fragment)
        result = router.finish_envelope()
    """

    def __init__(self, on_event: EventSink) -> None:
        super().__init__(on_event)
        self._raw: list[str] = []
        self._records: list[FileRecord] = []
        self._finished: EnvelopeResult | None = None

        self._stack: list[str] = []
        self._expecting_key = False
        self._expecting_value = False
        self._current_key: str | None = None

        self._in_string = False
        self._escape = False
        self._string_buf: list[str] = []
        self._string_is_key = False

        self._files_depth = -1          # stack depth of the project_files array
        self._current_name: str | None = None
        self._capturing_content = False

    @property
    def records(self) -> list[FileRecord]:
        """Records completed so far; the checkpoint if the stream dies now."""
        return list(self._records)

    @property
    def in_files(self) -> bool:
        return self._files_depth != -1

    def push(self, fragment: str) -> None:
        if not fragment or self._finished is not None:
            return
        self._raw.append(fragment)
        for ch in fragment:
            self._feed(ch)

    def finish(self) -> list[str]:
        self.finish_envelope()
        return self.completed_paths

    def finish_envelope(self) -> EnvelopeResult:
        """Close the stream and return the authoritative or recovered records."""
        if self._finished is not None:
            return self._finished

        text = "".join(self._raw)
        try:
            parsed = json.loads(_extract_object(text), strict=False)
        except ValueError:
            parsed = None

        if isinstance(parsed, dict) and isinstance(parsed.get(FILES_KEY), list):
            records = self._records_from(parsed[FILES_KEY])
            emitted = {path_key(r.name) for r in self._records}
            for record in records:
                if path_key(record.name) not in emitted:
                    self._emit_record(record)
            metadata = parsed.get("metadata")
            self._finished = EnvelopeResult(
                records=records,
                complete=True,
                metadata=metadata if isinstance(metadata, dict) else {},
                instructions=str(parsed.get("instructions") or ""),
            )
        else:
            if text.strip():
                log.info(
                    "envelope did not parse; recovered %d completed file(s)", len(self._records),
                )
            self._finished = EnvelopeResult(records=list(self._records), complete=False)
        return self._finished

    @staticmethod
    def _records_from(items: list[Any]) -> list[FileRecord]:
        records: list[FileRecord] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name", item.get("path"))
            content = item.get(CONTENT_KEY)
            if isinstance(name, str) and name.strip() and isinstance(content, str):
                records.append(FileRecord(name=name.strip(), content=content))
        return records

    def _emit_record(self, record: FileRecord) -> None:
        self._records.append(record)
        self._mark_completed(record.name)
        self._emit(PatchEvent(path=record.name, phase=Phase.START, mode=PatchMode.CREATE))
        if record.content:
            self._emit(PatchEvent(
                path=record.name, phase=Phase.CHUNK, mode=PatchMode.CREATE, chunk=record.content,
            ))
        self._emit(PatchEvent(path=record.name, phase=Phase.END, mode=PatchMode.CREATE))

    # ------------------------------------------------------------------
    # character state machine
    # ------------------------------------------------------------------

    def _feed(self, ch: str) -> None:
        if self._in_string:
            self._feed_string(ch)
            return

        if ch in " \n\r\t":
            return
        if ch == "{":
            self._stack.append(_OBJECT)
            self._expecting_key = True
            self._expecting_value = False
            self._current_key = None
            if self.in_files and len(self._stack) == self._files_depth + 1:
                self._current_name = None
            return
        if ch == "}":
            if self._stack and self._stack[-1] == _OBJECT:
                self._stack.pop()
            self._expecting_key = False
            self._expecting_value = False
            self._current_key = None
            self._leave_files_if_closed()
            return
        if ch == "[":
            self._stack.append(_ARRAY)
            self._expecting_value = True
            if self._current_key == FILES_KEY and not self.in_files:
                self._files_depth = len(self._stack)
            return
        if ch == "]":
            if self._stack and self._stack[-1] == _ARRAY:
                self._stack.pop()
            self._expecting_value = False
            self._leave_files_if_closed()
            return
        if ch == ":":
            self._expecting_value = True
            return
        if ch == ",":
            top = self._stack[-1] if self._stack else None
            if top == _OBJECT:
                self._expecting_key = True
                self._current_key = None
            elif top == _ARRAY:
                self._expecting_value = True
            return
        if ch == '"':
            top = self._stack[-1] if self._stack else None
            self._string_is_key = top == _OBJECT and self._expecting_key
            self._in_string = True
            self._escape = False
            self._string_buf = []
            self._capturing_content = (
                not self._string_is_key
                and self._at_record_level()
                and self._current_key == CONTENT_KEY
                and self._current_name is not None
            )
            return
        # numbers, true/false/null, stray fence characters
        self._expecting_value = False

    def _feed_string(self, ch: str) -> None:
        if self._escape:
            self._escape = False
            self._string_buf.append(ch)
            return
        if ch == "\\":
            self._escape = True
            self._string_buf.append(ch)
            return
        if ch != '"':
            self._string_buf.append(ch)
            return

        self._in_string = False
        value = decode_json_string("".join(self._string_buf))
        self._string_buf = []
        if self._string_is_key:
            self._current_key = value
            self._expecting_key = False
            return

        self._expecting_value = False
        if self._capturing_content:
            self._capturing_content = False
            name = self._current_name
            self._current_name = None
            if name:
                self._emit_record(FileRecord(name=name, content=value))
            return
        if self._at_record_level() and self._current_key in NAME_KEYS:
            self._current_name = value.strip() or None

    def _at_record_level(self) -> bool:
        """Directly inside one project_files entry, not in a nested value."""
        return self.in_files and len(self._stack) == self._files_depth + 1

    def _leave_files_if_closed(self) -> None:
        if self.in_files and len(self._stack) < self._files_depth:
            self._files_depth = -1
            self._current_name = None
