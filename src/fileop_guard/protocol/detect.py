"""Pick the wire form from the first meaningful characters of the stream.

A response that opens with "{" (optionally behind a ```json fence) is a
JSON envelope; anything else is marker text. Fragments are buffered only
until that decision can be made.
"""
from __future__ import annotations

import logging
from enum import Enum

from fileop_guard.protocol.envelope import EnvelopeResult, JsonEnvelopeRouter
from fileop_guard.protocol.router import EventSink, MarkerRouter, StreamRouter

log = logging.getLogger(__name__)

FENCE = "```"


class WireFormat(Enum):
    AUTO = "auto"
    MARKERS = "markers"
    JSON = "json"


def sniff(prefix: str) -> WireFormat | None:
    """Decide from the text seen so far; None means "need more input"."""
    text = prefix.lstrip()
    if not text:
        return None
    if text.startswith(FENCE) or FENCE.startswith(text):
        newline = text.find("\n")
        if newline == -1:
            return None
        text = text[newline + 1:].lstrip()
        if not text:
            return None
    return WireFormat.JSON if text.startswith("{") else WireFormat.MARKERS


class AutoRouter(StreamRouter):
    """Delegate to a MarkerRouter or JsonEnvelopeRouter once the format is known."""

    def __init__(self, on_event: EventSink) -> None:
        super().__init__(on_event)
        self._pending = ""
        self._delegate: StreamRouter | None = None

    @property
    def wire_format(self) -> WireFormat | None:
        if self._delegate is None:
            return None
        return WireFormat.JSON if isinstance(self._delegate, JsonEnvelopeRouter) else WireFormat.MARKERS

    @property
    def delegate(self) -> StreamRouter | None:
        return self._delegate

    @property
    def completed_paths(self) -> list[str]:
        return self._delegate.completed_paths if self._delegate else []

    def is_completed(self, path: str) -> bool:
        return self._delegate.is_completed(path) if self._delegate else False

    def push(self, fragment: str) -> None:
        if not fragment:
            return
        if self._delegate is not None:
            self._delegate.push(fragment)
            return
        self._pending += fragment
        detected = sniff(self._pending)
        if detected is None:
            return
        log.debug("detected %s wire format", detected.value)
        self._delegate = _build(detected, self._on_event)
        pending, self._pending = self._pending, ""
        self._delegate.push(pending)

    def finish(self) -> list[str]:
        if self._delegate is None:
            self._delegate = _build(sniff(self._pending + "\n") or WireFormat.MARKERS, self._on_event)
            pending, self._pending = self._pending, ""
            self._delegate.push(pending)
        return self._delegate.finish()

    def envelope_result(self) -> EnvelopeResult | None:
        """finish_envelope() of the JSON delegate; None in marker mode."""
        if isinstance(self._delegate, JsonEnvelopeRouter):
            return self._delegate.finish_envelope()
        return None


def _build(wire_format: WireFormat, on_event: EventSink) -> StreamRouter:
    if wire_format is WireFormat.JSON:
        return JsonEnvelopeRouter(on_event)
    return MarkerRouter(on_event)


def create_router(on_event: EventSink, wire_format: WireFormat | str = WireFormat.AUTO) -> StreamRouter:
    """Router factory; one router per generation request."""
    fmt = WireFormat(wire_format) if isinstance(wire_format, str) else wire_format
    if fmt is WireFormat.AUTO:
        return AutoRouter(on_event)
    return _build(fmt, on_event)
