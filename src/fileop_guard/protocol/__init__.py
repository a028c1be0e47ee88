"""Stream decoding: model output text -> ordered FileOpEvents.

Two wire forms share one interface (StreamRouter):
  - MarkerRouter: inline [[START_FILE]] / [[EDIT_NODE]] / ... markers
  - JsonEnvelopeRouter: a streamed {"project_files": [...]} object
AutoRouter picks between them from the first characters of the stream.
"""
from fileop_guard.protocol.detect import AutoRouter, WireFormat, create_router, sniff
from fileop_guard.protocol.edits import (
    EditBlock,
    EditResult,
    apply_edit_blocks,
    has_edit_blocks,
    parse_edit_blocks,
)
from fileop_guard.protocol.envelope import (
    EnvelopeResult,
    FileRecord,
    JsonEnvelopeRouter,
    decode_json_string,
)
from fileop_guard.protocol.markers import strip_markers, strip_trailing_fragment
from fileop_guard.protocol.router import EventSink, MarkerRouter, StreamRouter

__all__ = [
    "AutoRouter",
    "WireFormat",
    "create_router",
    "sniff",
    "EditBlock",
    "EditResult",
    "apply_edit_blocks",
    "has_edit_blocks",
    "parse_edit_blocks",
    "EnvelopeResult",
    "FileRecord",
    "JsonEnvelopeRouter",
    "decode_json_string",
    "strip_markers",
    "strip_trailing_fragment",
    "EventSink",
    "MarkerRouter",
    "StreamRouter",
]
