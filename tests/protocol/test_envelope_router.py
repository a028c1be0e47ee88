"""Tests for JsonEnvelopeRouter: record extraction from a streamed JSON envelope."""
from __future__ import annotations

import json

import pytest

from fileop_guard.domain.events import Phase
from fileop_guard.protocol.envelope import FileRecord, decode_json_string
from tests.protocol.conftest import contents, feed, phases

ENVELOPE = json.dumps({
    "project_files": [
        {"name": "index.html", "content": "<!doctype html>\n<h1>\"Hi\"</h1>\n"},
        {"name": "script.js", "content": "console.log('ok');\n"},
    ],
    "metadata": {"title": "Demo"},
    "instructions": "Open index.html",
}, indent=2)


def test_complete_envelope(json_router, events):
    json_router.push(ENVELOPE)
    result = json_router.finish_envelope()
    assert result.complete
    assert result.records == [
        FileRecord("index.html", "<!doctype html>\n<h1>\"Hi\"</h1>\n"),
        FileRecord("script.js", "console.log('ok');\n"),
    ]
    assert result.metadata == {"title": "Demo"}
    assert result.instructions == "Open index.html"
    assert contents(events) == {r.name: r.content for r in result.records}


@pytest.mark.parametrize("size", [1, 4, 9, 50])
def test_records_emitted_as_soon_as_content_closes(json_router, events, size):
    feed(json_router, ENVELOPE, size)
    assert json_router.completed_paths == ["index.html", "script.js"]
    assert phases(events, "index.html") == ["start", "chunk", "end"]


def test_truncated_envelope_recovers_completed_records(json_router, events):
    json_router.push(
        '{"project_files": [{"name": "a.js", "content": "let a = 1;\\n"}, '
        '{"name": "b.css", "content": "body{'
    )
    result = json_router.finish_envelope()
    assert not result.complete
    assert result.records == [FileRecord("a.js", "let a = 1;\n")]
    assert json_router.completed_paths == ["a.js"]
    assert {e.path for e in events} == {"a.js"}


def test_open_record_emits_nothing(json_router, events):
    json_router.push('{"project_files": [{"name": "a.js", "content": "let a')
    assert events == []


def test_finish_is_idempotent(json_router, events):
    json_router.push(ENVELOPE)
    first = json_router.finish_envelope()
    assert json_router.finish_envelope() is first
    assert json_router.finish() == ["index.html", "script.js"]
    assert len([e for e in events if e.phase is Phase.END]) == 2


def test_fenced_envelope(json_router, events):
    json_router.push("```json\n" + ENVELOPE + "\n```")
    assert json_router.finish_envelope().complete
    assert set(contents(events)) == {"index.html", "script.js"}


def test_path_key_accepted_as_name(json_router, events):
    json_router.push('{"project_files": [{"path": "src/a.js", "content": "x"}]}')
    assert contents(events) == {"src/a.js": "x"}


def test_nested_name_does_not_rename_record(json_router, events):
    json_router.push(
        '{"project_files": [{"name": "a.js", "meta": {"name": "evil.js"}, "content": "x"}]}'
    )
    assert contents(events) == {"a.js": "x"}


def test_content_before_name_recovered_on_full_parse(json_router, events):
    json_router.push('{"project_files": [{"content": "x", "name": "late.js"}]}')
    assert events == []
    result = json_router.finish_envelope()
    assert result.records == [FileRecord("late.js", "x")]
    assert contents(events) == {"late.js": "x"}


def test_padded_name_emitted_once(json_router, events):
    json_router.push('{"project_files":[{"name":" a.js ","content":"x"}]}')
    result = json_router.finish()
    assert result == ["a.js"]
    assert [ev.path for ev in events if ev.phase is Phase.START] == ["a.js"]
    assert json_router.finish_envelope().records == [FileRecord("a.js", "x")]


def test_literal_newlines_in_strings_tolerated(json_router, events):
    json_router.push('{"project_files": [{"name": "a.txt", "content": "line1\nline2"}]}')
    assert contents(events) == {"a.txt": "line1\nline2"}
    assert json_router.finish_envelope().complete


def test_empty_content_emits_start_and_end_only(json_router, events):
    json_router.push('{"project_files": [{"name": "empty.js", "content": ""}]}')
    assert phases(events, "empty.js") == ["start", "end"]


def test_no_files_key(json_router, events):
    json_router.push('{"answer": "no files"}')
    result = json_router.finish_envelope()
    assert result.records == []
    assert not result.complete
    assert events == []


class TestDecodeJsonString:

    def test_escapes(self):
        assert decode_json_string(r"a\nb\t\"c\" é") == 'a\nb\t"c" é'

    def test_malformed_falls_back_to_raw(self):
        assert decode_json_string("bad \\x escape") == "bad \\x escape"
