"""Tests for SEARCH/REPLACE edit blocks."""
from __future__ import annotations

from fileop_guard.protocol.edits import (
    EditBlock,
    apply_edit_blocks,
    has_edit_blocks,
    parse_edit_blocks,
)

STYLESHEET = "h1 {\n  color: red;\n}\np {\n  margin: 0;\n}\n"


def test_parse_single_block():
    body = "[[SEARCH]]\n  color: red;\n[[REPLACE]]\n  color: blue;\n[[END_EDIT]]\n"
    assert parse_edit_blocks(body) == [EditBlock("  color: red;", "  color: blue;")]


def test_parse_multiple_blocks_in_order():
    body = (
        "[[SEARCH]]\na\n[[REPLACE]]\nb\n[[END_EDIT]]\n"
        "[[SEARCH]]\nc\n[[REPLACE]]\nd\n[[END_EDIT]]\n"
    )
    assert parse_edit_blocks(body) == [EditBlock("a", "b"), EditBlock("c", "d")]


def test_missing_end_edit_runs_to_next_search():
    body = "[[SEARCH]]\na\n[[REPLACE]]\nb\n[[SEARCH]]\nc\n[[REPLACE]]\nd\n"
    assert parse_edit_blocks(body) == [EditBlock("a", "b"), EditBlock("c", "d")]


def test_search_without_replace_dropped():
    body = "[[SEARCH]]\norphan\n[[SEARCH]]\nx\n[[REPLACE]]\ny\n[[END_EDIT]]"
    assert parse_edit_blocks(body) == [EditBlock("x", "y")]


def test_empty_replace_deletes_text():
    body = "[[SEARCH]]\np {\n  margin: 0;\n}\n[[REPLACE]]\n[[END_EDIT]]"
    result = apply_edit_blocks(STYLESHEET, parse_edit_blocks(body))
    assert result.content == "h1 {\n  color: red;\n}\n\n"


def test_full_body_has_no_blocks():
    assert not has_edit_blocks("h1 { color: blue; }")
    assert parse_edit_blocks("h1 { color: blue; }") == []


def test_apply_blocks():
    blocks = [EditBlock("color: red;", "color: blue;"), EditBlock("margin: 0;", "margin: 1rem;")]
    result = apply_edit_blocks(STYLESHEET, blocks)
    assert result.ok
    assert result.applied == 2
    assert "color: blue;" in result.content
    assert "margin: 1rem;" in result.content


def test_apply_reports_missed_blocks_and_keeps_going():
    blocks = [EditBlock("color: green;", "x"), EditBlock("margin: 0;", "margin: 2px;")]
    result = apply_edit_blocks(STYLESHEET, blocks)
    assert not result.ok
    assert result.missed == [blocks[0]]
    assert result.applied == 1
    assert "margin: 2px;" in result.content


def test_apply_replaces_first_occurrence_only():
    result = apply_edit_blocks("a a a", [EditBlock("a", "b")])
    assert result.content == "b a a"
