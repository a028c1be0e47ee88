"""SEARCH/REPLACE blocks carried inside an EDIT_NODE body.

    [[EDIT_NODE: style.css]]
    [[SEARCH]]
    color: red;
    [[REPLACE]]
    color: blue;
    [[END_EDIT]]
    [[END_FILE]]

The router streams the EDIT_NODE body as ordinary chunks; once the END
arrives, the consumer parses the accumulated body with parse_edit_blocks()
and applies it with apply_edit_blocks(). A body with no SEARCH marker at
all is a full replacement and parses to no blocks.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fileop_guard.protocol.markers import END_EDIT_TOKEN, REPLACE_TOKEN, SEARCH_TOKEN

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EditBlock:
    search: str
    replace: str


@dataclass(slots=True)
class EditResult:
    content: str
    applied: int = 0
    missed: list[EditBlock] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missed


def _trim_marker_newlines(text: str) -> str:
    """Markers sit on their own lines; drop the newline right after the opening marker and before the closing one."""
    if text.startswith("\r\n"):
        text = text[2:]
    elif text.startswith("\n"):
        text = text[1:]
    if text.endswith("\r\n"):
        text = text[:-2]
    elif text.endswith("\n"):
        text = text[:-1]
    return text


def has_edit_blocks(body: str) -> bool:
    return SEARCH_TOKEN in body


def parse_edit_blocks(body: str) -> list[EditBlock]:
    """Extract SEARCH/REPLACE pairs in order.

    A block missing its REPLACE is dropped. A missing END_EDIT is
    tolerated: the block runs to the next SEARCH or the end of the body.
    """
    blocks: list[EditBlock] = []
    pos = 0
    while True:
        start = body.find(SEARCH_TOKEN, pos)
        if start == -1:
            break
        search_from = start + len(SEARCH_TOKEN)
        replace_at = body.find(REPLACE_TOKEN, search_from)
        next_search = body.find(SEARCH_TOKEN, search_from)
        if replace_at == -1 or (next_search != -1 and next_search < replace_at):
            log.debug("dropping SEARCH block without REPLACE")
            pos = search_from
            continue
        replace_from = replace_at + len(REPLACE_TOKEN)
        end_at = body.find(END_EDIT_TOKEN, replace_from)
        next_search = body.find(SEARCH_TOKEN, replace_from)
        if end_at == -1 or (next_search != -1 and next_search < end_at):
            end_at = next_search if next_search != -1 else len(body)
            pos = end_at
        else:
            pos = end_at + len(END_EDIT_TOKEN)
        search = _trim_marker_newlines(body[search_from:replace_at])
        replace = _trim_marker_newlines(body[replace_from:end_at])
        if not search:
            log.debug("dropping SEARCH block with empty search text")
            continue
        blocks.append(EditBlock(search=search, replace=replace))
    return blocks


def apply_edit_blocks(original: str, blocks: list[EditBlock]) -> EditResult:
    """Apply each block to the first occurrence of its search text, in order.

    A block whose search text is not found is reported in missed and
    skipped; the remaining blocks still apply.
    """
    content = original
    result = EditResult(content=original)
    for block in blocks:
        idx = content.find(block.search)
        if idx == -1:
            result.missed.append(block)
            continue
        content = content[:idx] + block.replace + content[idx + len(block.search):]
        result.applied += 1
    result.content = content
    return result
