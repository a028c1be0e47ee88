"""Heuristic language signals for accumulated file content.

Each non-blank line is tested against three cue families:

    script  -- declarations, arrow functions, control flow, DOM/console calls
    style   -- selector blocks, "property: value;" pairs, @-rules
    markup  -- known HTML tag names

A line may count for more than one family ("class Foo {" looks like both
a script and a selector). The result is a LanguageSignals of per-family
line counts; callers ask it for a ratio instead of a yes/no, and the
verdict thresholds below are plain constants so they can be tuned and
tested without touching the control flow.

These are approximations. They exist to catch the gross failure mode
where a model writes a stylesheet into script.js, not to lint code.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

# Wrong-language lines must outnumber expected-language lines by this much.
DOMINANCE_RATIO = 1.5
# Fewer wrong-language lines than this never triggers a mismatch.
MIN_MISMATCH_LINES = 2

_SCRIPT_CUES = [
    re.compile(r"\b(?:const|let|var)\s+[A-Za-z_$][\w$]*\s*="),
    re.compile(r"\bfunction\b\s*[\w$]*\s*\("),
    re.compile(r"=>"),
    re.compile(r"\b(?:return|await|async|typeof|instanceof)\b"),
    re.compile(r"(?<![@\w-])import\s+[\w{*'\"]"),
    re.compile(r"\bexport\s+(?:default|const|let|var|function|class|\{)"),
    re.compile(r"\b(?:if|for|while|switch)\s*\("),
    re.compile(r"\b(?:document|window|console|JSON|Math)\.\w+"),
    re.compile(r"\.(?:addEventListener|querySelector|getElementById)\("),
    re.compile(r"\bnew\s+[A-Z][\w$]*\("),
    re.compile(r"\brequire\(\s*['\"]"),
]

_STYLE_CUES = [
    # selector block opener: ".card {", "#app, body > main {", "a:hover {"
    re.compile(r"^\s*[.#]?[A-Za-z_*\-][\w\-\s.#:>+~,\[\]=\"'*]*\{"),
    # property pair: "color: red;" optionally closing the block
    re.compile(r"^\s*-?[a-z][a-z\-]*\s*:\s*[^;{}]+;\s*\}?\s*$"),
    re.compile(r"^\s*@(?:media|import|keyframes|font-face|supports|layer|charset)\b"),
    re.compile(r":\s*(?:var\(--|calc\(|rgba?\(|#[0-9a-fA-F]{3,8}\b)"),
]

_MARKUP_CUE = re.compile(
    r"<\s*/?\s*(?:!doctype|html|head|body|div|span|p|a|ul|ol|li|section|article"
    r"|header|footer|main|nav|aside|script|style|link|meta|title|h[1-6]|button"
    r"|form|input|label|img|table|tr|td|th|canvas|svg|template)\b",
    re.IGNORECASE,
)

_EDIT_MARKER_LINE = re.compile(r"^\s*\[\[(?:SEARCH|REPLACE|END_EDIT)\]\]\s*$")
_INLINE_BLOCK_RE = re.compile(
    r"<(style|script)\b([^>]*)>(.*?)</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_SRC_ATTR_RE = re.compile(r"\bsrc\s*=", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class LanguageSignals:
    """Line counts per cue family."""
    script: int = 0
    style: int = 0
    markup: int = 0
    lines: int = 0

    def ratio(self, wrong: int, expected: int) -> float:
        """How strongly `wrong` dominates `expected`; inf when expected is absent."""
        if wrong <= 0:
            return 0.0
        if expected <= 0:
            return float("inf")
        return wrong / expected

    def dominated_by(self, wrong: int, expected: int) -> bool:
        if wrong < MIN_MISMATCH_LINES:
            return False
        return self.ratio(wrong, expected) > DOMINANCE_RATIO


def score(text: str) -> LanguageSignals:
    """Count script/style/markup lines in text.

    Search/replace marker lines from an EDIT_NODE body are ignored so an
    edit's content is classified by what it inserts.
    """
    script = style = markup = total = 0
    for line in text.splitlines():
        if not line.strip() or _EDIT_MARKER_LINE.match(line):
            continue
        total += 1
        if any(cue.search(line) for cue in _SCRIPT_CUES):
            script += 1
        if any(cue.search(line) for cue in _STYLE_CUES):
            style += 1
        if _MARKUP_CUE.search(line):
            markup += 1
    return LanguageSignals(script=script, style=style, markup=markup, lines=total)


def strip_inline_blocks(html: str) -> str:
    """Drop <style>/<script> element bodies so only the document's own markup is scored."""
    return _INLINE_BLOCK_RE.sub(lambda m: f"<{m.group(1)}{m.group(2)}></{m.group(1)}>", html)


def has_inline_code(html: str) -> bool:
    """True if html carries a non-empty inline <style> or <script> body.

    <script src="..."></script> is an external reference, not inline code.
    """
    for m in _INLINE_BLOCK_RE.finditer(html):
        tag, attrs, body = m.group(1).lower(), m.group(2), m.group(3)
        if tag == "script" and _SRC_ATTR_RE.search(attrs) and not body.strip():
            continue
        if body.strip():
            return True
    return False
