"""CreateRuleMatcher: glob matching for allowed_create_rules.

Pattern syntax:
    "index.html"        -- exact path
    "styles/*.css"      -- "*" matches within one segment
    "frontend/**"       -- "**" matches across segments
    "src/?.js"          -- "?" matches one character within a segment

Matching is case-insensitive and anchored at both ends. Patterns are
compiled once per session; a pattern that fails to compile is dropped
rather than failing the whole policy.
"""
from __future__ import annotations

import logging
import re

from fileop_guard.domain.types import GlobPattern
from fileop_guard.paths import sanitize_path

log = logging.getLogger(__name__)


def glob_to_regex(pattern: GlobPattern) -> re.Pattern[str]:
    """Translate a create-rule glob into an anchored, case-insensitive regex."""
    out: list[str] = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if pattern.startswith("**/", i):
            # "a/**/b" also matches "a/b"
            out.append("(?:.*/)?")
            i += 3
            continue
        if pattern.startswith("**", i):
            out.append(".*")
            i += 2
            continue
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.IGNORECASE)


def _clean_pattern(pattern: GlobPattern) -> str:
    """Same leading-slash and "./" handling as sanitize_path, wildcards kept."""
    cleaned = str(pattern or "").strip().replace("\\", "/")
    while cleaned.startswith("./"):
        cleaned = cleaned[2:]
    return re.sub(r"/+", "/", cleaned).lstrip("/")


class CreateRuleMatcher:
    """Match normalized paths against a fixed set of create-rule globs."""

    def __init__(self, patterns: tuple[GlobPattern, ...] | list[GlobPattern]) -> None:
        self._rules: list[tuple[GlobPattern, re.Pattern[str]]] = []
        for pattern in patterns:
            cleaned = _clean_pattern(pattern)
            if not cleaned:
                continue
            try:
                self._rules.append((pattern, glob_to_regex(cleaned)))
            except re.error:
                log.debug("dropping uncompilable create rule %r", pattern)

    @property
    def patterns(self) -> list[GlobPattern]:
        return [p for p, _ in self._rules]

    def __len__(self) -> int:
        return len(self._rules)

    def matches(self, path: str) -> bool:
        normalized = sanitize_path(path)
        if not normalized:
            return False
        return any(regex.match(normalized) for _, regex in self._rules)

    def has_basename(self, name: str) -> bool:
        """True if any rule names this exact basename as its last segment."""
        lowered = name.lower()
        return any(
            _clean_pattern(pattern).rstrip("/").rsplit("/", 1)[-1].lower() == lowered
            for pattern, _ in self._rules
        )
