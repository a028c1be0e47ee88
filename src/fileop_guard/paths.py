"""Path normalization for model-emitted file paths.

Models write paths every way imaginable: backslashes, "./src/x",
"/src/x", quoted, with ".." segments. Everything the gate compares goes
through sanitize_path() first, and everything it stores in a set goes
through path_key() (case-insensitive, matching how the browser workspace
treats paths).
"""
from __future__ import annotations

import re

from fileop_guard.domain.types import NormalizedPath, PathKey, RawPath

_QUOTES_RE = re.compile(r"^['\"`]+|['\"`]+$")
_SCHEME_RE = re.compile(r"^[a-z]+:", re.IGNORECASE)
_BAD_SEGMENT_RE = re.compile(r'[\x00-\x1f<>:"|?*]')
_SLASHES_RE = re.compile(r"/+")


def sanitize_path(raw: RawPath | None) -> NormalizedPath:
    """Return a workspace-relative forward-slash path, or "" if unresolvable.

    Rejected outright (returns ""):
      - URL schemes and drive letters ("http://x", "C:/x")
      - home-relative paths ("~/x")
      - ".." that would climb above the workspace root
      - segments containing control or reserved characters
    """
    value = str(raw or "").strip()
    if not value:
        return ""
    value = _QUOTES_RE.sub("", value)
    value = value.replace("\\", "/")
    value = _SLASHES_RE.sub("/", value).strip()
    if not value:
        return ""
    if _SCHEME_RE.match(value) or value.startswith("~"):
        return ""

    parts: list[str] = []
    for segment in value.split("/"):
        if not segment or segment == ".":
            continue
        if segment == "..":
            if not parts:
                return ""
            parts.pop()
            continue
        if _BAD_SEGMENT_RE.search(segment):
            return ""
        parts.append(segment)
    return "/".join(parts)


def path_key(path: RawPath | None) -> PathKey:
    return sanitize_path(path).lower()


def basename(path: RawPath | None) -> str:
    """Lower-cased final segment."""
    normalized = sanitize_path(path)
    if not normalized:
        return ""
    return normalized.rsplit("/", 1)[-1].lower()


def extension(path: RawPath | None) -> str:
    """Lower-cased extension without the dot; "" when there is none."""
    name = basename(path)
    if "." not in name.lstrip("."):
        return ""
    return name.rsplit(".", 1)[-1]
