"""Filename tables: purpose keys, the static-site profile, sensitive files.

Purpose keys collapse well-known basenames onto one logical artifact so a
model cannot create "main.css" next to an existing "style.css" and split
the stylesheet in two. Every other path is its own purpose.

The static profile applies when the create rules name an index.html: a
plain HTML/CSS/JS site with no build step, where the canonical stylesheet
is style.css and the canonical script is script.js.
"""
from __future__ import annotations

import re

from fileop_guard.domain.types import PurposeKey
from fileop_guard.paths import basename, extension, path_key

CSS_PRIMARY = "css:primary"
JS_PRIMARY = "js:primary"

CSS_PRIMARY_BASENAMES = frozenset({"style.css", "styles.css", "main.css", "app.css"})
JS_PRIMARY_BASENAMES = frozenset({"script.js", "main.js", "app.js"})
SINGLETON_PURPOSES = frozenset({CSS_PRIMARY, JS_PRIMARY})

STATIC_PROFILE_MARKER = "index.html"
STATIC_CANONICAL_BASENAMES = {CSS_PRIMARY: "style.css", JS_PRIMARY: "script.js"}
STATIC_ALLOWED_EXTENSIONS = frozenset({
    "html", "htm", "css", "js", "mjs",
    "json", "md", "txt", "svg", "ico",
    "png", "jpg", "jpeg", "gif", "webp",
})
HTML_EXTENSIONS = frozenset({"html", "htm"})
CSS_EXTENSIONS = frozenset({"css"})
JS_EXTENSIONS = frozenset({"js", "mjs", "cjs"})
STATIC_ORDERED_EXTENSIONS = CSS_EXTENSIONS | JS_EXTENSIONS

SENSITIVE_BASENAMES = frozenset({
    "package.json",
    "package-lock.json",
    "pnpm-lock.yaml",
    "yarn.lock",
    "tsconfig.json",
    "tsconfig.base.json",
    "vite.config.js",
    "vite.config.ts",
    "next.config.js",
    "next.config.mjs",
})

_SECURITY_REASON_RE = re.compile(
    r"\b(security|vuln|vulnerability|cve|exploit|malware|credential|secret|token"
    r"|compromise|exposure|leak)\b",
    re.IGNORECASE,
)


def purpose_key(path: str) -> PurposeKey:
    name = basename(path)
    if name in CSS_PRIMARY_BASENAMES:
        return CSS_PRIMARY
    if name in JS_PRIMARY_BASENAMES:
        return JS_PRIMARY
    return f"file:{path_key(path)}"


def is_sensitive(path: str) -> bool:
    return basename(path) in SENSITIVE_BASENAMES


def has_security_reason(reason: str | None) -> bool:
    """A destructive op on a sensitive file needs an explicit safety justification."""
    return bool(_SECURITY_REASON_RE.search(str(reason or "")))


def is_html(path: str) -> bool:
    return extension(path) in HTML_EXTENSIONS


def forbidden_static_basename(path: str) -> bool:
    """True for a primary-purpose stylesheet/script that is not the canonical name."""
    key = purpose_key(path)
    canonical = STATIC_CANONICAL_BASENAMES.get(key)
    return canonical is not None and basename(path) != canonical
