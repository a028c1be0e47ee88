"""Shared type aliases used across the domain."""
from __future__ import annotations

from typing import TypeAlias

RawPath: TypeAlias = str         # as emitted by the model, not yet sanitized
NormalizedPath: TypeAlias = str  # sanitized, forward slashes, workspace-relative
PathKey: TypeAlias = str         # lower-cased NormalizedPath, used for set membership
PurposeKey: TypeAlias = str      # "css:primary", "js:primary", "file:<path>"
GlobPattern: TypeAlias = str
