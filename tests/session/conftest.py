"""Shared fixtures for GenerationSession tests."""
from __future__ import annotations

import pytest

from fileop_guard.domain.policy import WritePolicy

EXISTING_PAGE = "<!doctype html>\n<html>\n<body>\n<h1>Old</h1>\n</body>\n</html>\n"
EXISTING_STYLE = "h1 {\n  color: red;\n}\n"


@pytest.fixture()
def static_policy() -> WritePolicy:
    return WritePolicy(
        allowed_create_rules=("index.html", "style.css", "script.js"),
        max_touched_files=3,
    )


@pytest.fixture()
def edit_policy() -> WritePolicy:
    return WritePolicy(
        allowed_edit_paths=frozenset({"index.html", "style.css"}),
        allowed_create_rules=("script.js",),
        max_touched_files=3,
        interaction_mode="edit",
        manifest_paths=("index.html", "style.css"),
    )


@pytest.fixture()
def base_files() -> dict[str, str]:
    return {"index.html": EXISTING_PAGE, "style.css": EXISTING_STYLE}
