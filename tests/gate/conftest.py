"""Shared fixtures for gate tests.

Provides ready-made policies and helpers that drive a whole patch
(START, CHUNK, END) through a gate in one call.
"""
from __future__ import annotations

import pytest

from fileop_guard.domain.events import PatchEvent, PatchMode, Phase
from fileop_guard.domain.policy import WritePolicy
from fileop_guard.domain.verdicts import Verdict
from fileop_guard.gate.gate import FileOpGate


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def start(path: str, mode: PatchMode = PatchMode.CREATE, **kw) -> PatchEvent:
    return PatchEvent(path=path, phase=Phase.START, mode=mode, **kw)


def chunk(path: str, text: str, mode: PatchMode = PatchMode.CREATE) -> PatchEvent:
    return PatchEvent(path=path, phase=Phase.CHUNK, mode=mode, chunk=text)


def end(path: str, mode: PatchMode = PatchMode.CREATE, **kw) -> PatchEvent:
    return PatchEvent(path=path, phase=Phase.END, mode=mode, **kw)


def write(gate: FileOpGate, path: str, text: str, mode: PatchMode = PatchMode.CREATE) -> Verdict:
    """Run one patch through the gate; returns the first blocking verdict, or the END verdict."""
    verdict = gate.check(start(path, mode))
    if not verdict.allowed:
        return verdict
    gate.check(chunk(path, text, mode))
    return gate.check(end(path, mode))


def code_of(verdict: Verdict) -> str | None:
    return verdict.violation.code.value if verdict.violation else None


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

@pytest.fixture()
def static_policy() -> WritePolicy:
    """A fresh static HTML/CSS/JS site."""
    return WritePolicy(
        allowed_create_rules=("index.html", "style.css", "script.js", "assets/**"),
        max_touched_files=6,
    )


@pytest.fixture()
def edit_policy() -> WritePolicy:
    """Edit turn on an existing app: two editable files, new modules under src/."""
    return WritePolicy(
        allowed_edit_paths=frozenset({"src/app.js", "src/style.css"}),
        allowed_create_rules=("src/components/*.js",),
        max_touched_files=3,
        interaction_mode="edit",
        manifest_paths=("src/app.js", "src/style.css", "package.json"),
    )


@pytest.fixture()
def open_policy() -> WritePolicy:
    """Anything may be created; generous budget."""
    return WritePolicy(allowed_create_rules=("**",), max_touched_files=10)


@pytest.fixture()
def static_gate(static_policy) -> FileOpGate:
    return FileOpGate(static_policy)


@pytest.fixture()
def edit_gate(edit_policy) -> FileOpGate:
    return FileOpGate(edit_policy)


@pytest.fixture()
def open_gate(open_policy) -> FileOpGate:
    return FileOpGate(open_policy)
