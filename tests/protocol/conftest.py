"""Shared helpers for router tests.

Routers report through a callback; these helpers collect the events and
re-assemble per-path content so tests can assert on whole files.
"""
from __future__ import annotations

import pytest

from fileop_guard.domain.events import FileOpEvent, PatchEvent, Phase
from fileop_guard.protocol.envelope import JsonEnvelopeRouter
from fileop_guard.protocol.router import MarkerRouter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def feed(router, text: str, size: int) -> None:
    """Push text in fixed-size fragments."""
    for i in range(0, len(text), size):
        router.push(text[i:i + size])


def contents(events: list[FileOpEvent]) -> dict[str, str]:
    """Concatenated CHUNK text per path, for paths that reached END."""
    bodies: dict[str, list[str]] = {}
    done: dict[str, str] = {}
    for ev in events:
        if not isinstance(ev, PatchEvent):
            continue
        if ev.phase is Phase.START:
            bodies[ev.path] = []
        elif ev.phase is Phase.CHUNK:
            bodies[ev.path].append(ev.chunk)
        else:
            done[ev.path] = done.get(ev.path, "") + "".join(bodies.pop(ev.path))
    return done


def phases(events: list[FileOpEvent], path: str) -> list[str]:
    return [ev.phase.value for ev in events if ev.path == path]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def events() -> list[FileOpEvent]:
    return []


@pytest.fixture()
def marker_router(events) -> MarkerRouter:
    return MarkerRouter(events.append)


@pytest.fixture()
def json_router(events) -> JsonEnvelopeRouter:
    return JsonEnvelopeRouter(events.append)
