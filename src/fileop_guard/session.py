"""GenerationSession: one router, one gate, one in-memory project.

Wires the pieces together for a single generation request:
  1. Each fragment of model output goes to the router
  2. Each decoded event goes to the gate
  3. Allowed operations are applied to the file map; blocked ones are
     recorded and their remaining chunks are ignored
  4. finish() closes the stream and returns the completed paths, which
     is the checkpoint a resumed request continues from

Usage:
    session = GenerationSession(policy, base_files={"index.html": html})
    for fragment in stream:
        session.push(fragment)
    session.finish()
    if session.violations:
        retry_prompt = session.repair_prompt()

Thread safety: none. A session serves exactly one request.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from fileop_guard.domain.events import (
    DeleteEvent,
    FileOpEvent,
    MoveEvent,
    PatchEvent,
    PatchMode,
    Phase,
)
from fileop_guard.domain.policy import WritePolicy
from fileop_guard.domain.types import NormalizedPath, PathKey
from fileop_guard.domain.verdicts import Verdict, Violation
from fileop_guard.gate.gate import FileOpGate
from fileop_guard.gate.repair import build_repair_prompt
from fileop_guard.paths import path_key, sanitize_path
from fileop_guard.protocol.detect import AutoRouter, WireFormat, create_router
from fileop_guard.protocol.edits import apply_edit_blocks, has_edit_blocks, parse_edit_blocks
from fileop_guard.protocol.envelope import EnvelopeResult, JsonEnvelopeRouter

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OpRecord:
    """An event and the verdict the gate gave it."""
    event: FileOpEvent
    verdict: Verdict


@dataclass(slots=True)
class _PendingWrite:
    path: NormalizedPath
    mode: PatchMode
    continuation: bool
    chunks: list[str] = field(default_factory=list)


class GenerationSession:
    """Route, police and apply one model response."""

    def __init__(
        self,
        policy: WritePolicy,
        base_files: Mapping[str, str] | None = None,
        wire_format: WireFormat | str = WireFormat.AUTO,
        original_prompt: str = "",
    ) -> None:
        self._policy = policy
        self._original_prompt = original_prompt
        self._gate = FileOpGate(policy)
        self._router = create_router(self._on_event, wire_format)
        self._files: dict[PathKey, tuple[NormalizedPath, str]] = {}
        for raw, content in (base_files or {}).items():
            path = sanitize_path(raw)
            if path:
                self._files[path_key(path)] = (path, content)

        self._pending: dict[PathKey, _PendingWrite] = {}
        self._blocked: set[PathKey] = set()
        self._records: list[OpRecord] = []
        self._violations: list[Violation] = []
        self._missed_edits: dict[NormalizedPath, int] = {}
        self._finished = False

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def gate(self) -> FileOpGate:
        return self._gate

    @property
    def files(self) -> dict[NormalizedPath, str]:
        """Current project contents, keyed by normalized path."""
        return {path: content for path, content in self._files.values()}

    @property
    def records(self) -> list[OpRecord]:
        return list(self._records)

    @property
    def violations(self) -> list[Violation]:
        return list(self._violations)

    @property
    def missed_edits(self) -> dict[NormalizedPath, int]:
        """Per path, how many SEARCH blocks did not match the file."""
        return dict(self._missed_edits)

    @property
    def completed_paths(self) -> list[str]:
        return self._router.completed_paths

    @property
    def finished(self) -> bool:
        return self._finished

    def read(self, path: str) -> str | None:
        entry = self._files.get(path_key(sanitize_path(path)))
        return entry[1] if entry else None

    # ------------------------------------------------------------------
    # stream
    # ------------------------------------------------------------------

    def push(self, fragment: str) -> None:
        if self._finished:
            raise RuntimeError("session already finished")
        self._router.push(fragment)

    def finish(self) -> list[str]:
        """Close the stream; safe to call more than once."""
        if self._finished:
            return self.completed_paths
        completed = self._router.finish()
        self._finished = True
        for key in list(self._pending):
            # the router closes every file it opened, so this only
            # happens when the gate saw a START the router never ended
            log.debug("discarding unfinished write to %s", self._pending.pop(key).path)
        log.info(
            "session finished: %d op(s), %d blocked, %d completed file(s)",
            len(self._records), len(self._violations), len(completed),
        )
        return completed

    def run(self, fragments: Iterable[str]) -> list[str]:
        """Push every fragment, then finish."""
        for fragment in fragments:
            self.push(fragment)
        return self.finish()

    def envelope_result(self) -> EnvelopeResult | None:
        if isinstance(self._router, JsonEnvelopeRouter):
            return self._router.finish_envelope()
        if isinstance(self._router, AutoRouter):
            return self._router.envelope_result()
        return None

    def repair_prompt(self) -> str | None:
        """Corrective prompt for the first blocked operation, if any."""
        if not self._violations:
            return None
        return build_repair_prompt(self._violations[0], self._policy, self._original_prompt)

    # ------------------------------------------------------------------
    # event handling
    # ------------------------------------------------------------------

    def _on_event(self, event: FileOpEvent) -> None:
        verdict = self._gate.check(event)
        self._records.append(OpRecord(event=event, verdict=verdict))
        if verdict.violation is not None:
            self._violations.append(verdict.violation)

        if isinstance(event, PatchEvent):
            self._on_patch(event, verdict)
        elif verdict.allowed and isinstance(event, DeleteEvent):
            self._delete(event)
        elif verdict.allowed and isinstance(event, MoveEvent):
            self._move(event)

    def _on_patch(self, event: PatchEvent, verdict: Verdict) -> None:
        path = sanitize_path(event.path)
        key = path_key(path)
        if event.phase is Phase.START:
            if not verdict.allowed:
                self._blocked.add(key)
                return
            self._blocked.discard(key)
            self._pending[key] = _PendingWrite(
                path=path, mode=event.mode, continuation=event.continuation,
            )
            return

        if key in self._blocked:
            if event.phase is Phase.END:
                self._blocked.discard(key)
            return

        pending = self._pending.get(key)
        if pending is None:
            return
        if event.phase is Phase.CHUNK:
            pending.chunks.append(event.chunk)
            return

        del self._pending[key]
        if verdict.allowed:
            self._apply_write(pending)

    def _apply_write(self, pending: _PendingWrite) -> None:
        body = "".join(pending.chunks)
        key = path_key(pending.path)
        existing = self._files.get(key)
        current = existing[1] if existing else ""
        path = existing[0] if existing else pending.path

        if pending.mode is PatchMode.EDIT:
            if has_edit_blocks(body):
                result = apply_edit_blocks(current, parse_edit_blocks(body))
                if not result.ok:
                    log.warning(
                        "%d edit block(s) did not match %s", len(result.missed), path,
                    )
                    self._missed_edits[path] = self._missed_edits.get(path, 0) + len(result.missed)
                if not result.applied:
                    return
                body = result.content
            elif not body.strip():
                return
        elif pending.continuation:
            body = current + body

        self._files[key] = (path, body)

    def _delete(self, event: DeleteEvent) -> None:
        key = path_key(sanitize_path(event.path))
        if self._files.pop(key, None) is None:
            log.debug("delete of %s: no such file", event.path)

    def _move(self, event: MoveEvent) -> None:
        source = self._files.pop(path_key(sanitize_path(event.path)), None)
        if source is None:
            log.debug("move of %s: no such file", event.path)
            return
        to_path = sanitize_path(event.to_path)
        self._files[path_key(to_path)] = (to_path, source[1])
