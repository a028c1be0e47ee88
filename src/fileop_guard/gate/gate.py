"""FileOpGate: per-session policy check for every decoded file operation.

The central decision logic. For a patch START:
  1. Resolve the path (INVALID_PATH)
  2. Charge the touch budget for a new distinct path (TOUCH_BUDGET_EXCEEDED)
  3. Check edit/create scope (PATCH_OUT_OF_SCOPE / CREATE_OUT_OF_SCOPE)
  4. Static-profile rules (filetype, canonical filename, HTML first)
  5. Duplicate purpose (DUPLICATE_PURPOSE_CREATE)

For a patch END, once the buffer is complete:
  6. Empty create (EMPTY_CREATE_CONTENT)
  7. Language purity (LANGUAGE_MISMATCH_*, STATIC_INLINE_LANGUAGE_MIXED)

DELETE and MOVE run 1-3 plus the sensitive-file guard.

Every check runs before any state is written. A blocked verdict leaves
the budget, the created set and the purpose registry exactly as they
were, so a corrected retry is judged on its own merits.

Thread safety: none. One gate per session, fed sequentially.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

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
from fileop_guard.domain.verdicts import Verdict, ViolationCode
from fileop_guard.gate import profiles, signals
from fileop_guard.gate.globs import CreateRuleMatcher
from fileop_guard.gate.state import ActivePatch, GateState
from fileop_guard.paths import extension, path_key, sanitize_path

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GateSnapshot:
    """Read-only view of a gate's accounting, for logs and repair prompts."""
    touched_count: int
    touched_paths: tuple[PathKey, ...]
    created_paths: tuple[PathKey, ...]
    budget: int
    static_profile: bool


class FileOpGate:
    """Stateful validator for one generation session.

    Usage:
        gate = FileOpGate(policy)
        verdict = gate.check(event)
        if not verdict.allowed:
            ...  # do not apply; send verdict.violation back to the model
    """

    def __init__(self, policy: WritePolicy) -> None:
        self._policy = policy
        self._create_rules = CreateRuleMatcher(policy.allowed_create_rules)
        self._edit_keys = frozenset(
            k for k in (path_key(p) for p in policy.allowed_edit_paths) if k
        )
        self._budget = policy.touch_budget()
        self._strict_edit_scope = policy.strict_edit_scope
        self._static_profile = self._create_rules.has_basename(profiles.STATIC_PROFILE_MARKER)
        self._state = GateState()
        for raw in policy.manifest_paths:
            path = sanitize_path(raw)
            if not path:
                continue
            self._state.register(path)
            if profiles.is_html(path):
                self._state.seen_html_in_run = True

    @property
    def policy(self) -> WritePolicy:
        return self._policy

    @property
    def state(self) -> GateState:
        return self._state

    @property
    def budget(self) -> int:
        return self._budget

    @property
    def static_profile(self) -> bool:
        return self._static_profile

    def check(self, event: FileOpEvent) -> Verdict:
        """Judge one event. Never raises; unpoliced combinations are allowed."""
        if isinstance(event, PatchEvent):
            if event.phase is Phase.START:
                verdict = self._check_patch_start(event)
            elif event.phase is Phase.CHUNK:
                verdict = self._accumulate(event)
            else:
                verdict = self._check_patch_end(event)
        elif isinstance(event, DeleteEvent):
            verdict = self._check_delete(event)
        elif isinstance(event, MoveEvent):
            verdict = self._check_move(event)
        else:
            return Verdict.allow()

        if verdict.violation is not None:
            log.warning(
                "blocked %s/%s %s: %s",
                event.op.value, event.phase.value,
                verdict.violation.path, verdict.violation.code.value,
            )
        elif event.phase is not Phase.CHUNK:
            log.debug("allowed %s/%s %s", event.op.value, event.phase.value, event.path)
        return verdict

    def snapshot(self) -> GateSnapshot:
        return GateSnapshot(
            touched_count=len(self._state.touched_paths),
            touched_paths=tuple(sorted(self._state.touched_paths)),
            created_paths=tuple(sorted(self._state.created_paths)),
            budget=self._budget,
            static_profile=self._static_profile,
        )

    # ------------------------------------------------------------------
    # patch
    # ------------------------------------------------------------------

    def _check_patch_start(self, event: PatchEvent) -> Verdict:
        path = sanitize_path(event.path)
        if not path:
            return Verdict.block(
                ViolationCode.INVALID_PATH, "Patch operation without a resolvable path",
                str(event.path or "").strip(),
            )
        key = path_key(path)

        fresh = self._state.new_touches(path)
        over = self._budget_violation(path, fresh)
        if over is not None:
            return over

        if event.mode is PatchMode.EDIT or key in self._state.created_paths:
            if (
                self._strict_edit_scope
                and key not in self._edit_keys
                and key not in self._state.created_paths
            ):
                return Verdict.block(
                    ViolationCode.PATCH_OUT_OF_SCOPE,
                    "Edit path is outside write policy scope",
                    path,
                )
            self._commit_touches(fresh, path)
            self._state.active_patches[key] = ActivePatch(path=path, mode=event.mode)
            return Verdict.allow()

        if not self._create_rules.matches(path):
            return Verdict.block(
                ViolationCode.CREATE_OUT_OF_SCOPE,
                "Create path is outside allowed create rules",
                path,
                allowedCreateRules=self._create_rules.patterns,
            )

        if self._static_profile:
            blocked = self._check_static_create(path)
            if blocked is not None:
                return blocked

        purpose = profiles.purpose_key(path)
        existing = self._state.canonical_for(path)
        if (
            purpose in profiles.SINGLETON_PURPOSES
            and existing is not None
            and path_key(existing) != key
        ):
            return Verdict.block(
                ViolationCode.DUPLICATE_PURPOSE_CREATE,
                f"Duplicate-purpose create blocked; canonical file already exists at {existing}",
                path,
                existingPath=existing,
            )

        self._commit_touches(fresh, path)
        registered = key not in self._state.purpose_by_path
        self._state.register(path)
        self._state.created_paths.add(key)
        self._state.active_patches[key] = ActivePatch(
            path=path, mode=PatchMode.CREATE, created=True, registered=registered,
        )
        return Verdict.allow()

    def _check_static_create(self, path: NormalizedPath) -> Verdict | None:
        ext = extension(path)
        if ext not in profiles.STATIC_ALLOWED_EXTENSIONS:
            return Verdict.block(
                ViolationCode.STATIC_UNSUPPORTED_FILETYPE,
                f"Static HTML/CSS/JS project cannot contain .{ext or '(none)'} files",
                path,
                allowedExtensions=sorted(profiles.STATIC_ALLOWED_EXTENSIONS),
            )
        if profiles.forbidden_static_basename(path):
            canonical = profiles.STATIC_CANONICAL_BASENAMES[profiles.purpose_key(path)]
            return Verdict.block(
                ViolationCode.FORBIDDEN_STATIC_FILENAME,
                f"Static projects use {canonical} as the single file of this kind",
                path,
                canonicalName=canonical,
            )
        if ext in profiles.STATIC_ORDERED_EXTENSIONS and not self._state.seen_html_in_run:
            return Verdict.block(
                ViolationCode.STATIC_ORDER_HTML_FIRST,
                "Emit the HTML page before its stylesheet or script",
                path,
            )
        return None

    def _accumulate(self, event: PatchEvent) -> Verdict:
        active = self._state.active_patches.get(path_key(event.path))
        if active is not None and event.chunk:
            active.append(event.chunk)
        return Verdict.allow()

    def _check_patch_end(self, event: PatchEvent) -> Verdict:
        active = self._state.active_patches.pop(path_key(event.path), None)
        if active is None:
            # START was blocked or never seen; nothing to judge.
            return Verdict.allow()

        content = active.content
        verdict = Verdict.allow()
        # only a patch whose START created the path must bring content
        if active.mode is PatchMode.CREATE and active.created and not content.strip():
            verdict = Verdict.block(
                ViolationCode.EMPTY_CREATE_CONTENT,
                "Created file has no content",
                active.path,
            )
        elif content.strip():
            verdict = self._check_language(active.path, content)

        if not verdict.allowed:
            self._rollback_create(active)
        return verdict

    def _check_language(self, path: NormalizedPath, content: str) -> Verdict:
        ext = extension(path)
        if ext in profiles.JS_EXTENSIONS:
            sig = signals.score(content)
            if sig.dominated_by(sig.style, sig.script):
                return self._mismatch(ViolationCode.LANGUAGE_MISMATCH_JS, "stylesheet", path, sig)
        elif ext in profiles.CSS_EXTENSIONS:
            sig = signals.score(content)
            if sig.dominated_by(sig.script, sig.style) or sig.dominated_by(sig.markup, sig.style):
                return self._mismatch(ViolationCode.LANGUAGE_MISMATCH_CSS, "script or markup", path, sig)
        elif ext in profiles.HTML_EXTENSIONS:
            sig = signals.score(signals.strip_inline_blocks(content))
            if sig.dominated_by(sig.script, sig.markup) or sig.dominated_by(sig.style, sig.markup):
                return self._mismatch(ViolationCode.LANGUAGE_MISMATCH_HTML, "script or stylesheet", path, sig)
            if self._static_profile and signals.has_inline_code(content):
                return Verdict.block(
                    ViolationCode.STATIC_INLINE_LANGUAGE_MIXED,
                    "Static HTML must link style.css and script.js instead of inline <style>/<script>",
                    path,
                )
        return Verdict.allow()

    @staticmethod
    def _mismatch(
        code: ViolationCode,
        found: str,
        path: NormalizedPath,
        sig: signals.LanguageSignals,
    ) -> Verdict:
        return Verdict.block(
            code,
            f"Content of {path} looks like {found}, not its declared file type",
            path,
            signals={"script": sig.script, "style": sig.style, "markup": sig.markup},
        )

    def _rollback_create(self, active: ActivePatch) -> None:
        if not active.created:
            return
        self._state.created_paths.discard(path_key(active.path))
        if active.registered:
            self._state.unregister(active.path)

    # ------------------------------------------------------------------
    # delete / move
    # ------------------------------------------------------------------

    def _check_delete(self, event: DeleteEvent) -> Verdict:
        path = sanitize_path(event.path)
        if not path:
            return Verdict.block(
                ViolationCode.INVALID_PATH, "Delete operation without a resolvable path",
                str(event.path or "").strip(),
            )
        key = path_key(path)

        fresh = self._state.new_touches(path)
        over = self._budget_violation(path, fresh)
        if over is not None:
            return over

        if self._strict_edit_scope and not self._editable(key):
            return Verdict.block(
                ViolationCode.DELETE_OUT_OF_SCOPE,
                "Delete path is outside write policy scope",
                path,
            )
        if profiles.is_sensitive(path) and not profiles.has_security_reason(event.reason):
            return Verdict.block(
                ViolationCode.SENSITIVE_DELETE_BLOCKED,
                "Sensitive file delete blocked without explicit safety reason",
                path,
            )

        self._commit_touches(fresh, None)
        self._state.unregister(path)
        self._state.created_paths.discard(key)
        self._state.active_patches.pop(key, None)
        return Verdict.allow()

    def _check_move(self, event: MoveEvent) -> Verdict:
        from_path = sanitize_path(event.path)
        to_path = sanitize_path(event.to_path)
        if not from_path or not to_path:
            return Verdict.block(
                ViolationCode.INVALID_MOVE,
                "Move operation missing source/target path",
                from_path or to_path or str(event.path or "").strip(),
            )
        from_key, to_key = path_key(from_path), path_key(to_path)

        fresh = self._state.new_touches(from_path, to_path)
        over = self._budget_violation(from_path if from_key in fresh else to_path, fresh)
        if over is not None:
            return over

        if self._strict_edit_scope:
            if not self._editable(from_key):
                return Verdict.block(
                    ViolationCode.MOVE_OUT_OF_SCOPE,
                    "Move source path is outside write policy scope",
                    from_path,
                )
            if to_key not in self._edit_keys and not self._create_rules.matches(to_path):
                return Verdict.block(
                    ViolationCode.MOVE_TARGET_OUT_OF_SCOPE,
                    "Move target path is outside allowed scope",
                    to_path,
                )
        if profiles.is_sensitive(from_path) and not profiles.has_security_reason(event.reason):
            return Verdict.block(
                ViolationCode.SENSITIVE_MOVE_BLOCKED,
                "Sensitive file move blocked without explicit safety reason",
                from_path,
            )

        existing = self._state.canonical_for(to_path)
        if (
            profiles.purpose_key(to_path) in profiles.SINGLETON_PURPOSES
            and existing is not None
            and path_key(existing) not in (from_key, to_key)
        ):
            return Verdict.block(
                ViolationCode.DUPLICATE_PURPOSE_MOVE,
                f"Move would duplicate the canonical file at {existing}",
                to_path,
                existingPath=existing,
            )

        self._commit_touches(fresh, to_path)
        self._state.unregister(from_path)
        self._state.register(to_path)
        self._state.created_paths.discard(from_key)
        # the moved file is this session's to edit under its new name
        self._state.created_paths.add(to_key)
        return Verdict.allow()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _editable(self, key: PathKey) -> bool:
        return key in self._edit_keys or key in self._state.created_paths

    def _budget_violation(self, path: NormalizedPath, fresh: list[PathKey]) -> Verdict | None:
        if not fresh:
            return None
        wanted = len(self._state.touched_paths) + len(fresh)
        if wanted <= self._budget:
            return None
        return Verdict.block(
            ViolationCode.TOUCH_BUDGET_EXCEEDED,
            f"Touched files exceeded budget ({wanted}/{self._budget})",
            path,
            maxTouchedFiles=self._budget,
            touchedPaths=sorted(self._state.touched_paths),
        )

    def _commit_touches(self, fresh: list[PathKey], html_candidate: NormalizedPath | None) -> None:
        self._state.touched_paths.update(fresh)
        if html_candidate is not None and profiles.is_html(html_candidate):
            self._state.seen_html_in_run = True
