"""Tests for path validity, edit/create scope and the touch budget.

Covers: INVALID_PATH, PATCH_OUT_OF_SCOPE, CREATE_OUT_OF_SCOPE,
TOUCH_BUDGET_EXCEEDED, budget monotonicity, and that a rejected event
leaves the gate free to accept a corrected retry.
"""
from __future__ import annotations

import pytest

from fileop_guard.domain.events import DeleteEvent, PatchMode
from fileop_guard.domain.policy import WritePolicy
from fileop_guard.gate.gate import FileOpGate
from tests.gate.conftest import code_of, end, start, write


class TestInvalidPath:

    @pytest.mark.parametrize("raw", ["", "   ", "../outside.js", "http://cdn/x.js", "C:/x.js", "~/x.js"])
    def test_unresolvable_path(self, open_gate, raw):
        assert code_of(open_gate.check(start(raw))) == "INVALID_PATH"

    def test_invalid_path_costs_nothing(self):
        gate = FileOpGate(WritePolicy(allowed_create_rules=("**",)))
        gate.check(start("../x.js"))
        assert write(gate, "a.js", "console.log(1);").allowed

    def test_path_is_normalized_before_checks(self, edit_gate):
        assert edit_gate.check(start("./SRC\\app.js", PatchMode.EDIT)).allowed


class TestEditScope:

    def test_edit_of_allowed_path(self, edit_gate):
        assert write(edit_gate, "src/app.js", "const a = 1;\n", PatchMode.EDIT).allowed

    def test_edit_outside_scope(self, edit_gate):
        verdict = edit_gate.check(start("src/other.js", PatchMode.EDIT))
        assert code_of(verdict) == "PATCH_OUT_OF_SCOPE"
        assert verdict.violation.path == "src/other.js"

    def test_edit_of_file_created_this_session(self, edit_gate):
        assert write(edit_gate, "src/components/Nav.js", "export const Nav = 1;\n").allowed
        assert write(edit_gate, "src/components/Nav.js", "export const Nav = 2;\n", PatchMode.EDIT).allowed

    def test_scope_not_strict_outside_edit_mode(self):
        gate = FileOpGate(WritePolicy(
            allowed_edit_paths=frozenset({"a.js"}), max_touched_files=2,
        ))
        assert gate.check(start("b.js", PatchMode.EDIT)).allowed


class TestCreateScope:

    def test_create_matching_rule(self, edit_gate):
        assert edit_gate.check(start("src/components/Card.js")).allowed

    def test_create_outside_rules(self, edit_gate):
        verdict = edit_gate.check(start("src/lib/util.js"))
        assert code_of(verdict) == "CREATE_OUT_OF_SCOPE"
        assert verdict.violation.extra["allowedCreateRules"] == ["src/components/*.js"]

    def test_create_with_no_rules(self):
        gate = FileOpGate(WritePolicy())
        assert code_of(gate.check(start("a.js"))) == "CREATE_OUT_OF_SCOPE"

    def test_rejected_create_then_corrected_retry(self, edit_gate):
        assert not edit_gate.check(start("src/lib/util.js")).allowed
        assert edit_gate.check(start("src/components/util.js")).allowed
        snap = edit_gate.snapshot()
        assert snap.touched_paths == ("src/components/util.js",)
        assert snap.created_paths == ("src/components/util.js",)


class TestTouchBudget:

    def test_default_budget_is_one_file(self):
        gate = FileOpGate(WritePolicy(allowed_create_rules=("**",)))
        assert write(gate, "a.txt", "x").allowed
        verdict = gate.check(start("b.txt"))
        assert code_of(verdict) == "TOUCH_BUDGET_EXCEEDED"
        assert "(2/1)" in verdict.violation.message
        assert verdict.violation.extra["maxTouchedFiles"] == 1
        assert verdict.violation.extra["touchedPaths"] == ["a.txt"]

    def test_retouching_a_path_is_free(self):
        gate = FileOpGate(WritePolicy(allowed_create_rules=("**",)))
        assert write(gate, "a.txt", "x").allowed
        assert write(gate, "A.txt", "y", PatchMode.EDIT).allowed
        assert gate.snapshot().touched_count == 1

    def test_blocked_event_does_not_spend_budget(self):
        gate = FileOpGate(WritePolicy(allowed_create_rules=("a.txt",)))
        assert code_of(gate.check(start("b.txt"))) == "CREATE_OUT_OF_SCOPE"
        assert gate.snapshot().touched_count == 0
        assert gate.check(start("a.txt")).allowed

    def test_touched_count_never_decreases(self, open_gate):
        counts = []
        write(open_gate, "a.txt", "x")
        counts.append(open_gate.snapshot().touched_count)
        open_gate.check(DeleteEvent(path="a.txt"))
        counts.append(open_gate.snapshot().touched_count)
        write(open_gate, "b.txt", "y")
        counts.append(open_gate.snapshot().touched_count)
        assert counts == sorted(counts) == [1, 1, 2]

    def test_adaptive_budget(self):
        policy = WritePolicy(
            allowed_edit_paths=frozenset({"a.js"}),
            allowed_create_rules=("**",),
            touch_budget_mode="adaptive",
        )
        gate = FileOpGate(policy)
        assert gate.budget == 1 + 1 + 2
        for name in ("a.js", "b.txt", "c.txt", "d.txt"):
            assert gate.check(start(name, PatchMode.EDIT)).allowed
        assert code_of(gate.check(start("e.txt", PatchMode.EDIT))) == "TOUCH_BUDGET_EXCEEDED"

    def test_end_without_start_is_ignored(self, open_gate):
        assert open_gate.check(end("never-started.js")).allowed


def test_sessions_do_not_share_state(open_policy):
    first, second = FileOpGate(open_policy), FileOpGate(open_policy)
    write(first, "a.txt", "x")
    assert first.snapshot().touched_count == 1
    assert second.snapshot().touched_count == 0
