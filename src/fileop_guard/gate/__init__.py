"""File-operation policy gate.

One FileOpGate per generation session. Every event the router emits goes
through gate.check() before it touches the workspace; a blocked verdict
carries the violation data needed to build a repair prompt.
"""
from fileop_guard.gate.gate import FileOpGate, GateSnapshot
from fileop_guard.gate.globs import CreateRuleMatcher, glob_to_regex
from fileop_guard.gate.repair import build_repair_prompt
from fileop_guard.gate.signals import LanguageSignals, score
from fileop_guard.gate.state import ActivePatch, GateState
from fileop_guard.paths import basename, extension, path_key, sanitize_path

__all__ = [
    "FileOpGate",
    "GateSnapshot",
    "CreateRuleMatcher",
    "glob_to_regex",
    "basename",
    "extension",
    "path_key",
    "sanitize_path",
    "build_repair_prompt",
    "LanguageSignals",
    "score",
    "ActivePatch",
    "GateState",
]
