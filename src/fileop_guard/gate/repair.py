"""Corrective instruction sent back to the model after a blocked operation."""
from __future__ import annotations

import json

from fileop_guard.domain.policy import WritePolicy
from fileop_guard.domain.verdicts import Violation


def build_repair_prompt(
    violation: Violation,
    policy: WritePolicy,
    original_prompt: str = "",
) -> str:
    """Restate the violation and the active policy, then the original request.

    Sections are tagged ([VIOLATION], [WRITE_POLICY], ...) so the prompt
    builder on the provider side can find and replace them on a second retry.
    """
    lines = [
        "[POLICY_REPAIR_ATTEMPT]",
        "Your last patch stream violated strict write policy.",
        "Output ONLY valid file-op protocol markers and full file contents.",
        "Do not output explanations.",
        "",
        "[VIOLATION]",
        f"code={violation.code.value}",
        f"message={violation.message}",
    ]
    if violation.path:
        lines.append(f"path={violation.path}")
    existing = violation.extra.get("existingPath")
    if existing:
        lines.append(f"existingPath={existing}")
        lines.append(f"Edit {existing} with [[EDIT_NODE: {existing}]] instead of creating a new file.")
    lines += [
        "",
        "[WRITE_POLICY]",
        json.dumps(policy.to_dict(), indent=2),
    ]
    if original_prompt:
        lines += ["", "[ORIGINAL_REQUEST]", original_prompt]
    return "\n".join(lines)
