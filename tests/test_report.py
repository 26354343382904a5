from __future__ import annotations

from gitgandalf.review.models import Decision
from gitgandalf.review.models import GateOutcome
from gitgandalf.review.report import render_outcome


def test_render_empty() -> None:
    assert render_outcome(GateOutcome(kind="empty", action="ALLOW")) == "Git Gandalf: no staged changes."


def test_render_skipped_mentions_reason() -> None:
    text = render_outcome(GateOutcome(kind="skipped", action="ALLOW", reason="timeout: too slow"))
    assert "review skipped (timeout: too slow)" in text
    assert "Commit allowed." in text


def test_render_blocked_lists_issues() -> None:
    decision = Decision(risk="HIGH", issues=["hardcoded API key", "rm -rf /"], summary="secret detected")
    text = render_outcome(GateOutcome(kind="reviewed", action="BLOCK", decision=decision))
    assert text.splitlines() == [
        "Git Gandalf: risk HIGH",
        "Summary: secret detected",
        "Issues:",
        "- hardcoded API key",
        "- rm -rf /",
        "Commit blocked.",
    ]


def test_render_warn_without_issues() -> None:
    decision = Decision(risk="MEDIUM", issues=[], summary="new logic")
    text = render_outcome(GateOutcome(kind="reviewed", action="WARN", decision=decision))
    assert "Issues:" not in text
    assert text.endswith("Warning: review the issues above. Commit allowed.")


def test_render_aborted() -> None:
    text = render_outcome(GateOutcome(kind="aborted", action="BLOCK", reason="LLM returned invalid JSON syntax."))
    assert "INTERNAL ERROR" in text
    assert "Reason: LLM returned invalid JSON syntax." in text
