from __future__ import annotations

import json

import pytest

from gitgandalf.review.normalizer import normalize_response
from gitgandalf.review.policy import decide_action
from gitgandalf.review.policy import exit_code_for


@pytest.mark.parametrize(
    ("raw_risk", "expected"),
    [
        ("HIGH", "BLOCK"),
        ("high", "BLOCK"),
        ("High", "BLOCK"),
        ("MEDIUM", "WARN"),
        ("medium", "WARN"),
        ("Medium", "WARN"),
        ("LOW", "ALLOW"),
        ("low", "ALLOW"),
        ("Low", "ALLOW"),
    ],
)
def test_policy_maps_normalized_risk(raw_risk: str, expected: str) -> None:
    decision = normalize_response(raw=json.dumps({"risk": raw_risk, "issues": [], "summary": "s"}))
    assert decide_action(risk=decision.risk) == expected


@pytest.mark.parametrize("risk", ["", "CRITICAL", "low", "unknown"])
def test_policy_is_total_and_defaults_to_allow(risk: str) -> None:
    assert decide_action(risk=risk) == "ALLOW"


def test_exit_code_only_blocks_on_block() -> None:
    assert exit_code_for("BLOCK") == 1
    assert exit_code_for("WARN") == 0
    assert exit_code_for("ALLOW") == 0
