from __future__ import annotations

"""
Policy（risk -> action 的纯函数映射）。

注意：
- 映射必须是全函数：未知值一律 ALLOW，永不抛错
- 正常流程中未知值不可达（Bouncer 已经拦住）
"""

from gitgandalf.review.models import PolicyAction

_ACTION_BY_RISK: dict[str, PolicyAction] = {
    "HIGH": "BLOCK",
    "MEDIUM": "WARN",
    "LOW": "ALLOW",
}


def decide_action(risk: str) -> PolicyAction:
    return _ACTION_BY_RISK.get(risk, "ALLOW")


def exit_code_for(action: PolicyAction) -> int:
    """与 git hook 的约定：只有 BLOCK 返回非 0。"""
    return 1 if action == "BLOCK" else 0
