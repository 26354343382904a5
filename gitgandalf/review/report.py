from __future__ import annotations

"""
Report（终端输出）。

注意：
- 这里是**确定性输出**（不依赖 LLM），同样的终态永远得到同样的文本
- 只负责拼文本；写 stdout 还是 stderr 由 CLI 决定
"""

from gitgandalf.review.models import GateOutcome

PREFIX = "Git Gandalf"


def render_outcome(outcome: GateOutcome) -> str:
    """
    将一次运行的终态拼成终端文本。

    - empty：一行提示
    - skipped：说明跳过原因（不阻塞提交）
    - reviewed：risk / summary / issues / 最终结论
    - aborted：说明中止原因（阻塞提交）
    """
    if outcome.kind == "empty":
        return f"{PREFIX}: no staged changes."

    if outcome.kind == "skipped":
        return f"{PREFIX}: review skipped ({outcome.reason}). Commit allowed."

    if outcome.kind == "aborted":
        return f"{PREFIX}: INTERNAL ERROR\nReason: {outcome.reason}\nCommit blocked."

    lines: list[str] = []
    decision = outcome.decision
    if decision is not None:
        lines.append(f"{PREFIX}: risk {decision.risk}")
        lines.append(f"Summary: {decision.summary}")
        if decision.issues:
            lines.append("Issues:")
            for issue in decision.issues:
                lines.append(f"- {issue}")

    if outcome.action == "BLOCK":
        lines.append("Commit blocked.")
    elif outcome.action == "WARN":
        lines.append("Warning: review the issues above. Commit allowed.")
    else:
        lines.append("Commit allowed.")
    return "\n".join(lines)
