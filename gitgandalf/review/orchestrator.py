"""
Gate Orchestrator（核心流程编排）。

关键思想：
- **流程由工程代码控制**：明确的状态序列，每次运行只有一个终态
- **LLM 只负责“判断”**：它的输出必须先过 Bouncer，才会进入 policy

状态：
Collecting -> Guarding -> Summarizing -> Invoking -> Normalizing -> Deciding -> Terminated

失败分类（按异常类型，不做字符串匹配）：
- `InfrastructureError`：模型不可用，fail open（跳过并允许）
- 其他任何错误：fail closed（中止，退出码 1）
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from dataclasses import dataclass

from gitgandalf.errors import DiffStreamError
from gitgandalf.errors import GandalfError
from gitgandalf.errors import InfrastructureError
from gitgandalf.errors import OversizedDiffError
from gitgandalf.llm.client import ModelGateway
from gitgandalf.review.diff_parser import summarize_diff
from gitgandalf.review.models import GateOutcome
from gitgandalf.review.normalizer import normalize_response
from gitgandalf.review.policy import decide_action
from gitgandalf.review.prompt import SYSTEM_PROMPT
from gitgandalf.review.prompt import build_user_payload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiffAccumulator:
    """收集阶段的累加器（不可变，逐块替换）。"""

    chunks: tuple[bytes, ...] = ()
    byte_count: int = 0


def accumulate(acc: DiffAccumulator, chunk: bytes) -> DiffAccumulator:
    return DiffAccumulator(chunks=acc.chunks + (chunk,), byte_count=acc.byte_count + len(chunk))


def exceeds_limit(acc: DiffAccumulator, max_bytes: int) -> bool:
    return acc.byte_count > max_bytes


def normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


async def collect_diff(chunks: AsyncIterable[bytes], max_bytes: int) -> str:
    """
    读取整个输入流并返回规范化后的 diff 文本。

    - 每读一块就检查一次上限：超过立即中止，不再继续读
    - **失败**：超限抛 `OversizedDiffError`；读流失败抛 `DiffStreamError`
    """
    acc = DiffAccumulator()
    try:
        async for chunk in chunks:
            acc = accumulate(acc=acc, chunk=chunk)
            if exceeds_limit(acc=acc, max_bytes=max_bytes):
                raise OversizedDiffError(byte_count=acc.byte_count, max_bytes=max_bytes)
    except OSError as exc:
        raise DiffStreamError(f"Failed to read diff stream: {exc}") from exc

    text = b"".join(acc.chunks).decode("utf-8", errors="replace")
    return normalize_line_endings(text=text)


@dataclass(frozen=True)
class GateOrchestrator:
    """Orchestrator 运行时依赖集合。"""

    gateway: ModelGateway
    max_diff_bytes: int


def build_gate_orchestrator(gateway: ModelGateway, max_diff_bytes: int) -> GateOrchestrator:
    if max_diff_bytes <= 0:
        raise ValueError("max_diff_bytes must be > 0")
    return GateOrchestrator(gateway=gateway, max_diff_bytes=max_diff_bytes)


async def review_diff(orchestrator: GateOrchestrator, diff: str) -> GateOutcome:
    """
    对一段已收集的 diff 跑完 Guarding -> Deciding。

    注意：这里不捕获异常，失败分类统一在 `run_gate` 做。
    """
    logger.debug("state=Guarding")
    if not diff.strip():
        logger.info("No staged changes, nothing to review")
        return GateOutcome(kind="empty", action="ALLOW", reason="nothing to review")

    logger.debug("state=Summarizing")
    metadata = summarize_diff(diff=diff)
    logger.info(
        f"Diff summary: files={metadata.files_changed}, "
        f"+{metadata.lines_added}/-{metadata.lines_removed}"
    )

    logger.debug("state=Invoking")
    raw_reply = await orchestrator.gateway.request_judgment(
        system_prompt=SYSTEM_PROMPT,
        user_payload=build_user_payload(metadata=metadata, diff=diff),
    )

    logger.debug("state=Normalizing")
    decision = normalize_response(raw=raw_reply)

    logger.debug("state=Deciding")
    action = decide_action(risk=decision.risk)
    logger.info(f"Judgment: risk={decision.risk}, action={action}, issues={len(decision.issues)}")
    return GateOutcome(kind="reviewed", action=action, decision=decision, metadata=metadata)


async def run_gate(orchestrator: GateOrchestrator, chunks: AsyncIterable[bytes]) -> GateOutcome:
    """
    跑一次完整 gate，返回唯一终态（不抛异常）。

    - 输入过大 / 读流失败：在任何模型调用之前 fail closed
    - 模型不可用：fail open，返回 skipped
    - 解析/校验失败或其他内部错误：fail closed
    """
    logger.debug("state=Collecting")
    try:
        diff = await collect_diff(chunks=chunks, max_bytes=orchestrator.max_diff_bytes)
        outcome = await review_diff(orchestrator=orchestrator, diff=diff)
    except InfrastructureError as exc:
        logger.warning(f"Review skipped ({exc.reason}): {exc}")
        outcome = GateOutcome(kind="skipped", action="ALLOW", reason=f"{exc.reason}: {exc}")
    except GandalfError as exc:
        logger.error(f"Gate aborted: {exc}")
        outcome = GateOutcome(kind="aborted", action="BLOCK", reason=str(exc))
    except Exception as exc:
        logger.exception("Gate aborted by unexpected error")
        outcome = GateOutcome(kind="aborted", action="BLOCK", reason=f"internal error: {exc}")

    logger.debug(f"state=Terminated kind={outcome.kind} action={outcome.action}")
    return outcome
