"""
Gate 领域模型（Pydantic）。

用途：
- 明确各阶段输入/输出的数据结构
- `Decision` 只允许由 normalizer 构造（Bouncer 是唯一入口）
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RiskLevel = Literal["LOW", "MEDIUM", "HIGH"]
PolicyAction = Literal["ALLOW", "WARN", "BLOCK"]
OutcomeKind = Literal["empty", "skipped", "reviewed", "aborted"]

RISK_LEVELS: tuple[str, ...] = ("LOW", "MEDIUM", "HIGH")


class DiffMetadata(BaseModel):
    """从原始 diff 提取的元数据（只作为模型上下文）。"""

    model_config = ConfigDict(frozen=True)

    files_changed: int = Field(ge=0)
    files: list[str] = Field(default_factory=list)
    lines_added: int = Field(ge=0)
    lines_removed: int = Field(ge=0)


class Decision(BaseModel):
    """经过完整校验的模型判断。"""

    model_config = ConfigDict(frozen=True)

    risk: RiskLevel
    issues: list[str] = Field(default_factory=list)
    summary: str


class GateOutcome(BaseModel):
    """
    一次运行的唯一终态。

    - empty：没有可审查的内容
    - skipped：模型服务不可用，跳过（fail open）
    - reviewed：拿到了合法判断
    - aborted：致命错误（fail closed）
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    action: PolicyAction
    decision: Decision | None = None
    metadata: DiffMetadata | None = None
    reason: str | None = None
