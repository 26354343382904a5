from __future__ import annotations

"""
错误类型（带标签的失败分类）。

为什么需要这个模块：
- gate 的退出行为取决于“失败属于哪一类”
- 分类在**出错的地方**完成（网关标记 infrastructure，Bouncer 标记 validation），
  orchestrator 只按类型分派，不做字符串匹配
"""


class GandalfError(RuntimeError):
    """所有 gate 内部错误的基类。"""

    pass


class InfrastructureError(GandalfError):
    """
    模型服务不可用（连接失败 / 超时 / 非 2xx）。

    - reason: `timeout` | `connection` | `status`
    - 处理策略：fail open（跳过 review，允许提交）
    """

    def __init__(self, reason: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class JudgmentValidationError(GandalfError):
    """模型回复无法解析或不符合 schema：fail closed。"""

    pass


class OversizedDiffError(GandalfError):
    """diff 超过配置的最大字节数（在调用模型之前中止）。"""

    def __init__(self, byte_count: int, max_bytes: int) -> None:
        super().__init__(f"Diff exceeds maximum size: {byte_count} > {max_bytes} bytes")
        self.byte_count = byte_count
        self.max_bytes = max_bytes


class DiffStreamError(GandalfError):
    """读取输入流失败。"""

    pass


class ConfigurationError(GandalfError):
    """配置非法，或 strict 模式下模型服务返回 4xx。"""

    pass


class HookInstallError(GandalfError):
    """无法安装 hook（不是 git 仓库，或已有其他 hook 且未指定 force）。"""

    pass
