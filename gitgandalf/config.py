"""
Gate 配置加载。

设计目标：
- **默认可用**：本地模型服务（LM Studio 默认端口）开箱即用，不配置也能跑
- **类型安全**：使用 Pydantic 校验 URL/正整数，非法值直接报错
- **可测试**：核心加载函数接收 `environ` 显式输入，便于单元测试
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field, HttpUrl

DEFAULT_BASE_URL = "http://127.0.0.1:1234"
DEFAULT_TIMEOUT_MS = 100_000
DEFAULT_MAX_DIFF_BYTES = 500_000
DEFAULT_API_KEY = "lm-studio"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class GandalfConfig(BaseModel):
    """
    gate 运行所需的配置集合。

    - base_url：OpenAI-compatible 服务地址（不含 `/v1`）
    - timeout_ms：两次网络调用共享的总时限
    - max_diff_bytes：输入 diff 的字节上限（超过即 fail closed）
    - strict_client_errors：4xx 是否视为致命配置错误（默认跳过）
    """

    base_url: HttpUrl = Field(default=DEFAULT_BASE_URL, validate_default=True)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    max_diff_bytes: int = Field(default=DEFAULT_MAX_DIFF_BYTES, gt=0)
    strict_client_errors: bool = False
    api_key: str = Field(default=DEFAULT_API_KEY, min_length=1)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


def load_config_from_env(environ: Mapping[str, str]) -> GandalfConfig:
    """
    从环境变量加载并校验配置。

    - **输入**：`environ`（例如 `os.environ`）
    - **输出**：`GandalfConfig`（未设置/为空的项使用默认值）
    - **失败**：值非法则抛 `ValueError`
    """
    overrides: dict[str, object] = {}
    env_keys: tuple[tuple[str, str], ...] = (
        ("GITGANDALF_BASE_URL", "base_url"),
        ("GITGANDALF_TIMEOUT_MS", "timeout_ms"),
        ("GITGANDALF_MAX_DIFF_BYTES", "max_diff_bytes"),
        ("GITGANDALF_API_KEY", "api_key"),
    )
    for env_key, field_name in env_keys:
        value = environ.get(env_key, "").strip()
        if value:
            overrides[field_name] = value

    strict = environ.get("GITGANDALF_STRICT_CLIENT_ERRORS", "").strip().lower()
    if strict:
        if strict not in _TRUE_VALUES + _FALSE_VALUES:
            raise ValueError(f"Invalid GITGANDALF_STRICT_CLIENT_ERRORS: {strict}")
        overrides["strict_client_errors"] = strict in _TRUE_VALUES

    # 交给 Pydantic 做类型校验（pydantic.ValidationError 是 ValueError 的子类）
    return GandalfConfig.model_validate(overrides)


def apply_overrides(config: GandalfConfig, **overrides: object) -> GandalfConfig:
    """命令行参数覆盖环境配置；值为 None 的项忽略。"""
    values = config.model_dump(mode="json")
    values.update({key: value for key, value in overrides.items() if value is not None})
    return GandalfConfig.model_validate(values)


def base_url_str(config: GandalfConfig) -> str:
    return str(config.base_url).rstrip("/")
