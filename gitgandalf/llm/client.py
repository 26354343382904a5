"""
Model Gateway（基于 OpenAI SDK，对接本地 OpenAI-compatible 服务，例如 LM Studio）。

目标：
- **尽量薄**：只做协议适配与错误分类，不校验回复内容（那是 Bouncer 的职责）
- **单一时限**：两次调用（models -> chat/completions）共享同一个 deadline
- **不重试**：`max_retries=0`，失败即返回分类后的错误
- **错误打标签**：传输层失败统一抛 `InfrastructureError`（由 orchestrator 决定 fail open）
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import anyio
import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI
from pydantic import BaseModel

from gitgandalf.errors import ConfigurationError
from gitgandalf.errors import InfrastructureError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_ID = "local-model"
EMPTY_REPLY = "{}"
JUDGMENT_TEMPERATURE = 0.1

# 这些 4xx 属于“服务暂时不可用”，strict 模式下也按跳过处理
_TRANSIENT_CLIENT_STATUSES = (408, 429)


class ChatMessage(BaseModel):
    """OpenAI chat message 的最小结构。"""

    role: str
    content: str


def _normalize_base_url(base_url: str) -> str:
    normalized = base_url.rstrip("/")
    if normalized.endswith("/v1"):
        return normalized
    return f"{normalized}/v1"


class ModelGateway:
    """
    两步网络交换：发现当前模型 id，再请求一次判断。

    注意：
    - deadline 在第一次调用前启动，第二次调用复用同一个 deadline（不重置）
    - 返回值是原始文本，不做任何校验
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        timeout_seconds: float,
        api_key: str,
        strict_client_errors: bool = False,
    ) -> None:
        """
        - base_url: 服务地址（`/v1` 可带可不带）
        - http_client: 复用 httpx.AsyncClient 连接池（测试时可注入 MockTransport）
        - timeout_seconds: 两次调用的总时限
        - api_key: 本地服务通常忽略，但 SDK 要求非空
        - strict_client_errors: 4xx 是否视为致命配置错误
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._base_url = _normalize_base_url(base_url=base_url)
        self._timeout_seconds = timeout_seconds
        self._strict_client_errors = strict_client_errors
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=self._base_url,
            http_client=http_client,
            max_retries=0,
            timeout=timeout_seconds,
        )

    async def request_judgment(self, system_prompt: str, user_payload: str) -> str:
        """
        在单一 deadline 内完成 discover + completion。

        - **输出**：`choices[0].message.content`，缺失时为 `"{}"`
        - **失败**：超时/连接失败/非 2xx 抛 `InfrastructureError`；
          strict 模式下的 4xx 抛 `ConfigurationError`
        """
        messages = [
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_payload),
        ]
        try:
            with anyio.fail_after(self._timeout_seconds):
                model_id = await self.discover_model_id()
                return await self._complete(model_id=model_id, messages=messages)
        except TimeoutError as exc:
            logger.error(f"LLM deadline exceeded after {self._timeout_seconds}s")
            raise InfrastructureError(
                "timeout", f"LLM call exceeded {self._timeout_seconds}s deadline"
            ) from exc

    async def discover_model_id(self) -> str:
        """GET /v1/models，取第一个 id；没有可用 id 时回退到 `local-model`。"""
        try:
            page = await self._client.models.list()
        except (APIConnectionError, APIStatusError, httpx.HTTPError) as exc:
            raise self._classify(exc=exc, endpoint="models") from exc

        models = getattr(page, "data", None) or []
        model_id = getattr(models[0], "id", None) if models else None
        if not isinstance(model_id, str) or not model_id.strip():
            logger.info(f"No model id reported by {self._base_url}, falling back to {DEFAULT_MODEL_ID}")
            return DEFAULT_MODEL_ID
        return model_id

    async def _complete(self, model_id: str, messages: Sequence[ChatMessage]) -> str:
        try:
            logger.info(f"LLM request: model={model_id}, messages={len(messages)} msg(s)")
            response = await self._client.chat.completions.create(
                model=model_id,
                messages=[m.model_dump() for m in messages],
                temperature=JUDGMENT_TEMPERATURE,
            )
        except (APIConnectionError, APIStatusError, httpx.HTTPError) as exc:
            raise self._classify(exc=exc, endpoint="chat/completions") from exc

        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        if not isinstance(content, str) or not content:
            logger.info("LLM returned no content, passing through empty object")
            return EMPTY_REPLY

        logger.info(f"LLM response: {len(content)} chars")
        return content

    def _classify(self, exc: Exception, endpoint: str) -> Exception:
        """把传输层异常转换为带标签的错误。"""
        if isinstance(exc, (APITimeoutError, httpx.TimeoutException)):
            logger.error(f"LLM {endpoint} timed out: {exc}")
            return InfrastructureError("timeout", f"LLM {endpoint} request timed out")
        if isinstance(exc, APIStatusError):
            status = exc.status_code
            logger.error(f"LLM {endpoint} returned status {status}")
            if self._strict_client_errors and 400 <= status < 500 and status not in _TRANSIENT_CLIENT_STATUSES:
                return ConfigurationError(f"LLM {endpoint} rejected the request with status {status}")
            return InfrastructureError("status", f"LLM server status {status}", status_code=status)
        logger.error(f"LLM {endpoint} connection error: {exc}")
        return InfrastructureError("connection", f"LLM {endpoint} unreachable: {exc}")
