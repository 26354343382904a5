"""
本地 Mock OpenAI-compatible LLM server。

用途：
- 在没有真实本地模型的情况下，跑通 hook -> gate -> 退出码 的闭环
- 测试里通过 `httpx.ASGITransport` 直接挂载，不需要真实端口

启动：
  python -m gitgandalf.dev.mock_openai_server

然后：
  GITGANDALF_BASE_URL=http://127.0.0.1:9001 gitgandalf review < some.diff
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from gitgandalf.llm.client import ChatMessage

MOCK_MODEL_ID = "mock-gandalf"
LARGE_DIFF_LINES = 200

# 看起来像密钥的新增行
_SECRET_LINE_RE = re.compile(r"^\+.*(api[_-]?key|secret|password|token)\s*[:=]", re.IGNORECASE)


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage] = Field(default_factory=list)
    temperature: float | None = None


def _extract_raw_diff(prompt: str) -> str:
    """从 user payload 中取出 `RAW DIFF:` 之后的部分。"""
    marker = "RAW DIFF:\n"
    index = prompt.find(marker)
    if index == -1:
        return prompt
    return prompt[index + len(marker) :]


def _build_mock_judgment(diff: str) -> str:
    secrets = [line for line in diff.splitlines() if _SECRET_LINE_RE.match(line)]
    if secrets:
        verdict = {
            "risk": "HIGH",
            "issues": ["[MOCK] possible hardcoded secret"],
            "summary": "[MOCK] secret detected in added lines",
        }
    elif sum(1 for line in diff.splitlines() if line.startswith(("+", "-"))) > LARGE_DIFF_LINES:
        verdict = {
            "risk": "MEDIUM",
            "issues": ["[MOCK] large change, consider splitting it"],
            "summary": "[MOCK] large diff",
        }
    else:
        verdict = {"risk": "LOW", "issues": [], "summary": "[MOCK] looks fine"}
    return json.dumps(verdict)


def _decide_mock_response(messages: Sequence[ChatMessage]) -> str:
    user_texts = [m.content for m in messages if m.role == "user"]
    if not user_texts:
        raise ValueError("Mock server expects at least one user message")
    return _build_mock_judgment(diff=_extract_raw_diff(prompt="\n".join(user_texts)))


def build_mock_app(reply: str | None = None, model_id: str | None = MOCK_MODEL_ID) -> FastAPI:
    """
    创建 mock app。

    - reply：固定的回复文本（用于测试 Bouncer 的各种脏输入）；None 时按 diff 内容判断
    - model_id：`/v1/models` 报告的 id；None 时返回空列表（测试回退逻辑）
    """
    app = FastAPI(title="Mock OpenAI-compatible LLM", version="0.1.0")

    @app.get("/v1/models")
    async def list_models() -> dict[str, object]:
        data = [{"id": model_id, "object": "model", "owned_by": "mock"}] if model_id else []
        return {"object": "list", "data": data}

    @app.post("/v1/chat/completions")
    async def chat_completions(req: ChatCompletionRequest) -> dict[str, object]:
        content = reply if reply is not None else _decide_mock_response(messages=req.messages)
        return {
            "id": "chatcmpl-mock",
            "object": "chat.completion",
            "model": req.model,
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        }

    return app


app = build_mock_app()


def main() -> None:
    uvicorn.run(app, host="127.0.0.1", port=9001)


if __name__ == "__main__":
    main()
