"""
Gate 的 prompt 构造。

- system prompt：定义风险标准并强制 JSON-only 输出
- user payload：元数据（JSON）+ 原始 diff；元数据必须在调用模型前完整生成
"""

from __future__ import annotations

import json

from gitgandalf.review.models import DiffMetadata

SYSTEM_PROMPT = """You are a senior software engineer acting as a pre-commit code reviewer.
Your task is to analyze the provided git diff and metadata.

Risk Criteria:
- LOW: Formatting, comments, minor logic changes.
- MEDIUM: New logic, missing error handling, complex regex.
- HIGH: Security risks, secrets, destructiveness, infinite loops.

You must output ONLY valid JSON. No conversational text. No markdown blocks.

Response Schema:
{
    "risk": "LOW" | "MEDIUM" | "HIGH",
    "issues": ["string"],
    "summary": "string"
}
"""


def build_user_payload(metadata: DiffMetadata, diff: str) -> str:
    return f"METADATA:\n{json.dumps(metadata.model_dump(), indent=2)}\n\nRAW DIFF:\n{diff}"
