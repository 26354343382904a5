"""
Response Normalizer（"Bouncer"）。

把模型的原始回复转换为合法的 `Decision`，否则直接失败。

流程（每一步都是独立、可单测的函数）：
- Step 1-3：全函数的文本清洗（不会抛错）
  - 去掉 `<think>...</think>` 推理块（reasoning 模型常见）
  - 去掉 markdown 代码围栏
  - 截取第一个 `{` 到最后一个 `}`（忽略模型的寒暄文字）
- Step 4：严格 JSON 解析（失败即致命）
- Step 5：校验 risk（唯一的硬性关卡）
- Step 6-7：issues/summary 宽松归一化（永不致命）

为什么 issues/summary 宽松：
- 缺少解释本身不应该阻止一个被判定为安全的提交
"""

from __future__ import annotations

import json
import logging
import re
from typing import cast

from gitgandalf.errors import JudgmentValidationError
from gitgandalf.review.models import RISK_LEVELS
from gitgandalf.review.models import Decision
from gitgandalf.review.models import RiskLevel

logger = logging.getLogger(__name__)

SUMMARY_PLACEHOLDER = "No summary provided."

_REASONING_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
_CODE_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")


def strip_reasoning(text: str) -> str:
    return _REASONING_RE.sub("", text)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE_RE.sub("", text).strip()


def slice_json_object(text: str) -> str:
    """截取第一个 `{` 到最后一个 `}`；找不到则原样返回（交给 JSON 解析去失败）。"""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last == -1 or last < first:
        return text
    return text[first : last + 1]


def _reject_constant(name: str) -> object:
    # NaN / Infinity / -Infinity 不是合法 JSON
    logger.error(f"Non-standard JSON constant from LLM: {name}")
    raise JudgmentValidationError("LLM returned invalid JSON syntax.")


def parse_json(text: str) -> object:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid JSON from LLM. Cleaned content: {text!r}")
        raise JudgmentValidationError("LLM returned invalid JSON syntax.") from exc


def validate_risk(data: object) -> RiskLevel:
    """
    risk 必须存在、是非空字符串、大写后属于 LOW/MEDIUM/HIGH。

    - 只做大小写折叠：不 strip 空白，不接受同义词
    - 非 object 的 JSON（数组/数字/字符串）视为缺少 risk
    """
    if not isinstance(data, dict) or "risk" not in data:
        raise JudgmentValidationError("Missing 'risk' field.")
    raw_risk = data["risk"]
    if not isinstance(raw_risk, str) or not raw_risk:
        raise JudgmentValidationError(f"Invalid risk value: {raw_risk!r}. Must be LOW, MEDIUM, or HIGH.")
    risk = raw_risk.upper()
    if risk not in RISK_LEVELS:
        raise JudgmentValidationError(f"Invalid risk value: {raw_risk!r}. Must be LOW, MEDIUM, or HIGH.")
    return cast(RiskLevel, risk)


def normalize_issues(value: object) -> list[str]:
    if isinstance(value, list):
        return [_stringify(item) for item in value]
    if isinstance(value, str):
        return [value]
    return []


def normalize_summary(value: object) -> str:
    if isinstance(value, str):
        return value
    return SUMMARY_PLACEHOLDER


def normalize_response(raw: str) -> Decision:
    """
    完整的 Bouncer 流程。

    - **输入**：模型原始回复（不可信）
    - **输出**：`Decision`
    - **失败**：JSON 非法或 risk 非法时抛 `JudgmentValidationError`
    """
    text = strip_reasoning(raw)
    text = strip_code_fences(text)
    text = slice_json_object(text)
    data = parse_json(text)
    risk = validate_risk(data)
    # validate_risk 已保证 data 是 dict
    fields = cast(dict[str, object], data)
    return Decision(
        risk=risk,
        issues=normalize_issues(fields.get("issues")),
        summary=normalize_summary(fields.get("summary")),
    )


def _stringify(item: object) -> str:
    if isinstance(item, str):
        return item
    # 非字符串元素按 JSON 文本呈现（true / null / 1 / {...}）
    return json.dumps(item, ensure_ascii=False)
