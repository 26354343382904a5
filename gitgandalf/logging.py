"""Logging setup for the gitgandalf CLI."""

from __future__ import annotations

import logging
import sys

_LOGGER_NAME = "gitgandalf"


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """
    给 `gitgandalf` logger 装一个 stderr handler。

    - 默认 WARNING：hook 输出只保留报告本身
    - verbose：DEBUG，包含状态流转与请求大小
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # 重复调用（例如测试里多次跑 CLI）时避免重复输出
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[gitgandalf] %(levelname)s %(message)s"))
    logger.addHandler(handler)
    return logger
