"""
CLI 入口（由 git pre-commit hook 调用）。

这里做三件事：
- 加载配置（环境变量 + 命令行覆盖，非法值直接失败）
- 组装外部依赖（HTTP Client / Model Gateway / Orchestrator）
- 把终态转换为终端输出与进程退出码

注意：
- 业务流程不写在这里（由 `review/orchestrator.py` 负责）
- 退出码是与 hook 的契约：0 = 允许（含 WARN/空 diff/跳过），1 = 阻止
"""

from __future__ import annotations

import argparse
import os
import sys
from collections.abc import AsyncIterator, Mapping, Sequence
from functools import partial
from pathlib import Path
from typing import BinaryIO, NoReturn, TextIO

import anyio
import httpx

from gitgandalf.config import GandalfConfig
from gitgandalf.config import apply_overrides
from gitgandalf.config import base_url_str
from gitgandalf.config import load_config_from_env
from gitgandalf.errors import HookInstallError
from gitgandalf.hook import install_pre_commit_hook
from gitgandalf.llm.client import ModelGateway
from gitgandalf.logging import configure_logging
from gitgandalf.review.models import GateOutcome
from gitgandalf.review.orchestrator import build_gate_orchestrator
from gitgandalf.review.orchestrator import run_gate
from gitgandalf.review.policy import exit_code_for
from gitgandalf.review.report import render_outcome

CHUNK_SIZE = 64 * 1024


def build_gateway(config: GandalfConfig, http_client: httpx.AsyncClient) -> ModelGateway:
    """创建 Model Gateway（便于测试时注入 transport）。"""
    return ModelGateway(
        base_url=base_url_str(config),
        http_client=http_client,
        timeout_seconds=config.timeout_seconds,
        api_key=config.api_key,
        strict_client_errors=config.strict_client_errors,
    )


async def read_chunks(stream: BinaryIO) -> AsyncIterator[bytes]:
    """按块异步读取输入流（读操作在 worker thread 中执行，不阻塞事件循环）。"""
    async_stream = anyio.wrap_file(stream)
    while True:
        chunk = await async_stream.read(CHUNK_SIZE)
        if not chunk:
            return
        yield chunk


async def review_stream(
    config: GandalfConfig,
    chunks: AsyncIterator[bytes],
    transport: httpx.AsyncBaseTransport | None = None,
) -> GateOutcome:
    """组装依赖并跑一次 gate；每次调用独立创建 HTTP client（无跨运行状态）。"""
    async with httpx.AsyncClient(transport=transport) as http_client:
        gateway = build_gateway(config=config, http_client=http_client)
        orchestrator = build_gate_orchestrator(gateway=gateway, max_diff_bytes=config.max_diff_bytes)
        return await run_gate(orchestrator=orchestrator, chunks=chunks)


class _GateArgumentParser(argparse.ArgumentParser):
    """参数错误也按 hook 契约退出 1（argparse 默认是 2）。"""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _add_common_options(parser: argparse.ArgumentParser, *, suppress_default: bool = False) -> None:
    default: object = argparse.SUPPRESS if suppress_default else None
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Log pipeline states and request sizes to stderr.",
    )
    parser.add_argument("--base-url", default=default, help="OpenAI-compatible server address.")
    parser.add_argument("--timeout-ms", type=int, default=default, help="Total deadline for the model calls.")
    parser.add_argument("--max-diff-bytes", type=int, default=default, help="Reject diffs larger than this.")


def _build_parser() -> argparse.ArgumentParser:
    parser = _GateArgumentParser(
        prog="gitgandalf",
        description="Ask a local language model to judge staged changes before they are committed.",
    )
    _add_common_options(parser)
    subparsers = parser.add_subparsers(dest="command")

    review_parser = subparsers.add_parser("review", help="Review a diff read from stdin (default).")
    _add_common_options(review_parser, suppress_default=True)

    install_parser = subparsers.add_parser("install-hook", help="Install the git pre-commit hook.")
    install_parser.add_argument(
        "--repo",
        default=".",
        help="Path inside the target repository (defaults to current directory).",
    )
    install_parser.add_argument("--force", action="store_true", help="Replace an existing pre-commit hook.")
    return parser


def _run_install_hook(args: argparse.Namespace, stdout: TextIO, stderr: TextIO) -> int:
    try:
        hook_path = install_pre_commit_hook(repo=Path(args.repo).resolve(), force=args.force)
    except HookInstallError as exc:
        print(f"Git Gandalf: {exc}", file=stderr)
        return 1
    print(f"Git Gandalf: pre-commit hook installed at {hook_path}", file=stdout)
    return 0


def _run_review(
    args: argparse.Namespace,
    stdin: BinaryIO,
    stdout: TextIO,
    stderr: TextIO,
    environ: Mapping[str, str],
) -> int:
    try:
        config = apply_overrides(
            load_config_from_env(environ=environ),
            base_url=args.base_url,
            timeout_ms=args.timeout_ms,
            max_diff_bytes=args.max_diff_bytes,
        )
    except ValueError as exc:
        # 配置非法时无法信任任何判断：fail closed
        print(f"Git Gandalf: invalid configuration: {exc}", file=stderr)
        return 1

    outcome = anyio.run(partial(review_stream, config=config, chunks=read_chunks(stdin)))
    code = exit_code_for(outcome.action)
    print(render_outcome(outcome), file=stderr if code else stdout)
    return code


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin: BinaryIO | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """解析参数并执行子命令，返回进程退出码。"""
    args = _build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose)
    out = stdout if stdout is not None else sys.stdout
    err = stderr if stderr is not None else sys.stderr

    if args.command == "install-hook":
        return _run_install_hook(args=args, stdout=out, stderr=err)
    return _run_review(
        args=args,
        stdin=stdin if stdin is not None else sys.stdin.buffer,
        stdout=out,
        stderr=err,
        environ=environ if environ is not None else os.environ,
    )


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
