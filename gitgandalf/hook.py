"""
pre-commit hook 安装。

安装后的 hook 只做一件事：把暂存区 diff 通过管道交给 `gitgandalf review`，
退出码原样透传给 git（非 0 即阻止提交）。
"""

from __future__ import annotations

import logging
import stat
import subprocess
from pathlib import Path

from gitgandalf.errors import HookInstallError

logger = logging.getLogger(__name__)

HOOK_MARKER = "# installed by gitgandalf"

HOOK_SCRIPT = f"""#!/bin/sh
{HOOK_MARKER}
git diff --cached --no-color | gitgandalf review
"""


def resolve_hooks_dir(repo: Path) -> Path:
    """通过 `git rev-parse --git-path hooks` 定位 hooks 目录（兼容 worktree 与 core.hooksPath）。"""
    cmd = ["git", "rev-parse", "--git-path", "hooks"]
    try:
        result = subprocess.run(cmd, cwd=repo, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise HookInstallError("git executable not found") from exc
    if result.returncode != 0:
        logger.error(f"git failed: {' '.join(cmd)}\nstdout={result.stdout}\nstderr={result.stderr}")
        raise HookInstallError(f"Not a git repository: {repo}")
    hooks_dir = Path(result.stdout.strip())
    if not hooks_dir.is_absolute():
        hooks_dir = repo / hooks_dir
    return hooks_dir


def install_pre_commit_hook(repo: Path, force: bool = False) -> Path:
    """
    写入可执行的 `pre-commit` hook 并返回其路径。

    - 已存在且内容相同：幂等，直接返回
    - 已存在且内容不同：没有 force 时抛 `HookInstallError`
    """
    hooks_dir = resolve_hooks_dir(repo=repo)
    hook_path = hooks_dir / "pre-commit"
    if hook_path.exists():
        existing = hook_path.read_text(encoding="utf-8")
        if existing == HOOK_SCRIPT:
            logger.info(f"pre-commit hook already installed at {hook_path}")
            return hook_path
        if not force:
            raise HookInstallError(f"A different pre-commit hook already exists at {hook_path}; use --force to replace it")

    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook_path.write_text(HOOK_SCRIPT, encoding="utf-8")
    mode = hook_path.stat().st_mode
    hook_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    logger.info(f"Installed pre-commit hook at {hook_path}")
    return hook_path
