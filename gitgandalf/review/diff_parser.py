from __future__ import annotations

from gitgandalf.review.models import DiffMetadata

FILE_HEADER_PREFIX = "diff --git"
BINARY_MARKER_PREFIX = "Binary files"


def summarize_diff(diff: str) -> DiffMetadata:
    # 文件列表去重，保持首次出现的顺序
    files: dict[str, None] = {}
    lines_added = 0
    lines_removed = 0
    in_binary = False
    for line in diff.split("\n"):
        if line.startswith(FILE_HEADER_PREFIX):
            in_binary = False
            files.setdefault(_file_from_header(header=line), None)
        if line.startswith(BINARY_MARKER_PREFIX):
            in_binary = True
        if in_binary:
            continue
        if line.startswith("+") and not line.startswith("+++"):
            lines_added += 1
            continue
        if line.startswith("-") and not line.startswith("---"):
            lines_removed += 1
            continue
    return DiffMetadata(
        files_changed=len(files),
        files=list(files),
        lines_added=lines_added,
        lines_removed=lines_removed,
    )


def _file_from_header(header: str) -> str:
    # diff --git a/path b/path
    parts = header.split()
    return parts[-1]
