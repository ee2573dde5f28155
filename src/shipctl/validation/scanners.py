"""Source text scanners used by the validation gate."""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

SECRET_PATTERNS = (
    re.compile(r"sk-[a-zA-Z0-9]{20,}"),
    re.compile(r"sk_[a-zA-Z0-9]{32,}"),
    re.compile(r'"[A-Z0-9]{32,}"'),
    re.compile(r"""password\s*[:=]\s*["'][^"']+["']""", re.IGNORECASE),
    re.compile(r"""secret\s*[:=]\s*["'][^"']+["']""", re.IGNORECASE),
)

DEBUG_PRINT = "console.log("

# Matches `allow read, write: if true;` with any spacing
PERMISSIVE_RULE = re.compile(r"allow\s+read\s*,\s*write\s*:\s*if\s+true\s*;")


def contains_secret(text: str) -> bool:
    return any(p.search(text) for p in SECRET_PATTERNS)


def is_test_file(path: Path) -> bool:
    return "test" in path.name.lower()


def has_debug_print(text: str) -> bool:
    return DEBUG_PRINT in text


def line_count(text: str) -> int:
    return len(text.split("\n"))


def is_permissive(rules: str) -> bool:
    return bool(PERMISSIVE_RULE.search(rules))


def iter_source_files(root: Path, suffixes: tuple[str, ...] = (".ts", ".tsx")) -> Iterator[Path]:
    """Source files under root, skipping dot dirs, node_modules and .d.ts files."""
    if not root.is_dir():
        return
    for path in sorted(root.iterdir()):
        if path.is_dir():
            if path.name.startswith(".") or path.name == "node_modules":
                continue
            yield from iter_source_files(path, suffixes)
        elif path.name.endswith(suffixes) and not path.name.endswith(".d.ts"):
            yield path


@dataclass(frozen=True)
class SourceIssue:
    kind: str  # secret, debug_print, too_long
    path: Path
    detail: str = ""


def scan_sources(root: Path, max_lines: int) -> list[SourceIssue]:
    """Code quality issues in the sources under root."""
    issues: list[SourceIssue] = []
    for path in iter_source_files(root):
        text = path.read_text(errors="replace")
        if contains_secret(text):
            issues.append(SourceIssue("secret", path))
        if has_debug_print(text) and not is_test_file(path):
            issues.append(SourceIssue("debug_print", path))
        lines = line_count(text)
        if lines > max_lines:
            issues.append(SourceIssue("too_long", path, f"{lines} lines (limit: {max_lines})"))
    return issues
