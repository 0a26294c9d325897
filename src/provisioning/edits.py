"""Text edits applied to a generated application tree.

All helpers take the project root and a path relative to it. They return True
when the file changed, so callers can decide whether a commit is needed.
Anchors that do not match are reported with a warning and leave the file
untouched; a missing target file raises `EditError`.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)


class EditError(RuntimeError):
    def __init__(self, message: str, *, path: str | None = None):
        super().__init__(message)
        self.path = path


def _resolve(root: str | Path, path: str) -> Path:
    base = Path(root).resolve()
    target = (base / path.lstrip("/")).resolve()
    if target != base and base not in target.parents:
        raise EditError(f"Path escapes project root: {path}", path=path)
    return target


def _read_existing(root: str | Path, path: str) -> tuple[Path, str]:
    target = _resolve(root, path)
    if not target.is_file():
        raise EditError(f"File not found: {path}", path=path)
    return target, target.read_text(encoding="utf-8")


def create_file(root: str | Path, path: str, content: str) -> bool:
    target = _resolve(root, path)
    if target.is_file() and target.read_text(encoding="utf-8") == content:
        return False
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return True


def remove_file(root: str | Path, path: str) -> bool:
    target = _resolve(root, path)
    if not target.exists():
        return False
    target.unlink()
    return True


def append_to_file(root: str | Path, path: str, content: str) -> bool:
    target = _resolve(root, path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as f:
        f.write(content)
    return bool(content)


def append_line_once(root: str | Path, path: str, line: str) -> bool:
    target = _resolve(root, path)
    text = target.read_text(encoding="utf-8") if target.is_file() else ""
    if line.rstrip("\n") in text.splitlines():
        return False
    prefix = "" if not text or text.endswith("\n") else "\n"
    return append_to_file(root, path, prefix + line.rstrip("\n") + "\n")


def gsub_file(
    root: str | Path,
    path: str,
    pattern: str | re.Pattern[str],
    replacement: str,
    *,
    flags: int = 0,
) -> bool:
    target, text = _read_existing(root, path)
    rx = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, flags)
    # Plain-string replacements: no backreference expansion.
    new_text, count = rx.subn(lambda _m: replacement, text)
    if count == 0:
        logger.warning("gsub_file: pattern %r not found in %s", rx.pattern, path)
        return False
    if new_text == text:
        return False
    target.write_text(new_text, encoding="utf-8")
    return True


def inject_into_file(
    root: str | Path,
    path: str,
    content: str,
    *,
    before: str | re.Pattern[str] | None = None,
    after: str | re.Pattern[str] | None = None,
    flags: int = 0,
) -> bool:
    if (before is None) == (after is None):
        raise ValueError("inject_into_file needs exactly one of before= or after=")
    target, text = _read_existing(root, path)
    if content in text:
        return False

    anchor = before if before is not None else after
    rx = anchor if isinstance(anchor, re.Pattern) else re.compile(anchor, flags)
    m = rx.search(text)
    if m is None:
        logger.warning("inject_into_file: anchor %r not found in %s", rx.pattern, path)
        return False

    pos = m.start() if before is not None else m.end()
    target.write_text(text[:pos] + content + text[pos:], encoding="utf-8")
    return True


def _edit_lines(root: str | Path, path: str, pattern: str, *, comment: bool) -> bool:
    target, text = _read_existing(root, path)
    rx = re.compile(pattern)
    changed = False
    out: list[str] = []
    for line in text.splitlines(keepends=True):
        stripped = line.lstrip()
        indent = line[: len(line) - len(stripped)]
        if comment and not stripped.startswith("#") and rx.search(line):
            line = f"{indent}# {stripped}"
            changed = True
        elif not comment and stripped.startswith("#"):
            body = re.sub(r"^#\s?", "", stripped)
            if rx.search(body):
                line = indent + body
                changed = True
        out.append(line)
    if changed:
        target.write_text("".join(out), encoding="utf-8")
    return changed


def comment_lines(root: str | Path, path: str, pattern: str) -> bool:
    return _edit_lines(root, path, pattern, comment=True)


def uncomment_lines(root: str | Path, path: str, pattern: str) -> bool:
    return _edit_lines(root, path, pattern, comment=False)


def _gem_line(name: str, *, group: str | None, git: str | None) -> str:
    parts = [f"gem '{name}'"]
    if git:
        parts.append(f"git: '{git}'")
    if group:
        parts.append(f"group: '{group}'")
    return ", ".join(parts) + "\n"


def add_gem(
    root: str | Path, name: str, *, group: str | None = None, git: str | None = None
) -> bool:
    target = _resolve(root, "Gemfile")
    text = target.read_text(encoding="utf-8") if target.is_file() else ""
    if re.search(rf"^\s*gem\s+['\"]{re.escape(name)}['\"]", text, re.MULTILINE):
        return False
    prefix = "" if not text or text.endswith("\n") else "\n"
    return append_to_file(root, "Gemfile", prefix + _gem_line(name, group=group, git=git))


def add_environment_config(root: str | Path, line: str, *, env: str | None = None) -> bool:
    if env:
        path = f"config/environments/{env}.rb"
        anchor = r"Rails\.application\.configure do[ \t]*\n"
    else:
        path = "config/application.rb"
        anchor = r"class Application < Rails::Application[ \t]*\n"
    return inject_into_file(root, path, f"  {line.strip()}\n", after=anchor)


def add_route(root: str | Path, line: str) -> bool:
    return inject_into_file(
        root,
        "config/routes.rb",
        f"  {line.strip()}\n",
        after=r"Rails\.application\.routes\.draw do[ \t]*\n",
    )
