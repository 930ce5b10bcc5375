# File: ctrlgen/utils.py
"""
ctrlgen - Utility Functions & Helpers
=====================================
String-case conversion, file I/O and small code-formatting helpers used
throughout the synthesis pipeline.

- String-conversion functions are ``lru_cache``-d; the same model and field
  names are converted many times while a controller is assembled.
- File writes go through a temporary file and an atomic rename, so an
  interrupted run never leaves a half-written controller or registry.
"""

from __future__ import annotations

import functools
import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path, PurePosixPath
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_CAMEL_TO_SNAKE_RE1: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_TO_SNAKE_RE2: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUM_RE: re.Pattern[str] = re.compile(r"[^a-zA-Z0-9]")
_MULTI_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"_{2,}")
_LEADING_TRAILING_UNDERSCORE_RE: re.Pattern[str] = re.compile(r"^_+|_+$")
_SPLIT_WORDS_RE: re.Pattern[str] = re.compile(
    r"[A-Z]?[a-z]+|[A-Z]+(?=[A-Z][a-z]|\d|\b)|[A-Z]|\d+"
)
_MULTI_SLASH_RE: re.Pattern[str] = re.compile(r"/{2,}")

# Python keywords that cannot be used as identifiers
PYTHON_KEYWORDS: FrozenSet[str] = frozenset({
    "False", "None", "True", "and", "as", "assert", "async", "await",
    "break", "class", "continue", "def", "del", "elif", "else",
    "except", "finally", "for", "from", "global", "if", "import",
    "in", "is", "lambda", "nonlocal", "not", "or", "pass", "raise",
    "return", "try", "while", "with", "yield",
})


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any string to snake_case.

    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("userId")
        'user_id'
    """
    if not name:
        return ""
    s: str = _CAMEL_TO_SNAKE_RE1.sub(r"\1_\2", name)
    s = _CAMEL_TO_SNAKE_RE2.sub(r"\1_\2", s)
    s = _NON_ALPHANUM_RE.sub("_", s)
    s = _MULTI_UNDERSCORE_RE.sub("_", s)
    s = _LEADING_TRAILING_UNDERSCORE_RE.sub("", s)
    return s.lower()


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any string to PascalCase.

    Examples:
        >>> to_pascal_case("user_profile")
        'UserProfile'
        >>> to_pascal_case("profile")
        'Profile'
    """
    if not name:
        return ""
    words: Tuple[str, ...] = _extract_words(name)
    return "".join(word.capitalize() for word in words)


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """
    Convert any string to camelCase.

    Examples:
        >>> to_camel_case("user_profile")
        'userProfile'
        >>> to_camel_case("Profile")
        'profile'
    """
    if not name:
        return ""
    words: Tuple[str, ...] = _extract_words(name)
    if not words:
        return ""
    first: str = words[0].lower()
    rest: str = "".join(w.capitalize() for w in words[1:])
    return first + rest


@functools.lru_cache(maxsize=None)
def to_plural(name: str) -> str:
    """
    Naive English pluralisation sufficient for method names.

    Handles common suffixes and a handful of irregular nouns.
    """
    if not name:
        return ""

    lower: str = name.lower()

    irregulars: Dict[str, str] = {
        "person": "people",
        "child": "children",
        "man": "men",
        "woman": "women",
        "datum": "data",
        "index": "indices",
        "status": "statuses",
        "address": "addresses",
    }

    for singular, plural in irregulars.items():
        if lower == singular or lower.endswith("_" + singular):
            head: str = name[: len(name) - len(singular)]
            tail: str = plural
            if name[-len(singular)].isupper():
                tail = plural[0].upper() + plural[1:]
            return head + tail

    if lower.endswith(("sh", "ch", "x", "z", "ss", "s")):
        return name + "es"
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith("fe"):
        return name[:-2] + "ves"
    if lower.endswith("f") and not lower.endswith("ff"):
        return name[:-1] + "ves"
    if lower.endswith("o") and len(name) > 1 and lower[-2] not in "aeiou":
        return name + "es"

    return name + "s"


@functools.lru_cache(maxsize=None)
def _extract_words(name: str) -> Tuple[str, ...]:
    """Split any casing style into a tuple of lowercase words."""
    cleaned: str = _NON_ALPHANUM_RE.sub(" ", name)
    words: List[str] = _SPLIT_WORDS_RE.findall(cleaned)
    return tuple(w.lower() for w in words if w)


def is_identifier(name: str) -> bool:
    """True when *name* can be used as a Python attribute or module name."""
    return name.isidentifier() and name not in PYTHON_KEYWORDS


def collapse_slashes(path: str) -> str:
    """Replace every run of slashes with a single one."""
    return _MULTI_SLASH_RE.sub("/", path)


# ---------------------------------------------------------------------------
# Indentation & code formatting helpers
# ---------------------------------------------------------------------------


def indent_lines(lines: Sequence[str], level: int = 1, size: int = 4) -> List[str]:
    """Indent a list of lines, returning a new list. Blank lines stay blank."""
    prefix: str = " " * (level * size)
    return [prefix + line if line.strip() else "" for line in lines]


def make_docstring(text: str, indent_level: int = 1, size: int = 4) -> str:
    """
    Create a properly formatted Python docstring.

    Single-line docstrings stay on one line; multi-line use triple-quote blocks.
    """
    prefix: str = " " * (indent_level * size)
    stripped: str = text.strip()

    if "\n" not in stripped and len(stripped) + len(prefix) + 6 <= 99:
        return f'{prefix}"""{stripped}"""'

    doc_lines: List[str] = stripped.split("\n")
    parts: List[str] = [f'{prefix}"""']
    parts.extend(f"{prefix}{line}" if line.strip() else "" for line in doc_lines)
    parts.append(f'{prefix}"""')
    return "\n".join(parts)


def wrap_in_quotes(value: str) -> str:
    """Wrap a string value in double quotes, escaping internals."""
    escaped: str = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_list_literal(items: Sequence[str], quote: bool = True) -> str:
    """
    Format a Python list literal from a sequence of strings.

    If *quote* is True, each item is wrapped in quotes.
    """
    if quote:
        inner: str = ", ".join(wrap_in_quotes(item) for item in items)
    else:
        inner = ", ".join(items)
    return f"[{inner}]"


# ---------------------------------------------------------------------------
# Import statement builder
# ---------------------------------------------------------------------------


def build_import_block(imports: Dict[str, Set[str]]) -> str:
    """
    Build a sorted, de-duplicated import block from a mapping of
    module → set of names.

    Absolute imports come first, then a blank line and the relative
    (dot-prefixed) imports, so the emitted module reads like hand-written
    code.

    Example:
        >>> build_import_block({"typing": {"Optional"}, "asyncio": set()})
        'import asyncio\\nfrom typing import Optional'
    """
    absolute: List[str] = []
    relative: List[str] = []
    for module in sorted(imports.keys(), key=lambda m: (m.lstrip("."), m)):
        names: List[str] = sorted(imports[module])
        target: List[str] = relative if module.startswith(".") else absolute
        if names:
            target.append(f"from {module} import {', '.join(names)}")
        else:
            target.append(f"import {module}")
    blocks: List[str] = ["\n".join(b) for b in (absolute, relative) if b]
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def relative_module(from_dir: str, to_path: str) -> str:
    """
    Dotted relative import path from the package *from_dir* to *to_path*.

    Both arguments are POSIX paths relative to the project root; *to_path*
    names a module or package without the ``.py`` suffix.

    Examples:
        >>> relative_module("src/api/v1", "src/api/v1/controller/account/profile")
        '.controller.account.profile'
        >>> relative_module("src/api/v1/controller", "src/cmn/models/user")
        '....cmn.models.user'
    """
    from_parts: List[str] = [p for p in PurePosixPath(from_dir).parts if p not in ("", ".")]
    to_parts: List[str] = [p for p in PurePosixPath(to_path).parts if p not in ("", ".")]

    common: int = 0
    for a, b in zip(from_parts, to_parts):
        if a != b:
            break
        common += 1

    ups: int = len(from_parts) - common
    rest: List[str] = to_parts[common:]
    return "." * (ups + 1) + ".".join(rest)


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path*.

    When *atomic* is True, writes to a temporary file first then renames.
    Returns the number of bytes written.
    """
    ensure_directory(path.parent)

    encoded: bytes = content.encode("utf-8")
    byte_count: int = len(encoded)

    if atomic:
        fd: int
        tmp_path: str
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
            shutil.move(tmp_path, str(path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", byte_count, path)
    return byte_count


def read_file(path: Path) -> str:
    """Read a file and return its content as a string."""
    return path.read_text(encoding="utf-8")


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling generation steps.

    Usage:
        with Timer("assemble controller") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "PYTHON_KEYWORDS",
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_plural",
    "is_identifier",
    "collapse_slashes",
    "indent_lines",
    "make_docstring",
    "wrap_in_quotes",
    "format_list_literal",
    "build_import_block",
    "relative_module",
    "ensure_directory",
    "write_file",
    "read_file",
    "count_lines",
    "Timer",
]

logger.debug("ctrlgen.utils loaded — %d public symbols.", len(__all__))
