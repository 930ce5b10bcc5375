# File: ctrlgen/errors.py
"""
ctrlgen - Exception Hierarchy
=============================

Generator-time failures.  Every error here aborts a generation run before
anything is written to disk.

    CtrlgenError
    ├── ConfigurationError   invalid / missing generator arguments
    └── SchemaError          unknown model or field, unreadable schema file,
                             or a schema that fails semantic validation

The errors raised by *generated* controllers (``DatabaseError``,
``ValidationError``, ``Err``) belong to the runtime framework and only
appear in emitted source text.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class CtrlgenError(Exception):
    """Base class for all generator errors."""


class ConfigurationError(CtrlgenError):
    """Raised when the generator arguments are missing or malformed."""


class SchemaError(CtrlgenError):
    """
    Raised when the schema cannot be loaded, fails validation, or a lookup
    references a model or field that does not exist.
    """

    def __init__(self, message: str, details: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.details: List[str] = list(details or [])

    def __str__(self) -> str:
        base: str = super().__str__()
        if not self.details:
            return base
        return base + "\n" + "\n".join(f"  ✗ {d}" for d in self.details)


__all__: List[str] = ["CtrlgenError", "ConfigurationError", "SchemaError"]
