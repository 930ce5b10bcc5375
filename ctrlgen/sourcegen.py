# File: ctrlgen/sourcegen.py
"""
ctrlgen - Structural Source-File Builder
========================================
A small accumulator for Python modules made of imports and classes.

    file = PyFileGen("Profile controller.")
    file.add_import(["BaseController"], "..base_controller")
    cls = file.add_class("ProfileController")
    cls.set_parent_class("BaseController")
    method = cls.add_method("route")
    method.add_parameter("router", "Router")
    method.append_content("router.get(...)")
    text = file.generate()

The builder never interprets method bodies; callers append ready-made lines.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from ctrlgen.utils import build_import_block, indent_lines, make_docstring

logger: logging.Logger = logging.getLogger("ctrlgen.sourcegen")


class Access(str, Enum):
    """Method visibility; private methods get a leading underscore."""

    PUBLIC = "public"
    PRIVATE = "private"


class MethodGen:
    """One method of a generated class."""

    def __init__(
        self,
        name: str,
        access: Access = Access.PUBLIC,
        is_async: bool = False,
        return_type: Optional[str] = "None",
    ) -> None:
        if access == Access.PRIVATE and not name.startswith("_"):
            name = "_" + name
        self.name: str = name
        self.access: Access = access
        self.is_async: bool = is_async
        self.return_type: Optional[str] = return_type
        self.docstring: Optional[str] = None
        self._parameters: List[Tuple[str, Optional[str]]] = []
        self._body: List[str] = []

    def add_parameter(self, name: str, type_: Optional[str] = None) -> "MethodGen":
        self._parameters.append((name, type_))
        return self

    def append_content(self, code: Union[str, Iterable[str]]) -> "MethodGen":
        """Append body lines, given unindented; a string may hold several lines."""
        if isinstance(code, str):
            self._body.extend(code.split("\n"))
        else:
            for chunk in code:
                self._body.extend(chunk.split("\n"))
        return self

    @property
    def body(self) -> List[str]:
        return list(self._body)

    def generate(self) -> List[str]:
        params: List[str] = ["self"]
        params.extend(f"{n}: {t}" if t else n for n, t in self._parameters)
        prefix: str = "async def" if self.is_async else "def"
        returns: str = f" -> {self.return_type}" if self.return_type else ""

        lines: List[str] = [f"{prefix} {self.name}({', '.join(params)}){returns}:"]
        body: List[str] = []
        if self.docstring:
            body.extend(make_docstring(self.docstring, indent_level=0).split("\n"))
        body.extend(self._body)
        if not any(line.strip() for line in body):
            body = ["pass"]
        lines.extend(indent_lines(body))
        return lines


class ClassGen:
    """One class of a generated module."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        self.parent: Optional[str] = None
        self.docstring: Optional[str] = None
        self._methods: List[MethodGen] = []

    def set_parent_class(self, parent: str) -> "ClassGen":
        self.parent = parent
        return self

    def add_method(
        self,
        name: str,
        access: Access = Access.PUBLIC,
        is_async: bool = False,
    ) -> MethodGen:
        method: MethodGen = MethodGen(name, access=access, is_async=is_async)
        self._methods.append(method)
        return method

    @property
    def methods(self) -> List[MethodGen]:
        return list(self._methods)

    def generate(self) -> List[str]:
        header: str = f"class {self.name}:"
        if self.parent:
            header = f"class {self.name}({self.parent}):"
        body: List[str] = []
        if self.docstring:
            body.extend(make_docstring(self.docstring, indent_level=0).split("\n"))
        for method in self._methods:
            if body:
                body.append("")
            body.extend(method.generate())
        if not body:
            body = ["pass"]
        return [header, *indent_lines(body)]


class PyFileGen:
    """
    Accumulates imports and classes for one Python module.

    Imports are de-duplicated per module; ``generate`` renders them with
    ``build_import_block`` so absolute and relative imports are grouped.
    """

    def __init__(self, docstring: Optional[str] = None) -> None:
        self.docstring: Optional[str] = docstring
        self._imports: Dict[str, Set[str]] = {}
        self._classes: List[ClassGen] = []

    def add_import(self, names: Iterable[str], from_path: str) -> "PyFileGen":
        """Record ``from <from_path> import <names>``; no names means ``import <from_path>``."""
        self._imports.setdefault(from_path, set()).update(names)
        return self

    def add_class(self, name: str) -> ClassGen:
        class_gen: ClassGen = ClassGen(name)
        self._classes.append(class_gen)
        return class_gen

    @property
    def imports(self) -> Dict[str, frozenset]:
        return {module: frozenset(names) for module, names in self._imports.items()}

    def generate(self) -> str:
        lines: List[str] = []
        if self.docstring:
            lines.append(make_docstring(self.docstring, indent_level=0))
        if self._imports:
            lines.append("")
            lines.append(build_import_block(self._imports))
        for class_gen in self._classes:
            lines.extend(["", ""])
            lines.extend(class_gen.generate())
        content: str = "\n".join(lines).lstrip("\n") + "\n"
        logger.debug(
            "Generated module: %d imports, %d classes.",
            len(self._imports),
            len(self._classes),
        )
        return content


__all__: List[str] = ["Access", "MethodGen", "ClassGen", "PyFileGen"]
