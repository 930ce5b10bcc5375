# File: ctrlgen/registry.py
"""
ctrlgen - Controller Registry Patcher
=====================================
Registers a freshly generated controller in the API version's registry
module, which looks like::

    from .controller.account.profile_controller import ProfileController
    # ctrlgen:import

    CONTROLLERS = {
        "profile": ProfileController,
        # ctrlgen:controller
    }

The import line goes right above the import marker and the registry entry
right above the controller marker, indented like the marker.  Patching is
idempotent: a registry that already imports the controller is left alone.
A missing registry file or marker is reported and skipped, never fatal.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from ctrlgen.models import EmittedController, GenerationConfig
from ctrlgen.utils import read_file, relative_module, wrap_in_quotes, write_file

logger: logging.Logger = logging.getLogger("ctrlgen.registry")


class RegistryPatcher:
    """
    Inserts controller imports and entries into ``{api_dir}/{version}/{registry_file}``.

    Args:
        config: Generation settings (layout and marker comments).
        root: Project root the configured directories are relative to.
    """

    def __init__(self, config: GenerationConfig, root: Path) -> None:
        self._config: GenerationConfig = config
        self._root: Path = root

    def registry_dir(self, version: str) -> str:
        return f"{self._config.api_dir}/{version}"

    def registry_path(self, version: str) -> Path:
        return self._root / self.registry_dir(version) / self._config.registry_file

    def import_line(self, controller: EmittedController, version: str) -> str:
        module: str = relative_module(self.registry_dir(version), controller.module_path)
        return f"from {module} import {controller.class_name}"

    def patch(self, controller: EmittedController, version: str) -> bool:
        """
        Register *controller* in the registry of API *version*.

        Returns ``True`` when the registry file was rewritten.
        """
        path: Path = self.registry_path(version)
        if not path.is_file():
            logger.warning("Registry file %s not found; skipping registration.", path)
            return False

        original: str = read_file(path)
        patched: Optional[str] = self.patch_text(original, controller, version)
        if patched is None or patched == original:
            return False

        write_file(path, patched)
        logger.info("Registered %s in %s.", controller.class_name, path)
        return True

    def patch_text(
        self,
        text: str,
        controller: EmittedController,
        version: str,
    ) -> Optional[str]:
        """
        Patched registry source, or ``None`` when nothing should change.

        Operates on text only, so it can be used on a registry that is not
        on disk.
        """
        import_line: str = self.import_line(controller, version)
        lines: List[str] = text.split("\n")
        if any(line.strip() == import_line for line in lines):
            logger.info("%s is already registered.", controller.class_name)
            return None

        import_at: Optional[int] = _find_marker(lines, self._config.import_marker)
        entry_at: Optional[int] = _find_marker(lines, self._config.controller_marker)
        if import_at is None or entry_at is None:
            missing: str = (
                self._config.import_marker if import_at is None else self._config.controller_marker
            )
            logger.warning("Registry marker %r not found; skipping registration.", missing)
            return None

        marker_line: str = lines[entry_at]
        indent: str = marker_line[: len(marker_line) - len(marker_line.lstrip())]
        entry: str = f"{indent}{wrap_in_quotes(controller.registry_key)}: {controller.class_name},"

        # Insert the later line first so the earlier index stays valid.
        insertions = sorted(
            [(import_at, import_line), (entry_at, entry)],
            key=lambda pair: pair[0],
            reverse=True,
        )
        for index, line in insertions:
            lines.insert(index, line)
        return "\n".join(lines)


def _find_marker(lines: List[str], marker: str) -> Optional[int]:
    for index, line in enumerate(lines):
        if line.strip() == marker:
            return index
    return None


__all__: List[str] = ["RegistryPatcher"]
