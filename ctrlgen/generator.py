# File: ctrlgen/generator.py
"""
ctrlgen - Controller Generation Pipeline
========================================
Connects every phase of one ``gen controller`` run:

    Schema file → Validation → Assembly → File write → Registry patch

Workflow::

    1. Load the schema from a JSON/YAML file.
    2. Parse it into ``SchemaDefinition`` + ``GenerationConfig``.
    3. Run the semantic validators; errors abort with ``SchemaError``.
    4. Assemble the controller module in memory.
    5. Write the controller file (atomic write).
    6. Register the controller in the version registry.
    7. Return a ``GenerationReport`` with timings.

Nothing is written until step 5, so any failure in steps 1 to 4 leaves the
project untouched.  ``--dry-run`` stops after step 4.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from ctrlgen.assembler import ControllerAssembler
from ctrlgen.errors import SchemaError
from ctrlgen.inspector import SchemaInspector
from ctrlgen.models import (
    ControllerConfig,
    EmittedController,
    GenerationConfig,
    SchemaDefinition,
)
from ctrlgen.registry import RegistryPatcher
from ctrlgen.utils import Timer, count_lines, write_file
from ctrlgen.validators import ValidationResult, validate_full, validate_generation_config

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.generator")


# ---------------------------------------------------------------------------
# Generation report
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class GenerationStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class GenerationReport:
    """Outcome of ``ControllerGenerator.generate()``."""

    success: bool = False
    controller_class: str = ""
    file_path: str = ""
    routes: List[str] = field(default_factory=list)
    registry_patched: bool = False
    dry_run: bool = False

    total_lines: int = 0
    total_bytes: int = 0
    total_elapsed_seconds: float = 0.0

    step_metrics: List[GenerationStepMetric] = field(default_factory=list)
    validation_warnings: List[str] = field(default_factory=list)

    emitted: Optional[EmittedController] = None

    def summary(self) -> str:
        """Return a human-readable summary string."""
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        if self.dry_run:
            status += " (dry run)"
        lines: List[str] = [
            f"{'=' * 60}",
            "  ctrlgen: Generation Report",
            f"{'=' * 60}",
            f"  Status:      {status}",
            f"  Controller:  {self.controller_class}",
            f"  File:        {self.file_path}",
            f"  Routes:      {len(self.routes)}",
            f"  Registered:  {'yes' if self.registry_patched else 'no'}",
            f"  Lines:       {self.total_lines:,}",
            f"  Bytes:       {self.total_bytes:,}",
            f"  Total time:  {self.total_elapsed_seconds:.3f}s",
            f"{'─' * 60}",
        ]

        if self.routes:
            lines.append("  Routes:")
            lines.extend(f"    {route}" for route in self.routes)

        if self.step_metrics:
            lines.append("  Pipeline Steps:")
            for step in self.step_metrics:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<24s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )

        if self.validation_warnings:
            lines.append(f"{'─' * 60}")
            lines.append(f"  Validation Warnings ({len(self.validation_warnings)}):")
            lines.extend(f"    ⚠ {warn}" for warn in self.validation_warnings)

        lines.append(f"{'=' * 60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Schema loader helpers
# ---------------------------------------------------------------------------


def _load_json_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SchemaError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaError(f"Expected a JSON object at top level, got {type(data).__name__}.")
    return data


def _load_yaml_file(path: Path) -> Dict[str, Any]:
    try:
        data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise SchemaError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaError(f"Expected a YAML mapping at top level, got {type(data).__name__}.")
    return data


def load_schema_file(path: Path) -> Dict[str, Any]:
    """
    Load a schema file (JSON or YAML), dispatching on the extension.

    Raises:
        SchemaError: If the file is missing or cannot be parsed.
    """
    if not path.is_file():
        raise SchemaError(f"Schema file not found: {path}")

    suffix: str = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        return _load_yaml_file(path)
    if suffix == ".json":
        return _load_json_file(path)

    logger.info("Unknown extension '%s'; trying JSON then YAML.", suffix)
    try:
        return _load_json_file(path)
    except SchemaError:
        return _load_yaml_file(path)


def _pydantic_details(exc: PydanticValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
        for err in exc.errors()
    ]


def parse_config(raw: Optional[Dict[str, Any]]) -> GenerationConfig:
    try:
        return GenerationConfig.model_validate(raw or {})
    except PydanticValidationError as exc:
        raise SchemaError("Config validation failed.", _pydantic_details(exc)) from exc


def parse_raw_schema(
    raw: Dict[str, Any],
    config_overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[SchemaDefinition, GenerationConfig]:
    """
    Parse a raw dictionary (from JSON/YAML) into validated pydantic models.

    Expected top-level keys: ``models`` (required) and ``config`` (optional).
    *config_overrides* take precedence over the file's ``config`` values.
    """
    if "models" not in raw:
        raise SchemaError("Cannot find model definitions. Expected top-level key: 'models'.")

    config_data: Dict[str, Any] = dict(raw.get("config") or {})
    config_data.update(config_overrides or {})
    config: GenerationConfig = parse_config(config_data)

    try:
        schema: SchemaDefinition = SchemaDefinition.model_validate({"models": raw["models"]})
    except PydanticValidationError as exc:
        raise SchemaError("Schema validation failed.", _pydantic_details(exc)) from exc

    return schema, config


# ---------------------------------------------------------------------------
# ControllerGenerator
# ---------------------------------------------------------------------------


class ControllerGenerator:
    """
    Orchestrates one controller generation.

    Usage::

        generator = ControllerGenerator.from_file(Path("ctrlgen.yaml"), root=Path("."))
        report = generator.generate(ControllerConfig.build(name="profile", model="User"))
        print(report.summary())

    Args:
        schema: Parsed schema, or ``None`` for bare controllers only.
        config: Generation settings.
        root: Project root every configured directory is relative to.
        dry_run: Assemble and report without touching the filesystem.
    """

    def __init__(
        self,
        schema: Optional[SchemaDefinition],
        config: GenerationConfig,
        root: Path,
        *,
        dry_run: bool = False,
    ) -> None:
        self._schema: Optional[SchemaDefinition] = schema
        self._config: GenerationConfig = config
        self._root: Path = root
        self._dry_run: bool = dry_run
        logger.debug(
            "ControllerGenerator initialised (root=%s, dry_run=%s, models=%d).",
            root,
            dry_run,
            len(schema.models) if schema else 0,
        )

    @classmethod
    def from_file(
        cls,
        schema_path: Path,
        root: Path,
        *,
        config_overrides: Optional[Dict[str, Any]] = None,
        dry_run: bool = False,
    ) -> "ControllerGenerator":
        raw: Dict[str, Any] = load_schema_file(schema_path)
        logger.info("Loaded schema file: %s (%d top-level keys).", schema_path, len(raw))
        schema, config = parse_raw_schema(raw, config_overrides)
        schema = schema.model_copy(update={"source_file": str(schema_path)})
        return cls(schema, config, root, dry_run=dry_run)

    @property
    def config(self) -> GenerationConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def generate(self, controller: ControllerConfig) -> GenerationReport:
        """
        Run the pipeline for one controller.

        Raises:
            SchemaError: Missing schema, unknown model, or validation errors.
            OSError: The controller or registry file could not be written.
        """
        pipeline_start: float = time.perf_counter()
        report: GenerationReport = GenerationReport(dry_run=self._dry_run)

        inspector: SchemaInspector = self._step_validate(controller, report)
        emitted: EmittedController = self._step_assemble(inspector, controller, report)

        if not self._dry_run:
            self._step_write(emitted, report)
            self._step_register(emitted, controller.version, report)

        report.success = True
        report.total_elapsed_seconds = time.perf_counter() - pipeline_start
        return report

    # -----------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------

    def _step_validate(
        self,
        controller: ControllerConfig,
        report: GenerationReport,
    ) -> SchemaInspector:
        with Timer("validation") as t:
            if self._schema is None:
                if controller.model:
                    raise SchemaError(
                        f"A schema file is required to generate CRUD for '{controller.model}'."
                    )
                result: ValidationResult = validate_generation_config(self._config)
                schema: SchemaDefinition = SchemaDefinition.model_construct(models={})
            else:
                result = validate_full(self._schema, self._config)
                schema = self._schema

        report.validation_warnings.extend(str(w) for w in result.warnings)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Validate Schema",
            success=result.is_valid,
            elapsed_seconds=t.elapsed,
            detail=f"{result.error_count} error(s), {result.warning_count} warning(s)",
        ))

        for warn in result.warnings:
            logger.warning("  ⚠ %s", warn)
        if result.has_errors:
            raise SchemaError(
                f"Schema validation failed with {result.error_count} error(s).",
                [err.message for err in result.errors],
            )

        inspector: SchemaInspector = SchemaInspector(schema)
        if controller.model and not inspector.has_model(controller.model):
            raise SchemaError(
                f"Unknown model '{controller.model}'.",
                [f"Known models: {', '.join(sorted(schema.models)) or '(none)'}"],
            )
        return inspector

    def _step_assemble(
        self,
        inspector: SchemaInspector,
        controller: ControllerConfig,
        report: GenerationReport,
    ) -> EmittedController:
        with Timer("assemble") as t:
            emitted: EmittedController = ControllerAssembler(inspector, self._config).assemble(
                controller
            )

        report.emitted = emitted
        report.controller_class = emitted.class_name
        report.file_path = emitted.file_path
        report.routes = [
            f"{route.http_verb.value.upper():<6s} {route.url_path}" for route in emitted.routes
        ]
        report.total_lines = count_lines(emitted.text)
        report.total_bytes = len(emitted.text.encode("utf-8"))
        report.step_metrics.append(GenerationStepMetric(
            step_name="Assemble Controller",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(emitted.routes)} routes, ~{report.total_lines:,} lines",
        ))
        logger.info("Assembled %s in %.3fs.", emitted.class_name, t.elapsed)
        return emitted

    def _step_write(self, emitted: EmittedController, report: GenerationReport) -> None:
        path: Path = self._root / emitted.file_path
        if path.exists():
            logger.warning("Overwriting existing controller %s.", path)
        with Timer("write") as t:
            written: int = write_file(path, emitted.text)
        report.step_metrics.append(GenerationStepMetric(
            step_name="Write Controller",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{written:,} bytes",
        ))
        logger.info("Wrote %s (%d bytes).", path, written)

    def _step_register(
        self,
        emitted: EmittedController,
        version: str,
        report: GenerationReport,
    ) -> None:
        with Timer("register") as t:
            patched: bool = RegistryPatcher(self._config, self._root).patch(emitted, version)
        report.registry_patched = patched
        report.step_metrics.append(GenerationStepMetric(
            step_name="Patch Registry",
            success=True,
            elapsed_seconds=t.elapsed,
            detail="registered" if patched else "unchanged",
        ))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ControllerGenerator",
    "GenerationReport",
    "GenerationStepMetric",
    "load_schema_file",
    "parse_config",
    "parse_raw_schema",
]

logger.debug("ctrlgen.generator loaded.")
