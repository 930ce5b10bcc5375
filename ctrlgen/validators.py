# File: ctrlgen/validators.py
"""
ctrlgen - Schema & Configuration Validators
===========================================
Cross-entity semantic validation on top of the pydantic models in
``ctrlgen.models``.

Pydantic already guarantees per-field structure (relation present iff the
type is ``relation``, ``list_type`` only on lists).  This module checks what
only makes sense across the whole schema: names usable in generated Python,
relation targets that exist, relation cycles, and owner-verified fields
whose values cannot be compared with a user id.

Usage:
    from ctrlgen.validators import validate_full
    result = validate_full(schema, config)
    if result.has_errors:
        raise SchemaError(...)
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from ctrlgen.ir import HANDLER_LOCALS
from ctrlgen.models import FieldType, GenerationConfig, SchemaDefinition
from ctrlgen.utils import is_identifier

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.validators")

# ---------------------------------------------------------------------------
# Validation result container
# ---------------------------------------------------------------------------


class ValidationError:
    """Lightweight issue descriptor (no pydantic overhead)."""

    __slots__ = ("level", "code", "message", "context")

    def __init__(
        self,
        level: str,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.level: str = level  # "error" | "warning" | "info"
        self.code: str = code
        self.message: str = message
        self.context: Dict[str, Any] = context or {}

    @property
    def is_error(self) -> bool:
        return self.level == "error"

    @property
    def is_warning(self) -> bool:
        return self.level == "warning"

    def __repr__(self) -> str:
        return f"[{self.level.upper()}] {self.code}: {self.message}"

    def __str__(self) -> str:
        return self.__repr__()


class ValidationResult:
    """Accumulates ``ValidationError`` instances produced by the checks."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: List[ValidationError] = []

    # -- Mutation -----------------------------------------------------------

    def add_error(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("error", code, message, context))

    def add_warning(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("warning", code, message, context))

    def add_info(
        self,
        code: str,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._items.append(ValidationError("info", code, message, context))

    def merge(self, other: "ValidationResult") -> None:
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def errors(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_error]

    @property
    def warnings(self) -> List[ValidationError]:
        return [e for e in self._items if e.is_warning]

    @property
    def has_errors(self) -> bool:
        return any(e.is_error for e in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for e in self._items if e.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for e in self._items if e.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def codes(self) -> List[str]:
        return [e.code for e in self._items]

    def summary(self) -> str:
        return (
            f"Validation: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def __repr__(self) -> str:
        return f"<ValidationResult {self.summary()}>"

    def __bool__(self) -> bool:
        """Truthy when there are NO errors (i.e. valid)."""
        return self.is_valid

    def __len__(self) -> int:
        return len(self._items)


# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

_PASCAL_CASE_RE: re.Pattern[str] = re.compile(r"^[A-Z][a-zA-Z0-9]*$")
_DOTTED_MODULE_RE: re.Pattern[str] = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$"
)

# Owner values are compared with the user id; these types never hold one.
_NON_OWNER_TYPES: FrozenSet[FieldType] = frozenset({
    FieldType.FILE,
    FieldType.LIST,
    FieldType.OBJECT,
    FieldType.BOOLEAN,
})


# ---------------------------------------------------------------------------
# Individual checks
# ---------------------------------------------------------------------------


def validate_model_names(schema: SchemaDefinition) -> ValidationResult:
    """Model names become class names and import targets."""
    result: ValidationResult = ValidationResult()
    for name in schema.models:
        if not is_identifier(name):
            result.add_error(
                "INVALID_MODEL_NAME",
                f"Model name '{name}' is not a valid Python identifier.",
                {"model": name},
            )
        elif name in HANDLER_LOCALS:
            result.add_error(
                "RESERVED_MODEL_NAME",
                f"Model name '{name}' collides with a name bound in generated "
                f"controllers.",
                {"model": name},
            )
        elif not _PASCAL_CASE_RE.match(name):
            result.add_warning(
                "MODEL_NAME_NOT_PASCAL",
                f"Model name '{name}' is not PascalCase; generated class "
                f"references will use it verbatim.",
                {"model": name},
            )
    return result


def validate_field_names(schema: SchemaDefinition) -> ValidationResult:
    """Field names are emitted as attribute accesses on model instances."""
    result: ValidationResult = ValidationResult()
    for model_name, model in schema.models.items():
        if not model.fields:
            result.add_warning(
                "MODEL_WITHOUT_FIELDS",
                f"Model '{model_name}' declares no fields.",
                {"model": model_name},
            )
        for field_name in model.fields:
            if not is_identifier(field_name):
                result.add_error(
                    "INVALID_FIELD_NAME",
                    f"Field '{model_name}.{field_name}' is not a valid Python identifier.",
                    {"model": model_name, "field": field_name},
                )
    return result


def validate_relations(schema: SchemaDefinition) -> ValidationResult:
    """Every relation must point at a model of the schema."""
    result: ValidationResult = ValidationResult()
    for model_name, model in schema.models.items():
        for field_name, meta in model.fields.items():
            if meta.relation is None:
                continue
            if schema.get_model(meta.relation.model) is None:
                result.add_error(
                    "UNKNOWN_RELATION_TARGET",
                    f"Relation '{model_name}.{field_name}' references unknown "
                    f"model '{meta.relation.model}'.",
                    {"model": model_name, "field": field_name},
                )
    return result


def validate_relation_cycles(schema: SchemaDefinition) -> ValidationResult:
    """
    Report cyclic relation chains using iterative DFS.

    Nested redaction follows relations only ``max_redaction_depth`` hops, so
    cycles are safe to generate; they are reported because confidential
    fields deeper than that bound stay in embedded objects.
    """
    result: ValidationResult = ValidationResult()

    adjacency: Dict[str, Set[str]] = defaultdict(set)
    for model_name, model in schema.models.items():
        for meta in model.fields.values():
            if meta.relation is None:
                continue
            if meta.relation.model == model_name:
                result.add_info(
                    "SELF_RELATION",
                    f"Model '{model_name}' relates to itself.",
                    {"model": model_name},
                )
            elif meta.relation.model in schema.models:
                adjacency[model_name].add(meta.relation.model)

    visited: Set[str] = set()
    in_stack: Set[str] = set()
    cycles_found: List[List[str]] = []

    for start in schema.models:
        if start in visited:
            continue

        stack: List[Tuple[str, bool]] = [(start, False)]
        path: List[str] = []

        while stack:
            node, is_returning = stack.pop()

            if is_returning:
                in_stack.discard(node)
                if path and path[-1] == node:
                    path.pop()
                continue

            if node in in_stack:
                cycle_start: int = path.index(node) if node in path else len(path)
                cycles_found.append(path[cycle_start:] + [node])
                continue

            if node in visited:
                continue

            visited.add(node)
            in_stack.add(node)
            path.append(node)

            stack.append((node, True))
            for neighbour in sorted(adjacency.get(node, set())):
                stack.append((neighbour, False))

    for cycle in cycles_found:
        result.add_warning(
            "CIRCULAR_RELATION",
            f"Circular relation chain detected: {' → '.join(cycle)}. "
            f"Nested redaction stops after max_redaction_depth hops.",
            {"cycle": cycle},
        )
    return result


def validate_owner_fields(schema: SchemaDefinition) -> ValidationResult:
    """Owner-verified fields must hold a user id (or a related user)."""
    result: ValidationResult = ValidationResult()
    for model_name, model in schema.models.items():
        for field_name, meta in model.fields.items():
            if not meta.owner_verified:
                continue
            if meta.field_type in _NON_OWNER_TYPES:
                result.add_error(
                    "INVALID_OWNER_FIELD",
                    f"Field '{model_name}.{field_name}' of type "
                    f"'{meta.field_type.value}' cannot be owner-verified.",
                    {"model": model_name, "field": field_name},
                )
            if meta.confidential:
                result.add_warning(
                    "CONFIDENTIAL_OWNER_FIELD",
                    f"Field '{model_name}.{field_name}' is both owner-verified and "
                    f"confidential; it will be stripped from responses.",
                    {"model": model_name, "field": field_name},
                )
    return result


def validate_generation_config(config: GenerationConfig) -> ValidationResult:
    """Runtime module names and registry settings must be usable as written."""
    result: ValidationResult = ValidationResult()
    for key in ("core_module", "services_module", "http_module"):
        value: str = getattr(config, key)
        if not _DOTTED_MODULE_RE.match(value):
            result.add_error(
                "INVALID_MODULE_NAME",
                f"'{key}' must be a dotted module name, got '{value}'.",
                {"key": key},
            )
    if not config.registry_file.endswith(".py"):
        result.add_error(
            "INVALID_REGISTRY_FILE",
            f"registry_file must be a Python module, got '{config.registry_file}'.",
        )
    for key in ("import_marker", "controller_marker"):
        marker: str = getattr(config, key)
        if not marker.lstrip().startswith("#"):
            result.add_warning(
                "MARKER_NOT_COMMENT",
                f"'{key}' is not a comment; the registry may not import cleanly.",
                {"key": key},
            )
    if config.import_marker == config.controller_marker:
        result.add_error(
            "DUPLICATE_MARKER",
            "import_marker and controller_marker must differ.",
        )
    return result


# ---------------------------------------------------------------------------
# Aggregate validators
# ---------------------------------------------------------------------------


def validate_schema(schema: SchemaDefinition) -> ValidationResult:
    """Run all schema-level validators and merge their results."""
    result: ValidationResult = ValidationResult()

    validators: List[Callable[[SchemaDefinition], ValidationResult]] = [
        validate_model_names,
        validate_field_names,
        validate_relations,
        validate_relation_cycles,
        validate_owner_fields,
    ]

    for validator_fn in validators:
        logger.debug("Running validator: %s", validator_fn.__name__)
        result.merge(validator_fn(schema))

    logger.info("Schema validation complete: %s", result.summary())
    return result


def validate_full(
    schema: SchemaDefinition,
    config: GenerationConfig,
) -> ValidationResult:
    """
    **Master validation entry point.**

    Runs the schema validators and the configuration validators.  This is
    the function ``generator.py`` calls before synthesis.
    """
    logger.info("Starting full validation: %d models.", len(schema.models))

    result: ValidationResult = ValidationResult()
    result.merge(validate_schema(schema))
    result.merge(validate_generation_config(config))

    if result.has_errors:
        logger.error(
            "Validation FAILED with %d error(s). %s",
            result.error_count,
            result.summary(),
        )
    else:
        logger.info("Validation PASSED. %s", result.summary())
    return result


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ValidationError",
    "ValidationResult",
    "validate_model_names",
    "validate_field_names",
    "validate_relations",
    "validate_relation_cycles",
    "validate_owner_fields",
    "validate_generation_config",
    "validate_schema",
    "validate_full",
]

logger.debug("ctrlgen.validators loaded — %d public symbols.", len(__all__))
