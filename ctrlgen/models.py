# File: ctrlgen/models.py
"""
ctrlgen - Core Data Models
==========================
Pydantic V2 models describing the model schema and the generator
configuration, plus the small frozen value types passed between the
synthesis stages:

    SchemaDefinition → SecurityProfile → RoutePlan → HandlerPlan → EmittedController

Schema models are frozen: a ``SchemaDefinition`` is loaded once per
generation run and only read afterwards.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    computed_field,
    field_validator,
    model_validator,
)

from ctrlgen.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.models")

_CONTROLLER_NAME_RE: re.Pattern[str] = re.compile(r"^[a-z]+$", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class FieldType(str, Enum):
    """Field types understood by the schema."""

    STRING = "string"
    TEXT = "text"
    PASSWORD = "password"
    TEL = "tel"
    EMAIL = "email"
    URL = "url"
    NUMBER = "number"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    OBJECT = "object"
    FILE = "file"
    RELATION = "relation"
    LIST = "list"


class HandlerKind(str, Enum):
    """What a generated route handler does."""

    COUNT = "count"
    GET_ONE = "get_one"
    GET_MANY = "get_many"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    UPLOAD = "upload"


class AclAction(str, Enum):
    """Access-control operation classes, as named by the runtime ``AclAction``."""

    READ = "READ"
    ADD = "ADD"
    EDIT = "EDIT"
    DELETE = "DELETE"


class HttpVerb(str, Enum):
    """HTTP verbs used by the route table (values are router method names)."""

    GET = "get"
    POST = "post"
    PUT = "put"
    DELETE = "delete"


# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SCHEMA_CONFIG: ConfigDict = ConfigDict(
    strict=False,
    populate_by_name=True,
    use_enum_values=False,
    frozen=True,
    extra="forbid",
)


# ---------------------------------------------------------------------------
# Schema primitives
# ---------------------------------------------------------------------------


class RelationInfo(BaseModel):
    """Target of a relation field."""

    model_config = _SCHEMA_CONFIG

    model: str = Field(..., min_length=1, description="Related model name.")
    path: Optional[str] = Field(
        default=None,
        description="Sub-directory of the models dir holding the related model.",
    )

    @field_validator("path")
    @classmethod
    def _strip_path(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped: str = v.strip("/")
        return stripped or None


class FieldMeta(BaseModel):
    """
    Metadata of one model field.

    ``relation`` is present iff ``field_type`` is ``relation``; ``list_type``
    (the item type of a list) may only be set on ``list`` fields.
    """

    model_config = _SCHEMA_CONFIG

    field_name: str = Field(..., min_length=1, description="Field name.")
    field_type: FieldType = Field(..., alias="type", description="Field type.")
    relation: Optional[RelationInfo] = Field(default=None)
    list_type: Optional[FieldType] = Field(default=None, description="Item type of a list.")
    confidential: bool = Field(default=False, description="Never sent in responses.")
    owner_verified: bool = Field(
        default=False,
        description="Must equal the authenticated user's id for non-admin access.",
    )

    @model_validator(mode="after")
    def _check_relation_invariant(self) -> "FieldMeta":
        is_relation: bool = self.field_type == FieldType.RELATION
        if is_relation and self.relation is None:
            raise ValueError(
                f"Field '{self.field_name}' is of type relation but 'relation' is missing."
            )
        if not is_relation and self.relation is not None:
            raise ValueError(
                f"Field '{self.field_name}' declares a relation but is of type "
                f"'{self.field_type.value}'."
            )
        if self.list_type is not None and self.field_type != FieldType.LIST:
            raise ValueError(
                f"Field '{self.field_name}' sets 'list_type' but is not a list."
            )
        return self

    @property
    def is_file(self) -> bool:
        """True for file fields and lists of files."""
        return self.field_type == FieldType.FILE or (
            self.field_type == FieldType.LIST and self.list_type == FieldType.FILE
        )

    @property
    def is_file_list(self) -> bool:
        return self.field_type == FieldType.LIST and self.list_type == FieldType.FILE

    def __repr__(self) -> str:
        return f"<FieldMeta {self.field_name}: {self.field_type.value}>"


# Field name → metadata, in declaration order.
ModelFieldSet = Dict[str, FieldMeta]


class ModelDefinition(BaseModel):
    """A named model and its fields."""

    model_config = _SCHEMA_CONFIG

    name: str = Field(..., min_length=1)
    fields: Dict[str, FieldMeta] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _inject_field_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw_fields: Any = data.get("fields") or {}
        if isinstance(raw_fields, dict):
            fields: Dict[str, Any] = {}
            for name, meta in raw_fields.items():
                if isinstance(meta, dict):
                    meta = {"field_name": name, **meta}
                fields[name] = meta
            data = {**data, "fields": fields}
        return data

    def __repr__(self) -> str:
        return f"<Model {self.name} ({len(self.fields)} fields)>"


# ---------------------------------------------------------------------------
# Generation configuration
# ---------------------------------------------------------------------------


class GenerationConfig(BaseModel):
    """
    Project layout and runtime module names used by emitted controllers.

    Directory values are POSIX paths relative to the project root.
    """

    model_config = ConfigDict(
        strict=False,
        populate_by_name=True,
        validate_assignment=True,
        frozen=False,
        extra="forbid",
    )

    # -- Project layout -----------------------------------------------------
    api_dir: str = Field(default="src/api", description="Root of the API package.")
    models_dir: str = Field(default="src/cmn/models", description="Model modules.")
    helpers_dir: str = Field(default="src/helpers", description="Helper modules.")
    registry_file: str = Field(
        default="registry.py",
        description="Controller registry module inside each API version dir.",
    )
    import_marker: str = Field(default="# ctrlgen:import", min_length=1)
    controller_marker: str = Field(default="# ctrlgen:controller", min_length=1)

    # -- Runtime framework modules -----------------------------------------
    core_module: str = Field(
        default="framework.core",
        description="Provides Err, DatabaseError and ValidationError.",
    )
    services_module: str = Field(
        default="framework.services",
        description="Provides AclAction and LogLevel.",
    )
    http_module: str = Field(
        default="framework.http",
        description="Provides Request, Response and Router.",
    )

    # -- Synthesis ----------------------------------------------------------
    max_redaction_depth: int = Field(
        default=1,
        ge=1,
        le=8,
        description="How many relation hops nested redaction follows.",
    )

    @field_validator("api_dir", "models_dir", "helpers_dir")
    @classmethod
    def _normalise_dir(cls, v: str) -> str:
        stripped: str = v.strip().strip("/")
        if not stripped:
            raise ValueError("Directory settings must not be empty.")
        return stripped


class SchemaDefinition(BaseModel):
    """
    The root model: every model the generator can reference.

    ``models`` is keyed by model name, which makes lookups O(1).
    """

    model_config = _SCHEMA_CONFIG

    models: Dict[str, ModelDefinition] = Field(..., min_length=1)
    source_file: Optional[str] = Field(default=None, description="Schema file path.")

    @model_validator(mode="before")
    @classmethod
    def _inject_model_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        raw_models: Any = data.get("models")
        if isinstance(raw_models, dict):
            models: Dict[str, Any] = {}
            for name, body in raw_models.items():
                if isinstance(body, dict):
                    body = {"name": name, **body}
                elif body is None:
                    body = {"name": name}
                models[name] = body
            data = {**data, "models": models}
        return data

    def get_model(self, name: str) -> Optional[ModelDefinition]:
        """O(1) model lookup."""
        return self.models.get(name)

    @computed_field  # type: ignore[misc]
    @property
    def model_names(self) -> List[str]:
        return list(self.models)

    def __repr__(self) -> str:
        return f"<SchemaDefinition {len(self.models)} models>"


# ---------------------------------------------------------------------------
# Controller arguments
# ---------------------------------------------------------------------------


class ControllerConfig(BaseModel):
    """Arguments of one ``gen controller`` invocation."""

    model_config = ConfigDict(strict=False, frozen=True, extra="forbid")

    name: str = Field(..., description="Controller name, letters only.")
    model: Optional[str] = Field(default=None, description="Model to build CRUD for.")
    route: str = Field(default="/", description="Routing path prefix.")
    version: str = Field(default="v1", min_length=1, description="API version.")

    @field_validator("name", mode="before")
    @classmethod
    def _check_name(cls, v: Any) -> str:
        if not isinstance(v, str) or not _CONTROLLER_NAME_RE.match(v):
            raise ValueError("Missing/Invalid controller name")
        return v

    @field_validator("model")
    @classmethod
    def _check_model(cls, v: Optional[str]) -> Optional[str]:
        # A bare `--model` flag arrives as "true"
        if v is not None and (v == "true" or not v.strip()):
            raise ValueError("Missing/Invalid model name")
        return v

    @field_validator("version")
    @classmethod
    def _check_version(cls, v: str) -> str:
        if not v.isidentifier():
            raise ValueError(f"Invalid API version '{v}'")
        return v

    @classmethod
    def build(cls, **kwargs: Any) -> "ControllerConfig":
        """Validate raw arguments, raising ``ConfigurationError`` on failure."""
        try:
            return cls(**kwargs)
        except PydanticValidationError as exc:
            messages: List[str] = [
                str(err.get("ctx", {}).get("error", err["msg"])) for err in exc.errors()
            ]
            raise ConfigurationError(
                "; ".join(messages)
                + "\nSee 'ctrlgen gen controller --help' for more information"
            ) from exc


# ---------------------------------------------------------------------------
# Synthesis value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SecurityProfile:
    """Per-model security metadata, in field declaration order."""

    confidential_fields: Tuple[str, ...] = ()
    owner_verified_fields: Tuple[str, ...] = ()

    @property
    def has_owner_check(self) -> bool:
        return bool(self.owner_verified_fields)


@dataclass(frozen=True)
class RouteEntry:
    """One (verb, path, ACL, handler) tuple of the controller's route table."""

    method_name: str
    http_verb: HttpVerb
    url_path: str
    acl_path: str
    acl_action: AclAction
    handler_kind: HandlerKind


# Ordered route table of one controller.
RoutePlan = Tuple[RouteEntry, ...]


@dataclass(frozen=True)
class RelationRedaction:
    """
    Confidential fields to strip from the object embedded under ``field_name``.

    ``nested`` repeats the structure for relations of the related model.
    """

    field_name: str
    model: str
    model_path: Optional[str]
    fields: Tuple[str, ...] = ()
    nested: Tuple["RelationRedaction", ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.fields and all(n.is_empty for n in self.nested)


@dataclass(frozen=True)
class EmittedController:
    """The assembled controller module, ready to be written."""

    class_name: str
    registry_key: str
    module_path: str
    file_path: str
    text: str
    routes: RoutePlan = ()
    imports: Dict[str, frozenset] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "FieldType",
    "HandlerKind",
    "AclAction",
    "HttpVerb",
    "RelationInfo",
    "FieldMeta",
    "ModelFieldSet",
    "ModelDefinition",
    "GenerationConfig",
    "SchemaDefinition",
    "ControllerConfig",
    "SecurityProfile",
    "RouteEntry",
    "RoutePlan",
    "RelationRedaction",
    "EmittedController",
]

logger.debug("ctrlgen.models loaded — %d public symbols.", len(__all__))
