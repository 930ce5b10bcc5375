# File: ctrlgen/inspector.py
"""
ctrlgen - Schema Inspector
==========================

Read-only lookups over a ``SchemaDefinition``: which fields of a model are
files or relations, which are confidential, which must match the
authenticated user.  Every lookup is a pure function of the schema and
raises ``SchemaError`` for unknown models or fields.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from ctrlgen.errors import SchemaError
from ctrlgen.models import (
    FieldMeta,
    FieldType,
    ModelDefinition,
    ModelFieldSet,
    RelationRedaction,
    SchemaDefinition,
    SecurityProfile,
)

logger: logging.Logger = logging.getLogger("ctrlgen.inspector")


class SchemaInspector:
    """
    Field and security-metadata lookups for the models of one schema.

    The inspector is created once per generation run from the loaded schema
    and discarded afterwards; it keeps no other state.
    """

    def __init__(self, schema: SchemaDefinition) -> None:
        self._schema: SchemaDefinition = schema

    @property
    def schema(self) -> SchemaDefinition:
        return self._schema

    def has_model(self, model: str) -> bool:
        return self._schema.get_model(model) is not None

    def model(self, model: str) -> ModelDefinition:
        definition: Optional[ModelDefinition] = self._schema.get_model(model)
        if definition is None:
            raise SchemaError(f"Unknown model '{model}'.")
        return definition

    def fields_by_type(self, model: str, field_type: FieldType) -> Optional[ModelFieldSet]:
        """
        Fields of *model* with the given type, or ``None`` when there are none.

        Lists of files count as ``FieldType.FILE``.
        """
        definition: ModelDefinition = self.model(model)
        if field_type == FieldType.FILE:
            matched: ModelFieldSet = {
                name: meta for name, meta in definition.fields.items() if meta.is_file
            }
        else:
            matched = {
                name: meta
                for name, meta in definition.fields.items()
                if meta.field_type == field_type
            }
        return matched or None

    def field_meta(self, model: str, field_name: str) -> FieldMeta:
        definition: ModelDefinition = self.model(model)
        meta: Optional[FieldMeta] = definition.fields.get(field_name)
        if meta is None:
            raise SchemaError(f"Unknown field '{field_name}' on model '{model}'.")
        return meta

    def confidential_fields(self, model: str) -> Tuple[str, ...]:
        return tuple(
            name for name, meta in self.model(model).fields.items() if meta.confidential
        )

    def owner_verified_fields(self, model: str) -> Tuple[str, ...]:
        return tuple(
            name for name, meta in self.model(model).fields.items() if meta.owner_verified
        )

    def security_profile(self, model: str) -> SecurityProfile:
        return SecurityProfile(
            confidential_fields=self.confidential_fields(model),
            owner_verified_fields=self.owner_verified_fields(model),
        )

    def relation_redactions(
        self,
        model: str,
        max_depth: int = 1,
    ) -> Tuple[RelationRedaction, ...]:
        """
        Nested confidential fields reachable through the relations of *model*.

        Walks the relation graph depth-first, following relations at most
        *max_depth* hops from *model*.  The bound makes the walk terminate on
        self-referencing and cyclic schemas while still redacting a model
        embedded in itself (e.g. ``User.manager``).  Relations whose subtree
        has nothing to redact are omitted.
        """
        return self._walk_relations(model, max_depth)

    def _walk_relations(self, model: str, depth: int) -> Tuple[RelationRedaction, ...]:
        if depth <= 0:
            return ()
        relations: Optional[ModelFieldSet] = self.fields_by_type(model, FieldType.RELATION)
        if not relations:
            return ()

        redactions: List[RelationRedaction] = []
        for field_name, meta in relations.items():
            if meta.relation is None:
                continue
            target: str = meta.relation.model
            redaction: RelationRedaction = RelationRedaction(
                field_name=field_name,
                model=target,
                model_path=meta.relation.path,
                fields=self.confidential_fields(target),
                nested=self._walk_relations(target, depth - 1),
            )
            if not redaction.is_empty:
                redactions.append(redaction)
        return tuple(redactions)

    def relation_names(self, model: str) -> Tuple[str, ...]:
        relations: Optional[ModelFieldSet] = self.fields_by_type(model, FieldType.RELATION)
        return tuple(relations) if relations else ()

    def relation_targets(self) -> Dict[str, Tuple[str, ...]]:
        """Adjacency map model → related models, used for cycle detection."""
        return {
            name: tuple(
                meta.relation.model
                for meta in definition.fields.values()
                if meta.relation is not None
            )
            for name, definition in self._schema.models.items()
        }


__all__: List[str] = ["SchemaInspector"]
