# File: ctrlgen/synthesizer.py
"""
ctrlgen - Handler Body Synthesizer
==================================

Decides, per route, which clauses the handler body needs and in which
order.  The output is a ``HandlerPlan`` statement tree; no source text is
produced here.

Clause toggles are driven by the model's ``SecurityProfile`` and schema:

- no owner-verified fields  → no ``AuthCheck``, ``OwnerFilter``,
  ``AssignOwner`` and no owner comparison in ``OwnershipCheck``;
- no confidential fields (own or reachable through relations) → no ``Redact``;
- no file fields → no upload route and no ``DeleteFiles``.

Inside a handler the order is always: ownership, validation, persistence.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Tuple

from ctrlgen.inspector import SchemaInspector
from ctrlgen.ir import (
    AssignOwner,
    AuthCheck,
    BuildInstance,
    BuildQuery,
    Clause,
    DeleteFiles,
    FetchRecord,
    FileField,
    HandlerPlan,
    local_name,
    OwnerField,
    OwnerFilter,
    OwnershipCheck,
    ParseUpload,
    Persist,
    PersistOp,
    Redact,
    ReplaceFiles,
    RequireUnique,
    Respond,
    RunQuery,
    Validate,
)
from ctrlgen.models import (
    FieldType,
    GenerationConfig,
    HandlerKind,
    ModelFieldSet,
    RelationRedaction,
    RouteEntry,
    RoutePlan,
    SecurityProfile,
)
from ctrlgen.utils import to_snake_case

logger: logging.Logger = logging.getLogger("ctrlgen.synthesizer")


def instance_name(model: str) -> str:
    """
    Local variable name holding the model instance inside handlers.

    A lowercase model such as ``post`` would otherwise bind the name of its
    own class, so it is suffixed like any other shadowing name.

    >>> instance_name("BlogPost")
    'blog_post'
    >>> instance_name("post")
    'post_instance'
    """
    return local_name(to_snake_case(model), reserved=(model,))


class HandlerSynthesizer:
    """
    Builds the statement tree of each route handler of one controller.

    Args:
        inspector: Schema lookups for the run.
        model: Model the controller serves.
        controller_class: Class name of the emitted controller, used to tag
            warnings logged by generated handlers.
        config: Generation settings (redaction depth).
    """

    def __init__(
        self,
        inspector: SchemaInspector,
        model: str,
        controller_class: str,
        config: Optional[GenerationConfig] = None,
    ) -> None:
        self._inspector: SchemaInspector = inspector
        self._model: str = model
        self._controller: str = controller_class
        self._config: GenerationConfig = config or GenerationConfig()

        self._instance: str = instance_name(model)
        self._upload_dir: str = to_snake_case(model)
        self._profile: SecurityProfile = inspector.security_profile(model)
        self._relations: Tuple[str, ...] = inspector.relation_names(model)
        self._files: Optional[ModelFieldSet] = inspector.fields_by_type(model, FieldType.FILE)
        self._nested_redactions: Tuple[RelationRedaction, ...] = inspector.relation_redactions(
            model, self._config.max_redaction_depth
        )

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    @property
    def profile(self) -> SecurityProfile:
        return self._profile

    @property
    def instance(self) -> str:
        return self._instance

    @property
    def has_files(self) -> bool:
        return bool(self._files)

    def synthesize(self, route: RouteEntry) -> HandlerPlan:
        """Statement tree for one route entry."""
        builders: Dict[HandlerKind, Callable[[], List[Clause]]] = {
            HandlerKind.COUNT: self._count_clauses,
            HandlerKind.GET_ONE: self._get_one_clauses,
            HandlerKind.GET_MANY: self._get_many_clauses,
            HandlerKind.CREATE: self._create_clauses,
            HandlerKind.UPDATE: self._update_clauses,
            HandlerKind.DELETE: lambda: self._delete_clauses(route.method_name),
            HandlerKind.UPLOAD: lambda: self._upload_clauses(route.method_name),
        }
        clauses: List[Clause] = builders[route.handler_kind]()
        logger.debug(
            "Synthesized %s: %s",
            route.method_name,
            ", ".join(type(c).__name__ for c in clauses),
        )
        return HandlerPlan(route=route, clauses=tuple(clauses))

    def synthesize_all(self, plan: RoutePlan) -> Tuple[HandlerPlan, ...]:
        return tuple(self.synthesize(route) for route in plan)

    # -----------------------------------------------------------------
    # Shared clause fragments
    # -----------------------------------------------------------------

    def _auth(self) -> List[Clause]:
        return [AuthCheck()] if self._profile.has_owner_check else []

    def _owner_fields(self, embedded_relations: bool) -> Tuple[OwnerField, ...]:
        owners: List[OwnerField] = []
        for name in self._profile.owner_verified_fields:
            meta = self._inspector.field_meta(self._model, name)
            is_relation: bool = meta.field_type == FieldType.RELATION
            owners.append(OwnerField(name=name, embedded=is_relation and embedded_relations))
        return tuple(owners)

    def _owner_filter(self) -> List[Clause]:
        if not self._profile.has_owner_check:
            return []
        return [OwnerFilter(fields=self._profile.owner_verified_fields)]

    def _assign_owner(self) -> List[Clause]:
        if not self._profile.has_owner_check:
            return []
        return [AssignOwner(instance=self._instance, fields=self._profile.owner_verified_fields)]

    def _redact(self, target: str, single: bool) -> List[Clause]:
        if not self._profile.confidential_fields and not self._nested_redactions:
            return []
        return [
            Redact(
                target=target,
                fields=self._profile.confidential_fields,
                relations=self._nested_redactions,
                single=single,
                reserved=(self._model, self._instance),
            )
        ]

    def _file_fields(self) -> Tuple[FileField, ...]:
        if not self._files:
            return ()
        return tuple(
            FileField(name=name, is_list=meta.is_file_list) for name, meta in self._files.items()
        )

    # -----------------------------------------------------------------
    # Per-route bodies
    # -----------------------------------------------------------------

    def _count_clauses(self) -> List[Clause]:
        return [
            *self._auth(),
            BuildQuery(model=self._model, for_count=True),
            *self._owner_filter(),
            RunQuery(model=self._model, count=True),
            Respond(),
        ]

    def _get_one_clauses(self) -> List[Clause]:
        return [
            *self._auth(),
            FetchRecord(model=self._model, target="result", relations=self._relations),
            OwnershipCheck(
                target="result",
                owner_fields=self._owner_fields(embedded_relations=bool(self._relations)),
            ),
            *self._redact("result", single=True),
            Respond(),
        ]

    def _get_many_clauses(self) -> List[Clause]:
        return [
            *self._auth(),
            BuildQuery(model=self._model),
            *self._owner_filter(),
            RunQuery(model=self._model),
            *self._redact("result", single=False),
            Respond(),
        ]

    def _create_clauses(self) -> List[Clause]:
        return [
            *self._auth(),
            BuildInstance(model=self._model, instance=self._instance),
            *self._assign_owner(),
            Validate(instance=self._instance),
            Persist(instance=self._instance, operation=PersistOp.INSERT),
            *self._redact("result", single=True),
            Respond(),
        ]

    def _update_clauses(self) -> List[Clause]:
        return [
            *self._auth(),
            BuildInstance(model=self._model, instance=self._instance),
            *self._assign_owner(),
            FetchRecord(model=self._model, target="record", by_instance=self._instance),
            OwnershipCheck(target="record", owner_fields=self._owner_fields(False)),
            Validate(instance=self._instance),
            Persist(instance=self._instance, operation=PersistOp.UPDATE),
            *self._redact("result", single=True),
            Respond(),
        ]

    def _delete_clauses(self, action: str) -> List[Clause]:
        clauses: List[Clause] = [
            *self._auth(),
            FetchRecord(model=self._model, target="record"),
            OwnershipCheck(target="record", owner_fields=self._owner_fields(False)),
            BuildInstance(model=self._model, instance=self._instance, source="record"),
        ]
        files: Tuple[FileField, ...] = self._file_fields()
        if files:
            clauses.append(
                DeleteFiles(
                    instance=self._instance,
                    upload_dir=self._upload_dir,
                    files=files,
                    action=action,
                    controller=self._controller,
                )
            )
        clauses += [
            Persist(instance=self._instance, operation=PersistOp.REMOVE),
            Respond(),
        ]
        return clauses

    def _upload_clauses(self, action: str) -> List[Clause]:
        clauses: List[Clause] = [
            *self._auth(),
            FetchRecord(model=self._model, target="record"),
            RequireUnique(target="record", model=self._model),
        ]
        if self._profile.has_owner_check:
            clauses.append(
                OwnershipCheck(
                    target="record",
                    owner_fields=self._owner_fields(False),
                    require_record=False,
                )
            )
        clauses += [
            BuildInstance(model=self._model, instance=self._instance, source="record"),
            ParseUpload(upload_dir=self._upload_dir),
            ReplaceFiles(
                instance=self._instance,
                files=self._file_fields(),
                action=action,
                controller=self._controller,
            ),
            Persist(instance=self._instance, operation=PersistOp.UPDATE),
            *self._redact("result", single=True),
            Respond(),
        ]
        return clauses


__all__: List[str] = ["HandlerSynthesizer", "instance_name"]
