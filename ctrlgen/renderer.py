# File: ctrlgen/renderer.py
"""
ctrlgen - Python Handler Renderer
=================================
Lowers the clauses of a ``HandlerPlan`` to Python source lines and reports
the imports each clause needs.

Lines are produced at handler-body level (no leading indentation); the
assembler places them inside the method.  Following the ``List[str]`` +
``"\\n".join()`` pattern, no clause renderer concatenates strings in a loop.

Imports come back as ``ImportSpec`` values.  Project imports carry a
root-relative module path (``src/cmn/models/task``) that the assembler turns
into a relative import once it knows where the controller file lives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Type

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
    OwnerField,
    OwnerFilter,
    OwnershipCheck,
    ParseUpload,
    Persist,
    Redact,
    ReplaceFiles,
    RequireUnique,
    Respond,
    RunQuery,
    Validate,
    local_name,
)
from ctrlgen.models import GenerationConfig, RelationRedaction
from ctrlgen.utils import (
    format_list_literal,
    indent_lines,
    to_pascal_case,
    to_snake_case,
    wrap_in_quotes,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.renderer")

_INDENT: str = "    "
_LINE_LENGTH: int = 99
# Handler bodies sit two levels deep: class, then method.
_BODY_INDENT_WIDTH: int = 8

_FILE_UPLOADER_MODULE: str = "file_uploader"


@dataclass(frozen=True)
class ImportSpec:
    """
    One ``from module import names`` requirement.

    ``project`` marks *module* as a root-relative file path inside the
    generated project rather than an importable dotted name.
    """

    module: str
    names: Tuple[str, ...] = ()
    project: bool = False


class PythonRenderer:
    """
    Renders handler statement trees as Python source.

    Args:
        config: Generation settings providing runtime module names and the
            models/helpers directories used for project imports.
    """

    def __init__(self, config: GenerationConfig) -> None:
        self._config: GenerationConfig = config
        self._renderers: Dict[Type[Clause], Callable[[Clause], List[str]]] = {
            AuthCheck: self._render_auth,
            FetchRecord: self._render_fetch,
            BuildQuery: self._render_build_query,
            OwnerFilter: self._render_owner_filter,
            RunQuery: self._render_run_query,
            OwnershipCheck: self._render_ownership,
            RequireUnique: self._render_require_unique,
            BuildInstance: self._render_build_instance,
            AssignOwner: self._render_assign_owner,
            Validate: self._render_validate,
            Persist: self._render_persist,
            ParseUpload: self._render_parse_upload,
            ReplaceFiles: self._render_replace_files,
            DeleteFiles: self._render_delete_files,
            Redact: self._render_redact,
            Respond: self._render_respond,
        }

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def render(self, clause: Clause) -> List[str]:
        """Source lines for one clause."""
        renderer: Optional[Callable[[Clause], List[str]]] = self._renderers.get(type(clause))
        if renderer is None:
            raise TypeError(f"No renderer for clause {type(clause).__name__}")
        return renderer(clause)

    def render_body(self, plan: HandlerPlan) -> List[str]:
        """Source lines of a whole handler body, at body level."""
        lines: List[str] = []
        for clause in plan.clauses:
            lines.extend(self.render(clause))
        return lines

    def imports(self, clause: Clause) -> List[ImportSpec]:
        """Imports the rendered clause depends on."""
        core: str = self._config.core_module
        services: str = self._config.services_module

        if isinstance(clause, (FetchRecord, BuildQuery, RunQuery, BuildInstance)):
            return [self.model_import(clause.model)]
        if isinstance(clause, OwnershipCheck):
            if not clause.require_record and not clause.owner_fields:
                return []
            return [ImportSpec(core, ("DatabaseError", "Err"))]
        if isinstance(clause, RequireUnique):
            return [ImportSpec(core, ("Err",))]
        if isinstance(clause, Validate):
            return [ImportSpec(core, ("ValidationError",))]
        if isinstance(clause, ParseUpload):
            return [ImportSpec("os.path", ("join",)), self._uploader_import()]
        if isinstance(clause, (ReplaceFiles, DeleteFiles)):
            specs: List[ImportSpec] = [
                ImportSpec("os.path", ("join",)),
                ImportSpec(services, ("LogLevel",)),
                self._uploader_import(),
            ]
            if isinstance(clause, DeleteFiles) or clause.parallel:
                specs.append(ImportSpec("asyncio"))
            return specs
        if isinstance(clause, Redact) and clause.relations:
            specs = [ImportSpec("typing", ("Optional",))]
            specs.extend(self._relation_type_imports(clause.relations))
            return specs
        return []

    def plan_imports(self, plan: HandlerPlan) -> List[ImportSpec]:
        specs: List[ImportSpec] = []
        for clause in plan.clauses:
            specs.extend(self.imports(clause))
        return specs

    def model_import(
        self,
        model: str,
        path: Optional[str] = None,
        name: Optional[str] = None,
    ) -> ImportSpec:
        """Project import of a model class (or its ``I<Model>`` type)."""
        parts: List[str] = [self._config.models_dir]
        if path:
            parts.append(path)
        parts.append(to_snake_case(model))
        return ImportSpec("/".join(parts), (name or model,), project=True)

    # -----------------------------------------------------------------
    # Request context and retrieval
    # -----------------------------------------------------------------

    def _render_auth(self, clause: AuthCheck) -> List[str]:
        return [
            "auth_user = self.get_user_from_session(req)",
            "is_admin = self.is_admin(auth_user)",
        ]

    def _render_fetch(self, clause: FetchRecord) -> List[str]:
        args: List[str] = []
        lines: List[str] = []
        if clause.by_instance:
            args.append(f"{clause.by_instance}.id")
        else:
            lines.append("record_id = self.retrieve_id(req)")
            args.append("record_id")
        if clause.relations:
            args.append(f"relations={format_list_literal(clause.relations)}")
        lines.append(f"{clause.target} = await {clause.model}.find({', '.join(args)})")
        return lines

    def _render_build_query(self, clause: BuildQuery) -> List[str]:
        extra: str = ", for_count=True" if clause.for_count else ""
        return [f"query = self.build_query({clause.model}, req.query{extra})"]

    def _render_owner_filter(self, clause: OwnerFilter) -> List[str]:
        pairs: str = ", ".join(f"{wrap_in_quotes(name)}: auth_user.id" for name in clause.fields)
        return [
            "if not is_admin:",
            f"{_INDENT}query.filter({{{pairs}}})",
        ]

    def _render_run_query(self, clause: RunQuery) -> List[str]:
        method: str = "count" if clause.count else "find"
        return [f"{clause.target} = await {clause.model}.{method}(query)"]

    # -----------------------------------------------------------------
    # Ownership
    # -----------------------------------------------------------------

    def _owner_term(self, target: str, owner: OwnerField) -> str:
        value: str = f"{target}.items[0][{wrap_in_quotes(owner.name)}]"
        if owner.embedded:
            value = f"({value} or {{}}).get(\"id\")"
        return f"{value} != auth_user.id"

    def _render_ownership(self, clause: OwnershipCheck) -> List[str]:
        terms: List[str] = [self._owner_term(clause.target, o) for o in clause.owner_fields]
        owner_expr: Optional[str] = None
        if terms:
            owner_expr = terms[0] if len(terms) == 1 else f"({' or '.join(terms)})"

        if clause.require_record and owner_expr:
            condition: str = f"not {clause.target}.items or (not is_admin and {owner_expr})"
        elif clause.require_record:
            condition = f"not {clause.target}.items"
        elif owner_expr:
            condition = f"not is_admin and {owner_expr}"
        else:
            return []

        raise_line: str = f"{_INDENT}raise DatabaseError(Err.Code.DB_NO_RECORD, None)"
        if _fits(f"if {condition}:"):
            return [f"if {condition}:", raise_line]
        return [*self._wrapped_ownership(clause, terms), raise_line]

    def _wrapped_ownership(self, clause: OwnershipCheck, terms: Sequence[str]) -> List[str]:
        """Black-style multi-line form of an ownership condition that is too long."""
        if len(terms) == 1:
            owner_lines: List[str] = [f"and {terms[0]}"]
        else:
            alternatives: List[str] = [terms[0], *(f"or {t}" for t in terms[1:])]
            owner_lines = ["and (", *indent_lines(alternatives), ")"]

        if clause.require_record:
            return [
                f"if not {clause.target}.items or (",
                f"{_INDENT}not is_admin",
                *indent_lines(owner_lines),
                "):",
            ]
        if len(terms) == 1:
            return ["if (", f"{_INDENT}not is_admin", *indent_lines(owner_lines), "):"]
        return [
            "if not is_admin and (",
            *indent_lines([terms[0], *(f"or {t}" for t in terms[1:])]),
            "):",
        ]

    def _render_require_unique(self, clause: RequireUnique) -> List[str]:
        message: str = wrap_in_quotes(f"{clause.model} not found")
        return [
            f"if len({clause.target}.items) != 1:",
            f"{_INDENT}raise Err(Err.Code.DB_RECORD_COUNT, {message})",
        ]

    def _render_assign_owner(self, clause: AssignOwner) -> List[str]:
        return [
            "if not is_admin:",
            *(f"{_INDENT}{clause.instance}.{name} = auth_user.id" for name in clause.fields),
        ]

    # -----------------------------------------------------------------
    # Instance, validation and persistence
    # -----------------------------------------------------------------

    def _render_build_instance(self, clause: BuildInstance) -> List[str]:
        source: str = f"{clause.source}.items[0]" if clause.source else "req.body"
        return [f"{clause.instance} = {clause.model}({source})"]

    def _render_validate(self, clause: Validate) -> List[str]:
        return [
            f"validation_error = {clause.instance}.validate()",
            "if validation_error:",
            f"{_INDENT}raise ValidationError(validation_error)",
        ]

    def _render_persist(self, clause: Persist) -> List[str]:
        return [f"{clause.target} = await {clause.instance}.{clause.operation.value}()"]

    def _render_respond(self, clause: Respond) -> List[str]:
        return [f"res.json({clause.target})"]

    # -----------------------------------------------------------------
    # File lifecycle
    # -----------------------------------------------------------------

    def _render_parse_upload(self, clause: ParseUpload) -> List[str]:
        return [
            f"dest_directory = join(self.config.upload_dir, {wrap_in_quotes(clause.upload_dir)})",
            "uploader = FileUploader(True)",
            "await uploader.parse(req)",
            "upl = await uploader.upload(dest_directory)",
        ]

    def _render_replace_files(self, clause: ReplaceFiles) -> List[str]:
        if not clause.parallel:
            return self._replace_single(clause, clause.files[0])

        lines: List[str] = ["deletions = []"]
        for file_field in clause.files:
            key: str = wrap_in_quotes(file_field.name)
            attr: str = f"{clause.instance}.{file_field.name}"
            lines.append(f"if upl.get({key}):")
            if file_field.is_list:
                lines.append(f"{_INDENT}for file_name in {attr} or []:")
                lines.append(f"{_INDENT * 2}{_schedule_delete('dest_directory', 'file_name')}")
            else:
                lines.append(f"{_INDENT}if {attr}:")
                lines.append(f"{_INDENT * 2}{_schedule_delete('dest_directory', attr)}")
            lines.append(f"{_INDENT}{attr} = upl[{key}]")
        lines.extend(_settle_deletions(clause.action, clause.controller))
        return lines

    def _replace_single(self, clause: ReplaceFiles, file_field: FileField) -> List[str]:
        key: str = wrap_in_quotes(file_field.name)
        attr: str = f"{clause.instance}.{file_field.name}"
        return [
            f"if upl.get({key}):",
            f"{_INDENT}old_file_name = {attr}",
            f"{_INDENT}{attr} = upl[{key}]",
            f"{_INDENT}if old_file_name:",
            f"{_INDENT * 2}try:",
            f"{_INDENT * 3}await FileUploader.check_and_delete_file("
            "join(dest_directory, old_file_name))",
            f"{_INDENT * 2}except Exception as error:",
            f"{_INDENT * 3}{_log_warning('str(error)', clause.action, clause.controller)}",
        ]

    def _render_delete_files(self, clause: DeleteFiles) -> List[str]:
        lines: List[str] = [
            "upload_directory = join(self.config.upload_dir, "
            f"{wrap_in_quotes(clause.upload_dir)})",
            "deletions = []",
        ]
        for file_field in clause.files:
            attr: str = f"{clause.instance}.{file_field.name}"
            if file_field.is_list:
                lines.append(f"for file_name in {attr} or []:")
                lines.append(f"{_INDENT}{_schedule_delete('upload_directory', 'file_name')}")
            else:
                lines.append(f"if {attr}:")
                lines.append(f"{_INDENT}{_schedule_delete('upload_directory', attr)}")
        lines.extend(_settle_deletions(clause.action, clause.controller))
        return lines

    def _uploader_import(self) -> ImportSpec:
        return ImportSpec(
            f"{self._config.helpers_dir}/{_FILE_UPLOADER_MODULE}",
            ("FileUploader",),
            project=True,
        )

    # -----------------------------------------------------------------
    # Redaction
    # -----------------------------------------------------------------

    def _render_redact(self, clause: Redact) -> List[str]:
        items: str = f"{clause.target}.items[:1]" if clause.single else f"{clause.target}.items"
        body: List[str] = [f"item.pop({wrap_in_quotes(name)}, None)" for name in clause.fields]
        body.extend(self._redact_relations("item", "", clause.relations, clause.reserved))
        return [f"for item in {items}:", *indent_lines(body)]

    def _redact_relations(
        self,
        holder: str,
        prefix: str,
        relations: Sequence[RelationRedaction],
        reserved: Sequence[str] = (),
    ) -> List[str]:
        lines: List[str] = []
        for relation in relations:
            variable: str = local_name(
                prefix + to_snake_case(relation.field_name), "value", reserved
            )
            type_name: str = f"I{to_pascal_case(relation.model)}"
            inner: List[str] = [
                f"{variable}.pop({wrap_in_quotes(name)}, None)" for name in relation.fields
            ]
            inner.extend(
                self._redact_relations(variable, f"{variable}_", relation.nested, reserved)
            )
            lines.append(
                f"{variable}: Optional[{type_name}] = "
                f"{holder}.get({wrap_in_quotes(relation.field_name)})"
            )
            lines.append(f"if isinstance({variable}, dict):")
            lines.extend(indent_lines(inner))
        return lines

    def _relation_type_imports(self, relations: Sequence[RelationRedaction]) -> List[ImportSpec]:
        specs: List[ImportSpec] = []
        for relation in relations:
            type_name: str = f"I{to_pascal_case(relation.model)}"
            specs.append(self.model_import(relation.model, relation.model_path, type_name))
            specs.extend(self._relation_type_imports(relation.nested))
        return specs


# ---------------------------------------------------------------------------
# Line helpers
# ---------------------------------------------------------------------------


def _fits(line: str, depth: int = 0) -> bool:
    return _BODY_INDENT_WIDTH + depth * len(_INDENT) + len(line) <= _LINE_LENGTH


def _schedule_delete(directory: str, file_name: str) -> str:
    return f"deletions.append(FileUploader.check_and_delete_file(join({directory}, {file_name})))"


def _log_warning(message: str, action: str, controller: str) -> str:
    return (
        f"req.log(LogLevel.WARNING, {message}, "
        f"{wrap_in_quotes(action)}, {wrap_in_quotes(controller)})"
    )


def _settle_deletions(action: str, controller: str) -> List[str]:
    """Wait for every scheduled deletion; log failures without raising."""
    return [
        "for outcome in await asyncio.gather(*deletions, return_exceptions=True):",
        f"{_INDENT}if isinstance(outcome, Exception):",
        f"{_INDENT * 2}{_log_warning('str(outcome)', action, controller)}",
    ]


__all__: List[str] = ["ImportSpec", "PythonRenderer"]

logger.debug("ctrlgen.renderer loaded.")
