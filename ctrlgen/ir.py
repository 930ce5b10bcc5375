# File: ctrlgen/ir.py
"""
ctrlgen - Handler Statement Tree
================================

Typed clause nodes that describe the body of one generated route handler,
independent of target syntax.  ``ctrlgen.synthesizer`` decides which clauses
a route needs; ``ctrlgen.renderer`` lowers them to source lines.

A handler body is an ordered tuple of clauses executed top to bottom; any
clause that raises ends the request.  Variable names (``result``,
``record``, the model instance) are carried on the nodes so the renderer
never has to guess what an earlier clause bound.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Type, TypeVar

from ctrlgen.models import RelationRedaction, RouteEntry
from ctrlgen.utils import PYTHON_KEYWORDS

# Names bound or imported by generated controller modules; schema-derived
# locals must not shadow them.
HANDLER_LOCALS: FrozenSet[str] = frozenset({
    "self", "req", "res", "result", "record", "record_id", "query", "auth_user",
    "is_admin", "validation_error", "upl", "uploader", "dest_directory",
    "upload_directory", "deletions", "outcome", "error", "item", "file_name",
    "old_file_name", "old_file_names", "join", "asyncio", "Optional",
    "Request", "Response", "Router", "BaseController", "AclAction", "LogLevel",
    "Err", "DatabaseError", "ValidationError", "FileUploader",
})


def local_name(base: str, suffix: str = "instance", reserved: Iterable[str] = ()) -> str:
    """
    *base* as a handler local, suffixed when it would shadow another name.

    *reserved* adds names taken by the handler at hand, such as the model
    class it serves.
    """
    if (
        base in HANDLER_LOCALS
        or base in reserved
        or base in PYTHON_KEYWORDS
        or not base.isidentifier()
    ):
        return f"{base}_{suffix}"
    return base


class PersistOp(str, Enum):
    """Model instance methods that write to storage."""

    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"


@dataclass(frozen=True)
class OwnerField:
    """An owner-verified field and how its stored value resolves to a user id."""

    name: str
    # The value is an embedded related object; compare its "id".
    embedded: bool = False


@dataclass(frozen=True)
class FileField:
    name: str
    is_list: bool = False


# ---------------------------------------------------------------------------
# Clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Clause:
    """Base class of all handler clauses."""


@dataclass(frozen=True)
class AuthCheck(Clause):
    """Bind ``auth_user`` from the session and ``is_admin``."""


@dataclass(frozen=True)
class FetchRecord(Clause):
    """
    Look up one record by id into ``target``.

    The id comes from the request path unless ``by_instance`` names a model
    instance whose ``id`` attribute is used instead.
    """

    model: str
    target: str = "result"
    by_instance: Optional[str] = None
    relations: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BuildQuery(Clause):
    """Translate the request query parameters into ``query``."""

    model: str
    for_count: bool = False


@dataclass(frozen=True)
class OwnerFilter(Clause):
    """Restrict ``query`` to records owned by the user unless admin."""

    fields: Tuple[str, ...]


@dataclass(frozen=True)
class RunQuery(Clause):
    model: str
    count: bool = False
    target: str = "result"


@dataclass(frozen=True)
class OwnershipCheck(Clause):
    """
    Raise ``DatabaseError(DB_NO_RECORD)`` when ``target`` holds no record
    (if ``require_record``) or, for non-admins, when any owner field of the
    first record differs from the user id.
    """

    target: str
    owner_fields: Tuple[OwnerField, ...] = ()
    require_record: bool = True


@dataclass(frozen=True)
class RequireUnique(Clause):
    """Raise ``Err(DB_RECORD_COUNT)`` unless ``target`` holds exactly one record."""

    target: str
    model: str


@dataclass(frozen=True)
class BuildInstance(Clause):
    """Construct ``instance`` from the request body or the first record of ``source``."""

    model: str
    instance: str
    source: Optional[str] = None


@dataclass(frozen=True)
class AssignOwner(Clause):
    """Force owner fields of ``instance`` to the user id unless admin."""

    instance: str
    fields: Tuple[str, ...]


@dataclass(frozen=True)
class Validate(Clause):
    instance: str


@dataclass(frozen=True)
class Persist(Clause):
    instance: str
    operation: PersistOp
    target: str = "result"


@dataclass(frozen=True)
class ParseUpload(Clause):
    """Receive the multipart upload into the model's upload directory as ``upl``."""

    upload_dir: str


@dataclass(frozen=True)
class ReplaceFiles(Clause):
    """
    Point the file fields of ``instance`` at the new uploads and delete the
    previous files, best-effort.  Deletions run in parallel whenever more
    than one old file can be involved.
    """

    instance: str
    files: Tuple[FileField, ...]
    action: str
    controller: str

    @property
    def parallel(self) -> bool:
        return len(self.files) > 1 or any(f.is_list for f in self.files)


@dataclass(frozen=True)
class DeleteFiles(Clause):
    """Delete every stored file of ``instance`` in parallel, best-effort."""

    instance: str
    upload_dir: str
    files: Tuple[FileField, ...]
    action: str
    controller: str


@dataclass(frozen=True)
class Redact(Clause):
    """
    Drop confidential fields from the items of ``target``: the first item
    when ``single``, every item otherwise.
    """

    target: str
    fields: Tuple[str, ...] = ()
    relations: Tuple[RelationRedaction, ...] = ()
    single: bool = False
    # Names the redaction locals must not take (model class, instance).
    reserved: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Respond(Clause):
    target: str = "result"


# ---------------------------------------------------------------------------
# Handler plan
# ---------------------------------------------------------------------------

C = TypeVar("C", bound=Clause)


@dataclass(frozen=True)
class HandlerPlan:
    """The statement tree of one route handler."""

    route: RouteEntry
    clauses: Tuple[Clause, ...]

    @property
    def method_name(self) -> str:
        return self.route.method_name

    def clause_types(self) -> List[Type[Clause]]:
        return [type(c) for c in self.clauses]

    def find(self, kind: Type[C]) -> List[C]:
        """All clauses of the given type, in order."""
        return [c for c in self.clauses if isinstance(c, kind)]

    def has(self, kind: Type[Clause]) -> bool:
        return any(isinstance(c, kind) for c in self.clauses)


__all__: List[str] = [
    "HANDLER_LOCALS",
    "local_name",
    "PersistOp",
    "OwnerField",
    "FileField",
    "Clause",
    "AuthCheck",
    "FetchRecord",
    "BuildQuery",
    "OwnerFilter",
    "RunQuery",
    "OwnershipCheck",
    "RequireUnique",
    "BuildInstance",
    "AssignOwner",
    "Validate",
    "Persist",
    "ParseUpload",
    "ReplaceFiles",
    "DeleteFiles",
    "Redact",
    "Respond",
    "HandlerPlan",
]
