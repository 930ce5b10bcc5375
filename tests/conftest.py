"""
tests/conftest.py
Shared fixtures for the ctrlgen test suite.

No external mocking libraries are used; real file I/O is performed
inside temporary directories managed by pytest's tmp_path fixtures.
"""

from __future__ import annotations

import copy
import dataclasses
import importlib
import logging
import pathlib
import sys
import textwrap
import types
from typing import Any, Callable, Dict, Iterator

import pytest
import yaml

from ctrlgen.assembler import ControllerAssembler
from ctrlgen.generator import parse_raw_schema
from ctrlgen.inspector import SchemaInspector
from ctrlgen.models import ControllerConfig, GenerationConfig, SchemaDefinition
from ctrlgen.utils import to_pascal_case, to_snake_case


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

ROOT_DIR: pathlib.Path = pathlib.Path(__file__).resolve().parent.parent
SCHEMA_EXAMPLE_PATH: pathlib.Path = ROOT_DIR / "schema_example.yaml"

REGISTRY_TEMPLATE: str = textwrap.dedent(
    """\
    from .controller.health_controller import HealthController
    # ctrlgen:import

    CONTROLLERS = {
        "health": HealthController,
        # ctrlgen:controller
    }
    """
)


def build_schema(models: Dict[str, Any]) -> SchemaDefinition:
    """SchemaDefinition from a ``models`` mapping as written in a schema file."""
    return SchemaDefinition.model_validate({"models": models})


# ---------------------------------------------------------------------------
# Raw schema data fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def raw_schema_dict() -> Dict[str, Any]:
    """Load the reference schema_example.yaml once per session and return as dict."""
    assert SCHEMA_EXAMPLE_PATH.exists(), (
        f"Reference schema not found at {SCHEMA_EXAMPLE_PATH}. "
        "Make sure schema_example.yaml is in the project root."
    )
    with open(SCHEMA_EXAMPLE_PATH, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    assert isinstance(data, dict), "Top-level YAML must be a mapping."
    return data


@pytest.fixture()
def schema_dict(raw_schema_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Return a deep copy so each test can mutate freely."""
    return copy.deepcopy(raw_schema_dict)


@pytest.fixture()
def example_schema(schema_dict: Dict[str, Any]) -> SchemaDefinition:
    schema, _ = parse_raw_schema(schema_dict)
    return schema


@pytest.fixture()
def example_config(schema_dict: Dict[str, Any]) -> GenerationConfig:
    _, config = parse_raw_schema(schema_dict)
    return config


@pytest.fixture()
def example_inspector(example_schema: SchemaDefinition) -> SchemaInspector:
    return SchemaInspector(example_schema)


# ---------------------------------------------------------------------------
# Scenario schemas
# ---------------------------------------------------------------------------


@pytest.fixture()
def plain_user_models() -> Dict[str, Any]:
    """A User model with no owner-verified, confidential or file fields."""
    return {
        "User": {
            "fields": {
                "id": {"type": "integer"},
                "username": {"type": "string"},
                "email": {"type": "email"},
            }
        }
    }


@pytest.fixture()
def note_models() -> Dict[str, Any]:
    """One owner-verified field ``user_id`` and one confidential field ``password``."""
    return {
        "Note": {
            "fields": {
                "id": {"type": "integer"},
                "user_id": {"type": "integer", "owner_verified": True},
                "title": {"type": "string"},
                "password": {"type": "password", "confidential": True},
            }
        }
    }


@pytest.fixture()
def two_file_models() -> Dict[str, Any]:
    """A model with two file fields and no security metadata."""
    return {
        "Document": {
            "fields": {
                "id": {"type": "integer"},
                "title": {"type": "string"},
                "front": {"type": "file"},
                "back": {"type": "file"},
            }
        }
    }


@pytest.fixture()
def plain_user_inspector(plain_user_models: Dict[str, Any]) -> SchemaInspector:
    return SchemaInspector(build_schema(plain_user_models))


@pytest.fixture()
def note_inspector(note_models: Dict[str, Any]) -> SchemaInspector:
    return SchemaInspector(build_schema(note_models))


@pytest.fixture()
def two_file_inspector(two_file_models: Dict[str, Any]) -> SchemaInspector:
    return SchemaInspector(build_schema(two_file_models))


# ---------------------------------------------------------------------------
# Project tree fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def project_root(tmp_path: pathlib.Path, schema_dict: Dict[str, Any]) -> pathlib.Path:
    """
    A project tree with the example schema at ``ctrlgen.yaml`` and a v1
    registry carrying both markers.
    """
    root = tmp_path / "project"
    registry = root / "src" / "api" / "v1" / "registry.py"
    registry.parent.mkdir(parents=True)
    registry.write_text(REGISTRY_TEMPLATE, encoding="utf-8")
    with open(root / "ctrlgen.yaml", "w", encoding="utf-8") as fh:
        yaml.dump(schema_dict, fh, default_flow_style=False, sort_keys=False)
    return root


@pytest.fixture()
def registry_path(project_root: pathlib.Path) -> pathlib.Path:
    return project_root / "src" / "api" / "v1" / "registry.py"


@pytest.fixture()
def make_inspector() -> Callable[[Dict[str, Any]], SchemaInspector]:
    """Factory building an inspector from an ad-hoc ``models`` mapping."""

    def _make(models: Dict[str, Any]) -> SchemaInspector:
        return SchemaInspector(build_schema(models))

    return _make


@pytest.fixture()
def registry_template() -> str:
    return REGISTRY_TEMPLATE


@pytest.fixture(autouse=True)
def _reset_ctrlgen_logger() -> None:
    """Undo the CLI's logging setup so caplog sees ctrlgen records."""
    ctrlgen_logger = logging.getLogger("ctrlgen")
    ctrlgen_logger.handlers.clear()
    ctrlgen_logger.propagate = True
    ctrlgen_logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Runtime for generated controllers
# ---------------------------------------------------------------------------
#
# A minimal in-memory implementation of the framework and project modules a
# generated controller imports, so its handlers can be awaited in tests.

FRAMEWORK_SOURCES: Dict[str, str] = {
    "framework/core.py": textwrap.dedent(
        """\
        class Err(Exception):
            class Code:
                DB_NO_RECORD = "DB_NO_RECORD"
                DB_RECORD_COUNT = "DB_RECORD_COUNT"

            def __init__(self, code, message=None):
                super().__init__(code, message)
                self.code = code
                self.message = message


        class DatabaseError(Err):
            pass


        class ValidationError(Exception):
            def __init__(self, errors):
                super().__init__(errors)
                self.errors = errors
        """
    ),
    "framework/services.py": textwrap.dedent(
        """\
        import enum


        class AclAction(enum.Enum):
            READ = "READ"
            ADD = "ADD"
            EDIT = "EDIT"
            DELETE = "DELETE"


        class LogLevel(enum.Enum):
            INFO = "info"
            WARNING = "warning"
            ERROR = "error"
        """
    ),
    "framework/http.py": textwrap.dedent(
        """\
        class Request:
            def __init__(self, body=None, params=None, query=None, files=None):
                self.body = body or {}
                self.params = params or {}
                self.query = query or {}
                self.files = files or {}
                self.logs = []

            def log(self, level, message, action, controller):
                self.logs.append((level, message, action, controller))


        class Response:
            def __init__(self):
                self.payload = None

            def json(self, payload):
                self.payload = payload


        class Router:
            def __init__(self):
                self.routes = []

            def _add(self, verb, path, acl, handler):
                self.routes.append((verb, path, acl, handler))

            def get(self, path, acl, handler):
                self._add("get", path, acl, handler)

            def post(self, path, acl, handler):
                self._add("post", path, acl, handler)

            def put(self, path, acl, handler):
                self._add("put", path, acl, handler)

            def delete(self, path, acl, handler):
                self._add("delete", path, acl, handler)
        """
    ),
}

PROJECT_SOURCES: Dict[str, str] = {
    "src/api/base_controller.py": textwrap.dedent(
        """\
        import types


        class Query:
            def __init__(self, filters):
                self.filters = dict(filters)

            def filter(self, conditions):
                self.filters.update(conditions)


        class BaseController:
            def __init__(self, user=None, admin=False):
                self.user = user
                self.admin = admin
                self.config = types.SimpleNamespace(upload_dir="uploads")

            def get_user_from_session(self, req):
                return self.user

            def is_admin(self, user):
                return self.admin

            def retrieve_id(self, req):
                return req.params["id"]

            def build_query(self, model, params, for_count=False):
                return Query(params)

            def check_acl(self, name, action):
                return (name, action)

            def wrap(self, handler):
                return handler
        """
    ),
    "src/helpers/file_uploader.py": textwrap.dedent(
        """\
        class FileUploader:
            deleted = []
            failing = set()

            def __init__(self, overwrite):
                self.overwrite = overwrite
                self.files = {}

            async def parse(self, req):
                self.files = dict(req.files)

            async def upload(self, directory):
                return dict(self.files)

            @staticmethod
            async def check_and_delete_file(path):
                FileUploader.deleted.append(path)
                if path in FileUploader.failing:
                    raise OSError(f"cannot delete {path}")
        """
    ),
    "src/cmn/models/base.py": textwrap.dedent(
        """\
        import copy


        class Result:
            def __init__(self, items):
                self.items = items


        class Model:
            registry = {}
            relations = {}

            def __init_subclass__(cls, **kwargs):
                super().__init_subclass__(**kwargs)
                cls.store = {}
                Model.registry[cls.__name__] = cls

            def __init__(self, data):
                object.__setattr__(self, "_data", copy.deepcopy(dict(data)))

            def __getattr__(self, name):
                if name.startswith("_"):
                    raise AttributeError(name)
                return self._data.get(name)

            def __setattr__(self, name, value):
                self._data[name] = value

            @classmethod
            def _load(cls, record, relations):
                item = copy.deepcopy(record)
                for field in relations:
                    related = Model.registry[cls.relations[field]]
                    target = related.store.get(item.get(field))
                    item[field] = copy.deepcopy(target) if target is not None else None
                return item

            @classmethod
            async def find(cls, criteria, relations=()):
                if hasattr(criteria, "filters"):
                    records = [
                        r for r in cls.store.values()
                        if all(r.get(k) == v for k, v in criteria.filters.items())
                    ]
                else:
                    record = cls.store.get(criteria)
                    records = [record] if record is not None else []
                return Result([cls._load(r, relations) for r in records])

            @classmethod
            async def count(cls, query):
                return len((await cls.find(query)).items)

            def validate(self):
                return []

            async def insert(self):
                if self._data.get("id") is None:
                    self._data["id"] = max(self.store, default=0) + 1
                return self._save()

            async def update(self):
                return self._save()

            async def remove(self):
                removed = self.store.pop(self._data["id"])
                return Result([copy.deepcopy(removed)])

            def _save(self):
                self.store[self._data["id"]] = copy.deepcopy(self._data)
                return Result([copy.deepcopy(self._data)])
        """
    ),
}

MODEL_MODULE_TEMPLATE: str = textwrap.dedent(
    """\
    from typing import Any, Dict

    from .base import Model

    I{pascal} = Dict[str, Any]


    class {name}(Model):
        relations = {relations!r}
    """
)


def _write_package_file(root: pathlib.Path, relative: str, text: str) -> pathlib.Path:
    """Write *text* under *root*, turning every parent directory into a package."""
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    directory = path.parent
    while directory != root:
        (directory / "__init__.py").touch()
        directory = directory.parent
    path.write_text(text, encoding="utf-8")
    return path


def _drop_runtime_modules() -> None:
    for name in list(sys.modules):
        if name.split(".")[0] in ("src", "framework"):
            del sys.modules[name]


@dataclasses.dataclass
class RuntimeProject:
    """Imported modules of a generated controller and its fake runtime."""

    controller: types.ModuleType
    class_name: str

    def controller_class(self) -> type:
        return getattr(self.controller, self.class_name)

    def model(self, name: str) -> type:
        module = importlib.import_module(f"src.cmn.models.{to_snake_case(name)}")
        return getattr(module, name)

    def module(self, name: str) -> types.ModuleType:
        return importlib.import_module(name)


@pytest.fixture()
def runtime_project(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[Callable[..., RuntimeProject]]:
    """
    Factory that generates a controller for ``model`` from ad-hoc ``models``,
    writes it beside the fake runtime, and imports it.
    """
    root = tmp_path / "runtime"
    root.mkdir()
    monkeypatch.syspath_prepend(str(root))
    _drop_runtime_modules()

    def _load(models: Dict[str, Any], name: str, model: str) -> RuntimeProject:
        schema = build_schema(models)
        for relative, text in {**FRAMEWORK_SOURCES, **PROJECT_SOURCES}.items():
            _write_package_file(root, relative, text)
        for model_name, definition in schema.models.items():
            relations = {
                field_name: meta.relation.model
                for field_name, meta in definition.fields.items()
                if meta.relation is not None
            }
            _write_package_file(
                root,
                f"src/cmn/models/{to_snake_case(model_name)}.py",
                MODEL_MODULE_TEMPLATE.format(
                    name=model_name,
                    pascal=to_pascal_case(model_name),
                    relations=relations,
                ),
            )

        assembler = ControllerAssembler(SchemaInspector(schema), GenerationConfig())
        emitted = assembler.assemble(ControllerConfig(name=name, model=model))
        _write_package_file(root, emitted.file_path, emitted.text)
        importlib.invalidate_caches()
        module = importlib.import_module(emitted.module_path.replace("/", "."))
        return RuntimeProject(controller=module, class_name=emitted.class_name)

    yield _load
    _drop_runtime_modules()
