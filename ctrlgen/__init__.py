# File: ctrlgen/__init__.py
"""
ctrlgen - Schema-Driven REST Controller Generator
=================================================

Turns model definitions (JSON/YAML) carrying per-field security metadata
into the source of REST controllers: CRUD handlers with access-control
gating, ownership enforcement, confidential-field redaction and file-upload
lifecycle management.

Pipeline::

    cli.py ──▶ generator.py ──▶ validators.py
                    │
                    ├──▶ assembler.py ──▶ inspector.py, routes.py,
                    │                     synthesizer.py (ir.py), renderer.py,
                    │                     sourcegen.py
                    └──▶ registry.py

Usage::

    # As a library
    from ctrlgen import ControllerConfig, ControllerGenerator
    generator = ControllerGenerator.from_file(Path("ctrlgen.yaml"), root=Path("."))
    report = generator.generate(ControllerConfig.build(name="profile", model="User"))

    # From the command line
    ctrlgen gen controller profile --model=User --route=account
"""

from __future__ import annotations

__version__: str = "0.1.0"
__license__: str = "MIT"

from ctrlgen.errors import ConfigurationError, CtrlgenError, SchemaError
from ctrlgen.models import (
    ControllerConfig,
    EmittedController,
    FieldMeta,
    FieldType,
    GenerationConfig,
    ModelDefinition,
    SchemaDefinition,
    SecurityProfile,
)
from ctrlgen.inspector import SchemaInspector
from ctrlgen.routes import build_route_plan
from ctrlgen.synthesizer import HandlerSynthesizer
from ctrlgen.renderer import PythonRenderer
from ctrlgen.assembler import ControllerAssembler
from ctrlgen.registry import RegistryPatcher
from ctrlgen.validators import ValidationResult, validate_full
from ctrlgen.generator import ControllerGenerator, GenerationReport

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    "__version__",
    "__license__",
    # Orchestration
    "ControllerGenerator",
    "GenerationReport",
    # Errors
    "CtrlgenError",
    "ConfigurationError",
    "SchemaError",
    # Models
    "ControllerConfig",
    "EmittedController",
    "FieldMeta",
    "FieldType",
    "GenerationConfig",
    "ModelDefinition",
    "SchemaDefinition",
    "SecurityProfile",
    # Pipeline stages
    "SchemaInspector",
    "build_route_plan",
    "HandlerSynthesizer",
    "PythonRenderer",
    "ControllerAssembler",
    "RegistryPatcher",
    # Validation
    "validate_full",
    "ValidationResult",
]
