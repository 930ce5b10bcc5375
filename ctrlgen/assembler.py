# File: ctrlgen/assembler.py
"""
ctrlgen - Controller Assembler
==============================
Composes the handler bodies of one controller into a complete module:

1. resolve where the controller file lives and what its class is called;
2. build the route plan and a statement tree per route;
3. render every tree, collecting the imports each clause asks for;
4. emit ``route(self, router)`` registering the handlers in plan order.

Project imports (base controller, models, helpers) are written relative to
the controller's package so the emitted tree can be moved as a whole.
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from ctrlgen.inspector import SchemaInspector
from ctrlgen.ir import HandlerPlan
from ctrlgen.models import (
    ControllerConfig,
    EmittedController,
    GenerationConfig,
    RouteEntry,
    RoutePlan,
)
from ctrlgen.renderer import ImportSpec, PythonRenderer
from ctrlgen.routes import build_route_plan
from ctrlgen.sourcegen import Access, ClassGen, MethodGen, PyFileGen
from ctrlgen.synthesizer import HandlerSynthesizer
from ctrlgen.utils import (
    relative_module,
    to_camel_case,
    to_pascal_case,
    to_snake_case,
    wrap_in_quotes,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ctrlgen.assembler")

_BASE_CONTROLLER_MODULE: str = "base_controller"


def controller_location(config: GenerationConfig, controller: ControllerConfig) -> Tuple[str, str]:
    """
    Package directory and module path (no ``.py``) of a controller.

    Examples:
        >>> controller = ControllerConfig(name="profile", route="account")
        >>> controller_location(GenerationConfig(), controller)
        ('src/api/v1/controller/account', 'src/api/v1/controller/account/profile_controller')
    """
    segments: List[str] = [
        to_snake_case(part) for part in controller.route.split("/") if part.strip()
    ]
    directory: str = "/".join(
        [config.api_dir, controller.version, "controller", *segments]
    )
    return directory, f"{directory}/{to_snake_case(controller.name)}_controller"


class ControllerAssembler:
    """
    Builds ``EmittedController`` values from controller arguments.

    Args:
        inspector: Schema lookups for the run.
        config: Generation settings.
    """

    def __init__(self, inspector: SchemaInspector, config: GenerationConfig) -> None:
        self._inspector: SchemaInspector = inspector
        self._config: GenerationConfig = config
        self._renderer: PythonRenderer = PythonRenderer(config)

    def assemble(self, controller: ControllerConfig) -> EmittedController:
        """Assemble the full controller module for *controller*."""
        class_name: str = f"{to_pascal_case(controller.name)}Controller"
        directory, module_path = controller_location(self._config, controller)

        file_gen: PyFileGen = PyFileGen(f"{class_name}: generated by ctrlgen.")
        self._add_imports(
            file_gen,
            directory,
            [
                ImportSpec(
                    f"{self._config.api_dir}/{_BASE_CONTROLLER_MODULE}",
                    ("BaseController",),
                    project=True,
                ),
                ImportSpec(self._config.http_module, ("Router",)),
            ],
        )

        class_gen: ClassGen = file_gen.add_class(class_name)
        class_gen.set_parent_class("BaseController")
        route_method: MethodGen = class_gen.add_method("route")
        route_method.add_parameter("router", "Router")

        plan: RoutePlan = ()
        if controller.model:
            plan = self._add_crud(file_gen, class_gen, route_method, directory, controller)
        else:
            logger.info("No model given; emitting bare controller %s.", class_name)

        text: str = file_gen.generate()
        logger.info(
            "Assembled %s (%d routes, %d lines).",
            class_name,
            len(plan),
            text.count("\n"),
        )
        return EmittedController(
            class_name=class_name,
            registry_key=to_camel_case(controller.name),
            module_path=module_path,
            file_path=f"{module_path}.py",
            text=text,
            routes=plan,
            imports=file_gen.imports,
        )

    # -----------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------

    def _add_crud(
        self,
        file_gen: PyFileGen,
        class_gen: ClassGen,
        route_method: MethodGen,
        directory: str,
        controller: ControllerConfig,
    ) -> RoutePlan:
        model: str = controller.model or ""
        definition = self._inspector.model(model)
        class_gen.docstring = f"CRUD endpoints for {definition.name}."

        synthesizer: HandlerSynthesizer = HandlerSynthesizer(
            self._inspector, model, class_gen.name, self._config
        )
        plan: RoutePlan = build_route_plan(
            model, controller.name, controller.route, has_files=synthesizer.has_files
        )

        self._add_imports(
            file_gen,
            directory,
            [
                ImportSpec(self._config.http_module, ("Request", "Response")),
                ImportSpec(self._config.services_module, ("AclAction",)),
            ],
        )
        for route in plan:
            route_method.append_content(self._route_registration(route))

        for handler in synthesizer.synthesize_all(plan):
            self._add_handler(file_gen, class_gen, directory, handler)
        return plan

    def _add_handler(
        self,
        file_gen: PyFileGen,
        class_gen: ClassGen,
        directory: str,
        handler: HandlerPlan,
    ) -> None:
        method: MethodGen = class_gen.add_method(
            handler.method_name, access=Access.PRIVATE, is_async=True
        )
        method.add_parameter("req", "Request")
        method.add_parameter("res", "Response")
        method.append_content(self._renderer.render_body(handler))
        self._add_imports(file_gen, directory, self._renderer.plan_imports(handler))

    def _add_imports(
        self,
        file_gen: PyFileGen,
        directory: str,
        specs: List[ImportSpec],
    ) -> None:
        for spec in specs:
            module: str = relative_module(directory, spec.module) if spec.project else spec.module
            file_gen.add_import(spec.names, module)

    @staticmethod
    def _route_registration(route: RouteEntry) -> List[str]:
        acl: str = (
            f"self.check_acl({wrap_in_quotes(route.acl_path)}, "
            f"AclAction.{route.acl_action.value})"
        )
        return [
            f"router.{route.http_verb.value}(",
            f"    {wrap_in_quotes(route.url_path)},",
            f"    {acl},",
            f"    self.wrap(self.{route.method_name}),",
            ")",
        ]


__all__: List[str] = ["ControllerAssembler", "controller_location"]
