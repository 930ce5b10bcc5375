# File: ctrlgen/routes.py
"""
ctrlgen - Route Plan Builder
============================

Derives the fixed CRUD route table of a controller:

    GET    {path}/count      READ
    GET    {path}/:id        READ
    GET    {path}            READ
    POST   {path}            ADD
    PUT    {path}            EDIT
    DELETE {path}/:id        DELETE
    POST   {path}/file/:id   EDIT     (only for models with file fields)

``{path}`` is the route base with the lower-camel-cased controller name
appended.  The detail and upload routes extend the list path, so the
emitted router registers them under it.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

from ctrlgen.models import AclAction, HandlerKind, HttpVerb, RouteEntry, RoutePlan
from ctrlgen.utils import collapse_slashes, to_camel_case, to_plural, to_snake_case

logger: logging.Logger = logging.getLogger("ctrlgen.routes")


def normalize_routing_path(route: str, controller_name: str) -> str:
    """
    Leading-slash route path ending with the controller name.

    Examples:
        >>> normalize_routing_path("account", "profile")
        '/account/profile'
        >>> normalize_routing_path("/", "profile")
        '/profile'
    """
    path: str = route or ""
    if not path.startswith("/"):
        path = "/" + path
    path += "/" + to_camel_case(controller_name)
    return collapse_slashes(path)


def acl_identifier(routing_path: str) -> str:
    """
    Dotted access-control identifier for a route path.

    Examples:
        >>> acl_identifier("/account/profile")
        'account.profile'
    """
    acl: str = collapse_slashes(routing_path).replace("/", ".")
    return acl[1:] if acl.startswith(".") else acl


def handler_method_names(model: str) -> Dict[HandlerKind, str]:
    """Private handler method name per handler kind for *model*."""
    snake: str = to_snake_case(model)
    return {
        HandlerKind.COUNT: f"_get_{snake}_count",
        HandlerKind.GET_ONE: f"_get_{snake}",
        HandlerKind.GET_MANY: f"_get_{to_plural(snake)}",
        HandlerKind.CREATE: f"_add_{snake}",
        HandlerKind.UPDATE: f"_update_{snake}",
        HandlerKind.DELETE: f"_remove_{snake}",
        HandlerKind.UPLOAD: "_upload",
    }


def build_route_plan(
    model: str,
    controller_name: str,
    route: str = "/",
    has_files: bool = False,
) -> RoutePlan:
    """
    Build the ordered route table for a CRUD controller over *model*.

    The upload route is appended only when *has_files* is true.
    """
    path: str = normalize_routing_path(route, controller_name)
    acl: str = acl_identifier(path)
    names: Dict[HandlerKind, str] = handler_method_names(model)

    table: List[Tuple[HandlerKind, HttpVerb, str, AclAction]] = [
        (HandlerKind.COUNT, HttpVerb.GET, f"{path}/count", AclAction.READ),
        (HandlerKind.GET_ONE, HttpVerb.GET, f"{path}/:id", AclAction.READ),
        (HandlerKind.GET_MANY, HttpVerb.GET, path, AclAction.READ),
        (HandlerKind.CREATE, HttpVerb.POST, path, AclAction.ADD),
        (HandlerKind.UPDATE, HttpVerb.PUT, path, AclAction.EDIT),
        (HandlerKind.DELETE, HttpVerb.DELETE, f"{path}/:id", AclAction.DELETE),
    ]
    if has_files:
        table.append((HandlerKind.UPLOAD, HttpVerb.POST, f"{path}/file/:id", AclAction.EDIT))

    plan: List[RouteEntry] = [
        RouteEntry(
            method_name=names[kind],
            http_verb=verb,
            url_path=url,
            acl_path=acl,
            acl_action=action,
            handler_kind=kind,
        )
        for kind, verb, url, action in table
    ]
    logger.debug("Route plan for %s at %s: %d routes.", model, path, len(plan))
    return tuple(plan)


__all__: List[str] = [
    "normalize_routing_path",
    "acl_identifier",
    "handler_method_names",
    "build_route_plan",
]
