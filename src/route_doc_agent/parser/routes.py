"""Route resolution: find the one registration that binds a handler.

A handler-bearing class declares its scope through the base initializer and
registers routes with calls like ``self.router.get("/:id", self.getThing)``.
"""

import ast
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from route_doc_agent.errors import ResolutionError
from route_doc_agent.parser.base import HandlerBinding
from route_doc_agent.parser.source import SourceModule, terminal_name

logger = logging.getLogger(__name__)

HTTP_VERBS = ("get", "post", "put", "patch", "delete", "head", "options")

_COLON_TOKEN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_BRACE_TOKEN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass(frozen=True)
class HandlerDeclaration:
    """The AST of a resolved handler and the class that owns it."""

    function: ast.FunctionDef | ast.AsyncFunctionDef
    owner: ast.ClassDef
    source_file: Path


@dataclass(frozen=True)
class Registration:
    verb: str
    route: str
    class_name: str
    source_file: Path
    line: int

    def describe(self) -> str:
        return f"{self.verb.upper()} {self.route!r} in {self.class_name} ({self.source_file}:{self.line})"


@dataclass(frozen=True)
class Found:
    binding: HandlerBinding
    declaration: HandlerDeclaration


@dataclass(frozen=True)
class NotFound:
    handler_name: str
    reason: str


@dataclass(frozen=True)
class Ambiguous:
    handler_name: str
    candidates: list[Registration] = field(default_factory=list)


ResolutionResult = Found | NotFound | Ambiguous


def resolve_route(handler: str, modules: list[SourceModule]) -> ResolutionResult:
    """Search the parsed sources for the registration binding ``handler``.

    ``handler`` is a method name, or ``ClassName.method`` to restrict the
    search to one class.
    """
    class_filter, _, method_name = handler.rpartition(".")

    owners: list[tuple[ast.ClassDef, HandlerDeclaration, str | None]] = []
    for module in modules:
        for node in ast.walk(module.tree):
            if not isinstance(node, ast.ClassDef):
                continue
            if class_filter and node.name != class_filter:
                continue
            function = _find_method(node, method_name)
            if function is None:
                continue
            declaration = HandlerDeclaration(function=function, owner=node, source_file=module.path)
            owners.append((node, declaration, find_scope(node)))

    if not owners:
        return NotFound(handler, f"no class defines a handler named '{method_name}'")

    matches: list[tuple[Registration, HandlerDeclaration, str]] = []
    unscoped = []
    for owner, declaration, scope in owners:
        registrations = find_registrations(owner, method_name, declaration.source_file)
        if registrations and scope is None:
            unscoped.append(owner.name)
            continue
        matches.extend((reg, declaration, scope) for reg in registrations)

    if len(matches) > 1:
        return Ambiguous(handler, [reg for reg, _, _ in matches])
    if not matches:
        if unscoped:
            return NotFound(handler, f"class {unscoped[0]} registers '{method_name}' but declares no scope")
        return NotFound(handler, f"no route registration references '{method_name}'")

    registration, declaration, scope = matches[0]
    path = build_path(scope, registration.route)
    binding = HandlerBinding(
        handler_name=method_name,
        scope_name=scope,
        http_verb=registration.verb,
        route_template=registration.route,
        path=path,
        path_parameters=tuple(_BRACE_TOKEN.findall(path)),
        class_name=registration.class_name,
        source_file=str(registration.source_file),
        line=registration.line,
    )
    logger.debug("Resolved %s to %s", handler, binding.address)
    return Found(binding, declaration)


def require_binding(result: ResolutionResult) -> Found:
    """Return the Found result, raising ResolutionError for the other variants."""
    if isinstance(result, Found):
        return result
    if isinstance(result, Ambiguous):
        candidates = [reg.describe() for reg in result.candidates]
        raise ResolutionError(
            f"Handler '{result.handler_name}' is registered {len(candidates)} times: "
            + "; ".join(candidates)
            + ". Qualify it as ClassName.handler or remove the duplicate registration.",
            kind=ResolutionError.AMBIGUOUS,
            candidates=candidates,
            context={"handler": result.handler_name},
        )
    raise ResolutionError(
        f"Cannot resolve handler '{result.handler_name}': {result.reason}",
        kind=ResolutionError.NOT_FOUND,
        context={"handler": result.handler_name},
    )


def find_scope(owner: ast.ClassDef) -> str | None:
    """Return the scope string the class passes to its base initializer."""
    for node in ast.walk(owner):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        if node.func.attr != "__init__":
            continue
        target = node.func.value
        if isinstance(target, ast.Call) and terminal_name(target) == "super":
            args = node.args
        elif isinstance(target, (ast.Name, ast.Attribute)):
            # Base.__init__(self, "scope")
            args = node.args[1:]
        else:
            continue
        for kw in node.keywords:
            if kw.arg == "scope" and _is_str(kw.value):
                return kw.value.value
        if args and _is_str(args[0]):
            return args[0].value
    return None


def find_registrations(owner: ast.ClassDef, method_name: str, source_file: Path) -> list[Registration]:
    """Return every route registration in the class that references the handler."""
    found = []
    for node in ast.walk(owner):
        if not isinstance(node, ast.Call) or not isinstance(node.func, ast.Attribute):
            continue
        verb = node.func.attr.lower()
        if verb not in HTTP_VERBS or not node.args or not _is_str(node.args[0]):
            continue
        handler_args = list(node.args[1:]) + [kw.value for kw in node.keywords if kw.arg == "handler"]
        if any(_references(arg, method_name) for arg in handler_args):
            found.append(
                Registration(
                    verb=verb,
                    route=node.args[0].value,
                    class_name=owner.name,
                    source_file=source_file,
                    line=node.lineno,
                )
            )
    found.sort(key=lambda reg: reg.line)
    return found


def build_path(scope: str, route: str) -> str:
    """Prefix the route with its scope and convert :name tokens to {name}."""
    scope = scope.strip("/")
    route = route.strip()
    if route in ("", "/"):
        path = f"/{scope}"
    else:
        if not route.startswith("/"):
            route = "/" + route
        path = f"/{scope}{route.rstrip('/')}"
    return _COLON_TOKEN.sub(r"{\1}", path)


def _find_method(owner: ast.ClassDef, name: str) -> ast.FunctionDef | ast.AsyncFunctionDef | None:
    for stmt in owner.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)) and stmt.name == name:
            return stmt
    return None


def _references(node: ast.AST, method_name: str) -> bool:
    if isinstance(node, ast.Attribute):
        return node.attr == method_name and isinstance(node.value, ast.Name) and node.value.id == "self"
    if isinstance(node, ast.Name):
        return node.id == method_name
    return False


def _is_str(node: ast.AST) -> bool:
    return isinstance(node, ast.Constant) and isinstance(node.value, str)
