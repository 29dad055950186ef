"""Operation synthesizer — turns a resolved handler into an OperationDescription."""

import ast
import logging
from dataclasses import dataclass, field

from route_doc_agent.errors import SynthesisError
from route_doc_agent.generator.narrative import NarrativeWriter, pascal_case, singular, summarize, tag_name
from route_doc_agent.generator.outcomes import (
    NO_CONTENT_SIGNALS,
    OUTCOMES,
    OutcomeKind,
    classify_signal,
    classify_status,
    status_sort_key,
)
from route_doc_agent.generator.shapes import annotation_to_shape, object_shape
from route_doc_agent.parser.base import (
    BODY_VERBS,
    HandlerBinding,
    OperationDescription,
    Param,
    RequestPayload,
    ResponseOutcome,
)
from route_doc_agent.parser.routes import HandlerDeclaration
from route_doc_agent.parser.source import terminal_name

logger = logging.getLogger(__name__)

PAYLOAD_ATTRS = {"body", "json", "data", "form"}
PAYLOAD_METHODS = {"json", "get_json"}
QUERY_ATTRS = {"query", "args", "query_params"}
PUBLIC_DECORATORS = {"public", "allow_anonymous"}

CHECK_TYPES = {
    "bool": "boolean",
    "int": "integer",
    "float": "number",
    "str": "string",
    "list": "array",
    "tuple": "array",
    "dict": "object",
}

PAYLOAD = "payload"
QUERY = "query"


def param_type_for(name: str) -> str:
    """Path tokens named like identifiers are numeric, everything else is text."""
    if name == "id" or name.endswith("Id") or name.endswith("_id"):
        return "integer"
    return "string"


@dataclass
class FieldRead:
    name: str
    required: bool = False
    types: list[str] = field(default_factory=list)


class HandlerBodyScanner(ast.NodeVisitor):
    """Collects payload/query reads, type checks and outcome signals in source order."""

    def __init__(self, handler: str, request_name: str | None):
        self.handler = handler
        self.request_name = request_name
        self.aliases: dict[str, str] = {}
        self.variables: dict[str, tuple[str, str]] = {}
        self.fields: dict[str, dict[str, FieldRead]] = {PAYLOAD: {}, QUERY: {}}
        self.error_kinds: set[OutcomeKind] = set()
        self.no_content = False
        self.returns_payload = False
        self.caught: set[str] = set()

    # nested scopes do not belong to the handler
    def visit_FunctionDef(self, node):
        pass

    visit_AsyncFunctionDef = visit_FunctionDef
    visit_Lambda = visit_FunctionDef
    visit_ClassDef = visit_FunctionDef

    def visit_Assign(self, node: ast.Assign):
        self.visit(node.value)
        self._bind(node.targets, node.value)

    def visit_AnnAssign(self, node: ast.AnnAssign):
        # a bare declaration binds nothing
        if node.value is None:
            return
        self.visit(node.value)
        self._bind([node.target], node.value)

    def visit_NamedExpr(self, node: ast.NamedExpr):
        self.visit(node.value)
        self._bind([node.target], node.value)

    def visit_Subscript(self, node: ast.Subscript):
        # body["x"] = ... and del body["x"] are writes, not reads
        if isinstance(node.ctx, ast.Load):
            self._record(self._read_of(node), required=True)
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call):
        read = self._read_of(node)
        if read:
            self._record(read, required=False)

        name = terminal_name(node.func)
        if name == "isinstance" and len(node.args) == 2:
            self._record_check(node.args[0], _type_names(node.args[1]))
        elif name in CHECK_TYPES and len(node.args) == 1 and isinstance(node.func, ast.Name):
            self._record_check(node.args[0], [name])
        elif name == "abort" and node.args and _int_constant(node.args[0]) is not None:
            self.error_kinds.add(classify_status(_int_constant(node.args[0]), self.handler))
        elif name == "HTTPException":
            status = _status_argument(node)
            if status is None:
                raise SynthesisError(
                    f"HTTPException without a literal status in handler '{self.handler}'",
                    construct=ast.unparse(node),
                )
            self.error_kinds.add(classify_status(status, self.handler))
        elif name in NO_CONTENT_SIGNALS or _status_argument(node) == 204:
            self.no_content = True
        self.generic_visit(node)

    def visit_ExceptHandler(self, node: ast.ExceptHandler):
        if node.name:
            self.caught.add(node.name)
        self.generic_visit(node)

    def visit_Raise(self, node: ast.Raise):
        exc = node.exc
        if isinstance(exc, ast.Name) and exc.id in self.caught:
            # re-raise of a caught exception
            exc = None
        if exc is not None:
            name = terminal_name(exc)
            if name and name != "HTTPException":
                self.error_kinds.add(classify_signal(name, self.handler))
            elif not name:
                raise SynthesisError(
                    f"Cannot classify raised expression '{ast.unparse(exc)}' in handler '{self.handler}'",
                    construct=ast.unparse(exc),
                )
        self.generic_visit(node)

    def visit_Return(self, node: ast.Return):
        value = node.value
        if value is not None and not (isinstance(value, ast.Constant) and value.value is None):
            is_no_content = isinstance(value, ast.Call) and (
                terminal_name(value) in NO_CONTENT_SIGNALS or _status_argument(value) == 204
            )
            if not is_no_content:
                self.returns_payload = True
        self.generic_visit(node)

    def _bind(self, targets: list[ast.expr], value: ast.expr) -> None:
        """Track names assigned from the payload/query or from one of their fields."""
        source = self._source_of(value)
        read = self._read_of(value)
        for target in targets:
            if not isinstance(target, ast.Name):
                self.visit(target)
                continue
            self.aliases.pop(target.id, None)
            self.variables.pop(target.id, None)
            if source:
                self.aliases[target.id] = source
            elif read:
                self.variables[target.id] = read

    def _source_of(self, node: ast.AST) -> str | None:
        """Return PAYLOAD/QUERY when the expression evaluates to the request payload/query."""
        if isinstance(node, ast.Await):
            node = node.value
        if isinstance(node, ast.Name):
            return self.aliases.get(node.id)
        if self.request_name is None:
            return None
        if isinstance(node, ast.Attribute) and _is_name(node.value, self.request_name):
            if node.attr in PAYLOAD_ATTRS:
                return PAYLOAD
            if node.attr in QUERY_ATTRS:
                return QUERY
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and _is_name(node.func.value, self.request_name)
            and node.func.attr in PAYLOAD_METHODS
        ):
            return PAYLOAD
        return None

    def _read_of(self, node: ast.AST) -> tuple[str, str] | None:
        """Return (source, field) for body["x"] / body.get("x") style reads."""
        if isinstance(node, ast.Subscript):
            source = self._source_of(node.value)
            key = node.slice
            if source and isinstance(key, ast.Constant) and isinstance(key.value, str):
                return source, key.value
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr == "get"
            and node.args
            and isinstance(node.args[0], ast.Constant)
            and isinstance(node.args[0].value, str)
        ):
            source = self._source_of(node.func.value)
            if source:
                return source, node.args[0].value
        return None

    def _record(self, read: tuple[str, str] | None, required: bool) -> None:
        if read is None:
            return
        source, name = read
        entry = self.fields[source].setdefault(name, FieldRead(name))
        entry.required = entry.required or required

    def _record_check(self, target: ast.AST, type_names: list[str]) -> None:
        read = self._read_of(target)
        if read is None and isinstance(target, ast.Name):
            read = self.variables.get(target.id)
        if read is None:
            return
        source, name = read
        entry = self.fields[source].setdefault(name, FieldRead(name))
        for type_name in type_names:
            if type_name in CHECK_TYPES and CHECK_TYPES[type_name] not in entry.types:
                entry.types.append(CHECK_TYPES[type_name])


class OperationSynthesizer:
    """Builds OperationDescriptions; never touches the document."""

    def __init__(self, security_scheme: str = "cookieAuth", narrative_writer: NarrativeWriter | None = None):
        self.security_scheme = security_scheme
        self.narrative_writer = narrative_writer or NarrativeWriter()

    def synthesize(
        self,
        binding: HandlerBinding,
        declaration: HandlerDeclaration,
        models: dict[str, ast.ClassDef] | None = None,
        templates: set[str] | frozenset[str] = frozenset(),
    ) -> OperationDescription:
        models = models or {}
        function = declaration.function
        scanner = HandlerBodyScanner(binding.handler_name, _request_name(function))
        for stmt in function.body:
            scanner.visit(stmt)

        operation = OperationDescription(
            tag_name=tag_name(binding.scope_name),
            summary=summarize(binding),
            narrative=self.narrative_writer.write(binding, ast.get_docstring(function)),
            parameters=self._parameters(binding, scanner),
            request_payload=self._request_payload(binding, scanner),
            responses=self._responses(binding, function, scanner, models, templates),
            security=self._security(function),
        )
        logger.debug(
            "Synthesized %s: %d parameter(s), responses %s",
            binding.address,
            len(operation.parameters),
            list(operation.responses),
        )
        return operation

    def _parameters(self, binding: HandlerBinding, scanner: HandlerBodyScanner) -> list[Param]:
        params: list[Param] = []
        seen: set[str] = set()
        for name in binding.path_parameters:
            if name in seen:
                continue
            seen.add(name)
            params.append(Param(name=name, location="path", required=True, param_type=param_type_for(name)))
        for read in scanner.fields[QUERY].values():
            if read.name in seen:
                continue
            seen.add(read.name)
            params.append(
                Param(
                    name=read.name,
                    location="query",
                    required=read.required,
                    param_type=_single_type(read.types) or "string",
                )
            )
        return params

    def _request_payload(self, binding: HandlerBinding, scanner: HandlerBodyScanner) -> RequestPayload | None:
        if binding.http_verb not in BODY_VERBS or not scanner.fields[PAYLOAD]:
            return None
        properties = {}
        required = []
        for read in scanner.fields[PAYLOAD].values():
            if not read.types:
                raise SynthesisError(
                    f"Cannot infer the type of payload field '{read.name}' in handler "
                    f"'{binding.handler_name}': no type check is applied to it",
                    construct=read.name,
                    context={"handler": binding.handler_name},
                )
            if len(read.types) == 1:
                properties[read.name] = {"type": read.types[0]}
            elif set(read.types) == {"integer", "number"}:
                properties[read.name] = {"type": "number"}
            else:
                properties[read.name] = {"oneOf": [{"type": t} for t in read.types]}
            if read.required:
                required.append(read.name)
        return RequestPayload(
            shape=object_shape(properties, required),
            shape_name=pascal_case(binding.handler_name) + "Request",
        )

    def _responses(self, binding, function, scanner, models, templates) -> dict[str, ResponseOutcome]:
        annotation = function.returns
        annotated_payload = annotation is not None and not (
            isinstance(annotation, ast.Constant) and annotation.value is None
        )
        has_payload = scanner.returns_payload or (annotated_payload and not scanner.no_content)

        if has_payload:
            primary_kind = OutcomeKind.OK_WITH_PAYLOAD
        elif scanner.no_content:
            primary_kind = OutcomeKind.NO_CONTENT
        else:
            primary_kind = OutcomeKind.OK_WITHOUT_PAYLOAD

        primary = OUTCOMES[primary_kind]
        outcomes = {
            primary.status: ResponseOutcome(status=primary.status, description=primary.description),
        }
        if primary_kind is OutcomeKind.OK_WITH_PAYLOAD and annotated_payload:
            shape, nullable = annotation_to_shape(annotation, models, binding.handler_name)
            if shape:
                outcomes[primary.status].shape = {**shape, "nullable": True} if nullable else shape
                outcomes[primary.status].shape_name = _shape_name(annotation, models, binding)

        kinds = set(scanner.error_kinds)
        if scanner.no_content and primary_kind is not OutcomeKind.NO_CONTENT:
            kinds.add(OutcomeKind.NO_CONTENT)
        for kind in kinds:
            outcome = OUTCOMES[kind]
            if outcome.status in outcomes:
                continue
            if outcome.template and outcome.template in templates:
                outcomes[outcome.status] = ResponseOutcome(
                    status=outcome.status, description=outcome.description, template=outcome.template
                )
            else:
                outcomes[outcome.status] = ResponseOutcome(status=outcome.status, description=outcome.description)

        return {
            status: outcomes[status]
            for status in sorted(outcomes, key=lambda s: status_sort_key(s, primary.status))
        }

    def _security(self, function) -> list[dict]:
        for decorator in function.decorator_list:
            if terminal_name(decorator) in PUBLIC_DECORATORS:
                return []
        return [{self.security_scheme: []}]


def _request_name(function) -> str | None:
    args = function.args.posonlyargs + function.args.args
    names = [a.arg for a in args if a.arg not in ("self", "cls")]
    return names[0] if names else None


def _shape_name(annotation: ast.expr, models: dict[str, ast.ClassDef], binding: HandlerBinding) -> str:
    """Name of the model the annotation points at, else the singular scope."""
    for node in ast.walk(annotation):
        if isinstance(node, ast.Name) and node.id in models:
            return node.id
        if isinstance(node, ast.Constant) and isinstance(node.value, str) and node.value in models:
            return node.value
    return pascal_case(singular(binding.scope_name))


def _single_type(types: list[str]) -> str | None:
    return types[0] if len(types) == 1 else None


def _type_names(node: ast.AST) -> list[str]:
    if isinstance(node, ast.Tuple):
        return [terminal_name(elt) for elt in node.elts]
    return [terminal_name(node)]


def _is_name(node: ast.AST, name: str) -> bool:
    return isinstance(node, ast.Name) and node.id == name


def _int_constant(node: ast.AST) -> int | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, int) and not isinstance(node.value, bool):
        return node.value
    return None


def _status_argument(node: ast.Call) -> int | None:
    for kw in node.keywords:
        if kw.arg in ("status", "status_code"):
            return _int_constant(kw.value)
    if terminal_name(node) == "HTTPException" and node.args:
        return _int_constant(node.args[0])
    return None
