"""JSON-schema shapes derived from type annotations in handler source."""

import ast
import re

from route_doc_agent.errors import SynthesisError

SCALAR_TYPES = {
    "int": {"type": "integer"},
    "float": {"type": "number"},
    "Decimal": {"type": "number"},
    "str": {"type": "string"},
    "bool": {"type": "boolean"},
    "datetime": {"type": "string", "format": "date-time"},
    "date": {"type": "string", "format": "date"},
    "UUID": {"type": "string", "format": "uuid"},
    "dict": {"type": "object"},
    "Dict": {"type": "object"},
    "Any": {},
}

SEQUENCE_TYPES = {"list", "List", "Sequence", "tuple", "Tuple", "set", "Set", "Iterable"}
OPTIONAL_TYPES = {"Optional"}

_ID_NAME = re.compile(r"(^id$|Id$|_id$)")
_META_NAME = re.compile(r"(At$|_at$|^created|^updated|^deleted|^metadata$|^meta$)")


def annotation_to_shape(
    annotation: ast.expr,
    models: dict[str, ast.ClassDef],
    handler: str,
    _seen: tuple[str, ...] = (),
) -> tuple[dict, bool]:
    """Convert an annotation to a (schema, nullable) pair."""
    if isinstance(annotation, ast.Constant):
        if annotation.value is None:
            return {}, True
        if isinstance(annotation.value, str):
            # forward reference
            try:
                parsed = ast.parse(annotation.value, mode="eval").body
            except SyntaxError:
                raise SynthesisError(
                    f"Cannot describe annotation {annotation.value!r} in handler '{handler}'",
                    construct=annotation.value,
                ) from None
            return annotation_to_shape(parsed, models, handler, _seen)

    if isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
        return _union([annotation.left, annotation.right], models, handler, _seen)

    if isinstance(annotation, ast.Subscript):
        outer = _name_of(annotation.value)
        inner = annotation.slice
        if outer in OPTIONAL_TYPES:
            shape, _ = annotation_to_shape(inner, models, handler, _seen)
            return shape, True
        if outer == "Union":
            members = inner.elts if isinstance(inner, ast.Tuple) else [inner]
            return _union(members, models, handler, _seen)
        if outer in SEQUENCE_TYPES:
            item = inner.elts[0] if isinstance(inner, ast.Tuple) else inner
            items, _ = annotation_to_shape(item, models, handler, _seen)
            return {"type": "array", "items": items}, False
        if outer in ("dict", "Dict", "Mapping"):
            return {"type": "object"}, False

    name = _name_of(annotation)
    if name in SCALAR_TYPES:
        return dict(SCALAR_TYPES[name]), False
    if name in SEQUENCE_TYPES:
        return {"type": "array", "items": {}}, False
    if name in models:
        if name in _seen:
            return {"type": "object"}, False
        return model_to_shape(models[name], models, handler, _seen + (name,)), False

    raise SynthesisError(
        f"Cannot describe annotation '{ast.unparse(annotation)}' in handler '{handler}'",
        construct=ast.unparse(annotation),
        context={"handler": handler},
    )


def model_to_shape(
    model: ast.ClassDef,
    models: dict[str, ast.ClassDef],
    handler: str,
    _seen: tuple[str, ...] = (),
) -> dict:
    """Build an object schema from a class with annotated fields."""
    properties = {}
    required = []
    for stmt in model.body:
        if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
            continue
        if _name_of(stmt.annotation) == "ClassVar" or (
            isinstance(stmt.annotation, ast.Subscript) and _name_of(stmt.annotation.value) == "ClassVar"
        ):
            continue
        field_name = stmt.target.id
        shape, nullable = annotation_to_shape(stmt.annotation, models, handler, _seen or (model.name,))
        if nullable:
            shape = {**shape, "nullable": True}
        properties[field_name] = shape
        if stmt.value is None and not nullable:
            required.append(field_name)
    return object_shape(properties, required)


def object_shape(properties: dict[str, dict], required: list[str]) -> dict:
    """Assemble an object schema with properties in canonical order."""
    ordered = order_properties(properties)
    shape: dict = {"type": "object"}
    required = [name for name in ordered if name in required]
    if required:
        shape["required"] = required
    shape["properties"] = ordered
    return shape


def order_properties(properties: dict[str, dict]) -> dict[str, dict]:
    """Identifiers, then scalar attributes, then nested structures, then metadata."""
    ranked = sorted(
        enumerate(properties.items()),
        key=lambda item: (_property_rank(*item[1]), item[0]),
    )
    return {name: shape for _, (name, shape) in ranked}


def _property_rank(name: str, shape: dict) -> int:
    if _ID_NAME.search(name):
        return 0
    if _META_NAME.search(name) or shape.get("format") in ("date", "date-time"):
        return 3
    if shape.get("type") in ("object", "array") or "$ref" in shape:
        return 2
    return 1


def _union(members: list[ast.expr], models, handler, _seen) -> tuple[dict, bool]:
    nullable = False
    shapes = []
    for member in members:
        if isinstance(member, ast.Constant) and member.value is None:
            nullable = True
            continue
        shape, member_nullable = annotation_to_shape(member, models, handler, _seen)
        nullable = nullable or member_nullable
        shapes.append(shape)
    if len(shapes) == 1:
        return shapes[0], nullable
    return {"oneOf": shapes}, nullable


def _name_of(node: ast.AST) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""
