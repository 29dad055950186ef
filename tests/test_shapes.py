import ast
import textwrap

import pytest

from route_doc_agent.errors import SynthesisError
from route_doc_agent.generator.shapes import annotation_to_shape, model_to_shape, order_properties


def _models(source: str) -> dict[str, ast.ClassDef]:
    tree = ast.parse(textwrap.dedent(source))
    return {node.name: node for node in tree.body if isinstance(node, ast.ClassDef)}


def _annotation(text: str) -> ast.expr:
    return ast.parse(text, mode="eval").body


MODELS = _models("""
    class Address:
        street: str
        city: str

    class Customer:
        updatedAt: datetime
        address: Address
        email: str
        customerId: int
        nickname: Optional[str] = None
        tags: list[str] = []
""")


class TestAnnotationToShape:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("int", {"type": "integer"}),
            ("float", {"type": "number"}),
            ("bool", {"type": "boolean"}),
            ("datetime", {"type": "string", "format": "date-time"}),
            ("UUID", {"type": "string", "format": "uuid"}),
            ("list[int]", {"type": "array", "items": {"type": "integer"}}),
            ("dict[str, int]", {"type": "object"}),
        ],
    )
    def test_builtin_types(self, text, expected):
        shape, nullable = annotation_to_shape(_annotation(text), {}, "handler")
        assert shape == expected
        assert nullable is False

    @pytest.mark.parametrize("text", ["Optional[str]", "str | None", "Union[str, None]"])
    def test_nullable(self, text):
        shape, nullable = annotation_to_shape(_annotation(text), {}, "handler")
        assert shape == {"type": "string"}
        assert nullable is True

    def test_forward_reference(self):
        shape, _ = annotation_to_shape(_annotation("'Address'"), MODELS, "handler")
        assert shape["properties"] == {"street": {"type": "string"}, "city": {"type": "string"}}

    def test_unknown_name_fails(self):
        with pytest.raises(SynthesisError) as exc_info:
            annotation_to_shape(_annotation("Mystery"), MODELS, "getThing")
        assert exc_info.value.construct == "Mystery"
        assert "getThing" in str(exc_info.value)

    def test_self_reference_does_not_recurse(self):
        models = _models("""
            class Node:
                id: int
                parent: Optional[Node] = None
        """)
        shape = model_to_shape(models["Node"], models, "handler")
        assert shape["properties"]["parent"] == {"type": "object", "nullable": True}


class TestModelToShape:
    def test_property_order_and_required(self):
        shape = model_to_shape(MODELS["Customer"], MODELS, "handler")
        assert list(shape["properties"]) == ["customerId", "email", "nickname", "address", "tags", "updatedAt"]
        assert shape["required"] == ["customerId", "email", "address", "updatedAt"]
        assert shape["properties"]["nickname"] == {"type": "string", "nullable": True}
        assert shape["properties"]["address"]["type"] == "object"


class TestOrderProperties:
    def test_identifiers_attributes_nested_metadata(self):
        ordered = order_properties({
            "metadata": {"type": "object"},
            "createdAt": {"type": "string"},
            "members": {"type": "array"},
            "name": {"type": "string"},
            "id": {"type": "integer"},
            "birthday": {"type": "string", "format": "date"},
            "ownerId": {"type": "integer"},
        })
        assert list(ordered) == ["id", "ownerId", "name", "members", "metadata", "createdAt", "birthday"]
