import pytest

from route_doc_agent.document.registry import ComponentRegistry, structural_key
from route_doc_agent.errors import SchemaNameConflict

ASSOCIATION = {
    "type": "object",
    "required": ["id", "name"],
    "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
}


def _document(schemas=None, responses=None) -> dict:
    components = {}
    if schemas is not None:
        components["schemas"] = schemas
    if responses is not None:
        components["responses"] = responses
    return {"openapi": "3.0.3", "paths": {}, "components": components}


class TestStructuralKey:
    def test_property_and_required_order_ignored(self):
        reordered = {
            "properties": {"name": {"type": "string"}, "id": {"type": "integer"}},
            "required": ["name", "id"],
            "type": "object",
        }
        assert structural_key(reordered) == structural_key(ASSOCIATION)

    def test_types_matter(self):
        changed = {**ASSOCIATION, "properties": {"id": {"type": "string"}, "name": {"type": "string"}}}
        assert structural_key(changed) != structural_key(ASSOCIATION)


class TestComponentRegistry:
    def test_register_new_shape(self):
        document = _document()
        registry = ComponentRegistry(document)
        assert registry.register("Association", ASSOCIATION) == "Association"
        assert document["components"]["schemas"]["Association"] == ASSOCIATION

    def test_identical_shape_reused_under_existing_name(self):
        document = _document(schemas={"Club": dict(ASSOCIATION)})
        registry = ComponentRegistry(document)
        assert registry.register("Association", ASSOCIATION) == "Club"
        assert list(document["components"]["schemas"]) == ["Club"]

    def test_name_conflict(self):
        document = _document(schemas={"Association": {"type": "object", "properties": {"id": {"type": "string"}}}})
        registry = ComponentRegistry(document)
        with pytest.raises(SchemaNameConflict) as exc_info:
            registry.register("Association", ASSOCIATION)
        assert exc_info.value.name == "Association"
        assert document["components"]["schemas"]["Association"]["properties"] == {"id": {"type": "string"}}

    def test_names_inserted_in_lexical_order(self):
        document = _document(schemas={
            "Alpha": {"type": "string"},
            "Gamma": {"type": "integer"},
        })
        registry = ComponentRegistry(document)
        registry.register("Beta", ASSOCIATION)
        registry.register("Zeta", {"type": "boolean"})
        assert list(document["components"]["schemas"]) == ["Alpha", "Beta", "Gamma", "Zeta"]

    def test_response_templates(self):
        registry = ComponentRegistry(_document(responses={"BadRequest": {"description": "Bad"}}))
        assert registry.response_templates() == frozenset({"BadRequest"})

    def test_no_components_section(self):
        document = {"openapi": "3.0.3", "paths": {}}
        registry = ComponentRegistry(document)
        assert registry.response_templates() == frozenset()
        registry.register("Association", ASSOCIATION)
        assert "Association" in document["components"]["schemas"]

    def test_refs(self):
        assert ComponentRegistry.schema_ref("Association") == "#/components/schemas/Association"
        assert ComponentRegistry.response_ref("NotFound") == "#/components/responses/NotFound"
