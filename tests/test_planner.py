from route_doc_agent.document.registry import ComponentRegistry
from route_doc_agent.generator.planner import SchemaPlanner, leaf_count, widest_nested_object
from route_doc_agent.parser.base import OperationDescription, RequestPayload, ResponseOutcome


def _object(n: int, prefix: str = "field") -> dict:
    return {"type": "object", "properties": {f"{prefix}{i}": {"type": "string"} for i in range(n)}}


def _operation(shape: dict | None = None, payload: dict | None = None) -> OperationDescription:
    return OperationDescription(
        tag_name="Associations",
        summary="Get associations",
        narrative="Returns associations.",
        request_payload=RequestPayload(shape=payload, shape_name="CreateAssociationRequest") if payload else None,
        responses={
            "200": ResponseOutcome(
                status="200",
                description="Successful response",
                shape=shape,
                shape_name="Association",
            ),
        },
    )


class TestMeasures:
    def test_leaf_count_flattens(self):
        shape = {
            "type": "object",
            "properties": {
                "id": {"type": "integer"},
                "owner": _object(3),
                "members": {"type": "array", "items": _object(4)},
            },
        }
        assert leaf_count(shape) == 8

    def test_widest_nested_ignores_root(self):
        assert widest_nested_object(_object(12)) == 0
        nested = {"type": "object", "properties": {"owner": _object(9), "name": {"type": "string"}}}
        assert widest_nested_object(nested) == 9

    def test_array_root_items_are_not_nested(self):
        assert widest_nested_object({"type": "array", "items": _object(10)}) == 0


class TestSchemaPlanner:
    def test_small_shape_stays_inline(self):
        registry = ComponentRegistry({"paths": {}})
        planned = SchemaPlanner().plan(_operation(_object(5)), registry)
        assert planned.responses["200"].ref is None
        assert planned.responses["200"].shape == _object(5)
        assert registry.schemas == {}

    def test_too_many_leaves_promotes(self):
        document = {"paths": {}}
        registry = ComponentRegistry(document)
        operation = _operation(_object(26))
        planned = SchemaPlanner().plan(operation, registry)
        assert planned.responses["200"].ref == "#/components/schemas/Association"
        assert document["components"]["schemas"]["Association"] == _object(26)
        # the input description is left untouched
        assert operation.responses["200"].ref is None

    def test_wide_nested_object_promotes(self):
        shape = {"type": "object", "properties": {"id": {"type": "integer"}, "owner": _object(8)}}
        registry = ComponentRegistry({"paths": {}})
        planned = SchemaPlanner().plan(_operation(shape), registry)
        assert planned.responses["200"].ref == "#/components/schemas/Association"

    def test_array_items_promoted(self):
        item = {"type": "object", "properties": {"id": {"type": "integer"}, "owner": _object(8)}}
        registry = ComponentRegistry({"paths": {}})
        planned = SchemaPlanner().plan(_operation({"type": "array", "items": item}), registry)
        assert planned.responses["200"].shape == {
            "type": "array",
            "items": {"$ref": "#/components/schemas/Association"},
        }
        assert registry.schemas["Association"] == item

    def test_identical_shape_collapses(self):
        document = {"paths": {}, "components": {"schemas": {"Club": _object(30)}}}
        registry = ComponentRegistry(document)
        planned = SchemaPlanner().plan(_operation(_object(30)), registry)
        assert planned.responses["200"].ref == "#/components/schemas/Club"
        assert list(document["components"]["schemas"]) == ["Club"]

    def test_payload_promoted_with_request_name(self):
        registry = ComponentRegistry({"paths": {}})
        planned = SchemaPlanner(leaf_limit=2).plan(_operation(payload=_object(3, "p")), registry)
        assert planned.request_payload.ref == "#/components/schemas/CreateAssociationRequest"

    def test_custom_limits(self):
        planner = SchemaPlanner(leaf_limit=3, nested_limit=2)
        assert planner.should_promote(_object(4))
        assert not planner.should_promote(_object(3))
        assert planner.should_promote({"type": "object", "properties": {"child": _object(2)}})
