"""Schema planner — decides whether a shape is inlined or shared.

Size is measured deterministically on the schema itself: the number of leaf
fields after flattening (array items counted through), and the width of the
widest object nested below the root.
"""

import logging

from route_doc_agent.document.registry import ComponentRegistry
from route_doc_agent.parser.base import OperationDescription

logger = logging.getLogger(__name__)

DEFAULT_LEAF_LIMIT = 25
DEFAULT_NESTED_LIMIT = 8


def leaf_count(shape: dict) -> int:
    """Number of scalar leaves in a schema after flattening."""
    if "$ref" in shape:
        return 1
    if shape.get("type") == "array":
        return leaf_count(shape.get("items") or {})
    properties = shape.get("properties")
    if properties:
        return sum(leaf_count(child) for child in properties.values())
    variants = shape.get("oneOf")
    if variants:
        return max(leaf_count(v) for v in variants)
    return 1


def widest_nested_object(shape: dict, depth: int = 0) -> int:
    """Largest property count among objects strictly below the root."""
    widest = 0
    properties = shape.get("properties") or {}
    if depth > 0:
        widest = len(properties)
    children = list(properties.values())
    if shape.get("type") == "array" and shape.get("items"):
        # array items sit at the same level as the array
        return max(widest, widest_nested_object(shape["items"], depth))
    for child in children:
        widest = max(widest, widest_nested_object(child, depth + 1))
    return widest


class SchemaPlanner:
    """Promotes large shapes of an operation to shared schemas."""

    def __init__(self, leaf_limit: int = DEFAULT_LEAF_LIMIT, nested_limit: int = DEFAULT_NESTED_LIMIT):
        self.leaf_limit = leaf_limit
        self.nested_limit = nested_limit

    def should_promote(self, shape: dict) -> bool:
        return leaf_count(shape) > self.leaf_limit or widest_nested_object(shape) >= self.nested_limit

    def plan(self, operation: OperationDescription, registry: ComponentRegistry) -> OperationDescription:
        """Return a copy of the operation with promoted shapes replaced by refs."""
        planned = operation.model_copy(deep=True)

        payload = planned.request_payload
        if payload is not None and self.should_promote(payload.shape):
            name = registry.register(payload.shape_name, payload.shape)
            payload.ref = registry.schema_ref(name)

        for outcome in planned.responses.values():
            if outcome.shape is None or not self.should_promote(outcome.shape):
                continue
            shape = outcome.shape
            if shape.get("type") == "array" and isinstance(shape.get("items"), dict) and shape["items"]:
                name = registry.register(outcome.shape_name, shape["items"])
                outcome.shape = {"type": "array", "items": {"$ref": registry.schema_ref(name)}}
            else:
                name = registry.register(outcome.shape_name, _without_nullable(shape))
                outcome.ref = registry.schema_ref(name)
            logger.debug("Promoted %s response shape to %s", outcome.status, name)
        return planned


def _without_nullable(shape: dict) -> dict:
    return {key: value for key, value in shape.items() if key != "nullable"}
