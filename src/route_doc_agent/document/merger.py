"""Document merger — inserts or refines one operation in an OpenAPI document.

States for one run:

    Absent  -> Created                  skeleton built, operation inserted
    Present -> PathMissing              path item inserted at its lexical position
            -> PathPresentVerbMissing   operation added under the existing path item
            -> PathPresentVerbPresent   missing or empty fields filled, nothing removed

The merger works on a deep copy of the loaded snapshot; the caller serializes
the copy and writes it once.
"""

import copy
import logging
from enum import Enum

from route_doc_agent.config import Settings
from route_doc_agent.document.ordering import (
    OPERATION_FIELD_ORDER,
    field_rank,
    insert_ordered,
    insert_sorted_item,
    verb_rank,
)
from route_doc_agent.document.registry import ComponentRegistry
from route_doc_agent.document.store import new_skeleton
from route_doc_agent.generator.outcomes import status_sort_key
from route_doc_agent.parser.base import HandlerBinding, OperationDescription, Param, ResponseOutcome

logger = logging.getLogger(__name__)

JSON_MEDIA_TYPE = "application/json"


class MergeState(str, Enum):
    CREATED = "created"
    PATH_INSERTED = "path-inserted"
    OPERATION_ADDED = "operation-added"
    OPERATION_REFINED = "operation-refined"
    UNCHANGED = "unchanged"


def render_param(param: Param) -> dict:
    return {
        "name": param.name,
        "in": param.location,
        "required": param.required,
        "schema": {"type": param.param_type},
    }


def render_response(outcome: ResponseOutcome) -> dict:
    if outcome.template:
        return {"$ref": ComponentRegistry.response_ref(outcome.template)}
    rendered: dict = {"description": outcome.description}
    if outcome.ref:
        rendered["content"] = {JSON_MEDIA_TYPE: {"schema": {"$ref": outcome.ref}}}
    elif outcome.shape:
        rendered["content"] = {JSON_MEDIA_TYPE: {"schema": outcome.shape}}
    return rendered


def render_operation(operation: OperationDescription) -> dict:
    """Render an operation with fields in the fixed document order."""
    rendered: dict = {
        "tags": [operation.tag_name],
        "summary": operation.summary,
        "description": operation.narrative,
    }
    if operation.parameters:
        rendered["parameters"] = [render_param(p) for p in operation.parameters]
    if operation.request_payload is not None:
        payload = operation.request_payload
        schema = {"$ref": payload.ref} if payload.ref else payload.shape
        rendered["requestBody"] = {"required": True, "content": {JSON_MEDIA_TYPE: {"schema": schema}}}
    rendered["responses"] = {status: render_response(o) for status, o in operation.responses.items()}
    rendered["security"] = operation.security
    return rendered


class DocumentMerger:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def start(self, snapshot: dict | None, tag: str) -> tuple[dict, bool]:
        """Return the working document and whether it was newly created."""
        if snapshot is None:
            logger.info("Target document absent; starting from the skeleton")
            return new_skeleton(self.settings, tag), True
        return copy.deepcopy(snapshot), False

    def merge(
        self,
        document: dict,
        binding: HandlerBinding,
        operation: OperationDescription,
        created: bool = False,
    ) -> MergeState:
        """Merge one operation into the working document in place."""
        self._ensure_tag(document, operation.tag_name)

        rendered = render_operation(operation)
        paths = document.get("paths") or {}
        path, verb = binding.path, binding.http_verb

        if path not in paths:
            document["paths"] = insert_ordered(paths, path, {verb: rendered}, lambda key: key)
            state = MergeState.PATH_INSERTED
        elif verb not in paths[path]:
            paths[path] = insert_ordered(paths[path], verb, rendered, verb_rank)
            state = MergeState.OPERATION_ADDED
        else:
            refined = refine_operation(paths[path][verb], rendered)
            state = MergeState.OPERATION_REFINED if refined != paths[path][verb] else MergeState.UNCHANGED
            paths[path][verb] = refined

        if created:
            state = MergeState.CREATED
        logger.info("%s %s: %s", verb.upper(), path, state.value)
        return state

    @staticmethod
    def _ensure_tag(document: dict, tag: str) -> None:
        tags = document.setdefault("tags", [])
        if any(entry.get("name") == tag for entry in tags):
            return
        insert_sorted_item(tags, {"name": tag}, lambda entry: entry.get("name", ""))


def refine_operation(existing: dict, new: dict) -> dict:
    """Fill fields that are absent or empty; never remove or rewrite existing content."""
    refined = copy.deepcopy(existing)
    for key in OPERATION_FIELD_ORDER:
        if key not in new:
            continue
        value = new[key]
        if key not in refined or (key != "security" and _is_empty(refined[key])):
            refined = insert_ordered(refined, key, copy.deepcopy(value), field_rank)
        elif key == "tags":
            _merge_tags(refined, value)
        elif key == "parameters":
            _merge_parameters(refined, value)
        elif key == "responses":
            refined["responses"] = _merge_responses(refined["responses"], value)
        elif key == "requestBody":
            _merge_request_body(refined["requestBody"], value)
    return refined


def _is_empty(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _merge_tags(refined: dict, tags: list) -> None:
    if not isinstance(refined["tags"], list):
        return
    for tag in tags:
        if tag not in refined["tags"]:
            refined["tags"].append(tag)


def _merge_parameters(refined: dict, params: list) -> None:
    existing = refined["parameters"]
    if not isinstance(existing, list):
        return
    declared = {(p.get("name"), p.get("in")) for p in existing if isinstance(p, dict)}
    for param in params:
        if (param["name"], param["in"]) not in declared:
            existing.append(copy.deepcopy(param))
            declared.add((param["name"], param["in"]))


def _merge_responses(existing: dict, responses: dict) -> dict:
    if not isinstance(existing, dict):
        return existing
    present = {str(code) for code in existing}
    primary = next(iter(responses), None)
    merged = existing
    for status, response in responses.items():
        if status in present:
            continue
        merged = insert_ordered(
            merged, status, copy.deepcopy(response), lambda code: status_sort_key(str(code), primary)
        )
    return merged


def _merge_request_body(existing: dict, body: dict) -> None:
    existing_schema = _json_schema(existing)
    new_schema = _json_schema(body)
    if existing_schema is None or new_schema is None:
        return
    if "$ref" in existing_schema or "properties" not in new_schema:
        return
    properties = existing_schema.setdefault("properties", {})
    if not isinstance(properties, dict):
        return
    for name, shape in new_schema["properties"].items():
        if name not in properties:
            properties[name] = copy.deepcopy(shape)
    required = existing_schema.get("required", [])
    missing = [name for name in new_schema.get("required", []) if name not in required]
    if missing:
        existing_schema["required"] = required + missing


def _json_schema(body) -> dict | None:
    if not isinstance(body, dict):
        return None
    schema = (body.get("content") or {}).get(JSON_MEDIA_TYPE, {}).get("schema")
    return schema if isinstance(schema, dict) else None
