"""Component registry — shared schemas and response templates of a document."""

import hashlib
import json
import logging

from route_doc_agent.document.ordering import insert_ordered
from route_doc_agent.errors import SchemaNameConflict

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"
RESPONSE_REF_PREFIX = "#/components/responses/"


def structural_key(shape: dict) -> str:
    """Canonical hash of a shape; property order and required order do not count."""
    return hashlib.sha256(json.dumps(_canonical(shape), sort_keys=True).encode("utf-8")).hexdigest()


def _canonical(value):
    if isinstance(value, dict):
        return {
            key: sorted(item) if key == "required" and isinstance(item, list) else _canonical(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_canonical(item) for item in value]
    return value


class ComponentRegistry:
    """Indexes ``components.schemas`` and ``components.responses`` of a working document."""

    def __init__(self, document: dict):
        self.document = document
        self._keys: dict[str, str] = {}
        for name, shape in self.schemas.items():
            self._keys.setdefault(structural_key(shape), name)

    @property
    def schemas(self) -> dict:
        return self.document.get("components", {}).get("schemas", {})

    def response_templates(self) -> frozenset[str]:
        return frozenset(self.document.get("components", {}).get("responses", {}) or {})

    def find_equivalent(self, shape: dict) -> str | None:
        return self._keys.get(structural_key(shape))

    def register(self, name: str, shape: dict) -> str:
        """Register a shared shape and return the name it is stored under.

        A structurally identical shape already present is reused whatever its
        name; an existing name with a different structure is a conflict.
        """
        existing = self.find_equivalent(shape)
        if existing is not None:
            logger.debug("Reusing shared schema %s for %s", existing, name)
            return existing
        if name in self.schemas:
            raise SchemaNameConflict(name, context={"existing": self.schemas[name], "new": shape})

        components = self.document.setdefault("components", {})
        components["schemas"] = insert_ordered(components.get("schemas") or {}, name, shape, lambda n: n)
        self._keys[structural_key(shape)] = name
        logger.debug("Registered shared schema %s", name)
        return name

    @staticmethod
    def schema_ref(name: str) -> str:
        return SCHEMA_REF_PREFIX + name

    @staticmethod
    def response_ref(name: str) -> str:
        return RESPONSE_REF_PREFIX + name
