"""
Schema reference resolution.

Expands ``$ref`` pointers and composition keywords into a self-contained
schema tree. Resolution never fails: unknown references degrade to a
placeholder object schema, and re-entering a reference that is already being
expanded (a cycle) yields a placeholder instead of recursing.
"""
import copy
import logging
from typing import Any, Dict, FrozenSet, Optional

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIXES = ('#/components/schemas/', '#/definitions/')
COMPOSITION_KEYWORDS = ('allOf', 'anyOf', 'oneOf')


def placeholder_schema(description: str) -> Dict[str, Any]:
    """Generic object schema used where a reference cannot be expanded."""
    return {'type': 'object', 'description': description}


class SchemaResolver:
    """Resolve schema nodes against the root OpenAPI document."""

    def __init__(self, root_schema: Optional[Dict[str, Any]] = None):
        self.root_schema = root_schema or {}

    def resolve(self, schema_node: Any, root_schema: Optional[Dict[str, Any]] = None) -> Any:
        """
        Return a new, fully expanded copy of ``schema_node``.

        Args:
            schema_node: Schema fragment, possibly containing ``$ref``
            root_schema: Document the references point into (defaults to the
                one given at construction)

        Returns:
            Resolved schema with no ``$ref`` keys
        """
        root = root_schema if root_schema is not None else self.root_schema
        return self._resolve(schema_node, root, frozenset())

    def _resolve(self, node: Any, root: Dict[str, Any], visiting: FrozenSet[str]) -> Any:
        if isinstance(node, list):
            return [self._resolve(item, root, visiting) for item in node]
        if not isinstance(node, dict):
            return copy.deepcopy(node)

        if '$ref' in node:
            return self._resolve_ref(node['$ref'], root, visiting)

        resolved: Dict[str, Any] = {}
        for key, value in node.items():
            if key == 'properties' and isinstance(value, dict):
                # Also covers array items that carry properties without a type
                resolved[key] = {
                    name: self._resolve(prop, root, visiting)
                    for name, prop in value.items()
                }
            elif key in ('items', 'additionalProperties', 'not') and isinstance(value, dict):
                resolved[key] = self._resolve(value, root, visiting)
            elif key in COMPOSITION_KEYWORDS and isinstance(value, list):
                # Members stay separate, merging is left to consumers
                resolved[key] = [self._resolve(member, root, visiting) for member in value]
            else:
                resolved[key] = copy.deepcopy(value)
        return resolved

    def _resolve_ref(self, ref: Any, root: Dict[str, Any], visiting: FrozenSet[str]) -> Dict[str, Any]:
        name = self._ref_name(ref)
        if name is None:
            logger.warning(f"Unsupported schema reference {ref!r}, using placeholder")
            return placeholder_schema(f"Referenced schema: {ref}")

        if ref in visiting:
            logger.debug(f"Circular reference to {ref}, breaking cycle")
            return placeholder_schema(f"Circular reference: {ref}")

        target = self._lookup(ref, name, root)
        if target is None:
            logger.warning(f"Could not resolve schema reference {ref}, using placeholder")
            return placeholder_schema(f"Referenced schema: {ref}")

        return self._resolve(target, root, visiting | {ref})

    @staticmethod
    def _ref_name(ref: Any) -> Optional[str]:
        if not isinstance(ref, str):
            return None
        for prefix in SCHEMA_REF_PREFIXES:
            if ref.startswith(prefix):
                return ref[len(prefix):]
        return None

    @staticmethod
    def _lookup(ref: str, name: str, root: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if ref.startswith('#/definitions/'):
            schemas = root.get('definitions') or {}
        else:
            schemas = (root.get('components') or {}).get('schemas') or {}
        target = schemas.get(name)
        return target if isinstance(target, dict) else None


def resolve(schema_node: Any, root_schema: Dict[str, Any]) -> Any:
    """Resolve ``schema_node`` against ``root_schema``."""
    return SchemaResolver(root_schema).resolve(schema_node)


def contains_ref(schema: Any) -> bool:
    """True if any ``$ref`` key remains anywhere in ``schema``."""
    if isinstance(schema, dict):
        return '$ref' in schema or any(contains_ref(value) for value in schema.values())
    if isinstance(schema, list):
        return any(contains_ref(item) for item in schema)
    return False
