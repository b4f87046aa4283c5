"""
OpenAPI/Swagger document loader and endpoint extraction.
"""
import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml
from openapi_spec_validator import validate

from apispectra.core.config import settings
from apispectra.core.exceptions import SpecParseError
from apispectra.models import Parameter, ParameterLocation
from apispectra.services.schema_resolver import SchemaResolver

logger = logging.getLogger(__name__)

HTTP_METHODS = ['get', 'post', 'put', 'patch', 'delete', 'head', 'options']
SCHEMA_KEYS = ('type', 'format', 'enum', 'default', 'minimum', 'maximum',
               'minLength', 'maxLength', 'pattern', 'items')


class OpenAPIParser:
    """Parser for OpenAPI specifications."""

    def __init__(
        self,
        spec_path: Optional[str] = None,
        spec_dict: Optional[Dict] = None,
        validate: Optional[bool] = None,
    ):
        """
        Initialize parser.

        Args:
            spec_path: Path to an OpenAPI file (JSON or YAML)
            spec_dict: OpenAPI spec as dictionary
            validate: Run openapi-spec-validator after loading
                (defaults to settings.VALIDATE_SPEC)
        """
        self.spec_path = spec_path
        self.spec_dict = spec_dict
        self.validate = settings.VALIDATE_SPEC if validate is None else validate
        self.spec: Optional[Dict] = None
        self.collections: Dict[str, Any] = {}
        self.resolver = SchemaResolver()

    def parse(self) -> Dict[str, Any]:
        """
        Load, optionally validate and index the OpenAPI document.

        Returns:
            The raw (unresolved) document

        Raises:
            SpecParseError: If the document cannot be read or is invalid
        """
        if self.spec_path:
            spec = self._load_file(self.spec_path)
        elif self.spec_dict is not None:
            spec = self.spec_dict
        else:
            raise SpecParseError("Either spec_path or spec_dict must be provided")

        if not isinstance(spec, dict):
            raise SpecParseError("OpenAPI document must be a mapping", source=self.spec_path)

        if self.validate:
            try:
                validate(spec)
            except Exception as e:
                logger.error(f"OpenAPI validation failed: {str(e)}")
                raise SpecParseError(f"OpenAPI validation failed: {str(e)}", source=self.spec_path) from e

        self.spec = spec
        self.resolver = SchemaResolver(spec)
        self._extract_collections()

        logger.info(f"Successfully parsed OpenAPI spec with {len(self.collections)} collections")

        return self.spec

    @staticmethod
    def _load_file(spec_path: str) -> Any:
        path = Path(spec_path)
        try:
            text = path.read_text(encoding='utf-8')
        except OSError as e:
            raise SpecParseError(f"Cannot read OpenAPI file: {str(e)}", source=spec_path) from e

        try:
            if path.suffix.lower() == '.json':
                return json.loads(text)
            return yaml.safe_load(text)
        except (ValueError, yaml.YAMLError) as e:
            logger.error(f"Error parsing OpenAPI spec {spec_path}: {str(e)}")
            raise SpecParseError(f"Malformed OpenAPI document: {str(e)}", source=spec_path) from e

    def _extract_collections(self):
        """Extract reusable schema collections from components/schemas."""
        # OpenAPI 3.x
        if 'components' in self.spec and 'schemas' in (self.spec['components'] or {}):
            self.collections = self.spec['components']['schemas'] or {}
        # Swagger 2.0
        elif 'definitions' in self.spec:
            self.collections = self.spec['definitions'] or {}
        else:
            self.collections = {}

    def _require_spec(self) -> Dict[str, Any]:
        if self.spec is None:
            raise SpecParseError("Spec not parsed. Call parse() first.")
        return self.spec

    def get_endpoints(self) -> List[Dict[str, Any]]:
        """
        Extract all API endpoints from the spec, in document order.

        Path-level parameters are merged into each operation; an operation
        parameter with the same name and location wins.

        Returns:
            List of endpoint definitions
        """
        spec = self._require_spec()
        endpoints = []

        for path, path_item in (spec.get('paths') or {}).items():
            path_item = path_item or {}
            shared_params = path_item.get('parameters') or []
            for method, operation in path_item.items():
                if method not in HTTP_METHODS:
                    continue
                operation = operation or {}
                endpoints.append({
                    'path': path,
                    'method': method.upper(),
                    'operation_id': operation.get('operationId', f"{method.upper()}_{path}"),
                    'summary': operation.get('summary', ''),
                    'parameters': self._merge_parameters(shared_params, operation.get('parameters') or []),
                    'request_body': operation.get('requestBody') or {},
                    'responses': operation.get('responses') or {},
                })

        return endpoints

    def _merge_parameters(self, shared: List[Any], own: List[Any]) -> List[Dict[str, Any]]:
        merged: Dict[Any, Dict[str, Any]] = {}
        for param in list(shared) + list(own):
            param = self._deref(param)
            merged[(param.get('name'), param.get('in'))] = param
        return list(merged.values())

    def get_schemas(self) -> Dict[str, Any]:
        """Get all schemas/collections."""
        return self.collections

    def get_parameters(self, endpoint: Dict[str, Any]) -> List[Parameter]:
        """
        Resolved parameters of an endpoint.

        Request body object properties become ``body`` parameters; a body
        that is not an object becomes a single ``body`` parameter.
        """
        parameters = []
        for param in endpoint.get('parameters') or []:
            param = self._deref(param)
            location = param.get('in')
            name = param.get('name', '')
            if location == 'body':
                # Swagger 2.0 body parameter
                parameters.extend(self._body_parameters(self.resolver.resolve(param.get('schema') or {})))
                continue
            try:
                param_location = ParameterLocation(location)
            except ValueError:
                logger.debug(f"Skipping {location} parameter {name}")
                continue
            schema = param.get('schema')
            if schema is None:
                schema = {key: param[key] for key in SCHEMA_KEYS if key in param}
            parameters.append(Parameter.from_schema(
                name,
                param_location,
                self.resolver.resolve(schema),
                required=bool(param.get('required', param_location == ParameterLocation.PATH)),
            ))

        body_schema = self.get_request_body_schema(endpoint)
        if body_schema is not None:
            parameters.extend(self._body_parameters(body_schema))
        return parameters

    @staticmethod
    def _body_parameters(schema: Dict[str, Any]) -> List[Parameter]:
        properties = schema.get('properties')
        if schema.get('type', 'object') == 'object' and isinstance(properties, dict):
            required = set(schema.get('required') or [])
            return [
                Parameter.from_schema(name, ParameterLocation.BODY, prop, required=name in required)
                for name, prop in properties.items()
            ]
        return [Parameter.from_schema('body', ParameterLocation.BODY, schema, required=True)]

    def has_request_body(self, endpoint: Dict[str, Any]) -> bool:
        """True if the operation declares a request body of any content type."""
        if any(self._deref(p).get('in') == 'body' for p in endpoint.get('parameters') or []):
            return True
        body = self._deref(endpoint.get('request_body') or {})
        return bool(body.get('content'))

    def get_request_body_schema(self, endpoint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Resolved JSON schema of the OpenAPI 3 request body, if any."""
        body = self._deref(endpoint.get('request_body') or {})
        schema = self._json_schema(body.get('content') or {})
        if schema is None:
            return None
        return self.resolver.resolve(schema)

    def get_response_schema(self, endpoint: Dict[str, Any], status: int) -> Optional[Dict[str, Any]]:
        """
        Resolved JSON schema of a declared response.

        Args:
            endpoint: Endpoint definition from get_endpoints()
            status: HTTP status code

        Returns:
            Resolved schema, or None when the status is undeclared or has no
            JSON body
        """
        response = self.get_response(endpoint, status)
        if response is None:
            return None
        if 'schema' in response:
            # Swagger 2.0
            return self.resolver.resolve(response['schema'])
        schema = self._json_schema(response.get('content') or {})
        if schema is None:
            return None
        return self.resolver.resolve(schema)

    def get_response(self, endpoint: Dict[str, Any], status: int) -> Optional[Dict[str, Any]]:
        """Declared response object for ``status``; keys may be str or int."""
        responses = endpoint.get('responses') or {}
        for key in (str(status), status):
            if key in responses:
                return self._deref(responses[key] or {})
        return None

    @staticmethod
    def _json_schema(content: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for media_type, media in content.items():
            if 'json' in media_type.lower() and isinstance(media, dict) and 'schema' in media:
                return media['schema']
        return None

    def _deref(self, node: Any) -> Dict[str, Any]:
        """Follow a top-level $ref on a parameter, body or response object."""
        seen = set()
        while isinstance(node, dict) and '$ref' in node:
            ref = node['$ref']
            if ref in seen:
                logger.warning(f"Circular reference {ref}, ignoring")
                return {}
            seen.add(ref)
            try:
                node = self.resolve_ref(ref)
            except SpecParseError as e:
                logger.warning(f"{e.message}, ignoring")
                return {}
        return node if isinstance(node, dict) else {}

    def resolve_ref(self, ref: str) -> Any:
        """
        Resolve a local $ref pointer.

        Args:
            ref: Reference string (e.g., '#/components/schemas/User')

        Returns:
            The referenced node, unresolved

        Raises:
            SpecParseError: For external or dangling references
        """
        spec = self._require_spec()
        if not isinstance(ref, str) or not ref.startswith('#'):
            raise SpecParseError(f"External references not supported: {ref}")

        current: Any = spec
        for part in ref.split('/')[1:]:
            part = part.replace('~1', '/').replace('~0', '~')
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                raise SpecParseError(f"Reference not found: {ref}")

        return current
