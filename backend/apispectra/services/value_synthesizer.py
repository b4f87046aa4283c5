"""
Valid and invalid value synthesis for request parameters.
"""
import logging
import re
from enum import Enum
from typing import Any, Dict, Optional

from faker import Faker

from apispectra.core.config import settings
from apispectra.models import Parameter, ParameterLocation

logger = logging.getLogger(__name__)

VALID_KEYWORDS = {'valid', 'success', 'successful', 'successfully'}
INVALID_KEYWORDS = {'invalid', 'error', 'errors'}

DEFAULT_NUMBER = 42
INVALID_EMAIL = 'invalid-email'
FORMAT_BREAKING_STRING = '%%not-a-valid-value%%'


class ScenarioKind(str, Enum):
    """How a scenario title asks for request values to be generated."""
    VALID = "valid"
    INVALID = "invalid"
    AMBIGUOUS = "ambiguous"


def classify_scenario(title: str) -> ScenarioKind:
    """
    Classify a scenario title by whole-word keyword match.

    "invalid" does not count as "valid". A title matching both keyword
    groups, or neither, is ambiguous.
    """
    words = set(re.findall(r'[a-z]+', (title or '').lower()))
    is_valid = bool(words & VALID_KEYWORDS)
    is_invalid = bool(words & INVALID_KEYWORDS)
    if is_valid and not is_invalid:
        return ScenarioKind.VALID
    if is_invalid and not is_valid:
        return ScenarioKind.INVALID
    return ScenarioKind.AMBIGUOUS


class ValueSynthesizer:
    """Produce concrete values for parameters from their resolved schemas."""

    def __init__(
        self,
        seed: Optional[int] = None,
        valid_id: Optional[int] = None,
        invalid_id: Optional[int] = None,
    ):
        """
        Initialize synthesizer.

        Args:
            seed: Base seed; Faker is re-seeded per parameter name so values
                do not depend on call order
            valid_id: Identifier used for "id" parameters in valid scenarios
            invalid_id: Well-typed but non-existent identifier for invalid ones
        """
        self.seed = settings.SYNTHESIS_SEED if seed is None else seed
        self.valid_id = settings.VALID_ID if valid_id is None else valid_id
        self.invalid_id = settings.INVALID_ID if invalid_id is None else invalid_id
        self.faker = Faker()

    def synthesize_valid(self, parameter: Parameter) -> Any:
        """Generate a value the service should accept."""
        if self._is_id(parameter.name):
            return self.valid_id
        if parameter.default is not None:
            return parameter.default
        if parameter.enum:
            return parameter.enum[0]

        param_type = parameter.type
        if param_type == 'string':
            return self._valid_string(parameter)
        if param_type in ('number', 'integer'):
            return self._valid_number(parameter)
        if param_type == 'boolean':
            return True
        if param_type == 'array':
            return self._valid_array(parameter)
        if param_type == 'object' or (param_type is None and parameter.schema_.get('properties')):
            return self._valid_object(parameter)
        return 'test_value'

    def synthesize_invalid(self, parameter: Parameter) -> Any:
        """Generate a value the service should reject, staying type-adjacent."""
        # Not-found scenario: well-typed but non-existent
        if self._is_id(parameter.name):
            return self.invalid_id

        param_type = parameter.type
        if param_type == 'string':
            if parameter.format == 'email':
                return INVALID_EMAIL
            if parameter.required:
                return ''
            return FORMAT_BREAKING_STRING
        if param_type in ('number', 'integer'):
            return 'not_a_number'
        if param_type == 'boolean':
            return 'not_a_boolean'
        if param_type == 'array':
            return []
        return None

    @staticmethod
    def _is_id(name: str) -> bool:
        return 'id' in (name or '').lower()

    def _seed_for(self, parameter: Parameter):
        self.faker.seed_instance(f"{self.seed}:{parameter.location.value}:{parameter.name}")

    def _valid_string(self, parameter: Parameter) -> str:
        self._seed_for(parameter)
        value = self._representative_string(parameter)
        min_length = parameter.min_length or 0
        max_length = parameter.max_length
        if min_length > 0 and len(value) < min_length:
            value = value + 'x' * (min_length - len(value))
        if max_length is not None and max_length > 0 and len(value) > max_length:
            value = value[:max_length]
        return value or 'x'

    def _representative_string(self, parameter: Parameter) -> str:
        """Pick a Faker provider by format first, then by field name."""
        format_type = parameter.format or ''
        field_lower = parameter.name.lower()

        if format_type == 'email' or 'email' in field_lower:
            return self.faker.email()
        if format_type == 'date':
            return self.faker.date()
        if format_type == 'date-time':
            return self.faker.iso8601()
        if format_type in ('uri', 'url') or 'url' in field_lower:
            return self.faker.url()
        if format_type == 'uuid':
            return self.faker.uuid4()
        if format_type == 'ipv4':
            return self.faker.ipv4()
        if format_type == 'hostname':
            return self.faker.domain_name()
        if format_type == 'password' or 'password' in field_lower:
            return self.faker.password(length=12)

        if 'username' in field_lower:
            return self.faker.user_name()
        if 'first' in field_lower and 'name' in field_lower:
            return self.faker.first_name()
        if 'last' in field_lower and 'name' in field_lower:
            return self.faker.last_name()
        if 'name' in field_lower:
            return self.faker.name()
        if 'phone' in field_lower:
            return self.faker.phone_number()
        if 'city' in field_lower:
            return self.faker.city()
        if 'company' in field_lower:
            return self.faker.company()
        if 'title' in field_lower or 'subject' in field_lower:
            return self.faker.sentence(nb_words=4)
        if 'description' in field_lower or 'comment' in field_lower:
            return self.faker.sentence()
        return self.faker.word()

    @staticmethod
    def _valid_number(parameter: Parameter):
        minimum = parameter.minimum
        maximum = parameter.maximum
        if minimum is not None:
            value = minimum + 1
            if maximum is not None and value > maximum:
                value = minimum
        elif maximum is not None and DEFAULT_NUMBER > maximum:
            value = maximum
        else:
            value = DEFAULT_NUMBER
        if parameter.type == 'integer':
            return int(value)
        return value

    def _valid_array(self, parameter: Parameter) -> list:
        items = parameter.schema_.get('items') or {}
        item_type = items.get('type')
        if items.get('enum'):
            return [items['enum'][0]]
        if item_type in ('string', 'number', 'integer', 'boolean'):
            item = Parameter.from_schema(f"{parameter.name}_item", parameter.location, items)
            return [self.synthesize_valid(item) for _ in range(2)]
        return ['item1', 'item2']

    def _valid_object(self, parameter: Parameter) -> Dict[str, Any]:
        schema = parameter.schema_
        required = set(schema.get('required') or [])
        result = {}
        for prop_name, prop_schema in (schema.get('properties') or {}).items():
            if prop_name not in required:
                continue
            prop = Parameter.from_schema(
                prop_name,
                ParameterLocation.BODY,
                prop_schema,
                required=True,
            )
            result[prop_name] = self.synthesize_valid(prop)
        return result
