"""
Assertion evaluation for executed test cases.
"""
import logging
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator, validators
from jsonschema.exceptions import SchemaError, UnknownType, ValidationError

from apispectra.models import AssertionResult

logger = logging.getLogger(__name__)

STATUS_ASSERTION = "Status code validation"
SCHEMA_ASSERTION = "Schema validation"


def _nullable_type(validator, types, instance, schema):
    """Draft 7 ``type``, except that OpenAPI 3.0 ``nullable: true`` admits null."""
    if instance is None and schema.get('nullable') is True:
        return
    yield from Draft7Validator.VALIDATORS['type'](validator, types, instance, schema)


# Structural checks only: required keys present and declared types match.
# Formats, patterns, bounds and enums are not enforced on responses.
StructuralValidator = validators.create(
    meta_schema=Draft7Validator.META_SCHEMA,
    validators={
        'type': _nullable_type,
        'required': Draft7Validator.VALIDATORS['required'],
        'properties': Draft7Validator.VALIDATORS['properties'],
        'items': Draft7Validator.VALIDATORS['items'],
    },
    type_checker=Draft7Validator.TYPE_CHECKER,
)


def validate_status_code(actual: Optional[int], expected: int) -> AssertionResult:
    """Actual status must equal the expected status."""
    if actual == expected:
        return AssertionResult(name=STATUS_ASSERTION, success=True)
    return AssertionResult(
        name=STATUS_ASSERTION,
        success=False,
        error=f"Expected status {expected}, got {actual}",
    )


def validate_against_schema(body: Any, schema: Dict[str, Any]) -> AssertionResult:
    """
    Structural validation of a response body.

    Args:
        body: Parsed response body
        schema: Resolved schema from the expected response

    Returns:
        Assertion result carrying the first few violations on failure
    """
    try:
        errors = list(StructuralValidator(schema).iter_errors(body))
    except (SchemaError, UnknownType) as e:
        logger.warning(f"Unusable response schema: {str(e)}")
        return AssertionResult(name=SCHEMA_ASSERTION, success=False, error=f"Invalid schema: {str(e)}")

    if not errors:
        return AssertionResult(name=SCHEMA_ASSERTION, success=True)

    messages = [_describe(error) for error in errors[:5]]
    if len(errors) > 5:
        messages.append(f"... {len(errors) - 5} more")
    return AssertionResult(name=SCHEMA_ASSERTION, success=False, error="; ".join(messages))


def _describe(error: ValidationError) -> str:
    location = "/".join(str(part) for part in error.absolute_path)
    if location:
        return f"{location}: {error.message}"
    return error.message
