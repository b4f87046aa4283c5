"""
Data models shared by synthesis, execution and regression analysis.

Attributes are snake_case in Python; JSON files and dashboard payloads use
the camelCase aliases (``expectedResponse``, ``regressedTests``, ...). Both
forms are accepted on input.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serializing with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)


class ParameterLocation(str, Enum):
    """Where a parameter travels in the HTTP request."""
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


class Parameter(CamelModel):
    """A single request input with its resolved schema and raw constraints."""
    name: str
    location: ParameterLocation
    required: bool = False
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    type: Optional[str] = None
    format: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    enum: Optional[List[Any]] = None
    default: Any = None

    @classmethod
    def from_schema(
        cls,
        name: str,
        location: ParameterLocation,
        schema: Dict[str, Any],
        required: bool = False,
    ) -> "Parameter":
        """Build a parameter, lifting constraint fields out of a resolved schema."""
        schema = schema or {}
        return cls(
            name=name,
            location=location,
            required=required,
            schema=schema,
            type=schema.get('type'),
            format=schema.get('format'),
            min_length=schema.get('minLength'),
            max_length=schema.get('maxLength'),
            pattern=schema.get('pattern'),
            minimum=schema.get('minimum'),
            maximum=schema.get('maximum'),
            enum=schema.get('enum'),
            default=schema.get('default'),
        )


class TestRequest(CamelModel):
    """Concrete request values for a test case."""
    path: Dict[str, Any] = Field(default_factory=dict)
    query: Dict[str, Any] = Field(default_factory=dict)
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Any = None

    def is_empty(self) -> bool:
        return not (self.path or self.query or self.headers or self.body is not None)


class ExpectedResponse(CamelModel):
    """Expected response contract: status plus an optional resolved schema."""
    status: int = 200
    schema_: Optional[Dict[str, Any]] = Field(default=None, alias="schema")


class TestCase(CamelModel):
    """A concrete, executable unit produced by one synthesis pass."""
    id: str
    endpoint: str
    method: str
    request: TestRequest = Field(default_factory=TestRequest)
    expected_response: ExpectedResponse = Field(default_factory=ExpectedResponse)
    scenario: str = ""
    feature: Dict[str, Any] = Field(default_factory=dict)
    synthesis_error: Optional[str] = None
    excluded: bool = False
    exclusion_reason: Optional[str] = None


class HttpResponse(CamelModel):
    """Status and parsed body of an HTTP exchange."""
    status: Optional[int] = None
    body: Any = None


class AssertionResult(CamelModel):
    name: str
    success: bool
    error: Optional[str] = None


class ExecutionResult(CamelModel):
    """Outcome of executing one test case. Never modified once built."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    success: bool
    duration: float = Field(default=0.0, ge=0)
    response: Optional[HttpResponse] = None
    error: Optional[str] = None
    assertions: List[AssertionResult] = Field(default_factory=list)
    endpoint: Optional[str] = None
    method: Optional[str] = None
    started_at: Optional[datetime] = None


class Classification(str, Enum):
    """Regression classification of a single test id."""
    REGRESSED = "regressed"
    IMPROVED = "improved"
    UNCHANGED = "unchanged"
    NEW = "new"
    REMOVED = "removed"


class RegressionDetail(CamelModel):
    """Comparison of one test present in both the baseline and current run."""
    id: str
    classification: Classification
    endpoint: Optional[str] = None
    method: Optional[str] = None
    baseline_response: Optional[HttpResponse] = None
    current_response: Optional[HttpResponse] = None
    baseline_success: bool
    current_success: bool
    baseline_duration: float = 0.0
    current_duration: float = 0.0
    status_code_changed: bool = False
    response_changed: bool = False
    assertions_changed: bool = False
    failures: List[str] = Field(default_factory=list)
    structure_changes: List[str] = Field(default_factory=list)


class RegressionSummary(CamelModel):
    """Aggregate of a baseline vs current comparison."""
    total_tests: int = 0
    regressed_tests: int = 0
    improved_tests: int = 0
    unchanged_tests: int = 0
    new_tests: int = 0
    removed_tests: int = 0
    details: List[RegressionDetail] = Field(default_factory=list)
    new: List[str] = Field(default_factory=list)
    removed: List[str] = Field(default_factory=list)
    classifications: Dict[str, Classification] = Field(default_factory=dict)
    compared_at: datetime = Field(default_factory=utc_now)


class Baseline(CamelModel):
    """A named, timestamped snapshot of execution results keyed by test id."""
    name: str = "baseline"
    created_at: datetime = Field(default_factory=utc_now)
    results: Dict[str, ExecutionResult] = Field(default_factory=dict)
