"""Custom exceptions for the synthesis and regression engine."""


class ApiSpectraError(Exception):
    """Base exception for apispectra errors."""
    pass


class SpecParseError(ApiSpectraError):
    """Raised when an OpenAPI document cannot be loaded or fails validation."""
    def __init__(self, message: str, source: str = None):
        super().__init__(message)
        self.message = message
        self.source = source


class BaselineError(ApiSpectraError):
    """Raised when a baseline file exists but cannot be read."""
    def __init__(self, path: str, reason: str):
        super().__init__(f"Invalid baseline at {path}: {reason}")
        self.path = path
        self.reason = reason


class OverrideRuleError(ApiSpectraError):
    """Raised when an override rule table entry is invalid."""
    def __init__(self, rule: str, message: str):
        super().__init__(f"Invalid override rule '{rule}': {message}")
        self.rule = rule
        self.message = message
