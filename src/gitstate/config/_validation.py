# pyright: reportAny=false, reportExplicitAny=false, reportUnknownArgumentType=false, reportUnknownMemberType=false, reportUnknownVariableType=false
"""Configuration validation using Pydantic schemas."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import BaseModel, ValidationError

from gitstate.exceptions import ConfigValidationError

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """Represents a configuration validation issue.

    Attributes:
        key: Dotted path to the configuration key (e.g., "network.timeout").
        message: Human-readable description of the issue.
        expected: Description of expected value or type, if available.
        actual: The actual value that caused the issue.
        source: Configuration file the issue came from, or None.
        severity: Whether this is an error or warning.
    """

    key: str
    message: str
    expected: str | None
    actual: Any
    source: str | None
    severity: Literal["error", "warning"]


def _pydantic_error_to_issue(
    error: "ErrorDetails",
    source: str | None,
) -> ValidationIssue:
    """Convert a Pydantic error dict to a ValidationIssue.

    Args:
        error: A single error dict from ValidationError.errors().
        source: The configuration file, or None for merged config.

    Returns:
        A ValidationIssue representing the validation error.
    """
    loc = error.get("loc", ())
    key = ".".join(str(part) for part in loc)
    message = str(error.get("msg", "Validation error"))

    ctx = error.get("ctx")
    expected: str | None = None
    if ctx is not None:
        if "expected" in ctx:
            expected = str(ctx["expected"])
        elif "gt" in ctx:
            expected = f"> {ctx['gt']}"
        elif "ge" in ctx:
            expected = f">= {ctx['ge']}"
        elif "le" in ctx:
            expected = f"<= {ctx['le']}"

    return ValidationIssue(
        key=key,
        message=message,
        expected=expected,
        actual=error.get("input"),
        source=source,
        severity="error",
    )


def collect_issues(
    model: type[BaseModel],
    data: dict[str, Any],
    *,
    source: str | None = None,
) -> list[ValidationIssue]:
    """Validate a configuration dictionary and collect every issue.

    Args:
        model: The Pydantic model describing the configuration.
        data: The merged configuration dictionary to validate.
        source: The configuration file the values came from.

    Returns:
        List of ValidationIssue objects. Empty list indicates valid config.
    """
    try:
        _ = model.model_validate(data)
    except ValidationError as e:
        return [_pydantic_error_to_issue(err, source=source) for err in e.errors()]
    return []


def raise_if_validation_errors(
    issues: list[ValidationIssue],
    source: str | None = None,
) -> None:
    """Raise ConfigValidationError for the first error-severity issue.

    Args:
        issues: List of ValidationIssue objects to check.
        source: Optional source string to use in the exception.

    Raises:
        ConfigValidationError: If any issues have severity="error".
    """
    errors = [i for i in issues if i.severity == "error"]
    if errors:
        issue = errors[0]
        msg = f"Invalid configuration value for '{issue.key}'"
        raise ConfigValidationError(
            msg,
            key=issue.key,
            value=issue.actual,
            expected=issue.expected or issue.message,
            source=source or issue.source,
        )


def validate_config(
    model: type[ModelT],
    data: dict[str, Any],
    *,
    source: str | None = None,
) -> ModelT:
    """Validate a merged configuration dictionary into a model instance.

    Args:
        model: The Pydantic model describing the configuration.
        data: The merged configuration dictionary.
        source: The configuration file the values came from.

    Returns:
        The validated model instance.

    Raises:
        ConfigValidationError: If any value fails validation.
    """
    raise_if_validation_errors(collect_issues(model, data, source=source), source)
    return model.model_validate(data)
