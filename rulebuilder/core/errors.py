"""
Domain-specific exceptions for the Rule Builder core.

Every operation on the rule AST either returns a new, fully typed tree or raises
one of these errors before anything is built. Because the AST nodes are frozen,
a raised error always leaves the caller's tree exactly as it was.

Programming-contract violations (addressing a condition where a group is
expected, out-of-range indices) are NOT modelled here; they surface as the
built-in TypeError / IndexError.
"""

from typing import Any


class RuleBuilderError(Exception):
    """Base exception for all rule builder domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Catalog resolution failures
# =============================================================================


class CatalogResolutionError(RuleBuilderError):
    """A dotted path or key did not resolve against the catalog."""

    pass


class UnknownField(CatalogResolutionError):
    """
    Raised when a field path does not resolve in the Fields catalog.

    Examples:
    - make_field("TABLE1.MISSING")
    - A path that ends on a category rather than a field
    """

    pass


class UnknownFunction(CatalogResolutionError):
    """Raised when a function path does not resolve in the Functions catalog."""

    pass


class UnknownOperator(CatalogResolutionError):
    """Raised when a condition or expression operator key is not in the catalog."""

    pass


class UnknownArgument(CatalogResolutionError):
    """Raised when a fixed-arg function call names an argument its definition lacks."""

    pass


# =============================================================================
# Type and structural guards
# =============================================================================


class IncompatibleType(RuleBuilderError):
    """
    Raised when an operator/operand combination is invalid for the declared type.

    Examples:
    - Appending an operand to a boolean group when boolean has no expression operators
    - Switching a text condition to an operator only valid for numbers
    """

    pass


class StructuralError(RuleBuilderError):
    """Base class for guards protecting structural invariants of the tree."""

    pass


class CannotRemoveLastOperand(StructuralError):
    """Raised when removing the only operand of an expression group."""

    pass


class CannotRemoveLastClause(StructuralError):
    """Raised when removing the only WHEN clause of a case."""

    pass


class MalformedDynamicArgs(StructuralError):
    """Raised when a dynamic-arg function call would fall outside [minArgs, maxArgs]."""

    pass


class CardinalityOutOfRange(StructuralError):
    """Raised when a dynamic operator's right side would fall outside its cardinality bounds."""

    pass


# =============================================================================
# Boundary errors
# =============================================================================


class InvalidJSON(RuleBuilderError):
    """
    Raised when manually edited rule text is not valid JSON.

    The details carry the decoder position so the editor can point at it.
    """

    pass


class SchemaValidationFailed(RuleBuilderError):
    """
    Raised when a rule fails schema validation.

    Carries the full list of ``{"path": ..., "message": ...}`` problems rather than
    collapsing them into a single message.
    """

    def __init__(
        self,
        message: str,
        errors: list[dict[str, str]] | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.errors = list(errors or [])
        super().__init__(message, details={**(details or {}), "errors": self.errors})


class ServiceError(RuleBuilderError):
    """Raised when an external collaborator (catalog, validation, SQL, storage) fails."""

    def __init__(
        self, message: str, status_code: int | None = None, details: dict[str, Any] | None = None
    ):
        self.status_code = status_code
        super().__init__(message, details={**(details or {}), "status_code": status_code})


# Errors the editor surfaces to the user as-is (message plus error list)
USER_FACING_ERRORS = (InvalidJSON, SchemaValidationFailed)


def error_payload(error: RuleBuilderError) -> dict[str, Any]:
    """
    Build the payload shown to the user for a domain error.

    Args:
        error: The exception instance

    Returns:
        Dictionary with the error type, message and details (including the
        complete ``errors`` list for schema failures)
    """
    return {
        "error": type(error).__name__,
        "message": error.message,
        "details": error.details,
    }
