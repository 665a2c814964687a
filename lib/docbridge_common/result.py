"""
Tagged results for the import pipeline.

Each pipeline step returns either ``Ok(value)`` or ``Err(PipelineError)``.
Callers branch on the tag instead of catching exceptions, so the first
failure short-circuits the remaining steps and reaches the webhook caller
with its detail intact.

Usage:
    result = fetcher.get_document(project_id, document_id)
    if isinstance(result, Err):
        return result
    document = result.value
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy for the import pipeline."""

    VALIDATION = "validation"
    CREDENTIAL = "credential"
    UPSTREAM_FETCH = "upstream_fetch"
    PERSISTENCE = "persistence"
    EXTRACTION = "extraction"


@dataclass(frozen=True)
class FieldError:
    """A single validation failure for one request field."""

    field: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class PipelineError:
    """
    Typed error carried by ``Err``.

    Attributes:
        kind: Taxonomy bucket, drives the HTTP status of the webhook response
        code: Machine-readable error code (e.g. "missing_credentials")
        message: Human-readable message, safe to return to the caller
        detail: Upstream context for logging (status codes, URLs); never tokens
        retryable: True when a redelivery could succeed (timeouts, 5xx)
        errors: Aggregated validation sub-errors
    """

    kind: ErrorKind
    code: str
    message: str
    detail: dict[str, Any] = field(default_factory=dict)
    retryable: bool = False
    errors: tuple[FieldError, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Public representation, without ``detail``."""
        data: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "kind": self.kind.value,
        }
        if self.errors:
            data["errors"] = [error.to_dict() for error in self.errors]
        if self.retryable:
            data["retryable"] = True
        return data


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful step result."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed step result."""

    error: PipelineError

    @property
    def is_ok(self) -> bool:
        return False


Result = Ok[T] | Err


def err(
    kind: ErrorKind,
    code: str,
    message: str,
    *,
    retryable: bool = False,
    errors: tuple[FieldError, ...] = (),
    **detail: Any,
) -> Err:
    """Shorthand for building an ``Err`` with detail keyword arguments."""
    return Err(
        PipelineError(
            kind=kind,
            code=code,
            message=message,
            detail=detail,
            retryable=retryable,
            errors=errors,
        )
    )
