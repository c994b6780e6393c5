"""Structured error types for SATORI Forms.

Submission validation never raises for malformed input. Every problem it
finds is reported as a FieldError: the offending field id (or ``None`` for
schema-level failures), a stable error code, and a human-readable message.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from satori_forms.types import FieldErrorCode


@dataclass(frozen=True)
class FieldError:
    """A single validation failure.

    Attributes:
        field: Field id the error relates to, or None for schema-level errors
        code: Specific validation error code
        message: Human-readable error description

    Examples:
        >>> err = FieldError(
        ...     field="email",
        ...     code=FieldErrorCode.INVALID_EMAIL,
        ...     message="Email address is invalid.",
        ... )
        >>> err.to_dict()["code"]
        'invalid_email'
    """
    field: Optional[str]
    code: FieldErrorCode
    message: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "field": self.field,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = FieldErrorCode(code)
        return cls(
            field=data.get("field"),
            code=code,
            message=data["message"],
        )


__all__ = [
    "FieldError",
]
