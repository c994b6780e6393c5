"""SATORI Forms schema and submission validation engine.

SATORI Forms validates form definitions and the data end users submit
against them:
- Schema authoring validation with a single, precise rejection reason
- Submission validation with per-type sanitization and accumulated,
  deterministic field errors
- Placeholder rendering for notification emails
- Explicit composition of validators, storage and notifications

Basic usage:
    >>> from satori_forms.validation import SubmissionValidator
    >>> schema = {
    ...     "version": 1,
    ...     "fields": [{"id": "name", "type": "text", "label": "Name", "required": True}],
    ... }
    >>> result = SubmissionValidator().validate(schema, {})
    >>> result.errors[0].code.value
    'required'
"""

__version__ = "0.1.0"
__author__ = "SATORI Forms Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from satori_forms.authoring import SchemaAuthoringValidator
from satori_forms.placeholders import PlaceholderRenderer
from satori_forms.runtime import FormsRuntime, build_runtime
from satori_forms.validation import SubmissionValidator, ValidationResult

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "SchemaAuthoringValidator",
    "SubmissionValidator",
    "ValidationResult",
    "PlaceholderRenderer",
    "FormsRuntime",
    "build_runtime",
]
