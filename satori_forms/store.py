"""Persistence collaborator for SATORI Forms.

The validation pipeline never touches storage directly; FormsRuntime talks to
a FormStore. InMemoryFormStore is a complete implementation keeping schemas
and submission rows in process memory, suitable for tests and for embedding
behind a real database layer.
"""

import ipaddress
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from typing_extensions import Protocol

from satori_forms.sanitize import unslash

logger = logging.getLogger(__name__)


class FormStore(Protocol):
    """Storage operations the runtime depends on."""

    def load_schema(self, form_id: int) -> Optional[str]:
        """Return the stored schema JSON text, or None."""
        ...

    def save_schema(self, form_id: int, raw_schema: str) -> bool:
        """Store schema JSON text; False when it could not be stored."""
        ...

    def delete_schema(self, form_id: int) -> None:
        """Remove the stored schema, if any."""
        ...

    def insert_submission(
        self,
        form_id: int,
        data: Mapping[str, str],
        client_ip: Optional[str],
        submitted_at: str,
    ) -> Optional[int]:
        """Insert a submission row; returns its id, or None on failure."""
        ...

    def get_form_title(self, form_id: int) -> str:
        """Return the form's title, or an empty string."""
        ...


@dataclass(frozen=True)
class StoredSubmission:
    """A persisted submission row.

    Attributes:
        id: Auto-increment submission id
        form_id: Form the submission belongs to
        data: Sanitized field values as JSON text
        submitted_at: UTC timestamp, ``YYYY-MM-DD HH:MM:SS``
        ip_address: Client address, or None when absent or not an IP
    """
    id: int
    form_id: int
    data: str
    submitted_at: str
    ip_address: Optional[str] = None

    def decoded_data(self) -> Dict[str, Any]:
        """The stored field values."""
        return json.loads(self.data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "id": self.id,
            "formId": self.form_id,
            "data": self.data,
            "submittedAt": self.submitted_at,
            "ipAddress": self.ip_address,
        }


def sanitize_ip(client_ip: Optional[str]) -> Optional[str]:
    """Keep a client address only when it parses as IPv4 or IPv6.

    Examples:
        >>> sanitize_ip("203.0.113.7")
        '203.0.113.7'
        >>> sanitize_ip("not-an-ip") is None
        True
    """
    if not client_ip:
        return None
    client_ip = unslash(client_ip)
    try:
        ipaddress.ip_address(client_ip)
    except ValueError:
        return None
    return client_ip


class InMemoryFormStore:
    """FormStore keeping everything in dictionaries.

    Examples:
        >>> store = InMemoryFormStore(titles={7: "Contact"})
        >>> store.insert_submission(7, {"name": "Ann"}, None, "2024-05-01 12:00:00")
        1
        >>> store.get_form_title(7)
        'Contact'
    """

    def __init__(self, titles: Optional[Mapping[int, str]] = None):
        self._schemas: Dict[int, str] = {}
        self._titles: Dict[int, str] = dict(titles or {})
        self._submissions: List[StoredSubmission] = []
        self._next_id = 1

    def load_schema(self, form_id: int) -> Optional[str]:
        return self._schemas.get(form_id)

    def save_schema(self, form_id: int, raw_schema: str) -> bool:
        self._schemas[form_id] = raw_schema
        return True

    def delete_schema(self, form_id: int) -> None:
        self._schemas.pop(form_id, None)

    def set_form_title(self, form_id: int, title: str) -> None:
        self._titles[form_id] = title

    def get_form_title(self, form_id: int) -> str:
        return self._titles.get(form_id, "")

    def insert_submission(
        self,
        form_id: int,
        data: Mapping[str, str],
        client_ip: Optional[str],
        submitted_at: str,
    ) -> Optional[int]:
        try:
            payload = json.dumps(dict(data), ensure_ascii=False)
        except (TypeError, ValueError):
            logger.warning("Submission data for form %s is not JSON serializable", form_id)
            return None

        row = StoredSubmission(
            id=self._next_id,
            form_id=form_id,
            data=payload,
            submitted_at=submitted_at,
            ip_address=sanitize_ip(client_ip),
        )
        self._submissions.append(row)
        self._next_id += 1
        return row.id

    def get_submissions(self, form_id: Optional[int] = None) -> List[StoredSubmission]:
        """Stored rows, oldest first, optionally for one form."""
        if form_id is None:
            return list(self._submissions)
        return [s for s in self._submissions if s.form_id == form_id]


__all__ = [
    "FormStore",
    "StoredSubmission",
    "sanitize_ip",
    "InMemoryFormStore",
]
