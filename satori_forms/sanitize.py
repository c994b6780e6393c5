"""Input sanitation helpers.

Submitted values arrive as arbitrary strings from an HTTP form post. Before
they are validated or stored, each value is reduced to a safe plain-text
representation according to its field type:

- ``sanitize_text_field``: single line, markup and control characters removed,
  runs of whitespace collapsed
- ``sanitize_textarea_field``: same, but internal line breaks are preserved
- ``sanitize_email``: only characters legal in an address survive

Markup is removed with BeautifulSoup. ``is_email`` checks the syntax of an
already sanitized address with ``email_validator`` (the library behind
pydantic's ``EmailStr``).
"""

import re

from bs4 import BeautifulSoup, Comment
from email_validator import EmailNotValidError, validate_email

# Characters stripped by trimming.
TRIM_CHARS = " \t\n\r\0\x0b"

_SLASHED = re.compile(r"\\(.?)", re.DOTALL)
_WHITESPACE_RUN = re.compile(r"[\r\n\t ]+")
_SPACE_RUN = re.compile(r" +")
_OCTET = re.compile(r"%[a-f0-9]{2}", re.IGNORECASE)
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_EMAIL_LOCAL_INVALID = re.compile(r"[^a-zA-Z0-9!#$%&'*+/=?^_`{|}~.-]")
_EMAIL_LABEL_INVALID = re.compile(r"[^a-z0-9-]+", re.IGNORECASE)
_DOT_RUN = re.compile(r"\.{2,}")

MIN_EMAIL_LENGTH = 6


def unslash(value: str) -> str:
    """Undo backslash-escaping applied by the inbound request pipeline.

    Every backslash escapes the character that follows it; ``\\0`` stands
    for a NUL character and a trailing lone backslash is dropped.

    Examples:
        >>> unslash("O\\\\'Reilly")
        "O'Reilly"
        >>> unslash("C:\\\\\\\\temp")
        'C:\\\\temp'
    """
    return _SLASHED.sub(lambda m: "\0" if m.group(1) == "0" else m.group(1), value)


def strip_all_tags(value: str, remove_breaks: bool = False) -> str:
    """Remove markup, comments and the contents of script and style elements.

    Examples:
        >>> strip_all_tags('<a title="x>y">click</a><!-- a > b -->')
        'click'
    """
    soup = BeautifulSoup(value, "html.parser")
    for t in soup(["script", "style"]):
        t.decompose()
    for c in soup.find_all(string=lambda x: isinstance(x, Comment)):
        c.extract()
    value = soup.get_text()
    if remove_breaks:
        value = _WHITESPACE_RUN.sub(" ", value)
    return value.strip(TRIM_CHARS)


def _sanitize_text(value: str, keep_newlines: bool) -> str:
    filtered = value
    if "<" in filtered:
        filtered = strip_all_tags(filtered)

    filtered = _CONTROL.sub("", filtered)

    if not keep_newlines:
        filtered = _WHITESPACE_RUN.sub(" ", filtered)
    filtered = filtered.strip(TRIM_CHARS)

    found = False
    while _OCTET.search(filtered):
        filtered = _OCTET.sub("", filtered)
        found = True

    if found:
        filtered = _SPACE_RUN.sub(" ", filtered).strip(TRIM_CHARS)

    return filtered


def sanitize_text_field(value: str) -> str:
    """Sanitize a single-line text value.

    Examples:
        >>> sanitize_text_field("  Alice <b>Smith</b>\\n ")
        'Alice Smith'
    """
    return _sanitize_text(value, keep_newlines=False)


def sanitize_textarea_field(value: str) -> str:
    """Sanitize a multi-line text value, keeping its line breaks.

    Examples:
        >>> sanitize_textarea_field("line one\\n<i>line two</i>")
        'line one\\nline two'
    """
    return _sanitize_text(value, keep_newlines=True)


def sanitize_email(value: str) -> str:
    """Strip every character that is not allowed in an email address.

    Returns an empty string when nothing address-shaped is left: the value is
    too short, has no ``@`` after the first character, or its domain does not
    keep at least two non-empty labels.

    Examples:
        >>> sanitize_email(" alice (at) <alice@example.com> ")
        'aliceatalice@example.com'
        >>> sanitize_email("not-an-address")
        ''
    """
    if len(value) < MIN_EMAIL_LENGTH:
        return ""
    if value.find("@", 1) == -1:
        return ""

    local, domain = value.split("@", 1)

    local = _EMAIL_LOCAL_INVALID.sub("", local)
    if local == "":
        return ""

    domain = _DOT_RUN.sub("", domain)
    domain = domain.strip(TRIM_CHARS + ".")
    if domain == "":
        return ""

    labels = domain.split(".")
    if len(labels) < 2:
        return ""

    cleaned = []
    for label in labels:
        label = label.strip(TRIM_CHARS + "-")
        label = _EMAIL_LABEL_INVALID.sub("", label)
        if label != "":
            cleaned.append(label)

    if len(cleaned) < 2:
        return ""

    return f"{local}@{'.'.join(cleaned)}"


def is_email(value: str) -> bool:
    """Check that a value is a syntactically valid email address.

    Only syntax is checked; no DNS lookups are made.

    Examples:
        >>> is_email("alice@example.com")
        True
        >>> is_email("alice@localhost")
        False
    """
    if len(value) < MIN_EMAIL_LENGTH or value.find("@", 1) == -1:
        return False
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


__all__ = [
    "TRIM_CHARS",
    "unslash",
    "strip_all_tags",
    "sanitize_text_field",
    "sanitize_textarea_field",
    "sanitize_email",
    "is_email",
]
