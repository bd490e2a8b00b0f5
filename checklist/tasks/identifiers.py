"""Identifier shapes accepted by the resolver.

Task ids are UUID strings. Older clients appended a suffix to the id
(``<uuid>-<suffix>``); the canonical form is the leading UUID.
"""

from __future__ import annotations

import re

from checklist.tasks.errors import InvalidIdentifierError

MAX_IDENTIFIER_LENGTH = 255

_UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
_CANONICAL_RE = re.compile(rf"^{_UUID_PATTERN}$")
_COMPOUND_RE = re.compile(rf"^({_UUID_PATTERN})[-_:.].+$")
_ALLOWED_RE = re.compile(r"^[A-Za-z0-9_.:\-]+$")


def validate_identifier(identifier: str | None) -> str:
    if identifier is None:
        raise InvalidIdentifierError("Task identifier is required.")
    normalized = identifier.strip()
    if not normalized:
        raise InvalidIdentifierError("Task identifier is required.")
    if len(normalized) > MAX_IDENTIFIER_LENGTH:
        raise InvalidIdentifierError(
            f"Task identifier exceeds {MAX_IDENTIFIER_LENGTH} characters.",
            details={"length": len(normalized)},
        )
    if _ALLOWED_RE.match(normalized) is None:
        raise InvalidIdentifierError(
            "Task identifier contains unsupported characters.",
            details={"identifier": normalized},
        )
    return normalized


def is_canonical_id(identifier: str) -> bool:
    return _CANONICAL_RE.match(identifier) is not None


def canonicalize(identifier: str) -> str:
    """Strip anything after a leading well-formed UUID; other shapes pass through."""
    if is_canonical_id(identifier):
        return identifier.lower()
    match = _COMPOUND_RE.match(identifier)
    if match is None:
        return identifier
    return match.group(1).lower()


def is_template_addressable(identifier: str) -> bool:
    """Whether ``identifier`` has the shape of a catalog factor id."""
    return is_canonical_id(canonicalize(identifier))
