"""Field-level validation for repository create/update payloads.

Checks that need the database (identifier uniqueness, default handling)
live in RepositoryOperations.
"""

import codecs
import re
from typing import Any

from scmlink.core.exceptions import ValidationError
from scmlink.scm.registry import is_enabled

IDENTIFIER_MAX_LENGTH = 255
PASSWORD_MAX_LENGTH = 255

# Lowercase letters, digits and dashes, not only digits
IDENTIFIER_PATTERN = re.compile(r"(?!\d+\Z)[a-z0-9\-]*")

# Path segments of the browse routes
RESERVED_IDENTIFIERS = frozenset(
    {"show", "entry", "raw", "changes", "annotate", "diff", "stats", "graph"}
)

EXTRA_PREFIX = "extra_"


def normalize_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Strip url, root_url and identifier (blank identifier -> None), route extra_* keys.

    Keys prefixed with `extra_` are removed from the payload and merged into
    its `extra_info` mapping (prefix dropped).
    """
    normalized = dict(data)

    for field in ("url", "root_url"):
        if isinstance(normalized.get(field), str):
            normalized[field] = normalized[field].strip()

    if "identifier" in normalized:
        identifier = (normalized["identifier"] or "").strip()
        normalized["identifier"] = identifier or None

    extras = {
        key[len(EXTRA_PREFIX) :]: normalized.pop(key)
        for key in list(normalized)
        if key.startswith(EXTRA_PREFIX) and key != "extra_info"
    }
    if extras:
        normalized["extra_info"] = {**(normalized.get("extra_info") or {}), **extras}

    return normalized


def identifier_errors(identifier: str | None) -> str | None:
    """Message describing why `identifier` is invalid, or None."""
    if identifier is None:
        return None
    if len(identifier) > IDENTIFIER_MAX_LENGTH:
        return f"is too long (maximum is {IDENTIFIER_MAX_LENGTH} characters)"
    if not IDENTIFIER_PATTERN.fullmatch(identifier):
        return "is invalid"
    if identifier.lower() in RESERVED_IDENTIFIERS:
        return "is reserved"
    return None


def validate_repository_fields(data: dict[str, Any], creating: bool) -> None:
    """
    Validate a normalized create/update payload.

    On update only the keys present are checked.

    Raises:
        ValidationError: With every offending field
    """
    errors: dict[str, str] = {}

    if creating or "url" in data:
        if not data.get("url"):
            errors["url"] = "can't be blank"

    if "identifier" in data:
        message = identifier_errors(data["identifier"])
        if message:
            errors["identifier"] = message

    password = data.get("password")
    if password and len(password) > PASSWORD_MAX_LENGTH:
        errors["password"] = f"is too long (maximum is {PASSWORD_MAX_LENGTH} characters)"

    for field in ("log_encoding", "path_encoding"):
        encoding = (data.get(field) or "").strip()
        if encoding:
            try:
                codecs.lookup(encoding)
            except LookupError:
                errors[field] = "is not included in the list"

    if creating:
        scm_type = data.get("scm_type")
        if not scm_type:
            errors["scm_type"] = "can't be blank"
        elif not is_enabled(scm_type):
            errors["scm_type"] = "is not included in the list"

    if errors:
        raise ValidationError(errors)
