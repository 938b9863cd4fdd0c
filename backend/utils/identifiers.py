import re
import uuid

from app.exceptions import InvalidIdentifier

# Canonical textual UUID, versions 1-5, RFC 4122 variant
UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_uuid(value) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def require_uuid(value, field: str = "id") -> str:
    """Return the identifier lower-cased, or raise InvalidIdentifier."""
    if isinstance(value, uuid.UUID):
        value = str(value)
    if not is_valid_uuid(value):
        raise InvalidIdentifier(value, field)
    return value.lower()


def new_id() -> str:
    return str(uuid.uuid4())
