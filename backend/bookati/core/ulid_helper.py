"""
ULID identifiers.

Every row id in the booking core is a ULID string: 26 Crockford base32
characters, sortable by creation time.
"""

from typing import Optional

import ulid

# Path parameter pattern for ids in URLs
ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def generate_ulid() -> str:
    return str(ulid.ULID())


def is_valid_ulid(value: Optional[str]) -> bool:
    """True when ``value`` parses as a ULID."""
    if not value:
        return False
    try:
        ulid.ULID.from_str(value)
    except ValueError:
        return False
    return True
