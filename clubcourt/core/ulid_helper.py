"""ULID ids for every court row: sortable, 26 characters, creation time embedded."""

from datetime import datetime
from typing import Optional

import ulid


def generate_ulid() -> str:
    return str(ulid.ULID())


def parse_ulid(value: str) -> Optional[ulid.ULID]:
    """The parsed ULID, or None for anything that is not one."""
    try:
        return ulid.ULID.from_str(value)
    except (ValueError, TypeError):
        return None


def get_timestamp_from_ulid(value: str) -> Optional[datetime]:
    parsed = parse_ulid(value)
    return parsed.datetime if parsed else None


def is_valid_ulid(value: str) -> bool:
    return parse_ulid(value) is not None
