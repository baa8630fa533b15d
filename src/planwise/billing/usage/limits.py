"""Parsing of plan resource limits.

A limit is either the literal ``"unlimited"`` or a non-negative integer
string. Anything else is rejected.
"""

import re
from typing import Final

from planwise.billing.exceptions import InvalidResourceLimitError

UNLIMITED: Final = "unlimited"

_INTEGER_LIMIT = re.compile(r"^\d+$")


def parse_resource_limit(limit: str) -> int | None:
    """Return the numeric bound of ``limit``, or ``None`` when unbounded.

    Raises:
        InvalidResourceLimitError: the string is in any other format.
    """
    if not isinstance(limit, str):
        raise InvalidResourceLimitError(f"Resource limit must be a string, got {limit!r}")

    value = limit.strip()
    if value.lower() == UNLIMITED:
        return None
    if _INTEGER_LIMIT.match(value):
        return int(value)

    raise InvalidResourceLimitError(f"Unrecognized resource limit: {limit!r}", limit=limit)


def is_unlimited(limit: str) -> bool:
    return parse_resource_limit(limit) is None
