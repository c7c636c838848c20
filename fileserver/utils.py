"""Utility helper functions for the file server."""

import re
from typing import Optional, Tuple

from common.constants import IMAGE_CONTENT_TYPES

_RANGE_RE = re.compile(r"^bytes=(\d*)-(\d*)$")


class RangeNotSatisfiableError(ValueError):
    """Raised when a Range header does not overlap the file."""
    pass


def is_image(content_type: Optional[str]) -> bool:
    """
    Check whether a content type is one the image endpoint serves.

    Args:
        content_type: MIME type as stored

    Returns:
        True for image/jpeg and image/png
    """
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() in IMAGE_CONTENT_TYPES


def parse_range_header(header: Optional[str], length: int) -> Optional[Tuple[int, int]]:
    """
    Parse a single-range 'Range: bytes=...' header.

    Args:
        header: Raw header value, or None
        length: Total file length in bytes

    Returns:
        (start, end) with end exclusive, or None to serve the whole file.
        Malformed and multi-range headers are ignored.

    Raises:
        RangeNotSatisfiableError: If the range lies outside the file
    """
    if not header:
        return None

    match = _RANGE_RE.match(header.strip())
    if match is None:
        return None

    first, last = match.groups()
    if not first and not last:
        return None

    if not first:
        suffix = int(last)
        if suffix == 0 or length == 0:
            raise RangeNotSatisfiableError(header)
        return max(length - suffix, 0), length

    start = int(first)
    end = length if not last else min(int(last) + 1, length)
    if start >= length or start >= end:
        raise RangeNotSatisfiableError(header)
    return start, end
