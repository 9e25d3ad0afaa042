"""Translate read range options into the stream's offset and limit."""

from __future__ import annotations

import logging

from blobstream.exceptions import InvalidArgumentError, OutOfRangeError
from blobstream.models import ReadRange

logger = logging.getLogger(__name__)


def translate_read_range(
    read_range: tuple[int, int] | None = None,
    read_last: int | None = None,
    read_from_offset: int | None = None,
) -> ReadRange:
    """Combine the range options of a read into a single ``ReadRange``.

    Options apply in this order:

    1. ``read_last=0`` is rejected. With the wire encoding a zero suffix is
       indistinguishable from "no limit" and would return the whole object.
    2. ``read_range=(begin, end)`` sets ``offset=begin`` and
       ``limit=end - begin``.
    3. ``read_last=N`` sets ``offset=-N`` and leaves the limit unbounded.
    4. ``read_from_offset=K`` only ever raises the offset. A bounded limit
       shrinks by the same amount so the end of the range does not move; if
       ``K`` is at or past that end, the range becomes empty.

    Raises:
        OutOfRangeError: If ``read_last`` is zero or negative.
        InvalidArgumentError: If ``read_range`` ends before it begins.
    """
    if read_last is not None and read_last <= 0:
        raise OutOfRangeError(
            f"read_last({read_last}) is invalid: a suffix read needs at least one byte"
        )

    offset = 0
    limit = 0
    bounded = False
    empty = False
    if read_range is not None:
        begin, end = read_range
        if begin < 0 or end < begin:
            raise InvalidArgumentError(f"Invalid read range [{begin}, {end})")
        offset = begin
        limit = end - begin
        bounded = True
        empty = limit == 0

    if read_last is not None:
        offset = -read_last
        limit = 0
        bounded = False
        empty = False

    if empty:
        return ReadRange(offset=offset, limit=0, empty=True)

    if read_from_offset is not None and read_from_offset > offset:
        if bounded:
            limit -= read_from_offset - offset
            if limit <= 0:
                logger.warning(
                    "read_from_offset(%d) is past the end of range %s; "
                    "reading nothing",
                    read_from_offset,
                    read_range,
                )
                return ReadRange(offset=read_from_offset, limit=0, empty=True)
        offset = read_from_offset

    return ReadRange(offset=offset, limit=limit)
