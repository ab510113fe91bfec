# Overview: Service-layer operations for identifiers; allocates human-readable member ids.

"""
Identifier Service - sequential member identifiers

FORMAT: "M" followed by the sequence number, zero-padded to at least 3 digits
(M001, M042, M999, M1000). Width grows instead of truncating.

ALLOCATION: next = max(number found in any existing id) + 1, where the number
is the first run of digits in the id; ids without digits count as 0.

CONCURRENCY: allocation is a plain read; it does not reserve anything. The
UNIQUE constraint on members.member_id is what guarantees an id is never issued
twice. A collision is reported as IdentifierConflict and the whole
scan-and-insert sequence is retried by the caller.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..extensions import db
from ..models import Member


MEMBER_ID_PREFIX = "M"
MEMBER_ID_MIN_WIDTH = 3

_DIGITS = re.compile(r"\d+")


def extract_sequence_number(identifier: str | None) -> int:
    """Return the first run of digits in identifier, or 0 when there is none."""
    if not identifier:
        return 0
    match = _DIGITS.search(identifier)
    if match is None:
        return 0
    try:
        return int(match.group(0))
    except ValueError:
        return 0


def format_member_id(number: int) -> str:
    return f"{MEMBER_ID_PREFIX}{number:0{MEMBER_ID_MIN_WIDTH}d}"


def next_member_id(existing_ids: Iterable[str | None]) -> str:
    highest = max((extract_sequence_number(i) for i in existing_ids), default=0)
    return format_member_id(highest + 1)


def existing_member_ids() -> list[str]:
    return [row.member_id for row in db.session.query(Member.member_id).all()]


def allocate_member_id() -> str:
    """Compute the next member id from the ids currently stored."""
    return next_member_id(existing_member_ids())
