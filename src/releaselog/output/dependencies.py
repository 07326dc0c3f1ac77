"""Tidying of dependency bump changes (``Bump X from A to B``)."""

import functools
import re
from typing import Iterable, List, Optional, Set, Tuple

from releaselog.models.records import Change

_BUMP_FROM_TO = re.compile(r"^Bump (.*) from (.*) to (.*)$")
_BUMP_TO = re.compile(r"^Bump (.*) to (.*)$")


def simplify_bump(title: Optional[str]) -> Optional[str]:
    """Rewrite ``Bump X from A to B`` as ``Bump X to B``. Other titles are returned as is."""
    if not title:
        return title
    match = _BUMP_FROM_TO.match(title)
    if match is None:
        return title
    return f"Bump {match.group(1)} to {match.group(3)}"


def parse_bump(title: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split ``Bump X to B`` into ``(X, B)``."""
    if not title:
        return None
    match = _BUMP_TO.match(title)
    if match is None:
        return None
    return match.group(1), match.group(2)


def _compare(left: Change, right: Change) -> int:
    left_title = left.ref_title or ""
    right_title = right.ref_title or ""
    left_bump = parse_bump(left_title)
    right_bump = parse_bump(right_title)

    if left_bump and right_bump:
        if left_bump[0] != right_bump[0]:
            return -1 if left_bump[0] < right_bump[0] else 1
        # Newest version first
        if left_bump[1] != right_bump[1]:
            return -1 if left_bump[1] > right_bump[1] else 1
        return 0

    if left_title == right_title:
        return 0
    return -1 if left_title < right_title else 1


def tidy_dependency_changes(changes: Iterable[Change]) -> List[Change]:
    """Simplify, sort and de-duplicate dependency bump changes.

    Titles are simplified in place. Bumps are sorted by dependency name and
    then by version, newest first, and only the newest bump of each
    dependency is kept. Changes that are not bumps pass through.

    Args:
        changes: Changes labelled as dependency updates

    Returns:
        The changes to list in the dependency section
    """
    simplified = []
    for change in changes:
        change.ref_title = simplify_bump(change.ref_title)
        simplified.append(change)

    ordered = sorted(simplified, key=functools.cmp_to_key(_compare))

    seen: Set[str] = set()
    distinct = []
    for change in ordered:
        bump = parse_bump(change.ref_title)
        if bump is not None:
            if bump[0] in seen:
                continue
            seen.add(bump[0])
        distinct.append(change)
    return distinct
