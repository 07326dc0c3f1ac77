"""Issue and pull request reference scanning.

Commit messages and issue bodies mention other issues as ``#123``. Two
flavours are recognised:

* plain mentions, any ``#<digits>`` token
* resolution phrases, a closing verb such as ``fixes`` or ``closes``
  immediately followed by ``#<digits>``
"""

import re
from typing import Optional, Set

RESOLUTION_VERBS = (
    "close",
    "closes",
    "closed",
    "fix",
    "fixes",
    "fixed",
    "resolve",
    "resolves",
    "resolved",
)

# GitHub numbers never get anywhere near this long
MAX_DIGITS = 9

# "&#123;" is an HTML entity, not a reference
_MENTION_PATTERN = re.compile(r"(?<!&)#(\d+)")
_RESOLUTION_PATTERN = re.compile(
    r"\b(?:" + "|".join(RESOLUTION_VERBS) + r")\b:?\s*#(\d+)\b",
    re.IGNORECASE,
)


def _collect(pattern: re.Pattern, text: Optional[str]) -> Set[int]:
    if not text:
        return set()

    refs: Set[int] = set()
    for match in pattern.finditer(text):
        digits = match.group(1)
        if len(digits) > MAX_DIGITS:
            continue
        num = int(digits)
        if num > 0:
            refs.add(num)
    return refs


def scan(text: Optional[str]) -> Set[int]:
    """Return every ``#<digits>`` reference found in text.

    Args:
        text: Arbitrary text, may be None

    Returns:
        Set of referenced issue/PR numbers
    """
    return _collect(_MENTION_PATTERN, text)


def scan_resolutions(text: Optional[str]) -> Set[int]:
    """Return only the references preceded by a closing verb.

    ``Fixes #12``, ``closed #7`` and ``Resolves: #3`` all count; a bare
    ``see #9`` does not.

    Args:
        text: Arbitrary text, may be None

    Returns:
        Set of issue/PR numbers the text claims to resolve
    """
    return _collect(_RESOLUTION_PATTERN, text)
