"""Change resolution: exclusions and the resolution engine."""

from releaselog.resolution.engine import (
    ChangelogEngine,
    ResolutionDeadlineExceeded,
    ResolutionError,
    ResolutionStats,
)
from releaselog.resolution.exclusions import ExclusionRules

__all__ = [
    "ChangelogEngine",
    "ExclusionRules",
    "ResolutionDeadlineExceeded",
    "ResolutionError",
    "ResolutionStats",
]
