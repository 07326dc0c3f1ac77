"""Data models for changelog resolution."""

from releaselog.models.authors import AuthorRegistry
from releaselog.models.config import ChangelogConfig, ConfigError, OutputType, Settings
from releaselog.models.records import (
    Author,
    Change,
    ChangeCommit,
    ChangeIssue,
    ChangeRefAlreadyAssigned,
    InvalidReference,
    IssueDetail,
    IssueType,
    PullRequestDetail,
    ResolutionState,
    Skip,
)

__all__ = [
    "Author",
    "AuthorRegistry",
    "Change",
    "ChangeCommit",
    "ChangeIssue",
    "ChangeRefAlreadyAssigned",
    "ChangelogConfig",
    "ConfigError",
    "InvalidReference",
    "IssueDetail",
    "IssueType",
    "OutputType",
    "PullRequestDetail",
    "ResolutionState",
    "Settings",
    "Skip",
]
