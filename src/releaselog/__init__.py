"""releaselog - release changelogs from git history and GitHub issues."""

__version__ = "0.1.0"
