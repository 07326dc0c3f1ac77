"""Writers for a finished changelog."""

from releaselog.output.dependencies import parse_bump, simplify_bump, tidy_dependency_changes
from releaselog.output.markdown import (
    format_change,
    render_markdown,
    render_version_tag_text,
    update_version_text,
    write_markdown,
    write_version_tag_text,
)
from releaselog.output.reports import save_reports

__all__ = [
    "format_change",
    "parse_bump",
    "render_markdown",
    "render_version_tag_text",
    "save_reports",
    "simplify_bump",
    "tidy_dependency_changes",
    "update_version_text",
    "write_markdown",
    "write_version_tag_text",
]
