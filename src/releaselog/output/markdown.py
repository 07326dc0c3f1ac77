"""Plain text renderings of a changelog."""

from pathlib import Path
from typing import Iterable, List

import structlog

from releaselog.models.records import Author, Change
from releaselog.output.dependencies import tidy_dependency_changes

logger = structlog.get_logger(__name__)

DEPENDENCIES_LABEL = "dependencies"
MARKDOWN_FILENAME = "changelog.md"
VERSION_TAG_FILENAME = "version-tag.txt"


def _ordered(changes: Iterable[Change]) -> List[Change]:
    """Changes sorted by display number, highest first."""
    return sorted(changes, key=lambda change: change.ref_number or 0, reverse=True)


def format_change(change: Change) -> str:
    """One ``+ #N - title (contributors)`` line; committers are not credited."""
    if change.ref_number is not None:
        line = f"+ #{change.ref_number} - {change.ref_title or ''}"
    else:
        line = f"+ {change.ref_title or ''}"

    contributors = sorted({author.nice_name() for author in change.authors if not author.committer})
    if contributors:
        line += f" ({', '.join(contributors)})"
    return line


def _community_member(author: Author) -> str:
    nice = author.nice_name()
    if not author.name or author.name == nice:
        return nice
    return f"{nice} ({author.name})"


def _section(heading: str, changes: List[Change]) -> List[str]:
    if not changes:
        return []
    lines = ["", heading, ""]
    lines.extend(format_change(change) for change in changes)
    return lines


def render_markdown(changes: Iterable[Change], include_dependencies: bool = False) -> str:
    """Render changes as Markdown.

    Args:
        changes: Changes to render
        include_dependencies: Add a section for dependency updates

    Returns:
        Markdown text
    """
    ordered = _ordered(changes)
    lines: List[str] = []

    community = sorted(
        {
            _community_member(author)
            for change in ordered
            for author in change.authors
            if not author.committer
        }
    )
    if community:
        lines.append("# Special Thanks to the following community members")
        lines.append("")
        lines.extend(f"* {member}" for member in community)
        lines.append("")

    lines.extend(
        _section("# Changelog", [change for change in ordered if not change.has_label(DEPENDENCIES_LABEL)])
    )

    if include_dependencies:
        bumps = tidy_dependency_changes(change for change in ordered if change.has_label(DEPENDENCIES_LABEL))
        lines.extend(_section("# Dependencies", bumps))

    return "\n".join(lines) + "\n"


def render_version_tag_text(changes: Iterable[Change], version: str, date: str) -> str:
    """Render the short text used as an annotated tag message."""
    ordered = [change for change in _ordered(changes) if not change.has_label(DEPENDENCIES_LABEL)]
    return "\n".join(_section(f" {version} - {date}", ordered)) + "\n"


def write_markdown(changes: Iterable[Change], output_dir: Path, include_dependencies: bool = False) -> Path:
    """Write ``changelog.md`` into ``output_dir``.

    Returns:
        Path of the written file
    """
    path = Path(output_dir) / MARKDOWN_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_markdown(changes, include_dependencies), encoding="utf-8")
    logger.info("markdown_written", path=str(path))
    return path


def write_version_tag_text(changes: Iterable[Change], output_dir: Path, version: str, date: str) -> Path:
    """Write ``version-tag.txt`` into ``output_dir``."""
    path = Path(output_dir) / VERSION_TAG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_version_tag_text(changes, version, date), encoding="utf-8")
    logger.info("version_tag_text_written", path=str(path))
    return path


def update_version_text(version_tag_file: Path, version_text_file: Path, output_file: Path) -> Path:
    """Write a new ``VERSION.txt``: the release's tag text followed by the existing history.

    Args:
        version_tag_file: Generated ``version-tag.txt``
        version_text_file: The project's current ``VERSION.txt``
        output_file: Where to write the combined file; may be ``version_text_file`` itself

    Returns:
        Path of the written file

    Raises:
        FileNotFoundError: If either input file is missing
    """
    tag_text = Path(version_tag_file).read_text(encoding="utf-8")
    history = Path(version_text_file).read_text(encoding="utf-8")

    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tag_text + history, encoding="utf-8")
    logger.info("version_text_updated", path=str(path), source=str(version_text_file))
    return path
