"""Tests for changelog writers and diagnostic reports."""

import json
import tempfile
from pathlib import Path

import pytest

from releaselog.models.records import Author, Change, ChangeCommit, ChangeIssue, IssueDetail, Skip
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
from releaselog.resolution.engine import ChangelogEngine

ALICE = Author(github="alice", name="Alice", emails=["alice@example.com"])
JOAKIM = Author(github="joakime", name="Joakim", emails=["joakim@example.com"], committer=True)


@pytest.fixture
def temp_dir():
    """Create temporary output directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def make_change(number, ref_number, title, authors=(), labels=()):
    change = Change(number=number, ref_number=ref_number, ref_title=title)
    if labels:
        change.add_issue(ChangeIssue(num=ref_number or 0, labels=set(labels)))
    for author in authors:
        change.add_author(author)
    return change


def test_format_change_credits_contributors_only():
    """Test committers are left out of the credit list."""
    change = make_change(0, 12, "Fix widget", authors=[JOAKIM, ALICE])

    assert format_change(change) == "+ #12 - Fix widget (@alice)"


def test_format_change_without_number():
    """Test a commit-only change is listed by title."""
    change = make_change(0, None, "Tidy build", authors=[JOAKIM])

    assert format_change(change) == "+ Tidy build"


def test_render_markdown():
    """Test sections and ordering of the Markdown changelog."""
    changes = [
        make_change(0, 5, "Older fix"),
        make_change(1, 9, "Newer fix", authors=[ALICE]),
        make_change(2, 7, "Bump foo from 1 to 2", labels=["dependencies"]),
    ]

    text = render_markdown(changes)

    assert "# Special Thanks to the following community members" in text
    assert "* @alice (Alice)" in text
    assert "# Changelog" in text
    assert text.index("+ #9 - Newer fix (@alice)") < text.index("+ #5 - Older fix")
    assert "Bump foo" not in text
    assert "# Dependencies" not in text


def test_render_markdown_with_dependencies():
    """Test dependency bumps get their own tidied section."""
    changes = [
        make_change(0, 5, "Fix"),
        make_change(1, 7, "Bump foo from 1 to 2", labels=["dependencies"]),
    ]

    text = render_markdown(changes, include_dependencies=True)

    assert "# Dependencies" in text
    assert "+ #7 - Bump foo to 2" in text
    assert text.index("# Changelog") < text.index("# Dependencies")


def test_render_markdown_without_community():
    """Test no thanks section when only committers contributed."""
    text = render_markdown([make_change(0, 5, "Fix", authors=[JOAKIM])])

    assert "Special Thanks" not in text
    assert text.startswith("\n# Changelog")


def test_render_markdown_community_without_name():
    """Test contributors without a git name are listed by handle alone."""
    nameless = Author(github="carol", emails=["carol@example.com"])
    email_only = Author(emails=["dave@example.com"])

    text = render_markdown([make_change(0, 5, "Fix", authors=[nameless, email_only])])

    assert "* @carol\n" in text
    assert "* dave\n" in text
    assert "None" not in text


def test_simplify_and_parse_bump():
    """Test bump title helpers."""
    assert simplify_bump("Bump foo from 1.2 to 1.3") == "Bump foo to 1.3"
    assert simplify_bump("Fix foo") == "Fix foo"
    assert simplify_bump(None) is None
    assert parse_bump("Bump foo to 1.3") == ("foo", "1.3")
    assert parse_bump("Fix foo") is None


def test_tidy_dependency_changes():
    """Test bumps are sorted and only the newest per dependency is kept."""
    changes = [
        make_change(0, 1, "Bump foo from 1.2 to 1.3"),
        make_change(1, 2, "Bump foo from 1.1 to 1.2"),
        make_change(2, 3, "Bump bar from 2 to 3"),
    ]

    tidied = tidy_dependency_changes(changes)

    assert [change.ref_title for change in tidied] == ["Bump bar to 3", "Bump foo to 1.3"]


def test_write_markdown(temp_dir):
    """Test the Markdown file is written to the output directory."""
    path = write_markdown([make_change(0, 5, "Fix")], temp_dir / "out")

    assert path == temp_dir / "out" / "changelog.md"
    assert "+ #5 - Fix" in path.read_text(encoding="utf-8")


def test_write_version_tag_text(temp_dir):
    """Test the tag message header and body."""
    changes = [make_change(0, 5, "Fix"), make_change(1, 7, "Bump foo to 2", labels=["dependencies"])]

    path = write_version_tag_text(changes, temp_dir, "12.0.1", "18 October 2026")

    text = path.read_text(encoding="utf-8")
    assert path.name == "version-tag.txt"
    assert text.startswith("\n 12.0.1 - 18 October 2026\n")
    assert "+ #5 - Fix" in text
    assert "Bump foo" not in text


def test_update_version_text(temp_dir):
    """Test the tag text is put in front of the existing history."""
    tag_file = write_version_tag_text([make_change(0, 5, "Fix")], temp_dir, "12.0.2", "18 October 2026")
    history = temp_dir / "VERSION.txt"
    history.write_text("jetty-12.0.1 - 01 September 2026\n + #3 - Older fix\n", encoding="utf-8")

    path = update_version_text(tag_file, history, temp_dir / "target" / "VERSION.txt")

    text = path.read_text(encoding="utf-8")
    assert text == tag_file.read_text(encoding="utf-8") + history.read_text(encoding="utf-8")
    assert text.index("12.0.2") < text.index("jetty-12.0.1")


def test_update_version_text_missing_history(temp_dir):
    """Test a missing VERSION.txt is reported."""
    tag_file = write_version_tag_text([], temp_dir, "1.0", "today")

    with pytest.raises(FileNotFoundError):
        update_version_text(tag_file, temp_dir / "VERSION.txt", temp_dir / "out.txt")


def test_render_version_tag_text_empty():
    """Test an empty release still renders."""
    assert render_version_tag_text([], "1.0", "today") == "\n"


def test_save_reports(temp_dir):
    """Test every report file is written from the engine tables."""
    engine = ChangelogEngine(None, None, "main")
    engine.authors.add(ALICE)

    kept = ChangeCommit(sha="A" * 40, title="Fix widget", author=ALICE, files=["src/b.py", "src/a.py"])
    merge = ChangeCommit(sha="b" * 40, title="Merge")
    merge.add_skip_reason(Skip.IS_MERGE_COMMIT)
    issue = ChangeIssue(num=10, title="Widget", commits={kept.sha})
    issue.set_detail(IssueDetail())
    engine.commits = {kept.sha: kept, merge.sha: merge}
    engine.issues = {10: issue}
    change = Change(number=0)
    change.add_issue(issue)
    change.add_commit(kept)
    change.normalize()
    engine.changes = [change]

    written = save_reports(engine, temp_dir)

    assert sorted(path.name for path in written) == [
        "authors-scan.json",
        "change-commits.json",
        "change-groups.json",
        "change-issues-relevant.json",
        "change-issues.json",
        "change-paths.log",
    ]

    commits = json.loads((temp_dir / "change-commits.json").read_text(encoding="utf-8"))
    assert [commit["sha"] for commit in commits] == ["a" * 40, "b" * 40]
    assert commits[1]["skip_set"] == ["is_merge_commit"]

    issues = json.loads((temp_dir / "change-issues-relevant.json").read_text(encoding="utf-8"))
    assert issues[0]["num"] == 10
    assert issues[0]["detail"]["kind"] == "issue"

    groups = json.loads((temp_dir / "change-groups.json").read_text(encoding="utf-8"))
    assert groups[0]["ref_number"] == 10

    authors = json.loads((temp_dir / "authors-scan.json").read_text(encoding="utf-8"))
    assert authors[0]["github"] == "alice"

    assert (temp_dir / "change-paths.log").read_text(encoding="utf-8") == "src/a.py\nsrc/b.py\n"
