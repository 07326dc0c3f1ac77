"""Unit tests for the git repository reader."""

import tempfile
from pathlib import Path

import git
import pytest

from releaselog.extraction import GitRepositoryReader, MissingObjectError, RefNotFoundError


@pytest.fixture
def test_repo():
    """Create a temporary Git repository with a tag, a feature branch and a merge."""
    with tempfile.TemporaryDirectory() as tmpdir:
        repo_path = Path(tmpdir)
        repo = git.Repo.init(repo_path)

        # Configure git
        repo.config_writer().set_value("user", "name", "Test User").release()
        repo.config_writer().set_value("user", "email", "test@example.com").release()

        (repo_path / "README.md").write_text("# Test Project\n")
        repo.index.add(["README.md"])
        root = repo.index.commit("Initial commit")
        repo.create_tag("v1.0", message="Release 1.0")
        main_branch = repo.active_branch.name

        (repo_path / "main.py").write_text("def hello():\n    print('Hello')\n")
        repo.index.add(["main.py"])
        second = repo.index.commit("Add main.py (#12)")

        feature = repo.create_head("feature")
        feature.checkout()
        (repo_path / "feature.py").write_text("FEATURE = True\n")
        repo.index.add(["feature.py"])
        feature_commit = repo.index.commit("Feature work\n\nFixes #5")

        repo.heads[main_branch].checkout()
        (repo_path / "main.py").write_text("def hello():\n    print('Hello, World!')\n")
        repo.index.add(["main.py"])
        fourth = repo.index.commit("Update greeting")

        merge = repo.index.commit(
            "Merge branch 'feature'",
            parent_commits=(fourth, feature_commit),
        )

        yield {
            "path": repo_path,
            "main": main_branch,
            "root": root.hexsha,
            "second": second.hexsha,
            "feature": feature_commit.hexsha,
            "fourth": fourth.hexsha,
            "merge": merge.hexsha,
        }
        repo.close()


@pytest.fixture
def reader(test_repo):
    """Create a reader over the test repository."""
    reader = GitRepositoryReader(test_repo["path"])
    yield reader
    reader.close()


def test_reader_invalid_path():
    """Test reader with a missing repository path."""
    with pytest.raises(ValueError, match="Repository path does not exist"):
        GitRepositoryReader(Path("/nonexistent/path"))


def test_reader_not_a_repository():
    """Test reader with a directory that is not a repository."""
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(ValueError, match="Invalid Git repository"):
            GitRepositoryReader(Path(tmpdir))


def test_resolve_tag(reader, test_repo):
    """Test annotated tags resolve to their commit."""
    assert reader.resolve_tag("v1.0") == test_repo["root"]


def test_resolve_tag_rejects_branches(reader, test_repo):
    """Test a branch name is not accepted as a tag."""
    with pytest.raises(RefNotFoundError):
        reader.resolve_tag(test_repo["main"])


def test_resolve_ref(reader, test_repo):
    """Test tags, branches and commit ids all resolve."""
    assert reader.resolve_ref("v1.0") == test_repo["root"]
    assert reader.resolve_ref(test_repo["main"]) == test_repo["merge"]
    assert reader.resolve_ref("feature") == test_repo["feature"]
    assert reader.resolve_ref(f"refs/heads/{test_repo['main']}") == test_repo["merge"]
    assert reader.resolve_ref(test_repo["second"]) == test_repo["second"]


def test_resolve_ref_unknown(reader):
    """Test an unknown ref is reported."""
    with pytest.raises(RefNotFoundError, match="Ref not found"):
        reader.resolve_ref("does-not-exist")


def test_commits_between(reader, test_repo):
    """Test the range excludes the old end and includes merged branches."""
    commits = reader.commits_between(test_repo["root"], test_repo["merge"])

    assert {c.sha for c in commits} == {
        test_repo["second"],
        test_repo["feature"],
        test_repo["fourth"],
        test_repo["merge"],
    }
    assert commits[0].sha == test_repo["merge"]
    assert commits[0].is_merge
    assert commits[0].parent_count == 2


def test_get_commit(reader, test_repo):
    """Test reading a single commit."""
    info = reader.get_commit(test_repo["feature"])

    assert info.title == "Feature work"
    assert "Fixes #5" in info.body
    assert info.author_email == "test@example.com"
    assert info.author_name == "Test User"
    assert info.parent_count == 1
    assert not info.is_merge
    assert info.authored_at.tzinfo is not None


def test_get_commit_missing(reader):
    """Test a commit absent from history raises MissingObjectError."""
    with pytest.raises(MissingObjectError):
        reader.get_commit("0123456789abcdef0123456789abcdef01234567")


def test_changed_paths(reader, test_repo):
    """Test paths touched by a commit."""
    assert reader.changed_paths(test_repo["second"]) == {"main.py"}
    assert reader.changed_paths(test_repo["feature"]) == {"feature.py"}


def test_changed_paths_root_commit(reader, test_repo):
    """Test a root commit reports every file it adds."""
    assert reader.changed_paths(test_repo["root"]) == {"README.md"}


def test_changed_paths_missing(reader):
    """Test diffing a missing commit raises MissingObjectError."""
    with pytest.raises(MissingObjectError):
        reader.changed_paths("0123456789abcdef0123456789abcdef01234567")


def test_branches_containing(reader, test_repo):
    """Test branch lookup returns full ref names."""
    branches = reader.branches_containing(test_repo["feature"])

    assert "refs/heads/feature" in branches
    assert f"refs/heads/{test_repo['main']}" in branches

    assert reader.branches_containing(test_repo["fourth"]) == {f"refs/heads/{test_repo['main']}"}


def test_commit_time(reader, test_repo):
    """Test the committer time of a ref."""
    assert reader.commit_time(test_repo["merge"]).year >= 2020


def test_identity_is_stable(reader, test_repo):
    """Test the repository identity is stable and names the directory."""
    other = GitRepositoryReader(test_repo["path"])
    try:
        assert reader.identity == other.identity
        assert reader.identity.startswith(Path(test_repo["path"]).resolve().name)
    finally:
        other.close()
