"""Tests for the remote response cache."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from releaselog.cache.response_cache import NOT_FOUND, NOT_FOUND_MARKER, ResponseCache


@pytest.fixture
def temp_cache_dir():
    """Create temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def cache(temp_cache_dir):
    """Create ResponseCache instance."""
    return ResponseCache(temp_cache_dir)


def test_cache_miss_then_hit(cache):
    """Test a body is returned after it was stored."""
    key = "/repos/eclipse/jetty/issues/12"

    assert cache.get(key) is None
    assert cache.misses == 1

    cache.put(key, '{"number": 12}')

    assert cache.get(key) == '{"number": 12}'
    assert cache.hits == 1


def test_cache_file_layout(cache, temp_cache_dir):
    """Test keys map onto nested JSON files."""
    cache.put("/repos/eclipse/jetty/issues/12", "{}")

    assert (temp_cache_dir / "repos" / "eclipse" / "jetty" / "issues" / "12.json").exists()


def test_not_found_is_distinct_from_absent(cache, temp_cache_dir):
    """Test a negative entry reads back as NOT_FOUND, not None."""
    key = "/repos/eclipse/jetty/issues/404"
    cache.put_not_found(key)

    assert cache.get(key) is NOT_FOUND
    assert cache.get("/repos/eclipse/jetty/issues/405") is None
    assert cache.negative_hits == 1
    assert (temp_cache_dir / "repos" / "eclipse" / "jetty" / "issues" / "404.json").read_text() == NOT_FOUND_MARKER


def test_not_found_sentinel_is_falsy():
    """Test NOT_FOUND can be tested for truthiness."""
    assert not NOT_FOUND
    assert repr(NOT_FOUND) == "NOT_FOUND"


def test_cache_survives_restart(temp_cache_dir):
    """Test entries persist across instances."""
    ResponseCache(temp_cache_dir).put("/a/b", "body")
    ResponseCache(temp_cache_dir).put_not_found("/a/c")

    reopened = ResponseCache(temp_cache_dir)
    assert reopened.get("/a/b") == "body"
    assert reopened.get("/a/c") is NOT_FOUND


def test_path_traversal_is_neutralized(cache, temp_cache_dir):
    """Test '..' segments cannot escape the cache directory."""
    path = cache._path_for("/../../etc/passwd")

    assert path == temp_cache_dir / "etc" / "passwd.json"


def test_unsafe_characters_are_replaced(cache, temp_cache_dir):
    """Test query strings become safe file names."""
    path = cache._path_for("/repos/o/r/issues/12/events?per_page=100")

    assert path == temp_cache_dir / "repos" / "o" / "r" / "issues" / "12" / "events_per_page_100.json"


def test_read_error_is_a_miss(cache):
    """Test I/O errors are treated as a cache miss."""
    cache.put("/a/b", "body")

    with patch.object(Path, "read_text", side_effect=OSError("disk gone")):
        assert cache.get("/a/b") is None

    assert cache.misses == 1


def test_write_error_is_logged_not_raised(cache):
    """Test I/O errors while writing do not propagate."""
    with patch.object(Path, "write_text", side_effect=OSError("read-only")):
        cache.put("/a/b", "body")

    assert cache.get("/a/b") is None


def test_delete(cache):
    """Test deleting a single entry."""
    cache.put("/a/b", "body")

    assert cache.delete("/a/b") is True
    assert cache.delete("/a/b") is False
    assert cache.get("/a/b") is None


def test_clear_and_stats(cache):
    """Test clearing the cache resets entries and counters."""
    cache.put("/a/b", "body")
    cache.put_not_found("/a/c")
    cache.get("/a/b")
    cache.get("/a/c")
    cache.get("/a/d")

    stats = cache.get_stats()
    assert stats["hits"] == 1
    assert stats["negative_hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == "66.7%"
    assert stats["cached_responses"] == 2

    cache.clear()

    stats = cache.get_stats()
    assert stats["cached_responses"] == 0
    assert stats["hits"] == 0
    assert stats["hit_rate"] == "0.0%"
