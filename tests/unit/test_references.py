"""Tests for issue reference scanning."""

from releaselog.extraction.references import scan, scan_resolutions


def test_scan_finds_all_mentions():
    """Test every #<digits> token is found."""
    assert scan("Fix #12 and #34 (#56)") == {12, 34, 56}


def test_scan_collapses_duplicates():
    """Test repeated references collapse into one."""
    assert scan("#7 again #7 and #7") == {7}


def test_scan_empty_input():
    """Test None and empty text yield nothing."""
    assert scan(None) == set()
    assert scan("") == set()


def test_scan_ignores_malformed_tokens():
    """Test tokens that are not references are ignored."""
    assert scan("no refs #abc, # 12, &#123; or #") == set()


def test_scan_ignores_zero_and_huge_numbers():
    """Test #0 and absurdly long digit runs are dropped."""
    assert scan("#0 #12345678901234567890 #5") == {5}


def test_scan_resolutions_only_closing_verbs():
    """Test only numbers after a closing verb count."""
    assert scan_resolutions("Fixes #10, see #11") == {10}


def test_scan_resolutions_all_verbs():
    """Test the whole closing vocabulary."""
    text = "close #1 closes #2 closed #3 fix #4 fixes #5 fixed #6 resolve #7 resolves #8 resolved #9"
    assert scan_resolutions(text) == set(range(1, 10))


def test_scan_resolutions_case_and_punctuation():
    """Test case-insensitive verbs and an optional colon."""
    assert scan_resolutions("CLOSES #5") == {5}
    assert scan_resolutions("Resolves: #3") == {3}
    assert scan_resolutions("fixes#8") == {8}


def test_scan_resolutions_requires_whole_verb():
    """Test verbs embedded in other words do not count."""
    assert scan_resolutions("prefix #7 and suffixes #8") == set()


def test_scan_resolutions_multiline_body():
    """Test resolution phrases anywhere in a commit body."""
    body = "Rework the connector\n\nThis touches #99 a bit.\n\nFixes #100\nCloses #101\n"
    assert scan_resolutions(body) == {100, 101}
    assert scan(body) == {99, 100, 101}


def test_scan_mentions_glued_to_words():
    """Test references written straight after a word are found."""
    assert scan("Merge PR#45") == {45}
    assert scan("Issue#123 fix") == {123}
    assert scan("see #12_x") == {12}
