"""Tests for [[Title]] link extraction."""
from notegraph_mcp.services.link_parser import extract_link_titles, link_keys, normalize_title


class TestExtractLinkTitles:
    """Tests for extract_link_titles."""

    def test_simple_links(self):
        text = "See [[Alpha]] and [[Beta]]."
        assert extract_link_titles(text) == ["Alpha", "Beta"]

    def test_titles_are_trimmed(self):
        assert extract_link_titles("[[  Alpha  ]]") == ["Alpha"]

    def test_empty_and_blank_links_are_dropped(self):
        assert extract_link_titles("[[]] and [[   ]]") == []

    def test_duplicates_keep_first_occurrence(self):
        text = "[[B]] [[A]] [[B]] [[ A ]]"
        assert extract_link_titles(text) == ["B", "A"]

    def test_non_greedy_match(self):
        """A span ends at the first closing pair."""
        assert extract_link_titles("[[One]] middle [[Two]]") == ["One", "Two"]

    def test_unmatched_brackets_are_not_links(self):
        assert extract_link_titles("[[open only and ]] close") == ["open only and"]
        assert extract_link_titles("[[never closed") == []
        assert extract_link_titles("[single] [[x]") == []

    def test_links_span_lines(self):
        assert extract_link_titles("[[Multi\nLine]]") == ["Multi\nLine"]

    def test_unclosed_span_runs_to_next_closing_pair(self):
        """An opening pair left open swallows text up to the next closing pair."""
        assert extract_link_titles("[[unclosed\nsee [[B]]") == ["unclosed\nsee [[B"]

    def test_empty_and_none_text(self):
        assert extract_link_titles("") == []
        assert extract_link_titles(None) == []

    def test_case_variants_are_distinct_titles(self):
        assert extract_link_titles("[[Idea]] [[idea]]") == ["Idea", "idea"]


class TestNormalizeTitle:
    """Tests for title normalization."""

    def test_case_insensitive(self):
        assert normalize_title("My Note") == normalize_title("my note")

    def test_whitespace_trimmed(self):
        assert normalize_title("  Note ") == "note"

    def test_link_keys_collapse_case_variants(self):
        assert link_keys("[[Idea]] [[idea]] [[Other]]") == ["idea", "other"]
