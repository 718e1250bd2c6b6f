"""Unit tests for author identity normalization."""

from types import SimpleNamespace

from echoes.host import ExtensionInfo
from echoes.identity import (
    candidate_identities,
    extension_identities,
    extension_matches_author,
    extract_author_names,
    formatted_author_string,
    has_author_info,
    primary_author_name,
)


class TestCandidateIdentities:
    """Test every supported author descriptor shape."""

    def test_string(self):
        assert candidate_identities("janedoe") == ["janedoe"]
        assert candidate_identities("") == []

    def test_mapping(self):
        author = {
            "name": "Jane Doe",
            "github": "janedoe",
            "email": "jane@example.com",
            "url": "https://github.com/jdoe-alt/repo",
        }
        assert candidate_identities(author) == [
            "Jane Doe", "janedoe", "jane@example.com", "jane", "jdoe-alt",
        ]

    def test_object_with_attributes(self):
        author = SimpleNamespace(name="Jane Doe", github=None, email=None, url=None)
        assert candidate_identities(author) == ["Jane Doe"]

    def test_mixed_collection_is_flattened(self):
        authors = ["solo", {"name": "Jane Doe", "github": "janedoe"}, ("nested",)]
        assert candidate_identities(authors) == ["solo", "Jane Doe", "janedoe", "nested"]

    def test_duplicates_removed(self):
        assert candidate_identities(["jane", {"email": "jane@example.com"}]) == ["jane", "jane@example.com"]

    def test_unsupported_values(self):
        assert candidate_identities(None) == []
        assert candidate_identities(42) == []


class TestExtensionMatching:
    """Test author matching against extensions."""

    def test_authors_and_legacy_author(self):
        ext = ExtensionInfo(id="demo-ext", authors=[{"github": "janedoe"}], author="Legacy Name")
        assert extension_identities(ext) == ["janedoe", "Legacy Name"]
        assert extension_matches_author(ext, "janedoe")
        assert extension_matches_author(ext, "Legacy Name")
        assert not extension_matches_author(ext, "someone-else")

    def test_mapping_extension(self):
        ext = {"id": "x", "authors": [{"email": "dev@example.org"}]}
        assert extension_matches_author(ext, "dev")

    def test_no_extension(self):
        assert not extension_matches_author(None, "janedoe")
        assert not extension_matches_author(ExtensionInfo(id="x", author="a"), "")


class TestDisplayNames:
    """Test display name helpers."""

    def test_display_names_prefer_name(self):
        ext = ExtensionInfo(id="x", authors=[{"name": "Jane Doe", "github": "janedoe"}, {"github": "bob"},
                                             {"email": "carol@example.com"}])
        assert extract_author_names(ext) == ["Jane Doe", "bob", "carol@example.com"]
        assert primary_author_name(ext) == "Jane Doe"
        assert formatted_author_string(ext) == "Jane Doe, bob, carol@example.com"
        assert has_author_info(ext)

    def test_no_authors(self):
        ext = ExtensionInfo(id="x")
        assert primary_author_name(ext) == "Unknown"
        assert formatted_author_string(ext, unknown_label="n/a") == "n/a"
        assert not has_author_info(ext)
