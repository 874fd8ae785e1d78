"""Unit tests for cache key builders."""

from src.cache import keys


class TestNormalization:
    """Tests for key part normalization."""

    def test_repo_key_is_case_insensitive(self) -> None:
        """Test owner and repo are lower-cased."""
        assert keys.repo_key("OctoCat", "Hello-World") == "repo:octocat/hello-world"

    def test_path_slashes_stripped(self) -> None:
        """Test leading and trailing slashes do not change the key."""
        assert keys.file_content_key("o", "r", "/src/a.py/") == keys.file_content_key(
            "o", "r", "src/a.py"
        )

    def test_empty_ref_and_path(self) -> None:
        """Test empty parts are written as ~."""
        assert keys.repo_contents_key("o", "r", "", None) == "repo_contents:o/r:~:~"

    def test_free_text_is_encoded(self) -> None:
        """Test paths and refs are percent-encoded."""
        key = keys.repo_contents_key("o", "r", "docs/read me.md", "feature/x")

        assert key == "repo_contents:o/r:feature%2Fx:docs%2Fread%20me.md"

    def test_blank_ref_equals_missing_ref(self) -> None:
        """Test a whitespace ref is the default branch."""
        assert keys.repo_readme_key("o", "r", "  ") == keys.repo_readme_key("o", "r")

    def test_dedupe_key(self) -> None:
        """Test the job uniqueness key joins type and cache key."""
        assert keys.dedupe_key("issue", "issue:o/r:7") == "issue:issue:o/r:7"


class TestBuilders:
    """Tests for resource key builders."""

    def test_deterministic(self) -> None:
        """Test identical parameters give identical keys."""
        assert keys.org_repos_key("GitHub", "updated", "all", 30) == keys.org_repos_key(
            "github", "updated", "all", 30
        )

    def test_search_key_encodes_query(self) -> None:
        """Test search queries are encoded into one key part."""
        key = keys.search_issues_key("is:pr is:open repo:o/r", 30)

        assert key == "search_issues:is%3Apr%20is%3Aopen%20repo%3Ao%2Fr:30"

    def test_search_key_ignores_case_and_spacing(self) -> None:
        """Test queries differing only in case or whitespace share a key."""
        assert keys.search_issues_key("is:PR  is:open repo:Octo/Hello", 30) == (
            keys.search_issues_key("is:pr is:open repo:octo/hello", 30)
        )


class TestInvalidationPrefixes:
    """Tests for mutation invalidation prefixes."""

    def test_issue_prefixes(self) -> None:
        """Test an issue mutation covers the issue, its comments, lists and counts."""
        prefixes = keys.issue_invalidation_prefixes("O", "R", 5)

        assert prefixes == [
            "issue:o/r:5",
            "issue_comments:o/r:5",
            "repo_issues:o/r",
            "repo_nav_counts:o/r",
        ]

    def test_pull_request_prefixes_include_searches(self) -> None:
        """Test a PR mutation also drops the open and closed PR searches."""
        prefixes = keys.pull_request_invalidation_prefixes("o", "r", 9)

        assert "pull_request:o/r:9" in prefixes
        assert "repo_pull_requests:o/r" in prefixes
        assert "repo_nav_counts:o/r" in prefixes
        assert "pull_request_comments:o/r:9" in prefixes
        assert f"search_issues:{keys.key_part('is:pr is:open repo:o/r')}" in prefixes
        assert f"search_issues:{keys.key_part('is:pr is:closed repo:o/r')}" in prefixes

    def test_pull_request_search_prefixes_match_cased_query(self) -> None:
        """Test a mutation with mixed-case coordinates still covers the cached search."""
        cached = keys.search_issues_key("is:pr is:open repo:Octo/Hello", 30)
        prefixes = keys.pull_request_invalidation_prefixes("OCTO", "hello", 1)

        assert any(cached.startswith(prefix) for prefix in prefixes)

    def test_repo_list_prefixes(self) -> None:
        """Test list-level mutations cover the list keys."""
        assert keys.repo_issues_invalidation_prefixes("o", "r") == [
            "repo_issues:o/r",
            "repo_nav_counts:o/r",
        ]
        assert keys.repo_pull_requests_invalidation_prefixes("o", "r") == [
            "repo_pull_requests:o/r"
        ]
