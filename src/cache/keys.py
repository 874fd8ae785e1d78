"""Deterministic cache key builders.

A cache key is ``<resource>:<normalized params>``. Repository coordinates
are lower-cased, paths lose leading and trailing slashes, and free-text
parts are percent-encoded with ``~`` standing for the empty string, so two
requests for the same data always produce the same key.
"""

from urllib.parse import quote


EMPTY_PART = "~"


def normalize_ref(ref: str | None) -> str:
    """Normalize a git ref (branch, tag or sha); None and blanks become ''."""
    return (ref or "").strip()


def normalize_path(path: str) -> str:
    """Strip leading and trailing slashes from a repository path."""
    return path.strip("/")


def normalize_repo_key(owner: str, repo: str) -> str:
    """Build the case-insensitive ``owner/repo`` key part."""
    return f"{owner.lower()}/{repo.lower()}"


def normalize_query(query: str) -> str:
    """Lower-case a search query and collapse its whitespace.

    GitHub search matching ignores case, so differently cased queries
    return the same results.
    """
    return " ".join(query.lower().split())


def key_part(value: str) -> str:
    """Encode a free-text key part."""
    return quote(value if value else EMPTY_PART, safe="!~*'()")


def dedupe_key(job_type: str, cache_key: str) -> str:
    """Build the job table uniqueness key for one cached item."""
    return f"{job_type}:{cache_key}"


# ===== Viewer-scoped resources =====


def authenticated_user_key() -> str:
    return "authenticated_user"


def user_repos_key(sort: str, per_page: int) -> str:
    return f"user_repos:{sort}:{per_page}"


def notifications_key(per_page: int) -> str:
    return f"notifications:{per_page}"


def starred_repos_key(per_page: int) -> str:
    return f"starred_repos:{per_page}"


def search_issues_key(query: str, per_page: int) -> str:
    return f"{search_issues_prefix(query)}:{per_page}"


def search_issues_prefix(query: str) -> str:
    return f"search_issues:{key_part(normalize_query(query))}"


# ===== Repository resources =====


def repo_key(owner: str, repo: str) -> str:
    return f"repo:{normalize_repo_key(owner, repo)}"


def repo_branches_key(owner: str, repo: str) -> str:
    return f"repo_branches:{normalize_repo_key(owner, repo)}"


def repo_contents_key(owner: str, repo: str, path: str, ref: str | None = None) -> str:
    return (
        f"repo_contents:{normalize_repo_key(owner, repo)}:"
        f"{key_part(normalize_ref(ref))}:{key_part(normalize_path(path))}"
    )


def file_content_key(owner: str, repo: str, path: str, ref: str | None = None) -> str:
    return (
        f"file_content:{normalize_repo_key(owner, repo)}:"
        f"{key_part(normalize_ref(ref))}:{key_part(normalize_path(path))}"
    )


def repo_readme_key(owner: str, repo: str, ref: str | None = None) -> str:
    return f"repo_readme:{normalize_repo_key(owner, repo)}:{key_part(normalize_ref(ref))}"


def repo_issues_key(owner: str, repo: str, state: str) -> str:
    return f"repo_issues:{normalize_repo_key(owner, repo)}:{state}"


def issue_key(owner: str, repo: str, issue_number: int) -> str:
    return f"issue:{normalize_repo_key(owner, repo)}:{issue_number}"


def issue_comments_key(owner: str, repo: str, issue_number: int) -> str:
    return f"issue_comments:{normalize_repo_key(owner, repo)}:{issue_number}"


def repo_pull_requests_key(owner: str, repo: str, state: str) -> str:
    return f"repo_pull_requests:{normalize_repo_key(owner, repo)}:{state}"


def pull_request_key(owner: str, repo: str, pull_number: int) -> str:
    return f"pull_request:{normalize_repo_key(owner, repo)}:{pull_number}"


def pull_request_files_key(owner: str, repo: str, pull_number: int) -> str:
    return f"pull_request_files:{normalize_repo_key(owner, repo)}:{pull_number}"


def pull_request_comments_key(owner: str, repo: str, pull_number: int) -> str:
    return f"pull_request_comments:{normalize_repo_key(owner, repo)}:{pull_number}"


def repo_nav_counts_key(owner: str, repo: str) -> str:
    return f"repo_nav_counts:{normalize_repo_key(owner, repo)}"


# ===== People and organizations =====


def user_profile_key(username: str) -> str:
    return f"user_profile:{username.lower()}"


def org_key(org: str) -> str:
    return f"org:{org.lower()}"


def org_repos_key(org: str, sort: str, repo_type: str, per_page: int) -> str:
    return f"org_repos:{org.lower()}:{sort}:{repo_type}:{per_page}"


# ===== Invalidation prefixes =====


def issue_invalidation_prefixes(owner: str, repo: str, issue_number: int) -> list[str]:
    """Keys affected by a mutation on one issue (comment, edit, close).

    Args:
        owner: Repository owner.
        repo: Repository name.
        issue_number: Issue number.

    Returns:
        Prefixes to delete from the user's namespace.
    """
    repo_part = normalize_repo_key(owner, repo)
    return [
        f"issue:{repo_part}:{issue_number}",
        f"issue_comments:{repo_part}:{issue_number}",
        f"repo_issues:{repo_part}",
        repo_nav_counts_key(owner, repo),
    ]


def repo_issues_invalidation_prefixes(owner: str, repo: str) -> list[str]:
    """Keys affected by creating an issue in a repository."""
    return [
        f"repo_issues:{normalize_repo_key(owner, repo)}",
        repo_nav_counts_key(owner, repo),
    ]


def pull_request_invalidation_prefixes(
    owner: str, repo: str, pull_number: int
) -> list[str]:
    """Keys affected by a mutation on one pull request.

    Includes the repository PR lists, review comments, nav counts and the
    open/closed PR searches so counts update immediately.
    """
    repo_part = normalize_repo_key(owner, repo)
    return [
        f"pull_request:{repo_part}:{pull_number}",
        f"pull_request_files:{repo_part}:{pull_number}",
        f"pull_request_comments:{repo_part}:{pull_number}",
        f"repo_pull_requests:{repo_part}",
        repo_nav_counts_key(owner, repo),
        search_issues_prefix(f"is:pr is:open repo:{repo_part}"),
        search_issues_prefix(f"is:pr is:closed repo:{repo_part}"),
    ]


def repo_pull_requests_invalidation_prefixes(owner: str, repo: str) -> list[str]:
    """Keys affected by opening a pull request in a repository."""
    return [f"repo_pull_requests:{normalize_repo_key(owner, repo)}"]
