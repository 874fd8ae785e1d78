"""GitHub resource types served by the sync engine.

Each resource is a payload model, a cache key builder and a fetch against
the REST (or GraphQL) API. Responses are cached as returned by GitHub.
"""

from typing import Annotated, Any, Literal
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from src.cache import keys
from src.fetch.client import GitHubClient
from src.resources.registry import (
    DEFAULT_VIEWER_FIELDS,
    ResourceRegistry,
    ResourceSpec,
)


IssueState = Literal["open", "closed", "all"]

PerPage = Annotated[int, Field(ge=1, le=100)]

# Private account details GitHub only returns to the account itself or org owners
ACCOUNT_VIEWER_FIELDS = DEFAULT_VIEWER_FIELDS | frozenset(
    {
        "plan",
        "private_gists",
        "total_private_repos",
        "owned_private_repos",
        "disk_usage",
        "collaborators",
        "two_factor_authentication",
        "billing_email",
        "default_repository_permission",
        "members_can_create_repositories",
        "members_can_create_public_repositories",
        "members_can_create_private_repositories",
        "members_can_create_internal_repositories",
        "members_allowed_repository_creation_type",
    }
)


class _Payload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class EmptyPayload(_Payload):
    """Payload for viewer resources without parameters."""


class PerPagePayload(_Payload):
    per_page: PerPage = 30


class UserReposPayload(_Payload):
    sort: Literal["created", "updated", "pushed", "full_name"] = "updated"
    per_page: PerPage = 30


class SearchIssuesPayload(_Payload):
    query: Annotated[str, Field(min_length=1)]
    per_page: PerPage = 30


class RepoPayload(_Payload):
    owner: Annotated[str, Field(min_length=1)]
    repo: Annotated[str, Field(min_length=1)]


class RepoRefPayload(RepoPayload):
    ref: str | None = None


class RepoPathPayload(RepoRefPayload):
    path: str = ""


class RepoStatePayload(RepoPayload):
    state: IssueState = "open"


class IssuePayload(RepoPayload):
    issue_number: Annotated[int, Field(ge=1)]


class PullRequestPayload(RepoPayload):
    pull_number: Annotated[int, Field(ge=1)]


class UserProfilePayload(_Payload):
    username: Annotated[str, Field(min_length=1)]


class OrgPayload(_Payload):
    org: Annotated[str, Field(min_length=1)]


class OrgReposPayload(OrgPayload):
    sort: Literal["created", "updated", "pushed", "full_name"] = "updated"
    repo_type: Literal["all", "public", "private", "forks", "sources", "member"] = "all"
    per_page: PerPage = 30


REPO_NAV_COUNTS_QUERY = """
query RepoNavCounts($owner: String!, $name: String!) {
  repository(owner: $owner, name: $name) {
    issues(states: OPEN) { totalCount }
    pullRequests(states: OPEN) { totalCount }
    discussions { totalCount }
  }
}
"""


def _repo_path(payload: RepoPayload) -> str:
    return f"/repos/{quote(payload.owner)}/{quote(payload.repo)}"


def _repo_visibility_key(payload: RepoPayload) -> str:
    return keys.repo_key(payload.owner, payload.repo)


def _ref_params(ref: str | None) -> dict[str, Any] | None:
    normalized = keys.normalize_ref(ref)
    return {"ref": normalized} if normalized else None


def _readme_path(payload: RepoRefPayload) -> str:
    ref = keys.normalize_ref(payload.ref)
    suffix = f"?ref={quote(ref, safe='')}" if ref else ""
    return f"{_repo_path(payload)}/readme{suffix}"


def _contents_path(payload: RepoPathPayload) -> str:
    return f"{_repo_path(payload)}/contents/{quote(keys.normalize_path(payload.path))}"


async def fetch_authenticated_user(client: GitHubClient, payload: EmptyPayload) -> Any:
    return await client.get_json("/user")


async def fetch_user_repos(client: GitHubClient, payload: UserReposPayload) -> Any:
    return await client.get_json(
        "/user/repos",
        params={"sort": payload.sort, "per_page": payload.per_page},
    )


async def fetch_notifications(client: GitHubClient, payload: PerPagePayload) -> Any:
    return await client.get_json("/notifications", params={"per_page": payload.per_page})


async def fetch_starred_repos(client: GitHubClient, payload: PerPagePayload) -> Any:
    return await client.get_json(
        "/user/starred",
        params={"per_page": payload.per_page, "sort": "created"},
    )


async def fetch_search_issues(client: GitHubClient, payload: SearchIssuesPayload) -> Any:
    return await client.get_json(
        "/search/issues",
        params={"q": payload.query, "per_page": payload.per_page},
    )


async def fetch_repo(client: GitHubClient, payload: RepoPayload) -> Any:
    return await client.get_json(_repo_path(payload))


async def fetch_repo_branches(client: GitHubClient, payload: RepoPayload) -> Any:
    return await client.get_json(f"{_repo_path(payload)}/branches", params={"per_page": 100})


async def fetch_repo_contents(client: GitHubClient, payload: RepoPathPayload) -> Any:
    return await client.get_json(_contents_path(payload), params=_ref_params(payload.ref))


async def fetch_repo_readme(client: GitHubClient, payload: RepoRefPayload) -> Any:
    return await client.get_json(_readme_path(payload))


async def fetch_repo_issues(client: GitHubClient, payload: RepoStatePayload) -> Any:
    return await client.get_json(
        f"{_repo_path(payload)}/issues",
        params={"state": payload.state, "per_page": 30, "sort": "updated"},
    )


async def fetch_issue(client: GitHubClient, payload: IssuePayload) -> Any:
    return await client.get_json(f"{_repo_path(payload)}/issues/{payload.issue_number}")


async def fetch_issue_comments(client: GitHubClient, payload: IssuePayload) -> Any:
    return await client.get_json(
        f"{_repo_path(payload)}/issues/{payload.issue_number}/comments",
        params={"per_page": 100},
    )


async def fetch_repo_pull_requests(client: GitHubClient, payload: RepoStatePayload) -> Any:
    return await client.get_json(
        f"{_repo_path(payload)}/pulls",
        params={"state": payload.state, "per_page": 30, "sort": "updated"},
    )


async def fetch_pull_request(client: GitHubClient, payload: PullRequestPayload) -> Any:
    return await client.get_json(f"{_repo_path(payload)}/pulls/{payload.pull_number}")


async def fetch_pull_request_files(client: GitHubClient, payload: PullRequestPayload) -> Any:
    return await client.get_json(
        f"{_repo_path(payload)}/pulls/{payload.pull_number}/files",
        params={"per_page": 100},
    )


async def fetch_pull_request_comments(
    client: GitHubClient, payload: PullRequestPayload
) -> Any:
    return await client.get_json(
        f"{_repo_path(payload)}/pulls/{payload.pull_number}/comments",
        params={"per_page": 100},
    )


async def fetch_repo_nav_counts(client: GitHubClient, payload: RepoPayload) -> Any:
    """Open issue, pull request and discussion counts for the repo tabs."""
    data = await client.graphql(
        REPO_NAV_COUNTS_QUERY,
        {"owner": payload.owner, "name": payload.repo},
    )
    repository = (data or {}).get("repository") or {}
    return {
        "open_issues": (repository.get("issues") or {}).get("totalCount", 0),
        "open_pull_requests": (repository.get("pullRequests") or {}).get("totalCount", 0),
        "discussions": (repository.get("discussions") or {}).get("totalCount", 0),
    }


async def fetch_user_profile(client: GitHubClient, payload: UserProfilePayload) -> Any:
    return await client.get_json(f"/users/{quote(payload.username)}")


async def fetch_org(client: GitHubClient, payload: OrgPayload) -> Any:
    return await client.get_json(f"/orgs/{quote(payload.org)}")


async def fetch_org_repos(client: GitHubClient, payload: OrgReposPayload) -> Any:
    return await client.get_json(
        f"/orgs/{quote(payload.org)}/repos",
        params={
            "sort": payload.sort,
            "type": payload.repo_type,
            "per_page": payload.per_page,
        },
    )


def build_default_registry() -> ResourceRegistry:
    """Build the registry of every GitHub resource the engine can refresh.

    Only identity-independent resources are shareable. Viewer-scoped
    resources (``/user``, notifications, starred repos, search results),
    organization repo listings, which include private repos for members,
    and the repository object, whose ``permissions`` block depends on the
    caller, stay in the per-user namespace. Repo-scoped resources are
    shared only while the reading user's cached repository is public.

    Returns:
        Populated resource registry.
    """
    return ResourceRegistry(
        [
            # Viewer-scoped
            ResourceSpec(
                job_type="authenticated_user",
                payload_model=EmptyPayload,
                build_cache_key=lambda p: keys.authenticated_user_key(),
                fetch=fetch_authenticated_user,
                conditional_path=lambda p: "/user",
            ),
            ResourceSpec(
                job_type="user_repos",
                payload_model=UserReposPayload,
                build_cache_key=lambda p: keys.user_repos_key(p.sort, p.per_page),
                fetch=fetch_user_repos,
                fallback=[],
            ),
            ResourceSpec(
                job_type="notifications",
                payload_model=PerPagePayload,
                build_cache_key=lambda p: keys.notifications_key(p.per_page),
                fetch=fetch_notifications,
                fallback=[],
            ),
            ResourceSpec(
                job_type="starred_repos",
                payload_model=PerPagePayload,
                build_cache_key=lambda p: keys.starred_repos_key(p.per_page),
                fetch=fetch_starred_repos,
                fallback=[],
            ),
            ResourceSpec(
                job_type="search_issues",
                payload_model=SearchIssuesPayload,
                build_cache_key=lambda p: keys.search_issues_key(p.query, p.per_page),
                fetch=fetch_search_issues,
                fallback={"total_count": 0, "items": []},
            ),
            # Repository
            ResourceSpec(
                job_type="repo",
                payload_model=RepoPayload,
                build_cache_key=lambda p: keys.repo_key(p.owner, p.repo),
                fetch=fetch_repo,
                conditional_path=_repo_path,
            ),
            ResourceSpec(
                job_type="repo_branches",
                payload_model=RepoPayload,
                build_cache_key=lambda p: keys.repo_branches_key(p.owner, p.repo),
                fetch=fetch_repo_branches,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            ResourceSpec(
                job_type="repo_contents",
                payload_model=RepoPathPayload,
                build_cache_key=lambda p: keys.repo_contents_key(
                    p.owner, p.repo, p.path, p.ref
                ),
                fetch=fetch_repo_contents,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            ResourceSpec(
                job_type="file_content",
                payload_model=RepoPathPayload,
                build_cache_key=lambda p: keys.file_content_key(
                    p.owner, p.repo, p.path, p.ref
                ),
                fetch=fetch_repo_contents,
                shareable=True,
                visibility_key=_repo_visibility_key,
            ),
            ResourceSpec(
                job_type="repo_readme",
                payload_model=RepoRefPayload,
                build_cache_key=lambda p: keys.repo_readme_key(p.owner, p.repo, p.ref),
                fetch=fetch_repo_readme,
                conditional_path=_readme_path,
                shareable=True,
                visibility_key=_repo_visibility_key,
            ),
            ResourceSpec(
                job_type="repo_nav_counts",
                payload_model=RepoPayload,
                build_cache_key=lambda p: keys.repo_nav_counts_key(p.owner, p.repo),
                fetch=fetch_repo_nav_counts,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback={"open_issues": 0, "open_pull_requests": 0, "discussions": 0},
            ),
            # Issues
            ResourceSpec(
                job_type="repo_issues",
                payload_model=RepoStatePayload,
                build_cache_key=lambda p: keys.repo_issues_key(p.owner, p.repo, p.state),
                fetch=fetch_repo_issues,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            ResourceSpec(
                job_type="issue",
                payload_model=IssuePayload,
                build_cache_key=lambda p: keys.issue_key(p.owner, p.repo, p.issue_number),
                fetch=fetch_issue,
                conditional_path=lambda p: f"{_repo_path(p)}/issues/{p.issue_number}",
                shareable=True,
                visibility_key=_repo_visibility_key,
            ),
            ResourceSpec(
                job_type="issue_comments",
                payload_model=IssuePayload,
                build_cache_key=lambda p: keys.issue_comments_key(
                    p.owner, p.repo, p.issue_number
                ),
                fetch=fetch_issue_comments,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            # Pull requests
            ResourceSpec(
                job_type="repo_pull_requests",
                payload_model=RepoStatePayload,
                build_cache_key=lambda p: keys.repo_pull_requests_key(
                    p.owner, p.repo, p.state
                ),
                fetch=fetch_repo_pull_requests,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            ResourceSpec(
                job_type="pull_request",
                payload_model=PullRequestPayload,
                build_cache_key=lambda p: keys.pull_request_key(
                    p.owner, p.repo, p.pull_number
                ),
                fetch=fetch_pull_request,
                conditional_path=lambda p: f"{_repo_path(p)}/pulls/{p.pull_number}",
                shareable=True,
                visibility_key=_repo_visibility_key,
            ),
            ResourceSpec(
                job_type="pull_request_files",
                payload_model=PullRequestPayload,
                build_cache_key=lambda p: keys.pull_request_files_key(
                    p.owner, p.repo, p.pull_number
                ),
                fetch=fetch_pull_request_files,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            ResourceSpec(
                job_type="pull_request_comments",
                payload_model=PullRequestPayload,
                build_cache_key=lambda p: keys.pull_request_comments_key(
                    p.owner, p.repo, p.pull_number
                ),
                fetch=fetch_pull_request_comments,
                shareable=True,
                visibility_key=_repo_visibility_key,
                fallback=[],
            ),
            # People and organizations
            ResourceSpec(
                job_type="user_profile",
                payload_model=UserProfilePayload,
                build_cache_key=lambda p: keys.user_profile_key(p.username),
                fetch=fetch_user_profile,
                shareable=True,
                viewer_fields=ACCOUNT_VIEWER_FIELDS,
            ),
            ResourceSpec(
                job_type="org",
                payload_model=OrgPayload,
                build_cache_key=lambda p: keys.org_key(p.org),
                fetch=fetch_org,
                shareable=True,
                viewer_fields=ACCOUNT_VIEWER_FIELDS,
            ),
            ResourceSpec(
                job_type="org_repos",
                payload_model=OrgReposPayload,
                build_cache_key=lambda p: keys.org_repos_key(
                    p.org, p.sort, p.repo_type, p.per_page
                ),
                fetch=fetch_org_repos,
                fallback=[],
            ),
        ]
    )
