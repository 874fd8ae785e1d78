"""Registry mapping job types to the resources they refresh.

A ``ResourceSpec`` bundles everything the read path and the drainer need
to handle one kind of cached item: the payload schema stored on jobs, the
cache key builder, the remote fetch and, for ETag-capable endpoints, the
path used for conditional requests.
"""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from src.fetch.client import GitHubClient


P = TypeVar("P", bound=BaseModel)

# Fields describing the caller's relationship to an object rather than the object
DEFAULT_VIEWER_FIELDS = frozenset(
    {
        "permissions",
        "role_name",
        "viewer_has_starred",
        "viewer_permission",
        "viewer_can_update",
        "viewer_did_author",
        "viewer_subscription",
        "author_association",
    }
)


def is_public_repo(data: Any) -> bool:
    """Whether a cached repository object is visible to every viewer.

    Unknown or missing visibility counts as not public.
    """
    if not isinstance(data, dict):
        return False
    if data.get("private") is True:
        return False
    return data.get("private") is False or data.get("visibility") == "public"


class UnknownJobTypeError(KeyError):
    """Raised when a job type has no registered resource."""

    def __init__(self, job_type: str) -> None:
        self.job_type = job_type
        super().__init__(f"Unknown sync job type: {job_type}")


def strip_viewer_fields(data: Any, fields: frozenset[str] = DEFAULT_VIEWER_FIELDS) -> Any:
    """Recursively drop viewer-specific keys from a JSON payload.

    Args:
        data: Decoded JSON (dicts, lists and scalars).
        fields: Key names to remove at any depth.

    Returns:
        A copy of ``data`` without the listed keys.
    """
    if isinstance(data, dict):
        return {
            key: strip_viewer_fields(value, fields)
            for key, value in data.items()
            if key not in fields
        }
    if isinstance(data, list):
        return [strip_viewer_fields(item, fields) for item in data]
    return data


@dataclass(frozen=True)
class ResourceSpec(Generic[P]):
    """How to key, fetch and share one cached resource type.

    Attributes:
        job_type: Registry name, also used as the cache type.
        payload_model: Pydantic model validating job payloads.
        build_cache_key: Payload -> cache key.
        fetch: Full remote fetch for a payload.
        conditional_path: Payload -> API path for ETag revalidation, or None
            when the resource is always fetched in full.
        shareable: Whether the data is identity-independent and may be
            written to the shared namespace.
        fallback: Value served to callers when nothing is available.
        viewer_fields: Keys stripped before a shared write.
        visibility_key: Payload -> cache key of the repository the item
            belongs to. When set, the item is only shared while that
            repository is known to be public.
    """

    job_type: str
    payload_model: type[P]
    build_cache_key: Callable[[P], str]
    fetch: Callable[[GitHubClient, P], Awaitable[Any]]
    conditional_path: Callable[[P], str] | None = None
    shareable: bool = False
    fallback: Any = None
    viewer_fields: frozenset[str] = field(default=DEFAULT_VIEWER_FIELDS)
    visibility_key: Callable[[P], str] | None = None

    def parse_payload(self, raw: Mapping[str, Any] | P) -> P:
        """Validate a stored job payload.

        Raises:
            pydantic.ValidationError: If the payload does not match the model.
        """
        if isinstance(raw, self.payload_model):
            return raw
        return self.payload_model.model_validate(raw)

    def dump_payload(self, payload: P) -> dict[str, Any]:
        """Serialize a payload for storage on a job row."""
        return payload.model_dump(mode="json", exclude_none=True)

    def shared_view(self, data: Any) -> Any:
        """Return the copy of ``data`` that may be written to the shared namespace."""
        return strip_viewer_fields(data, self.viewer_fields)


class ResourceRegistry:
    """Lookup of resource specs by job type."""

    def __init__(self, specs: list[ResourceSpec[Any]] | None = None) -> None:
        self._specs: dict[str, ResourceSpec[Any]] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: ResourceSpec[Any]) -> None:
        """Add a resource type.

        Raises:
            ValueError: If the job type is already registered.
        """
        if spec.job_type in self._specs:
            raise ValueError(f"Job type already registered: {spec.job_type}")
        self._specs[spec.job_type] = spec

    def get(self, job_type: str) -> ResourceSpec[Any]:
        """Look up a resource type.

        Raises:
            UnknownJobTypeError: If ``job_type`` is not registered.
        """
        try:
            return self._specs[job_type]
        except KeyError:
            raise UnknownJobTypeError(job_type) from None

    def is_shareable(self, job_type: str) -> bool:
        """Whether ``job_type`` may use the shared namespace; False when unknown."""
        spec = self._specs.get(job_type)
        return spec is not None and spec.shareable

    def visibility_key_for(
        self, job_type: str, payload: Mapping[str, Any] | BaseModel
    ) -> str | None:
        """Cache key of the repository gating a shared copy, if any.

        Returns None for unknown types, types without a visibility gate and
        payloads that do not validate.
        """
        spec = self._specs.get(job_type)
        if spec is None or spec.visibility_key is None:
            return None
        try:
            return spec.visibility_key(spec.parse_payload(payload))
        except ValidationError:
            return None

    def job_types(self) -> list[str]:
        """Registered job types, sorted."""
        return sorted(self._specs)

    def __contains__(self, job_type: object) -> bool:
        return job_type in self._specs

    def __iter__(self) -> Iterator[ResourceSpec[Any]]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)
