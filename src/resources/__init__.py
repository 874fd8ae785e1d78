"""Resource types the sync engine knows how to key, fetch and share."""

from src.resources.github import build_default_registry
from src.resources.registry import (
    DEFAULT_VIEWER_FIELDS,
    ResourceRegistry,
    ResourceSpec,
    UnknownJobTypeError,
    strip_viewer_fields,
)


__all__ = [
    "DEFAULT_VIEWER_FIELDS",
    "ResourceRegistry",
    "ResourceSpec",
    "UnknownJobTypeError",
    "build_default_registry",
    "strip_viewer_fields",
]
