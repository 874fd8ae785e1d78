"""HTTP constants for the upstream fetch layer.

Centralizes all HTTP-related constants to avoid duplication across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_TOO_MANY_REQUESTS = 429

# GitHub API
GITHUB_API_BASE_URL = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_MEDIA_TYPE = "application/vnd.github+json"
GITHUB_GRAPHQL_PATH = "/graphql"

# Rate limit response headers
HEADER_RATELIMIT_LIMIT = "x-ratelimit-limit"
HEADER_RATELIMIT_REMAINING = "x-ratelimit-remaining"
HEADER_RATELIMIT_RESET = "x-ratelimit-reset"

# Fallbacks when GitHub omits rate limit headers
DEFAULT_RATE_LIMIT = 5000
DEFAULT_RATE_LIMIT_WINDOW_SECONDS = 3600

# Truncation for upstream error bodies carried in messages
MAX_ERROR_BODY_CHARS = 200
