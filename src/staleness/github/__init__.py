"""GitHub API integration for issue staleness monitoring.

This module provides:
- An async GitHub REST/GraphQL client with retry and rate-limit handling
- Timeline fetching and normalization into TimelineEvent models
"""

from src.staleness.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
)
from src.staleness.github.timeline import (
    MalformedEventError,
    TimelineFetcher,
    parse_timeline,
    parse_timeline_event,
)

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "MalformedEventError",
    "parse_timeline",
    "parse_timeline_event",
    "RateLimitError",
    "TimelineFetcher",
]
