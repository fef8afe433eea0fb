"""Issue timeline fetching and normalization.

This module turns raw GitHub timeline API events into TimelineEvent models:
- Event names the classifier does not distinguish map to EventKind.OTHER
- Events missing the fields their kind requires are malformed; the fetcher
  logs and skips them without aborting the timeline

Source:
- src/staleness/github/client.py (GitHubClient.list_timeline)
- src/staleness/classifier/models.py (TimelineEvent, CrossReference)
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from src.staleness.classifier.models import (
    CrossReference,
    EventKind,
    SourceState,
    TimelineEvent,
)
from src.staleness.github.client import GitHubClient


logger = logging.getLogger(__name__)


KNOWN_EVENT_KINDS = {kind.value: kind for kind in EventKind if kind != EventKind.OTHER}


class MalformedEventError(Exception):
    """Raised when a raw timeline event lacks fields required for its kind.

    Attributes:
        event_name: The raw ``event`` name of the offending entry.
        reason: Why the event could not be normalized.
    """

    def __init__(self, event_name: Optional[str], reason: str):
        self.event_name = event_name
        self.reason = reason
        super().__init__(f"Malformed {event_name or 'unknown'} event: {reason}")


def _login(obj: Any) -> Optional[str]:
    if isinstance(obj, dict):
        return obj.get("login")
    return None


def _parse_cross_reference(raw: Dict[str, Any]) -> Optional[CrossReference]:
    source = raw.get("source") or {}
    issue = source.get("issue")
    if not isinstance(issue, dict) or issue.get("state") is None:
        return None

    return CrossReference(
        source_body=issue.get("body") or "",
        source_state=SourceState(issue["state"]),
        source_is_pull_request=bool(issue.get("pull_request")),
        source_actor_id=_login(raw.get("actor")) or _login(issue.get("user")),
    )


def parse_timeline_event(raw: Dict[str, Any]) -> TimelineEvent:
    """Normalize one raw GitHub timeline event.

    Args:
        raw: A timeline event object from the GitHub API.

    Returns:
        TimelineEvent: The normalized event.

    Raises:
        MalformedEventError: If the event lacks a timestamp or a field
            required for its kind.
    """
    event_name = raw.get("event")
    kind = KNOWN_EVENT_KINDS.get(event_name, EventKind.OTHER)

    created_at = raw.get("created_at")
    if not created_at:
        raise MalformedEventError(event_name, "missing created_at")

    fields: Dict[str, Any] = {
        "kind": kind,
        "actor_id": _login(raw.get("actor")) or _login(raw.get("user")),
        "occurred_at": raw.get("updated_at") or created_at,
        "created_at": created_at,
    }

    try:
        if kind == EventKind.COMMENTED:
            fields["comment_id"] = raw.get("node_id")
            fields["comment_body"] = raw.get("body")
        elif kind in (EventKind.ASSIGNED, EventKind.UNASSIGNED):
            fields["assignee_id"] = _login(raw.get("assignee"))
        elif kind == EventKind.CROSS_REFERENCED:
            fields["cross_reference"] = _parse_cross_reference(raw)

        return TimelineEvent(**fields)
    except (ValidationError, ValueError) as e:
        raise MalformedEventError(event_name, str(e)) from e


def parse_timeline(
    raw_events: List[Dict[str, Any]],
    issue_number: Optional[int] = None,
) -> List[TimelineEvent]:
    """Normalize a raw timeline, skipping malformed events.

    Args:
        raw_events: Raw timeline events, in API order.
        issue_number: Issue number, used only for log context.

    Returns:
        The well-formed events, in the original order.
    """
    events: List[TimelineEvent] = []
    for index, raw in enumerate(raw_events):
        try:
            events.append(parse_timeline_event(raw))
        except MalformedEventError as e:
            logger.warning(
                "Skipping malformed timeline event",
                extra={
                    "issue_number": issue_number,
                    "index": index,
                    "event_name": e.event_name,
                    "reason": e.reason,
                },
            )
    return events


class TimelineFetcher:
    """Fetches the complete, normalized timeline of an issue.

    Attributes:
        github_client: The GitHub API client used for pagination.
    """

    def __init__(self, github_client: GitHubClient):
        self.github_client = github_client

    async def fetch(
        self,
        owner: str,
        repo: str,
        issue_number: int,
    ) -> List[TimelineEvent]:
        """Fetch and normalize every timeline event of an issue.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number whose timeline to fetch.

        Returns:
            The materialized timeline, oldest event first.

        Raises:
            GitHubAPIError: If fetching any page fails.
        """
        raw_events = await self.github_client.list_timeline(owner, repo, issue_number)
        events = parse_timeline(raw_events, issue_number)

        logger.debug(
            "Timeline fetched",
            extra={
                "owner": owner,
                "repo": repo,
                "issue_number": issue_number,
                "raw_events": len(raw_events),
                "events": len(events),
            },
        )
        return events
