"""Unit tests for normalizing raw GitHub timeline events."""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.staleness.classifier.models import EventKind, SourceState
from src.staleness.github.timeline import (
    MalformedEventError,
    TimelineFetcher,
    parse_timeline,
    parse_timeline_event,
)


def run_async(coro):
    return asyncio.run(coro)


def _raw_comment(**overrides):
    raw = {
        "event": "commented",
        "node_id": "IC_kwDOabc",
        "body": "Progress: tests written",
        "user": {"login": "dev1"},
        "actor": {"login": "dev1"},
        "created_at": "2026-10-01T10:00:00Z",
        "updated_at": "2026-10-05T10:00:00Z",
    }
    raw.update(overrides)
    return raw


def _raw_cross_reference(**source_overrides):
    issue = {
        "number": 99,
        "state": "open",
        "body": "This PR fixes #42",
        "user": {"login": "dev1"},
        "pull_request": {"url": "https://api.github.com/repos/o/r/pulls/99"},
    }
    issue.update(source_overrides)
    return {
        "event": "cross-referenced",
        "actor": {"login": "dev1"},
        "created_at": "2026-10-10T08:00:00Z",
        "updated_at": "2026-10-10T08:00:00Z",
        "source": {"type": "issue", "issue": issue},
    }


class TestParseTimelineEvent:

    def test_comment(self):
        event = parse_timeline_event(_raw_comment())
        assert event.kind == EventKind.COMMENTED
        assert event.actor_id == "dev1"
        assert event.comment_id == "IC_kwDOabc"
        assert event.comment_body == "Progress: tests written"
        assert event.occurred_at == datetime(2026, 10, 5, 10, tzinfo=timezone.utc)
        assert event.created_at == datetime(2026, 10, 1, 10, tzinfo=timezone.utc)

    def test_comment_without_update_time_uses_creation_time(self):
        raw = _raw_comment()
        del raw["updated_at"]
        event = parse_timeline_event(raw)
        assert event.occurred_at == event.created_at

    def test_comment_actor_falls_back_to_user(self):
        raw = _raw_comment()
        del raw["actor"]
        assert parse_timeline_event(raw).actor_id == "dev1"

    def test_comment_with_empty_body_is_kept(self):
        event = parse_timeline_event(_raw_comment(body=""))
        assert event.comment_body == ""

    def test_comment_without_node_id_is_malformed(self):
        with pytest.raises(MalformedEventError) as exc_info:
            parse_timeline_event(_raw_comment(node_id=None))
        assert exc_info.value.event_name == "commented"

    def test_comment_without_body_is_malformed(self):
        raw = _raw_comment()
        del raw["body"]
        with pytest.raises(MalformedEventError):
            parse_timeline_event(raw)

    def test_assigned(self):
        raw = {
            "event": "assigned",
            "actor": {"login": "lead"},
            "assignee": {"login": "dev1"},
            "created_at": "2026-10-01T10:00:00Z",
        }
        event = parse_timeline_event(raw)
        assert event.kind == EventKind.ASSIGNED
        assert event.actor_id == "lead"
        assert event.assignee_id == "dev1"

    def test_unassigned_without_assignee_is_malformed(self):
        raw = {
            "event": "unassigned",
            "actor": {"login": "lead"},
            "created_at": "2026-10-01T10:00:00Z",
        }
        with pytest.raises(MalformedEventError):
            parse_timeline_event(raw)

    def test_cross_reference_from_open_pull_request(self):
        event = parse_timeline_event(_raw_cross_reference())
        assert event.kind == EventKind.CROSS_REFERENCED
        reference = event.cross_reference
        assert reference.source_state == SourceState.OPEN
        assert reference.source_is_pull_request is True
        assert reference.source_body == "This PR fixes #42"
        assert reference.source_actor_id == "dev1"

    def test_cross_reference_from_issue(self):
        event = parse_timeline_event(_raw_cross_reference(pull_request=None))
        assert event.cross_reference.source_is_pull_request is False

    def test_cross_reference_actor_falls_back_to_source_author(self):
        raw = _raw_cross_reference(user={"login": "dev2"})
        del raw["actor"]
        assert parse_timeline_event(raw).cross_reference.source_actor_id == "dev2"

    def test_cross_reference_with_null_body(self):
        event = parse_timeline_event(_raw_cross_reference(body=None))
        assert event.cross_reference.source_body == ""

    def test_cross_reference_without_source_is_malformed(self):
        raw = _raw_cross_reference()
        del raw["source"]
        with pytest.raises(MalformedEventError):
            parse_timeline_event(raw)

    def test_unknown_event_is_other(self):
        raw = {
            "event": "labeled",
            "actor": {"login": "lead"},
            "created_at": "2026-10-01T10:00:00Z",
            "label": {"name": "bug"},
        }
        assert parse_timeline_event(raw).kind == EventKind.OTHER

    def test_event_without_timestamp_is_malformed(self):
        with pytest.raises(MalformedEventError):
            parse_timeline_event({"event": "labeled", "actor": {"login": "lead"}})


class TestParseTimeline:

    def test_malformed_events_are_skipped_in_order(self):
        raw_events = [
            _raw_comment(node_id="IC_1"),
            {"event": "assigned", "created_at": "2026-10-02T10:00:00Z"},
            _raw_comment(node_id="IC_2"),
        ]
        events = parse_timeline(raw_events, issue_number=42)
        assert [e.comment_id for e in events] == ["IC_1", "IC_2"]

    def test_empty_timeline(self):
        assert parse_timeline([]) == []


class TestTimelineFetcher:

    def test_fetch_normalizes_client_events(self):
        client = MagicMock()
        client.list_timeline = AsyncMock(
            return_value=[_raw_comment(), _raw_cross_reference()]
        )
        fetcher = TimelineFetcher(client)

        events = run_async(fetcher.fetch("org", "repo", 42))

        client.list_timeline.assert_awaited_once_with("org", "repo", 42)
        assert [e.kind for e in events] == [
            EventKind.COMMENTED,
            EventKind.CROSS_REFERENCED,
        ]
