"""Timeline staleness classifier.

This module implements the pure classification of an issue timeline into
an activity outcome. The classifier performs a single backward pass over
the events, collecting:
- the most recent comment by an authorized actor (an assignee)
- the most recent assignment of an authorized actor
- bot comments that have aged past the grace window and can be minimized

An open pull request by an authorized actor that links the issue with a
closing keyword short-circuits the scan and suppresses every notice.

The classifier never performs I/O and holds no state between calls.

Source:
- src/staleness/classifier/models.py (TimelineEvent, CutoffWindow, Classification)
- src/staleness/classifier/links.py (links_issue)
"""

import logging
from collections.abc import Collection, Sequence
from datetime import datetime
from typing import Optional

from src.staleness.classifier.links import links_issue
from src.staleness.classifier.models import (
    Classification,
    CutoffInstants,
    CutoffWindow,
    EventKind,
    LabelClass,
    SourceState,
    TimelineEvent,
)


logger = logging.getLogger(__name__)


DEFAULT_MINIMIZATION_MARKER = "<!-- Skills Issue Activity Record -->"


def is_open_linked_pull_request(
    event: TimelineEvent,
    issue_number: int,
    authorized_actor_ids: Collection[str],
) -> bool:
    """Check whether an event is an assignee's open PR that closes the issue.

    Args:
        event: The timeline event to inspect.
        issue_number: Number of the issue being classified.
        authorized_actor_ids: Logins whose activity counts (the assignees).

    Returns:
        True if the event is a cross-reference from an open pull request,
        created by an authorized actor, whose body links ``issue_number``.
    """
    if event.kind != EventKind.CROSS_REFERENCED or event.cross_reference is None:
        return False

    reference = event.cross_reference
    return (
        reference.source_is_pull_request
        and reference.source_state == SourceState.OPEN
        and reference.source_actor_id in authorized_actor_ids
        and links_issue(reference.source_body, issue_number)
    )


def is_minimizable_bot_comment(
    event: TimelineEvent,
    cutoffs: CutoffInstants,
    bot_actor_ids: Collection[str],
    minimization_marker: str,
) -> bool:
    """Check whether a bot comment is old enough to be minimized.

    A comment qualifies when it was posted by a bot, does not carry the
    exemption marker, and was created strictly between the horizon and
    the end of the grace window.
    """
    if event.kind != EventKind.COMMENTED or event.actor_id not in bot_actor_ids:
        return False
    if minimization_marker and minimization_marker in (event.comment_body or ""):
        return False
    return cutoffs.horizon_at < event.created_at < cutoffs.grace_end_at


def classify(
    timeline: Sequence[TimelineEvent],
    authorized_actor_ids: Collection[str],
    cutoffs: CutoffWindow,
    bot_actor_ids: Collection[str] = (),
    minimization_marker: str = DEFAULT_MINIMIZATION_MARKER,
    *,
    issue_number: int,
    now: datetime,
) -> Classification:
    """Classify an issue's activity state from its timeline.

    Events are taken in the order given (oldest first, as the GitHub
    timeline API returns them) and scanned from the last one back.

    Args:
        timeline: The complete, materialized timeline of the issue.
        authorized_actor_ids: Logins whose activity counts (the assignees).
        cutoffs: The activity windows in days.
        bot_actor_ids: Logins whose old comments are minimized.
        minimization_marker: Text that exempts a bot comment from minimization.
        issue_number: Number of the issue being classified.
        now: The single time source for this pass.

    Returns:
        Classification: The activity outcome for the issue.
    """
    instants = cutoffs.at(now)

    last_comment_at: Optional[datetime] = None
    last_assignment_at: Optional[datetime] = None
    to_minimize: list[str] = []

    for event in reversed(timeline):
        if is_open_linked_pull_request(event, issue_number, authorized_actor_ids):
            logger.debug(
                "Open linked pull request by assignee, suppressing notices",
                extra={
                    "issue_number": issue_number,
                    "actor": event.cross_reference.source_actor_id,
                },
            )
            return Classification(
                is_stale=False,
                label_class=LabelClass.NONE,
                comments_to_minimize=(),
                suppress_notice=True,
            )

        if (
            event.kind == EventKind.CROSS_REFERENCED
            and event.cross_reference.source_is_pull_request
            and event.cross_reference.source_state == SourceState.CLOSED
        ):
            logger.debug(
                "Linked pull request has been closed",
                extra={"issue_number": issue_number},
            )

        if (
            last_comment_at is None
            and event.kind == EventKind.COMMENTED
            and event.actor_id in authorized_actor_ids
        ):
            last_comment_at = event.occurred_at
        elif (
            last_assignment_at is None
            and event.kind == EventKind.ASSIGNED
            and event.assignee_id in authorized_actor_ids
        ):
            last_assignment_at = event.occurred_at

        if is_minimizable_bot_comment(
            event, instants, bot_actor_ids, minimization_marker
        ):
            to_minimize.append(event.comment_id)

    activity = [t for t in (last_comment_at, last_assignment_at) if t is not None]
    last_activity_at = max(activity) if activity else None

    return _classify_activity(last_activity_at, instants, tuple(to_minimize))


def _classify_activity(
    last_activity_at: Optional[datetime],
    instants: CutoffInstants,
    comments_to_minimize: tuple[str, ...],
) -> Classification:
    """Map the latest authorized activity onto the activity windows.

    Boundaries are inclusive on the "within" side: activity exactly at a
    cutoff instant falls inside that window.
    """
    if last_activity_at is None:
        is_stale, label_class = True, LabelClass.SECOND_NOTICE
    elif last_activity_at >= instants.current_at:
        is_stale, label_class = False, LabelClass.UPDATED
    elif last_activity_at >= instants.grace_end_at:
        is_stale, label_class = False, LabelClass.NONE
    elif last_activity_at >= instants.stale_end_at:
        is_stale, label_class = True, LabelClass.FIRST_NOTICE
    else:
        is_stale, label_class = True, LabelClass.SECOND_NOTICE

    return Classification(
        is_stale=is_stale,
        label_class=label_class,
        comments_to_minimize=comments_to_minimize,
        suppress_notice=False,
    )
