"""Timeline and classification models for issue staleness detection.

This module defines the data models consumed and produced by the timeline
classifier:
- EventKind / TimelineEvent: one normalized lifecycle event on an issue
- CrossReference: the source side of a cross-referenced event
- CutoffWindow / CutoffInstants: the four activity windows, as day offsets
  and as absolute instants fixed from a single "now"
- LabelClass / Classification: the classifier's outcome

The models use Pydantic for validation, consistent with the rest of the
package. Per-kind required fields are enforced at construction time, so an
event that is missing them can never reach the classifier.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class EventKind(str, Enum):
    """Kinds of issue timeline events the classifier distinguishes.

    Values match the GitHub timeline API ``event`` names. Any event name
    not listed here is normalized to OTHER by the timeline parser.

    Attributes:
        COMMENTED: A comment was posted on the issue.
        ASSIGNED: A user was assigned to the issue.
        UNASSIGNED: A user was unassigned from the issue.
        CROSS_REFERENCED: The issue was referenced from another issue or PR.
        OTHER: Any other lifecycle event (labeled, renamed, ...).
    """

    COMMENTED = "commented"
    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    CROSS_REFERENCED = "cross-referenced"
    OTHER = "other"


class SourceState(str, Enum):
    """State of the issue or pull request that cross-referenced an item."""

    OPEN = "open"
    CLOSED = "closed"


def _ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CrossReference(BaseModel):
    """Source side of a cross-referenced timeline event.

    Attributes:
        source_body: Body text of the referencing issue or pull request.
        source_state: Whether the referencing item is open or closed.
        source_is_pull_request: True when the referencing item is a PR.
        source_actor_id: Login of the actor who created the reference.
    """

    model_config = ConfigDict(frozen=True)

    source_body: str = Field(
        default="",
        description="Body text of the referencing issue or pull request",
    )

    source_state: SourceState = Field(
        ...,
        description="State of the referencing issue or pull request",
    )

    source_is_pull_request: bool = Field(
        default=False,
        description="Whether the referencing item is a pull request",
    )

    source_actor_id: Optional[str] = Field(
        default=None,
        description="Login of the actor who created the reference",
    )


class TimelineEvent(BaseModel):
    """One normalized lifecycle event on an issue.

    ``occurred_at`` is the event's "last touched" time (the update time
    when one is recorded, otherwise the creation time) and drives the
    activity windows. ``created_at`` is the original creation time and
    drives bot comment minimization independently of edits.

    Attributes:
        kind: The kind of event.
        actor_id: Login of the actor who triggered the event, if any.
        occurred_at: Last-touched timestamp of the event.
        created_at: Original creation timestamp of the event.
        comment_id: Node id of the comment (COMMENTED only).
        comment_body: Raw comment text (COMMENTED only).
        cross_reference: Referencing source (CROSS_REFERENCED only).
        assignee_id: Login of the (un)assigned user (ASSIGNED/UNASSIGNED only).
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind = Field(..., description="The kind of timeline event")

    actor_id: Optional[str] = Field(
        default=None,
        description="Login of the actor who triggered the event",
    )

    occurred_at: datetime = Field(
        ...,
        description="Last-touched timestamp (update time, else creation time)",
    )

    created_at: datetime = Field(..., description="Original creation timestamp")

    comment_id: Optional[str] = Field(
        default=None,
        description="Comment node id, required for commented events",
    )

    comment_body: Optional[str] = Field(
        default=None,
        description="Comment text, required for commented events",
    )

    cross_reference: Optional[CrossReference] = Field(
        default=None,
        description="Referencing source, required for cross-referenced events",
    )

    assignee_id: Optional[str] = Field(
        default=None,
        description="Assignee login, required for (un)assigned events",
    )

    @field_validator("occurred_at", "created_at")
    @classmethod
    def validate_timezone(cls, v: datetime) -> datetime:
        """Interpret naive timestamps as UTC."""
        return _ensure_aware(v)

    @model_validator(mode="after")
    def validate_kind_fields(self) -> "TimelineEvent":
        """Reject events missing the fields their kind requires.

        Raises:
            ValueError: If a required field for the event kind is absent.
        """
        if self.kind == EventKind.COMMENTED:
            if not self.comment_id:
                raise ValueError("commented events require comment_id")
            if self.comment_body is None:
                raise ValueError("commented events require comment_body")
            if not self.actor_id:
                raise ValueError("commented events require actor_id")
        elif self.kind in (EventKind.ASSIGNED, EventKind.UNASSIGNED):
            if not self.assignee_id:
                raise ValueError(f"{self.kind.value} events require assignee_id")
        elif self.kind == EventKind.CROSS_REFERENCED:
            if self.cross_reference is None:
                raise ValueError("cross-referenced events require cross_reference")
        return self


class CutoffInstants(BaseModel):
    """Absolute cutoff instants computed once per classification pass.

    Each instant is ``now`` minus the corresponding window in days, so
    ``current_at`` is the most recent and ``horizon_at`` the oldest.
    """

    model_config = ConfigDict(frozen=True)

    now: datetime
    current_at: datetime
    grace_end_at: datetime
    stale_end_at: datetime
    horizon_at: datetime


class CutoffWindow(BaseModel):
    """The four activity windows, as day offsets back from "now".

    The windows must be strictly increasing:
    ``current < grace_end < stale_end < horizon``. An inverted ordering is
    a configuration defect and fails validation before any classification.

    Attributes:
        current: Activity within this many days counts as "recently updated".
        grace_end: Activity within this many days needs no escalation.
        stale_end: Activity within this many days gets the first notice.
        horizon: Bot comments older than this are never minimized.
    """

    model_config = ConfigDict(frozen=True)

    current: float = Field(default=3, gt=0, description="Recently updated window (days)")
    grace_end: float = Field(default=7, gt=0, description="Grace window (days)")
    stale_end: float = Field(default=14, gt=0, description="First notice window (days)")
    horizon: float = Field(
        default=35,
        gt=0,
        description="Oldest bot comment age considered for minimization (days)",
    )

    @model_validator(mode="after")
    def validate_ordering(self) -> "CutoffWindow":
        """Ensure the windows are strictly increasing.

        Raises:
            ValueError: If the windows are not monotonically increasing.
        """
        if not self.current < self.grace_end < self.stale_end < self.horizon:
            raise ValueError(
                "cutoff windows must satisfy current < grace_end < stale_end < horizon, "
                f"got {self.current}, {self.grace_end}, {self.stale_end}, {self.horizon}"
            )
        return self

    def at(self, now: datetime) -> CutoffInstants:
        """Convert the day offsets into absolute instants relative to ``now``.

        Args:
            now: The single time source for one classification pass.
                 Naive values are interpreted as UTC.

        Returns:
            CutoffInstants: The four cutoff instants.
        """
        now = _ensure_aware(now)
        return CutoffInstants(
            now=now,
            current_at=now - timedelta(days=self.current),
            grace_end_at=now - timedelta(days=self.grace_end),
            stale_end_at=now - timedelta(days=self.stale_end),
            horizon_at=now - timedelta(days=self.horizon),
        )


class LabelClass(str, Enum):
    """Symbolic activity label classes.

    Label identity is compared by class, never by display text; the
    LabelDirectory maps each class to a project-specific label name.

    Attributes:
        NONE: No activity label applies.
        UPDATED: The issue was recently updated by an assignee.
        FIRST_NOTICE: First escalation, an update is requested.
        SECOND_NOTICE: Second escalation, the issue is considered inactive.
    """

    NONE = "none"
    UPDATED = "updated"
    FIRST_NOTICE = "first-notice"
    SECOND_NOTICE = "second-notice"


ACTIVITY_LABEL_CLASSES = (
    LabelClass.UPDATED,
    LabelClass.FIRST_NOTICE,
    LabelClass.SECOND_NOTICE,
)


class Classification(BaseModel):
    """Outcome of classifying one issue timeline.

    Attributes:
        is_stale: True when the latest authorized activity is past the grace window.
        label_class: The activity label class that applies.
        comments_to_minimize: Bot comment ids now eligible for minimization,
            newest first.
        suppress_notice: True when an open pull request by an assignee that
            links this issue overrides every other signal.
    """

    model_config = ConfigDict(frozen=True)

    is_stale: bool
    label_class: LabelClass
    comments_to_minimize: tuple[str, ...] = ()
    suppress_notice: bool = False
