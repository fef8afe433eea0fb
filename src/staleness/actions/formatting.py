"""Escalation comment formatting for stale issues.

This module renders the notice comment posted when an issue receives a
first or second notice label. Templates use ``${placeholder}`` syntax:

- ``${assignees}``: the assignees as ``@login`` mentions, comma separated
- ``${label}``: the notice label that was applied
- ``${statusUpdated}``: the "updated" label name
- ``${cutoffTime}``: the "recently updated" cutoff, in the configured timezone

Unknown placeholders are left untouched.

Source:
- src/staleness/labels.py (LabelDirectory)
"""

from datetime import datetime
from pathlib import Path
from string import Template
from typing import Iterable, Optional
from zoneinfo import ZoneInfo


DEFAULT_TIMEZONE = "America/Los_Angeles"

DEFAULT_NOTICE_TEMPLATE = """Hello ${assignees}!

Please add an update comment using the below template (even if you have a pull request). Afterwards, remove the `${label}` label and add the `${statusUpdated}` label.

1. Progress: "What is the current status of your issue? What have you completed and what is left to do?"
2. Blockers: "Explain any difficulties or errors encountered."
3. Availability: "How much time will you have this week to work on this issue?"
4. ETA: "When do you expect this issue to be completed?"
5. Pictures (optional): "Add any pictures of the visual changes made so far."

If you need help, ask at your next team meeting or describe your question in a comment on this issue, with screenshots if applicable.

<sub>You are receiving this comment because your last comment was before ${cutoffTime}.</sub>
"""


def format_assignees(assignees: Iterable[str]) -> str:
    """Format logins as comma separated ``@login`` mentions."""
    return ", ".join(f"@{login}" for login in assignees)


def format_cutoff_time(cutoff_at: datetime, timezone_name: str = DEFAULT_TIMEZONE) -> str:
    """Render a cutoff instant the way it appears in notice comments.

    Args:
        cutoff_at: The cutoff instant (timezone-aware).
        timezone_name: IANA timezone used for display.

    Returns:
        A string such as ``Friday, October 16, 2026 at 3:04 PM PDT``.
    """
    local = cutoff_at.astimezone(ZoneInfo(timezone_name))
    hour = local.hour % 12 or 12
    return (
        f"{local:%A}, {local:%B} {local.day}, {local.year} at "
        f"{hour}:{local:%M} {local:%p} {local:%Z}"
    )


def load_notice_template(path: Optional[str]) -> str:
    """Load a notice template from ``path``, or return the default template.

    Raises:
        FileNotFoundError: If ``path`` is given but does not exist.
    """
    if not path:
        return DEFAULT_NOTICE_TEMPLATE
    return Path(path).read_text(encoding="utf-8")


def format_notice_comment(
    template: str,
    assignees: Iterable[str],
    label_name: str,
    updated_label_name: str,
    cutoff_at: datetime,
    timezone_name: str = DEFAULT_TIMEZONE,
) -> str:
    """Render the escalation notice for an issue.

    Args:
        template: Template text with ``${placeholder}`` markers.
        assignees: Logins of the issue's assignees.
        label_name: Display name of the notice label being applied.
        updated_label_name: Display name of the "updated" label.
        cutoff_at: The "recently updated" cutoff instant.
        timezone_name: IANA timezone for rendering ``cutoff_at``.

    Returns:
        The comment body, ready to post.

    Example:
        >>> body = format_notice_comment(
        ...     "Hi ${assignees}, please update (${label})",
        ...     ["octocat"],
        ...     "Status: To Update",
        ...     "Status: Updated",
        ...     cutoff_at,
        ... )
        >>> body
        'Hi @octocat, please update (Status: To Update)'
    """
    return Template(template).safe_substitute(
        assignees=format_assignees(assignees),
        label=label_name,
        statusUpdated=updated_label_name,
        cutoffTime=format_cutoff_time(cutoff_at, timezone_name),
    )
