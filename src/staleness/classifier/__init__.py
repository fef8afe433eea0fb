"""Timeline staleness classification.

This module classifies an issue's activity state from its timeline:
- Most recent assignee comment or assignment, mapped onto activity windows
- Open pull requests by an assignee that link the issue (override)
- Old bot comments eligible for minimization

Classification is pure: it never performs I/O.
"""

from src.staleness.classifier.links import find_linked_issue, links_issue
from src.staleness.classifier.models import (
    ACTIVITY_LABEL_CLASSES,
    Classification,
    CrossReference,
    CutoffInstants,
    CutoffWindow,
    EventKind,
    LabelClass,
    SourceState,
    TimelineEvent,
)
from src.staleness.classifier.timeline import DEFAULT_MINIMIZATION_MARKER, classify

__all__ = [
    "ACTIVITY_LABEL_CLASSES",
    "Classification",
    "classify",
    "CrossReference",
    "CutoffInstants",
    "CutoffWindow",
    "DEFAULT_MINIMIZATION_MARKER",
    "EventKind",
    "find_linked_issue",
    "LabelClass",
    "links_issue",
    "SourceState",
    "TimelineEvent",
]
