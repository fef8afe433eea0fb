"""Label and notification actions for classified issues.

This module maps classifications to action plans and applies them:
- resolve: pure Classification -> ActionPlan mapping
- format_notice_comment: renders the escalation notice
- ActionExecutor: applies a plan through the GitHub client
"""

from src.staleness.actions.executor import ActionExecutor
from src.staleness.actions.formatting import (
    DEFAULT_NOTICE_TEMPLATE,
    format_notice_comment,
    load_notice_template,
)
from src.staleness.actions.models import ActionFailure, ActionPlan, ExecutionResult
from src.staleness.actions.resolver import resolve

__all__ = [
    "ActionExecutor",
    "ActionFailure",
    "ActionPlan",
    "DEFAULT_NOTICE_TEMPLATE",
    "ExecutionResult",
    "format_notice_comment",
    "load_notice_template",
    "resolve",
]
