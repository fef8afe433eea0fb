"""Execution of action plans against GitHub.

This module provides the ActionExecutor class that applies an ActionPlan
to one issue:
- Removing and adding activity labels
- Posting the escalation notice comment
- Minimizing outdated bot comments, paced by a fixed delay

Each call is independent. A failing call is logged and recorded in the
ExecutionResult, and the remaining calls still run; the next sweep
recomputes everything from the timeline, so partial failures are safe.

Source:
- src/staleness/github/client.py (GitHubClient)
- src/staleness/labels.py (LabelDirectory)
- src/staleness/actions/models.py (ActionPlan, ExecutionResult)
"""

import asyncio
import logging
from typing import Optional

from src.staleness.actions.models import ActionFailure, ActionPlan, ExecutionResult
from src.staleness.github.client import GitHubAPIError, GitHubClient
from src.staleness.labels import LabelDirectory


logger = logging.getLogger(__name__)


class ActionExecutor:
    """Applies ActionPlans to GitHub issues.

    Attributes:
        github_client: The GitHub API client for label and comment calls.
        label_directory: Maps label classes to label names.
        minimize_delay_seconds: Pause before each minimize call.
        dry_run: When True, log intended calls and perform none.

    Example:
        >>> executor = ActionExecutor(client, LabelDirectory.default())
        >>> result = await executor.execute(
        ...     owner="org",
        ...     repo="repo",
        ...     issue_number=123,
        ...     plan=plan,
        ...     comment_body=body,
        ... )
    """

    def __init__(
        self,
        github_client: GitHubClient,
        label_directory: LabelDirectory,
        minimize_delay_seconds: float = 1.0,
        dry_run: bool = False,
    ):
        self.github_client = github_client
        self.label_directory = label_directory
        self.minimize_delay_seconds = minimize_delay_seconds
        self.dry_run = dry_run

    async def execute(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        plan: ActionPlan,
        comment_body: Optional[str] = None,
    ) -> ExecutionResult:
        """Apply an action plan to an issue.

        Labels are removed before they are added, then the notice is
        posted, then comments are minimized.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to update.
            plan: The actions to apply.
            comment_body: Notice text, required when ``plan.post_comment``.

        Returns:
            ExecutionResult: What was done and what failed.
        """
        result = ExecutionResult(dry_run=self.dry_run)
        context = {"owner": owner, "repo": repo, "issue_number": issue_number}

        if self.dry_run:
            self._log_dry_run(plan, context)
            return result

        for label_class in plan.ordered_removals():
            label = self.label_directory.name_for(label_class)
            try:
                removed = await self.github_client.remove_label(
                    owner, repo, issue_number, label
                )
                if removed:
                    result.labels_removed.append(label)
            except GitHubAPIError as e:
                self._record_failure(result, "remove_label", label, e, context)

        additions = [
            self.label_directory.name_for(c) for c in plan.ordered_additions()
        ]
        if additions:
            try:
                await self.github_client.add_labels(
                    owner, repo, issue_number, additions
                )
                result.labels_added.extend(additions)
            except GitHubAPIError as e:
                self._record_failure(
                    result, "add_labels", ", ".join(additions), e, context
                )

        if plan.post_comment:
            if not comment_body:
                logger.warning(
                    "Plan requests a notice but no comment body was rendered",
                    extra=context,
                )
            else:
                try:
                    await self.github_client.create_comment(
                        owner, repo, issue_number, comment_body
                    )
                    result.comment_posted = True
                except GitHubAPIError as e:
                    self._record_failure(
                        result, "create_comment", str(issue_number), e, context
                    )

        await self._minimize_comments(plan, result, context)

        logger.info(
            "Action plan executed",
            extra={
                **context,
                "labels_added": result.labels_added,
                "labels_removed": result.labels_removed,
                "comment_posted": result.comment_posted,
                "comments_minimized": len(result.comments_minimized),
                "failures": len(result.failures),
            },
        )
        return result

    async def _minimize_comments(
        self,
        plan: ActionPlan,
        result: ExecutionResult,
        context: dict,
    ) -> None:
        for node_id in plan.minimize_comment_ids:
            await asyncio.sleep(self.minimize_delay_seconds)
            try:
                await self.github_client.minimize_comment(node_id)
                result.comments_minimized.append(node_id)
            except GitHubAPIError as e:
                self._record_failure(result, "minimize_comment", node_id, e, context)

    def _record_failure(
        self,
        result: ExecutionResult,
        action: str,
        target: str,
        error: GitHubAPIError,
        context: dict,
    ) -> None:
        logger.error(
            "GitHub action failed",
            extra={
                **context,
                "action": action,
                "target": target,
                "status_code": error.status_code,
                "error": error.message,
            },
        )
        result.failures.append(
            ActionFailure(
                action=action,
                target=target,
                error=error.message,
                status_code=error.status_code,
            )
        )

    def _log_dry_run(self, plan: ActionPlan, context: dict) -> None:
        logger.info(
            "Dry run, skipping GitHub calls",
            extra={
                **context,
                "remove_labels": [
                    self.label_directory.name_for(c) for c in plan.ordered_removals()
                ],
                "add_labels": [
                    self.label_directory.name_for(c) for c in plan.ordered_additions()
                ],
                "post_comment": plan.post_comment,
                "minimize_comment_ids": list(plan.minimize_comment_ids),
            },
        )
