"""Sweep runner connecting timeline fetching, classification and actions.

A sweep drives every open, assigned issue of a repository through:
candidate filtering → project status check → timeline fetch → classify →
resolve → execute.

"Now" is read once per sweep, so every issue in the sweep is classified
against the same cutoff instants. Failures fetching or updating one issue
are logged and counted, and the sweep moves on to the next issue.

Source:
- src/staleness/github/client.py (GitHubClient)
- src/staleness/github/timeline.py (TimelineFetcher)
- src/staleness/classifier/timeline.py (classify)
- src/staleness/actions/resolver.py (resolve)
- src/staleness/actions/formatting.py (format_notice_comment)
- src/staleness/actions/executor.py (ActionExecutor)
- src/staleness/metrics.py (StalenessMetrics)
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Collection, Dict, List, Optional

from pydantic import BaseModel, Field

from src.staleness.actions.executor import ActionExecutor
from src.staleness.actions.formatting import (
    DEFAULT_NOTICE_TEMPLATE,
    DEFAULT_TIMEZONE,
    format_notice_comment,
    load_notice_template,
)
from src.staleness.actions.models import ActionPlan, ExecutionResult
from src.staleness.actions.resolver import resolve
from src.staleness.classifier.models import Classification, CutoffWindow, LabelClass
from src.staleness.classifier.timeline import DEFAULT_MINIMIZATION_MARKER, classify
from src.staleness.config import StalenessSettings
from src.staleness.github.client import GitHubAPIError, GitHubClient
from src.staleness.github.timeline import TimelineFetcher
from src.staleness.labels import LabelDirectory
from src.staleness.metrics import StalenessMetrics, get_metrics


logger = logging.getLogger(__name__)


class SkipReason:
    """Reasons an issue is left out of a sweep."""

    PULL_REQUEST = "pull_request"
    EXCLUDED_LABEL = "excluded_label"
    NO_ASSIGNEES = "no_assignees"
    STATUS_MISMATCH = "status_mismatch"


class IssueOutcome(BaseModel):
    """Result of processing one issue in a sweep.

    Exactly one of ``skipped_reason``, ``error`` or the
    classification/plan/execution trio describes the outcome.
    """

    issue_number: int
    assignees: List[str] = Field(default_factory=list)
    classification: Optional[Classification] = None
    plan: Optional[ActionPlan] = None
    execution: Optional[ExecutionResult] = None
    skipped_reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None or (
            self.execution is not None and not self.execution.succeeded
        )


class SweepResult(BaseModel):
    """Aggregate result of one repository sweep."""

    repository: str
    started_at: datetime
    outcomes: List[IssueOutcome] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return sum(1 for o in self.outcomes if o.classification is not None)

    @property
    def skipped(self) -> int:
        return sum(1 for o in self.outcomes if o.skipped_reason is not None)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StalenessRunner:
    """Runs staleness sweeps over a repository's assigned issues.

    Attributes:
        github_client: GitHub API client for listing issues.
        fetcher: Fetches normalized issue timelines.
        executor: Applies action plans.
        label_directory: Maps label classes to label names.
        cutoffs: The activity windows.
        bot_usernames: Logins whose outdated comments are minimized.
        minimization_marker: Text exempting a bot comment from minimization.
        exclude_labels: Issues with any of these labels are skipped.
        target_status: Project board status an issue must have to be
            processed; None processes every issue.
        project_status_field: Project field holding the status.
        notice_template: Template for escalation notices.
        notice_timezone: Timezone for rendering the cutoff in notices.
        metrics: Prometheus metrics to update.
        clock: Returns the current time; read once per sweep.
    """

    def __init__(
        self,
        github_client: GitHubClient,
        fetcher: TimelineFetcher,
        executor: ActionExecutor,
        label_directory: LabelDirectory,
        cutoffs: CutoffWindow,
        bot_usernames: Collection[str] = (),
        minimization_marker: str = DEFAULT_MINIMIZATION_MARKER,
        exclude_labels: Collection[str] = (),
        target_status: Optional[str] = None,
        project_status_field: str = "Status",
        notice_template: str = DEFAULT_NOTICE_TEMPLATE,
        notice_timezone: str = DEFAULT_TIMEZONE,
        metrics: Optional[StalenessMetrics] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.github_client = github_client
        self.fetcher = fetcher
        self.executor = executor
        self.label_directory = label_directory
        self.cutoffs = cutoffs
        self.bot_usernames = frozenset(bot_usernames)
        self.minimization_marker = minimization_marker
        self.exclude_labels = frozenset(exclude_labels)
        self.target_status = target_status
        self.project_status_field = project_status_field
        self.notice_template = notice_template
        self.notice_timezone = notice_timezone
        self.metrics = metrics or get_metrics()
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: StalenessSettings,
        github_client: GitHubClient,
        metrics: Optional[StalenessMetrics] = None,
    ) -> "StalenessRunner":
        """Wire a runner from validated settings.

        Raises:
            LabelResolutionError: If the label directory cannot be loaded.
            FileNotFoundError: If the notice template file does not exist.
        """
        label_directory = settings.label_directory()
        executor = ActionExecutor(
            github_client=github_client,
            label_directory=label_directory,
            minimize_delay_seconds=settings.minimize_delay_seconds,
            dry_run=settings.dry_run,
        )
        return cls(
            github_client=github_client,
            fetcher=TimelineFetcher(github_client),
            executor=executor,
            label_directory=label_directory,
            cutoffs=settings.cutoff_window(),
            bot_usernames=settings.bot_usernames,
            minimization_marker=settings.minimization_marker,
            exclude_labels=settings.exclude_labels,
            target_status=settings.target_status,
            project_status_field=settings.project_status_field,
            notice_template=(
                settings.notice_template
                or load_notice_template(settings.notice_template_path)
            ),
            notice_timezone=settings.notice_timezone,
            metrics=metrics,
        )

    async def sweep(
        self,
        owner: str,
        repo: str,
        now: Optional[datetime] = None,
    ) -> SweepResult:
        """Classify and update every open assigned issue of a repository.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            now: Time source for the sweep; read from the clock if omitted.

        Returns:
            SweepResult: Per-issue outcomes.

        Raises:
            GitHubAPIError: If the candidate issues cannot be listed.
        """
        repository = f"{owner}/{repo}"
        now = now or self.clock()
        started = time.monotonic()

        logger.info(
            "Starting staleness sweep",
            extra={"repository": repository, "now": now.isoformat()},
        )

        raw_issues = await self.github_client.list_assigned_issues(owner, repo)
        result = SweepResult(repository=repository, started_at=now)

        for raw_issue in raw_issues:
            issue_number = raw_issue.get("number")
            if not issue_number:
                continue

            assignees = _assignee_logins(raw_issue)
            try:
                skip_reason = self._skip_reason(raw_issue)
                if skip_reason is None:
                    skip_reason = await self._status_skip_reason(
                        owner, repo, issue_number
                    )
                if skip_reason is not None:
                    outcome = self._skipped(repository, issue_number, skip_reason)
                else:
                    outcome = await self.process_issue(
                        owner, repo, issue_number, assignees, now
                    )
            except GitHubAPIError as e:
                logger.error(
                    "Failed to process issue",
                    extra={
                        "repository": repository,
                        "issue_number": issue_number,
                        "status_code": e.status_code,
                        "error": e.message,
                    },
                )
                self.metrics.record_failed(repository)
                outcome = IssueOutcome(
                    issue_number=issue_number,
                    assignees=assignees,
                    error=e.message,
                )
            except Exception as e:
                logger.exception(
                    "Unexpected error processing issue",
                    extra={"repository": repository, "issue_number": issue_number},
                )
                self.metrics.record_failed(repository)
                outcome = IssueOutcome(
                    issue_number=issue_number,
                    assignees=assignees,
                    error=str(e) or type(e).__name__,
                )
            result.outcomes.append(outcome)

        duration = time.monotonic() - started
        self.metrics.record_sweep_duration(repository, duration)

        logger.info(
            "Staleness sweep complete",
            extra={
                "repository": repository,
                "processed": result.processed,
                "skipped": result.skipped,
                "failed": result.failed,
                "duration_seconds": round(duration, 3),
            },
        )
        return result

    async def process_issue(
        self,
        owner: str,
        repo: str,
        issue_number: int,
        assignees: List[str],
        now: datetime,
    ) -> IssueOutcome:
        """Classify one issue and apply the resulting plan.

        Args:
            owner: Repository owner (user or organization).
            repo: Repository name.
            issue_number: Issue number to process.
            assignees: Logins of the issue's assignees (authorized actors).
            now: Time source shared by the whole sweep.

        Returns:
            IssueOutcome: Classification, plan and execution result.

        Raises:
            GitHubAPIError: If the timeline cannot be fetched.
        """
        repository = f"{owner}/{repo}"
        timeline = await self.fetcher.fetch(owner, repo, issue_number)

        classification = classify(
            timeline,
            frozenset(assignees),
            self.cutoffs,
            self.bot_usernames,
            self.minimization_marker,
            issue_number=issue_number,
            now=now,
        )
        self.metrics.record_classification(repository, classification)

        logger.info(
            "Issue classified",
            extra={
                "repository": repository,
                "issue_number": issue_number,
                "is_stale": classification.is_stale,
                "label_class": classification.label_class.value,
                "suppress_notice": classification.suppress_notice,
                "comments_to_minimize": len(classification.comments_to_minimize),
            },
        )

        plan = resolve(classification)
        comment_body = None
        if plan.post_comment:
            comment_body = self.render_notice(classification.label_class, assignees, now)

        execution = await self.executor.execute(
            owner, repo, issue_number, plan, comment_body
        )
        self.metrics.record_execution(repository, execution)

        return IssueOutcome(
            issue_number=issue_number,
            assignees=assignees,
            classification=classification,
            plan=plan,
            execution=execution,
        )

    def render_notice(
        self,
        label_class: LabelClass,
        assignees: List[str],
        now: datetime,
    ) -> str:
        """Render the escalation notice for a notice label class."""
        return format_notice_comment(
            self.notice_template,
            assignees,
            label_name=self.label_directory.name_for(label_class),
            updated_label_name=self.label_directory.name_for(LabelClass.UPDATED),
            cutoff_at=self.cutoffs.at(now).current_at,
            timezone_name=self.notice_timezone,
        )

    def _skip_reason(self, raw_issue: Dict[str, Any]) -> Optional[str]:
        if raw_issue.get("pull_request") is not None:
            return SkipReason.PULL_REQUEST

        labels = {label.get("name") for label in raw_issue.get("labels") or []}
        if labels & self.exclude_labels:
            return SkipReason.EXCLUDED_LABEL

        if not _assignee_logins(raw_issue):
            return SkipReason.NO_ASSIGNEES

        return None

    async def _status_skip_reason(
        self, owner: str, repo: str, issue_number: int
    ) -> Optional[str]:
        if self.target_status is None:
            return None
        status = await self.github_client.get_issue_status(
            owner, repo, issue_number, self.project_status_field
        )
        if status != self.target_status:
            logger.debug(
                "Project status does not match",
                extra={
                    "issue_number": issue_number,
                    "status": status,
                    "target_status": self.target_status,
                },
            )
            return SkipReason.STATUS_MISMATCH
        return None

    def _skipped(
        self, repository: str, issue_number: int, reason: str
    ) -> IssueOutcome:
        logger.info(
            "Skipping issue",
            extra={
                "repository": repository,
                "issue_number": issue_number,
                "reason": reason,
            },
        )
        self.metrics.record_skipped(repository, reason)
        return IssueOutcome(issue_number=issue_number, skipped_reason=reason)


def _assignee_logins(raw_issue: Dict[str, Any]) -> List[str]:
    return [
        assignee["login"]
        for assignee in raw_issue.get("assignees") or []
        if assignee.get("login")
    ]
