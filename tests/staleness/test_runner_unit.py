"""Unit tests for the staleness sweep runner.

Collaborators are replaced with AsyncMocks; the classifier and resolver
run for real against factory-built timelines.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.staleness.actions.executor import ActionExecutor
from src.staleness.actions.models import ActionFailure, ExecutionResult
from src.staleness.classifier.models import CutoffWindow, LabelClass
from src.staleness.config import StalenessSettings
from src.staleness.github.client import GitHubAPIError
from src.staleness.github.timeline import TimelineFetcher
from src.staleness.labels import LabelDirectory
from src.staleness.runner import SkipReason, StalenessRunner
from tests.staleness.factories import (
    NOW,
    make_assigned,
    make_comment,
    make_cross_reference,
)


def run_async(coro):
    return asyncio.run(coro)


def _issue(number, assignees=("dev1",), labels=(), pull_request=False):
    issue = {
        "number": number,
        "assignees": [{"login": login} for login in assignees],
        "labels": [{"name": name} for name in labels],
    }
    if pull_request:
        issue["pull_request"] = {"url": f"https://api.github.com/repos/o/r/pulls/{number}"}
    return issue


def _runner(metrics, issues, timelines, template="Hi ${assignees}: ${label} before ${cutoffTime}"):
    github_client = MagicMock()
    github_client.list_assigned_issues = AsyncMock(return_value=issues)

    fetcher = MagicMock()

    async def fetch(owner, repo, issue_number):
        timeline = timelines[issue_number]
        if isinstance(timeline, Exception):
            raise timeline
        return timeline

    fetcher.fetch = AsyncMock(side_effect=fetch)

    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ExecutionResult())

    return StalenessRunner(
        github_client=github_client,
        fetcher=fetcher,
        executor=executor,
        label_directory=LabelDirectory.default(),
        cutoffs=CutoffWindow(),
        bot_usernames=["github-actions[bot]"],
        exclude_labels=["Draft", "Epic"],
        notice_template=template,
        notice_timezone="UTC",
        metrics=metrics,
        clock=lambda: NOW,
    )


class TestSweep:

    def test_candidates_are_filtered(self, metrics):
        issues = [
            _issue(1, pull_request=True),
            _issue(2, labels=["Epic"]),
            _issue(3, assignees=()),
            _issue(4),
        ]
        runner = _runner(metrics, issues, {4: [make_comment("dev1", 1)]})

        result = run_async(runner.sweep("org", "repo"))

        assert [o.skipped_reason for o in result.outcomes] == [
            SkipReason.PULL_REQUEST,
            SkipReason.EXCLUDED_LABEL,
            SkipReason.NO_ASSIGNEES,
            None,
        ]
        assert result.processed == 1
        assert result.skipped == 3
        runner.fetcher.fetch.assert_awaited_once_with("org", "repo", 4)
        assert (
            metrics.registry.get_sample_value(
                "staleness_issues_skipped_total",
                {"repository": "org/repo", "reason": "excluded_label"},
            )
            == 1.0
        )

    def test_first_notice_posts_rendered_comment(self, metrics):
        timeline = [make_assigned("dev1", 20), make_comment("dev1", 10)]
        runner = _runner(metrics, [_issue(7, assignees=("dev1", "dev2"))], {7: timeline})

        result = run_async(runner.sweep("org", "repo"))

        outcome = result.outcomes[0]
        assert outcome.classification.label_class == LabelClass.FIRST_NOTICE
        assert outcome.plan.post_comment is True

        args = runner.executor.execute.await_args.args
        assert args[:4] == ("org", "repo", 7, outcome.plan)
        assert args[4] == (
            "Hi @dev1, @dev2: Status: To Update before "
            "Thursday, October 15, 2026 at 12:00 PM UTC"
        )

    def test_updated_issue_posts_no_comment(self, metrics):
        runner = _runner(metrics, [_issue(5)], {5: [make_comment("dev1", 1)]})

        result = run_async(runner.sweep("org", "repo"))

        assert result.outcomes[0].classification.label_class == LabelClass.UPDATED
        args = runner.executor.execute.await_args.args
        assert args[4] is None

    def test_open_linked_pr_suppresses(self, metrics):
        timeline = [make_comment("dev1", 30), make_cross_reference("dev1", "Fixes #9")]
        runner = _runner(metrics, [_issue(9)], {9: timeline})

        result = run_async(runner.sweep("org", "repo"))

        classification = result.outcomes[0].classification
        assert classification.suppress_notice is True
        assert result.outcomes[0].plan.labels_to_add == frozenset()

    def test_failed_issue_does_not_stop_sweep(self, metrics):
        timelines = {
            1: GitHubAPIError("server error", status_code=502),
            2: [make_comment("dev1", 1)],
        }
        runner = _runner(metrics, [_issue(1), _issue(2)], timelines)

        result = run_async(runner.sweep("org", "repo"))

        assert result.outcomes[0].error == "server error"
        assert result.outcomes[1].classification is not None
        assert result.failed == 1
        assert result.has_failures is True
        assert (
            metrics.registry.get_sample_value(
                "staleness_issues_failed_total", {"repository": "org/repo"}
            )
            == 1.0
        )

    def test_unexpected_error_does_not_stop_sweep(self, metrics):
        timelines = {1: ValueError("unexpected payload"), 2: [make_comment("dev1", 1)]}
        runner = _runner(metrics, [_issue(1), _issue(2)], timelines)

        result = run_async(runner.sweep("org", "repo"))

        assert result.outcomes[0].error == "unexpected payload"
        assert result.outcomes[1].classification is not None
        assert result.failed == 1
        assert (
            metrics.registry.get_sample_value(
                "staleness_issues_failed_total", {"repository": "org/repo"}
            )
            == 1.0
        )

    def test_execution_failures_count_as_failed(self, metrics):
        runner = _runner(metrics, [_issue(3)], {3: [make_comment("dev1", 20)]})
        runner.executor.execute = AsyncMock(
            return_value=ExecutionResult(
                failures=[ActionFailure(action="add_labels", target="x", error="boom")]
            )
        )

        result = run_async(runner.sweep("org", "repo"))

        assert result.has_failures is True
        assert (
            metrics.registry.get_sample_value(
                "staleness_actions_total",
                {"repository": "org/repo", "action": "add_labels", "result": "failure"},
            )
            == 1.0
        )

    def test_listing_failure_propagates(self, metrics):
        runner = _runner(metrics, [], {})
        runner.github_client.list_assigned_issues = AsyncMock(
            side_effect=GitHubAPIError("unauthorized", status_code=401)
        )
        with pytest.raises(GitHubAPIError):
            run_async(runner.sweep("org", "repo"))

    def test_one_clock_reading_per_sweep(self, metrics):
        clock = MagicMock(return_value=NOW)
        runner = _runner(
            metrics,
            [_issue(1), _issue(2)],
            {1: [make_comment("dev1", 1)], 2: [make_comment("dev1", 20)]},
        )
        runner.clock = clock

        result = run_async(runner.sweep("org", "repo"))

        clock.assert_called_once_with()
        assert result.started_at == NOW

    def test_classification_metrics(self, metrics):
        runner = _runner(metrics, [_issue(1)], {1: [make_comment("dev1", 20)]})

        run_async(runner.sweep("org", "repo"))

        assert (
            metrics.registry.get_sample_value(
                "staleness_issues_classified_total",
                {
                    "repository": "org/repo",
                    "label_class": "second-notice",
                    "suppressed": "false",
                },
            )
            == 1.0
        )


class TestProjectStatusFilter:

    def _status_runner(self, metrics, statuses):
        issues = [_issue(number) for number in statuses]
        timelines = {number: [make_comment("dev1", 1)] for number in statuses}
        runner = _runner(metrics, issues, timelines)
        runner.target_status = "In progress (actively working)"

        async def get_issue_status(owner, repo, issue_number, field_name):
            status = statuses[issue_number]
            if isinstance(status, Exception):
                raise status
            return status

        runner.github_client.get_issue_status = AsyncMock(side_effect=get_issue_status)
        return runner

    def test_only_target_status_is_processed(self, metrics):
        runner = self._status_runner(
            metrics, {1: "In progress (actively working)", 2: "Todo", 3: None}
        )

        result = run_async(runner.sweep("org", "repo"))

        assert [o.skipped_reason for o in result.outcomes] == [
            None,
            SkipReason.STATUS_MISMATCH,
            SkipReason.STATUS_MISMATCH,
        ]
        runner.fetcher.fetch.assert_awaited_once_with("org", "repo", 1)
        runner.github_client.get_issue_status.assert_any_await("org", "repo", 2, "Status")
        assert (
            metrics.registry.get_sample_value(
                "staleness_issues_skipped_total",
                {"repository": "org/repo", "reason": "status_mismatch"},
            )
            == 2.0
        )

    def test_no_target_status_skips_query(self, metrics):
        runner = _runner(metrics, [_issue(1)], {1: [make_comment("dev1", 1)]})
        runner.github_client.get_issue_status = AsyncMock(return_value="Todo")

        result = run_async(runner.sweep("org", "repo"))

        assert result.processed == 1
        runner.github_client.get_issue_status.assert_not_awaited()

    def test_status_is_not_queried_for_filtered_candidates(self, metrics):
        runner = self._status_runner(metrics, {})
        runner.github_client.list_assigned_issues = AsyncMock(
            return_value=[_issue(1, pull_request=True)]
        )

        result = run_async(runner.sweep("org", "repo"))

        assert result.outcomes[0].skipped_reason == SkipReason.PULL_REQUEST
        runner.github_client.get_issue_status.assert_not_awaited()

    def test_status_query_failure_is_isolated(self, metrics):
        runner = self._status_runner(
            metrics,
            {
                1: GitHubAPIError("bad gateway", status_code=502),
                2: "In progress (actively working)",
            },
        )

        result = run_async(runner.sweep("org", "repo"))

        assert result.outcomes[0].error == "bad gateway"
        assert result.outcomes[1].classification is not None


class TestFromSettings:

    def test_wiring(self, metrics, monkeypatch):
        monkeypatch.setenv("STALENESS_GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("STALENESS_REPOSITORY", "org/repo")
        monkeypatch.setenv("STALENESS_DRY_RUN", "true")
        monkeypatch.setenv("STALENESS_MINIMIZE_DELAY_SECONDS", "0.5")
        settings = StalenessSettings()
        github_client = MagicMock()

        runner = StalenessRunner.from_settings(settings, github_client, metrics)

        assert isinstance(runner.fetcher, TimelineFetcher)
        assert isinstance(runner.executor, ActionExecutor)
        assert runner.executor.dry_run is True
        assert runner.executor.minimize_delay_seconds == 0.5
        assert runner.cutoffs == settings.cutoff_window()
        assert runner.bot_usernames == frozenset({"github-actions[bot]"})
        assert runner.exclude_labels == frozenset({"Draft", "ER", "Epic", "Dependency"})
        assert runner.metrics is metrics
        assert runner.target_status is None

    def test_project_board_and_inline_template(self, metrics, monkeypatch):
        monkeypatch.setenv("STALENESS_GITHUB_TOKEN", "ghp_test")
        monkeypatch.setenv("STALENESS_REPOSITORY", "org/repo")
        monkeypatch.setenv("STALENESS_TARGET_STATUS", "In progress (actively working)")
        monkeypatch.setenv("STALENESS_PROJECT_STATUS_FIELD", "Stage")
        monkeypatch.setenv("STALENESS_NOTICE_TEMPLATE", "Ping ${assignees}")
        settings = StalenessSettings()

        runner = StalenessRunner.from_settings(settings, MagicMock(), metrics)

        assert runner.target_status == "In progress (actively working)"
        assert runner.project_status_field == "Stage"
        assert runner.notice_template == "Ping ${assignees}"
