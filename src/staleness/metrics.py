"""Prometheus metrics for staleness sweeps.

Metrics Defined:
- staleness_issues_classified_total: Counter of classified issues by outcome
- staleness_issues_skipped_total: Counter of issues skipped before classification
- staleness_issues_failed_total: Counter of issues whose processing failed
- staleness_actions_total: Counter of executor calls by action and result
- staleness_sweep_duration_seconds: Histogram of sweep duration

Metrics are exposed at the `/metrics` endpoint in Prometheus format.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from src.staleness.actions.models import ExecutionResult
from src.staleness.classifier.models import Classification


logger = logging.getLogger(__name__)


# Sweeps cover whole repositories, from seconds to tens of minutes
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    15.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1800.0,
    3600.0,
)


class StalenessMetrics:
    """Container for all staleness Prometheus metrics.

    Supports custom registries so tests can observe metrics in isolation.

    Attributes:
        registry: The Prometheus registry for these metrics.
        issues_classified_total: Labels: repository, label_class, suppressed.
        issues_skipped_total: Labels: repository, reason.
        issues_failed_total: Labels: repository.
        actions_total: Labels: repository, action, result.
        sweep_duration_seconds: Labels: repository.

    Example:
        >>> metrics = StalenessMetrics(registry=CollectorRegistry())
        >>> metrics.record_skipped("org/repo", "no_assignees")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or REGISTRY

        self.issues_classified_total = Counter(
            "staleness_issues_classified_total",
            "Total number of issues classified, by outcome",
            labelnames=["repository", "label_class", "suppressed"],
            registry=self.registry,
        )

        self.issues_skipped_total = Counter(
            "staleness_issues_skipped_total",
            "Total number of issues skipped before classification",
            labelnames=["repository", "reason"],
            registry=self.registry,
        )

        self.issues_failed_total = Counter(
            "staleness_issues_failed_total",
            "Total number of issues whose processing failed",
            labelnames=["repository"],
            registry=self.registry,
        )

        self.actions_total = Counter(
            "staleness_actions_total",
            "Total number of GitHub actions attempted, by action and result",
            labelnames=["repository", "action", "result"],
            registry=self.registry,
        )

        self.sweep_duration_seconds = Histogram(
            "staleness_sweep_duration_seconds",
            "Time spent sweeping a repository in seconds",
            labelnames=["repository"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

    def record_classification(
        self,
        repository: str,
        classification: Classification,
    ) -> None:
        self.issues_classified_total.labels(
            repository=repository,
            label_class=classification.label_class.value,
            suppressed=str(classification.suppress_notice).lower(),
        ).inc()

    def record_skipped(self, repository: str, reason: str) -> None:
        self.issues_skipped_total.labels(repository=repository, reason=reason).inc()

    def record_failed(self, repository: str) -> None:
        self.issues_failed_total.labels(repository=repository).inc()

    def record_execution(self, repository: str, result: ExecutionResult) -> None:
        """Count the calls an executor made, and the ones that failed.

        Dry-run results make no calls and are not counted.
        """
        if result.dry_run:
            return

        succeeded = {
            "remove_label": len(result.labels_removed),
            "add_labels": 1 if result.labels_added else 0,
            "create_comment": 1 if result.comment_posted else 0,
            "minimize_comment": len(result.comments_minimized),
        }
        for action, count in succeeded.items():
            if count:
                self.actions_total.labels(
                    repository=repository, action=action, result="success"
                ).inc(count)

        for failure in result.failures:
            self.actions_total.labels(
                repository=repository, action=failure.action, result="failure"
            ).inc()

    def record_sweep_duration(self, repository: str, duration_seconds: float) -> None:
        self.sweep_duration_seconds.labels(repository=repository).observe(
            duration_seconds
        )


# Global metrics instance for the default registry
_default_metrics: Optional[StalenessMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> StalenessMetrics:
    """Get or create the staleness metrics instance.

    Args:
        registry: Optional Prometheus registry. If None, returns the
                  global metrics instance for the default registry.

    Returns:
        StalenessMetrics: The metrics instance.
    """
    global _default_metrics

    if registry is not None:
        return StalenessMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = StalenessMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus metrics output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)
