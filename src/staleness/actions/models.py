"""Action plan and execution result models.

An ActionPlan is the minimal set of label, comment, and minimization
operations needed to converge an issue to its classification. An
ExecutionResult records what the executor actually did with a plan.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from src.staleness.classifier.models import ACTIVITY_LABEL_CLASSES, LabelClass


class ActionPlan(BaseModel):
    """Operations an executor must perform for one issue.

    Attributes:
        labels_to_add: Activity label classes to add.
        labels_to_remove: Activity label classes to remove.
        post_comment: Whether to post an escalation comment.
        minimize_comment_ids: Comment node ids to minimize, in order.
    """

    model_config = ConfigDict(frozen=True)

    labels_to_add: frozenset[LabelClass] = frozenset()
    labels_to_remove: frozenset[LabelClass] = frozenset()
    post_comment: bool = False
    minimize_comment_ids: tuple[str, ...] = ()

    def ordered_additions(self) -> list[LabelClass]:
        """Labels to add, in activity label order."""
        return [c for c in ACTIVITY_LABEL_CLASSES if c in self.labels_to_add]

    def ordered_removals(self) -> list[LabelClass]:
        """Labels to remove, in activity label order."""
        return [c for c in ACTIVITY_LABEL_CLASSES if c in self.labels_to_remove]


class ActionFailure(BaseModel):
    """A single executor call that failed.

    Attributes:
        action: The operation that failed (add_label, remove_label, ...).
        target: The label name or comment id the operation targeted.
        error: Error message reported by the GitHub client.
        status_code: HTTP status code, when one was received.
    """

    action: str
    target: str
    error: str
    status_code: Optional[int] = None


class ExecutionResult(BaseModel):
    """What the executor did with an ActionPlan.

    Every call is attempted independently, so a failure in one operation
    is recorded here while the remaining operations still run.
    """

    labels_added: list[str] = Field(default_factory=list)
    labels_removed: list[str] = Field(default_factory=list)
    comment_posted: bool = False
    comments_minimized: list[str] = Field(default_factory=list)
    failures: list[ActionFailure] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.failures
