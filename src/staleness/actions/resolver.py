"""Resolution of a classification into label and comment actions.

The resolver is a pure mapping from Classification to ActionPlan. It never
reads the timeline or current label state: the plan is always recomputed
from the latest classification, so a partially applied plan is simply
corrected on the next run.

The "updated" label is never added by a plan. When an issue is recently
updated the competing notice labels are removed and an existing "updated"
label is retained.
"""

from src.staleness.actions.models import ActionPlan
from src.staleness.classifier.models import (
    ACTIVITY_LABEL_CLASSES,
    Classification,
    LabelClass,
)


ALL_ACTIVITY_LABELS = frozenset(ACTIVITY_LABEL_CLASSES)


def resolve(classification: Classification) -> ActionPlan:
    """Map a classification onto the actions that converge the issue to it.

    Args:
        classification: The timeline classification for one issue.

    Returns:
        ActionPlan: Labels to add and remove, whether to post a notice,
        and the comments to minimize.
    """
    minimize = tuple(classification.comments_to_minimize)

    if classification.suppress_notice:
        return ActionPlan(
            labels_to_remove=ALL_ACTIVITY_LABELS,
            minimize_comment_ids=minimize,
        )

    label_class = classification.label_class

    if label_class == LabelClass.UPDATED:
        return ActionPlan(
            labels_to_remove=frozenset(
                {LabelClass.FIRST_NOTICE, LabelClass.SECOND_NOTICE}
            ),
            minimize_comment_ids=minimize,
        )

    if label_class in (LabelClass.FIRST_NOTICE, LabelClass.SECOND_NOTICE):
        return ActionPlan(
            labels_to_add=frozenset({label_class}),
            labels_to_remove=ALL_ACTIVITY_LABELS - {label_class},
            post_comment=True,
            minimize_comment_ids=minimize,
        )

    return ActionPlan(
        labels_to_remove=ALL_ACTIVITY_LABELS,
        minimize_comment_ids=minimize,
    )
