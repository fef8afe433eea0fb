"""Resolution of activity label classes to project label names.

Classification works purely on LabelClass values. This module is the only
place that knows the project-specific label text, either from defaults,
from settings overrides, or from a YAML label directory file mapping
symbolic label keys to label names, for example::

    statusUpdated: "Status: Updated"
    statusInactive1: "Status: To Update"
    statusInactive2: "Status: Inactive"
"""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Dict, Optional

import yaml

from src.staleness.classifier.models import ACTIVITY_LABEL_CLASSES, LabelClass


logger = logging.getLogger(__name__)


DEFAULT_LABEL_NAMES: Dict[LabelClass, str] = {
    LabelClass.UPDATED: "Status: Updated",
    LabelClass.FIRST_NOTICE: "Status: To Update",
    LabelClass.SECOND_NOTICE: "Status: Inactive",
}

DEFAULT_LABEL_KEYS: Dict[LabelClass, str] = {
    LabelClass.UPDATED: "statusUpdated",
    LabelClass.FIRST_NOTICE: "statusInactive1",
    LabelClass.SECOND_NOTICE: "statusInactive2",
}


class LabelResolutionError(Exception):
    """Raised when label names cannot be resolved."""


class LabelDirectory:
    """Maps activity label classes to label names.

    Attributes:
        names: Label name for each activity label class.

    Example:
        >>> directory = LabelDirectory.default()
        >>> directory.name_for(LabelClass.FIRST_NOTICE)
        'Status: To Update'
    """

    def __init__(self, names: Mapping[LabelClass, str]):
        missing = [c.value for c in ACTIVITY_LABEL_CLASSES if not names.get(c)]
        if missing:
            raise LabelResolutionError(
                f"Missing label names for: {', '.join(missing)}"
            )
        self.names = {c: names[c] for c in ACTIVITY_LABEL_CLASSES}

    @classmethod
    def default(cls) -> "LabelDirectory":
        return cls(DEFAULT_LABEL_NAMES)

    @classmethod
    def from_yaml(
        cls,
        path: str,
        keys: Optional[Mapping[LabelClass, str]] = None,
    ) -> "LabelDirectory":
        """Load label names from a YAML label directory file.

        Args:
            path: Path to the YAML file mapping label keys to label names.
            keys: Label key for each activity label class. Defaults to
                  statusUpdated, statusInactive1 and statusInactive2.

        Returns:
            LabelDirectory: Directory with the resolved names.

        Raises:
            LabelResolutionError: If the file is missing, is not valid YAML,
                is not a mapping, or lacks a required key.
        """
        keys = keys or DEFAULT_LABEL_KEYS
        file_path = Path(path)

        if not file_path.is_file():
            raise LabelResolutionError(f"Label directory not found at: {path}")

        try:
            with file_path.open("r", encoding="utf-8") as f:
                directory = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise LabelResolutionError(
                f"Failed to parse label directory YAML at {path}: {e}"
            ) from e

        if not isinstance(directory, dict) or not directory:
            raise LabelResolutionError(
                f"Label directory file is empty or invalid: {path}"
            )

        missing_keys = [
            keys[c] for c in ACTIVITY_LABEL_CLASSES if not directory.get(keys[c])
        ]
        if missing_keys:
            raise LabelResolutionError(
                f"Missing required label keys in {path}: {', '.join(missing_keys)}"
            )

        names = {c: str(directory[keys[c]]) for c in ACTIVITY_LABEL_CLASSES}

        logger.info(
            "Loaded label directory",
            extra={
                "path": path,
                "labels": {c.value: name for c, name in names.items()},
            },
        )

        return cls(names)

    def name_for(self, label_class: LabelClass) -> str:
        """Return the label name for an activity label class.

        Raises:
            LabelResolutionError: For LabelClass.NONE, which has no label.
        """
        if label_class not in self.names:
            raise LabelResolutionError(
                f"No label name for label class: {label_class.value}"
            )
        return self.names[label_class]
