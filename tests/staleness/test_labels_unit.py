"""Unit tests for label name resolution."""

import pytest

from src.staleness.classifier.models import LabelClass
from src.staleness.labels import (
    DEFAULT_LABEL_NAMES,
    LabelDirectory,
    LabelResolutionError,
)


LABEL_DIRECTORY_YAML = """\
statusUpdated: "Status: Updated"
statusInactive1: "Status: To Update"
statusInactive2: "Status: Inactive"
draft: "Draft"
"""


class TestLabelDirectory:

    def test_default_names(self):
        directory = LabelDirectory.default()
        assert directory.name_for(LabelClass.UPDATED) == "Status: Updated"
        assert directory.name_for(LabelClass.FIRST_NOTICE) == "Status: To Update"
        assert directory.name_for(LabelClass.SECOND_NOTICE) == "Status: Inactive"

    def test_none_has_no_label(self):
        with pytest.raises(LabelResolutionError):
            LabelDirectory.default().name_for(LabelClass.NONE)

    def test_missing_class_is_rejected(self):
        names = dict(DEFAULT_LABEL_NAMES)
        del names[LabelClass.SECOND_NOTICE]
        with pytest.raises(LabelResolutionError, match="second-notice"):
            LabelDirectory(names)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "label-directory.yml"
        path.write_text(LABEL_DIRECTORY_YAML)

        directory = LabelDirectory.from_yaml(str(path))

        assert directory.names == DEFAULT_LABEL_NAMES

    def test_from_yaml_with_custom_keys(self, tmp_path):
        path = tmp_path / "labels.yml"
        path.write_text("fresh: Fresh\nnudge: Nudge\nstale: Stale\n")
        keys = {
            LabelClass.UPDATED: "fresh",
            LabelClass.FIRST_NOTICE: "nudge",
            LabelClass.SECOND_NOTICE: "stale",
        }

        directory = LabelDirectory.from_yaml(str(path), keys)

        assert directory.name_for(LabelClass.FIRST_NOTICE) == "Nudge"

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(LabelResolutionError, match="not found"):
            LabelDirectory.from_yaml(str(tmp_path / "missing.yml"))

    def test_from_yaml_invalid_yaml(self, tmp_path):
        path = tmp_path / "labels.yml"
        path.write_text("statusUpdated: [unclosed\n")
        with pytest.raises(LabelResolutionError, match="parse"):
            LabelDirectory.from_yaml(str(path))

    def test_from_yaml_empty_file(self, tmp_path):
        path = tmp_path / "labels.yml"
        path.write_text("")
        with pytest.raises(LabelResolutionError, match="empty or invalid"):
            LabelDirectory.from_yaml(str(path))

    def test_from_yaml_missing_key(self, tmp_path):
        path = tmp_path / "labels.yml"
        path.write_text('statusUpdated: "Status: Updated"\n')
        with pytest.raises(LabelResolutionError, match="statusInactive1"):
            LabelDirectory.from_yaml(str(path))
