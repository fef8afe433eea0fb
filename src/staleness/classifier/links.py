"""Detection of closing-keyword links between pull requests and issues.

A pull request links an issue when its body contains exactly one
``<keyword> #<number>`` reference, where keyword is one of GitHub's closing
keywords (close, fixes, resolved, ...). Keyword and number must be whole
words, so "prefixes #4" and "fixes #4a" do not link while "(fixes #4)." does.
Bodies with several such references are treated as ambiguous and link
nothing.
"""

import re
from typing import Optional


CLOSING_KEYWORDS = (
    "close",
    "closes",
    "closed",
    "fix",
    "fixes",
    "fixed",
    "resolve",
    "resolves",
    "resolved",
)

LINKED_ISSUE_PATTERN = re.compile(
    r"\b(?:" + "|".join(CLOSING_KEYWORDS) + r") #(\d+)\b",
    re.IGNORECASE,
)


def find_linked_issue(text: Optional[str]) -> Optional[int]:
    """Return the issue number linked by a closing keyword in ``text``.

    Args:
        text: Free text, typically a pull request body.

    Returns:
        The referenced issue number when exactly one closing reference is
        present, otherwise None (no reference, or an ambiguous body).

    Example:
        >>> find_linked_issue("This PR fixes #42")
        42
        >>> find_linked_issue("Fixes #1 and resolves #2") is None
        True
    """
    if not text:
        return None

    matches = LINKED_ISSUE_PATTERN.findall(text)
    if len(matches) != 1:
        return None
    return int(matches[0])


def links_issue(text: Optional[str], issue_number: int) -> bool:
    """Check whether ``text`` unambiguously links ``issue_number``."""
    return find_linked_issue(text) == issue_number
