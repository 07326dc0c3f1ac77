"""Exclusion predicates applied to commits and issues/PRs."""

import re
from typing import Callable, Iterable, List, Optional, Set

from releaselog.extraction.git_reader import CommitInfo
from releaselog.models.config import ChangelogConfig

StringPredicate = Callable[[str], bool]


class ExclusionRules:
    """Registry of path, branch and label exclusions.

    Path and branch families accept both regular expressions and arbitrary
    predicates. Labels are matched exactly. Every check is a pure function of
    its input, so evaluating the same record twice gives the same answer.
    """

    def __init__(self) -> None:
        self._path_filters: List[StringPredicate] = []
        self._branch_filters: List[StringPredicate] = []
        self._labels: Set[str] = set()

    @classmethod
    def from_config(cls, config: ChangelogConfig) -> "ExclusionRules":
        """Build rules from the exclusion lists of a changelog config.

        Raises:
            re.error: If a configured pattern is not a valid regex
        """
        rules = cls()
        for regex in config.commit_path_regex_exclusions:
            rules.add_path_regex(regex)
        for regex in config.branch_regex_exclusions:
            rules.add_branch_regex(regex)
        for label in config.label_exclusions:
            rules.add_label(label)
        return rules

    @property
    def labels(self) -> Set[str]:
        return set(self._labels)

    def add_path_filter(self, predicate: StringPredicate) -> None:
        self._path_filters.append(predicate)

    def add_path_regex(self, regex: str) -> None:
        """Exclude paths that match ``regex`` entirely."""
        pattern = re.compile(regex)
        self.add_path_filter(lambda path: pattern.fullmatch(path) is not None)

    def add_branch_filter(self, predicate: StringPredicate) -> None:
        self._branch_filters.append(predicate)

    def add_branch_regex(self, regex: str) -> None:
        """Exclude branches whose full ref name matches ``regex`` entirely."""
        pattern = re.compile(regex)
        self.add_branch_filter(lambda branch: pattern.fullmatch(branch) is not None)

    def add_label(self, label: str) -> None:
        self._labels.add(label)

    def is_excluded_path(self, path: str) -> bool:
        return any(predicate(path) for predicate in self._path_filters)

    def filter_paths(self, paths: Iterable[str]) -> Set[str]:
        """Paths left over once every excluded one is removed."""
        return {path for path in paths if not self.is_excluded_path(path)}

    def is_excluded_branch(self, branch: str) -> bool:
        return any(predicate(branch) for predicate in self._branch_filters)

    def excludes_any_branch(self, branches: Iterable[str]) -> bool:
        return any(self.is_excluded_branch(branch) for branch in branches)

    def excluded_labels_in(self, labels: Optional[Iterable[str]]) -> Set[str]:
        """The subset of ``labels`` that is excluded."""
        if not labels:
            return set()
        return {label for label in labels if label in self._labels}

    @staticmethod
    def is_merge(commit: CommitInfo) -> bool:
        return commit.is_merge
