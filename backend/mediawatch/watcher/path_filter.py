"""
Path filter for candidate media items.

Decides whether a path is eligible for dispatch. Two layers:

1. Self-exclusion: anything under the system's own output root is rejected.
   Captured output is never ingested again. This check is not part of the
   configurable rule set and always runs first.
2. Configured rules: evaluated in order, first match wins. Paths matched by
   no rule fall back to the default action.

admit() is a pure function of the rule set and the path.
"""

import fnmatch
import os
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .models import FilterDecision, PathRule, RuleAction

_GLOB_CHARS = set("*?[")


def _normalize(path: Union[str, Path]) -> str:
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


def is_under(path: Union[str, Path], root: Union[str, Path]) -> bool:
    """True if `path` is `root` or lies below it, compared per path component."""
    path_str = _normalize(path)
    root_str = _normalize(root)
    if path_str == root_str:
        return True
    return path_str.startswith(root_str.rstrip(os.sep) + os.sep)


class PathFilter:
    """
    Inclusion/exclusion rules over filesystem paths.

    The rule set is fixed at construction; build a new filter to change it.
    """

    def __init__(
        self,
        output_root: Union[str, Path],
        rules: Sequence[PathRule] = (),
        default_action: RuleAction = RuleAction.INCLUDE,
    ):
        self.output_root = _normalize(output_root)
        self.rules = tuple(rules)
        self.default_action = default_action

    def is_own_file(self, path: Union[str, Path]) -> bool:
        return is_under(path, self.output_root)

    def admit(self, path: Union[str, Path]) -> FilterDecision:
        if self.is_own_file(path):
            return FilterDecision.REJECTED_OWN_FILE

        rule = self.match_rule(path)
        action = rule.action if rule else self.default_action
        if action is RuleAction.EXCLUDE:
            return FilterDecision.REJECTED_EXCLUDED
        return FilterDecision.ADMITTED

    def match_rule(self, path: Union[str, Path]) -> Optional[PathRule]:
        """First rule matching `path`, or None."""
        path_str = _normalize(path)
        for rule in self.rules:
            if self._rule_matches(rule, path_str):
                return rule
        return None

    def check_path(self, path: Union[str, Path]) -> Optional[List[Path]]:
        """
        Admit a path and collect its sidecar files.

        Returns:
            None if the path is rejected, otherwise the sidecar files the
            matching rule asks for (empty when it asks for none).
        """
        if not self.admit(path).admitted:
            return None

        rule = self.match_rule(path)
        if rule is None or not rule.sidecars:
            return []

        source = Path(_normalize(path))
        extras = set()
        for pattern in rule.sidecars:
            for candidate in source.parent.glob(pattern):
                if candidate != source and candidate.is_file():
                    extras.add(candidate)
        return sorted(extras)

    @staticmethod
    def _rule_matches(rule: PathRule, path_str: str) -> bool:
        if _GLOB_CHARS.intersection(rule.pattern):
            return fnmatch.fnmatchcase(path_str, os.path.expanduser(rule.pattern))
        return is_under(path_str, rule.pattern)
