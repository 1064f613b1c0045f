"""
Path rule matching.

Decides whether a changed file below a watched directory should trigger the
archive pipeline. Live events and rescans both go through ``check``.
"""

import fnmatch
import re
from pathlib import Path

from app.models.schemas import PathRule
from app.utils.helpers import contains_hidden, is_within, path_depth
from domains.release_watch.errors import RuleRejected


def match_name(rule: PathRule, name: str) -> bool:
    """
    Match a base name against the rule's glob patterns.

    Raises:
        re.error: If a pattern does not compile
    """
    for pattern in rule.patterns:
        if re.match(fnmatch.translate(pattern), name):
            return True
    return False


def check(rule: PathRule, path: Path) -> None:
    """
    Evaluate ``path`` against ``rule``.

    Checks run in order and stop at the first failure: hidden segments,
    depth bounds, then base name patterns.

    Args:
        rule: Rule of the watched directory containing ``path``
        path: Changed file path

    Raises:
        RuleRejected: If the path does not satisfy the rule
    """
    path = Path(path)
    if not is_within(path, rule.name):
        raise RuleRejected(f"not below {rule.name}: {path}")

    if rule.skip_hidden and contains_hidden(path, rule.name):
        raise RuleRejected(f"hidden parent dir or file: {path}")

    depth = path_depth(path, rule.name)
    if not rule.min_depth <= depth <= rule.max_depth:
        raise RuleRejected(
            f"incorrect depth: {path} depth={depth} min={rule.min_depth} max={rule.max_depth}"
        )

    if not match_name(rule, path.name):
        raise RuleRejected(f"no match found: {path}")


def matches(rule: PathRule, path: Path) -> bool:
    """Boolean form of ``check``."""
    try:
        check(rule, path)
    except RuleRejected:
        return False
    return True
