"""Quality rule resolution by specificity.

A quality rule overrides per-format quality for the files it targets. Rules
can target a basename glob, a directory, a pixel-size range, or any
combination. For each file every matching rule is applied on top of the
default quality map, least specific first, so that the most specific rule
has the final word on the formats it names while formats it leaves out keep
the values of broader rules.

Specificity weights:
    | Criterion  | Weight | Bonus                          |
    |------------|--------|--------------------------------|
    | pattern    | 4      | n / (n + 1), n literal chars   |
    | directory  | 2      | n / (n + 1), n path segments   |
    | size range | 1      | none                           |
    | combined   | 2 x number of criteria types present    |

Bonuses grow with n but stay below 1, so a longer literal always ranks
higher and any rule combining criteria outranks any single-criterion rule.
Equal scores are ordered by declaration, so the rule declared later wins.

Example:
    >>> from image_lite.core.config import QualityRule
    >>> from image_lite.core.quality_rules import QualityRuleResolutionEngine
    >>> engine = QualityRuleResolutionEngine([
    ...     QualityRule(pattern="*-hero.*", quality={"webp": 95}),
    ...     QualityRule(directory="thumbnails/", quality={"webp": 60}),
    ... ])
    >>> engine.resolve("products/shoe-hero.jpg", {"webp": 80, "avif": 80})
    {'webp': 95, 'avif': 80}
"""

from __future__ import annotations

import fnmatch
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from image_lite.core.config import QualityRule
from image_lite.core.types import ImageDimensions

logger = logging.getLogger(__name__)

PATTERN_WEIGHT = 4.0
DIRECTORY_WEIGHT = 2.0
SIZE_WEIGHT = 1.0
COMBINATION_WEIGHT = 2.0

_BRACE_GROUP = re.compile(r"\{([^{}]*,[^{}]*)\}")
_WILDCARD_CHARS = frozenset("*?")


def _bonus(units: int) -> float:
    """Bonus that increases with ``units`` and never reaches 1."""
    return units / (units + 1)


def normalize_path(path: str) -> str:
    """Normalize path separators to forward slashes."""
    return path.replace("\\", "/")


def expand_braces(pattern: str) -> list[str]:
    """Expand ``{a,b}`` alternatives in a glob pattern.

    Example:
        >>> expand_braces("*.{jpg,png}")
        ['*.jpg', '*.png']
    """
    match = _BRACE_GROUP.search(pattern)
    if match is None:
        return [pattern]

    head, tail = pattern[: match.start()], pattern[match.end() :]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(f"{head}{option}{tail}"))
    return expanded


class RuleMatcher:
    """Decides whether a rule applies to a file.

    Each clause is vacuously true when the rule does not set it.
    """

    @staticmethod
    def matches_pattern(rule: QualityRule, file_path: str) -> bool:
        """Match the rule's glob against the basename, ignoring case."""
        if rule.pattern is None:
            return True

        basename = normalize_path(file_path).rsplit("/", 1)[-1].lower()
        return any(
            fnmatch.fnmatchcase(basename, candidate.lower())
            for candidate in expand_braces(rule.pattern)
        )

    @staticmethod
    def matches_directory(rule: QualityRule, file_path: str) -> bool:
        """Match the rule's directory as a run of whole path segments.

        Both sides are normalized to forward slashes and the directory gets a
        trailing slash, so ``images/`` matches ``images/a.png`` and
        ``site/images/a.png`` but never ``images-backup/a.png``.
        """
        if rule.directory is None:
            return True

        directory = normalize_path(rule.directory).strip()
        while directory.startswith("./"):
            directory = directory[2:]
        directory = directory.strip("/")
        if not directory:
            return True

        candidate = "/" + normalize_path(file_path).lstrip("/")
        return f"/{directory}/" in candidate

    @staticmethod
    def matches_size(rule: QualityRule, dimensions: ImageDimensions | None) -> bool:
        """Check the rule's width/height bounds.

        A rule with bounds never matches a file of unknown size.
        """
        if not rule.has_size_bounds:
            return True
        if dimensions is None:
            return False

        if rule.min_width is not None and dimensions.width < rule.min_width:
            return False
        if rule.max_width is not None and dimensions.width > rule.max_width:
            return False
        if rule.min_height is not None and dimensions.height < rule.min_height:
            return False
        if rule.max_height is not None and dimensions.height > rule.max_height:
            return False
        return True

    @classmethod
    def matches(
        cls,
        rule: QualityRule,
        file_path: str,
        dimensions: ImageDimensions | None = None,
    ) -> bool:
        """Return True if every clause of the rule holds for the file."""
        return (
            cls.matches_pattern(rule, file_path)
            and cls.matches_directory(rule, file_path)
            and cls.matches_size(rule, dimensions)
        )


class SpecificityRanker:
    """Scores how narrowly a rule targets files."""

    @staticmethod
    def criteria_count(rule: QualityRule) -> int:
        """Number of distinct criterion types the rule uses."""
        return sum(
            (
                rule.pattern is not None,
                rule.directory is not None,
                rule.has_size_bounds,
            )
        )

    @classmethod
    def score(cls, rule: QualityRule) -> float:
        """Compute the specificity score of a rule.

        Args:
            rule: Rule to score.

        Returns:
            Score where higher means more specific.
        """
        score = 0.0

        if rule.pattern is not None:
            literals = sum(1 for ch in rule.pattern if ch not in _WILDCARD_CHARS)
            score += PATTERN_WEIGHT + _bonus(literals)

        if rule.directory is not None:
            segments = [part for part in normalize_path(rule.directory).split("/") if part not in ("", ".")]
            score += DIRECTORY_WEIGHT + _bonus(len(segments))

        if rule.has_size_bounds:
            score += SIZE_WEIGHT

        count = cls.criteria_count(rule)
        if count > 1:
            score += count * COMBINATION_WEIGHT

        return score


@dataclass
class RuleVerdict:
    """How one rule evaluated against one file.

    Attributes:
        index: Declaration index of the rule.
        rule: The rule itself.
        specificity: The rule's specificity score.
        pattern: Pattern clause result, None when the rule has no pattern.
        directory: Directory clause result, None when absent.
        size: Size clause result, None when the rule has no bounds.
    """

    index: int
    rule: QualityRule
    specificity: float
    pattern: bool | None = None
    directory: bool | None = None
    size: bool | None = None

    @property
    def matched(self) -> bool:
        """Whether every present clause held."""
        return all(clause is not False for clause in (self.pattern, self.directory, self.size))


@dataclass
class ResolutionExplanation:
    """Full trace of a quality resolution.

    Attributes:
        file_path: The file that was resolved.
        dimensions: Dimensions used for size clauses.
        verdicts: Per-rule evaluation in declaration order.
        applied: Declaration indexes of matching rules, in application order.
        resolved: The final quality map.
    """

    file_path: str
    dimensions: ImageDimensions | None
    verdicts: list[RuleVerdict] = field(default_factory=list)
    applied: list[int] = field(default_factory=list)
    resolved: dict[str, int] = field(default_factory=dict)


class QualityRuleResolutionEngine:
    """Merges default quality with every matching rule by specificity.

    Scores are computed once when the engine is built.

    Args:
        rules: Validated rules in declaration order.
    """

    def __init__(self, rules: Sequence[QualityRule] = ()) -> None:
        self._rules = list(rules)
        self._scores = [SpecificityRanker.score(rule) for rule in self._rules]

    @property
    def rules(self) -> list[QualityRule]:
        """Rules in declaration order."""
        return list(self._rules)

    @property
    def needs_dimensions(self) -> bool:
        """Whether any rule needs pixel dimensions to be evaluated."""
        return any(rule.has_size_bounds for rule in self._rules)

    def specificity(self, index: int) -> float:
        """Get the cached score of the rule at a declaration index."""
        return self._scores[index]

    def matching_rules(
        self,
        file_path: str,
        dimensions: ImageDimensions | None = None,
    ) -> list[int]:
        """Return indexes of matching rules, least specific first.

        Equal scores keep declaration order, so the later rule is applied last.
        """
        matched = [
            index
            for index, rule in enumerate(self._rules)
            if RuleMatcher.matches(rule, file_path, dimensions)
        ]
        return sorted(matched, key=lambda index: (self._scores[index], index))

    def resolve(
        self,
        file_path: str,
        defaults: Mapping[str, int],
        dimensions: ImageDimensions | None = None,
    ) -> dict[str, int]:
        """Resolve the quality map for a file.

        Args:
            file_path: Path relative to the input root.
            defaults: Default quality per format.
            dimensions: Pixel dimensions, if known.

        Returns:
            New quality map covering at least every key of ``defaults``.
        """
        resolved = dict(defaults)
        applied = self.matching_rules(file_path, dimensions)

        for index in applied:
            resolved.update(self._rules[index].quality)

        if applied:
            logger.debug(f"Quality for {file_path}: rules {applied} -> {resolved}")

        return resolved

    def explain(
        self,
        file_path: str,
        defaults: Mapping[str, int],
        dimensions: ImageDimensions | None = None,
    ) -> ResolutionExplanation:
        """Explain how the quality map for a file is derived.

        Args:
            file_path: Path relative to the input root.
            defaults: Default quality per format.
            dimensions: Pixel dimensions, if known.

        Returns:
            ResolutionExplanation with a verdict for every rule.
        """
        explanation = ResolutionExplanation(file_path=file_path, dimensions=dimensions)

        for index, rule in enumerate(self._rules):
            explanation.verdicts.append(
                RuleVerdict(
                    index=index,
                    rule=rule,
                    specificity=self._scores[index],
                    pattern=RuleMatcher.matches_pattern(rule, file_path)
                    if rule.pattern is not None
                    else None,
                    directory=RuleMatcher.matches_directory(rule, file_path)
                    if rule.directory is not None
                    else None,
                    size=RuleMatcher.matches_size(rule, dimensions)
                    if rule.has_size_bounds
                    else None,
                )
            )

        explanation.applied = self.matching_rules(file_path, dimensions)
        explanation.resolved = self.resolve(file_path, defaults, dimensions)
        return explanation


__all__ = [
    "QualityRuleResolutionEngine",
    "ResolutionExplanation",
    "RuleMatcher",
    "RuleVerdict",
    "SpecificityRanker",
    "expand_braces",
    "normalize_path",
]
