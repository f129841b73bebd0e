"""Unit tests for quality rule resolution."""

from __future__ import annotations

import pytest

from image_lite.core.config import QualityRule
from image_lite.core.quality_rules import (
    QualityRuleResolutionEngine,
    RuleMatcher,
    SpecificityRanker,
    expand_braces,
    normalize_path,
)
from image_lite.core.types import ImageDimensions

DEFAULTS = {"webp": 80, "avif": 80, "jpeg": 80}


class TestHelpers:
    """Tests for path and pattern helpers."""

    def test_normalize_path_converts_backslashes(self) -> None:
        """Test that Windows separators become forward slashes."""
        assert normalize_path("products\\shoes\\a.jpg") == "products/shoes/a.jpg"

    def test_expand_braces_without_group(self) -> None:
        """Test that a plain pattern is returned unchanged."""
        assert expand_braces("*.jpg") == ["*.jpg"]

    def test_expand_braces_single_group(self) -> None:
        """Test expansion of one alternative group."""
        assert expand_braces("*.{jpg,png}") == ["*.jpg", "*.png"]

    def test_expand_braces_nested_groups(self) -> None:
        """Test expansion of multiple groups."""
        assert sorted(expand_braces("{a,b}-{x,y}.png")) == [
            "a-x.png",
            "a-y.png",
            "b-x.png",
            "b-y.png",
        ]


class TestRuleMatcherPattern:
    """Tests for basename glob matching."""

    def test_pattern_matches_basename(self) -> None:
        """Test that the glob is applied to the basename."""
        rule = QualityRule(pattern="*-hero.*", quality={"webp": 95})
        assert RuleMatcher.matches_pattern(rule, "products/shoe-hero.jpg")

    def test_pattern_is_case_insensitive(self) -> None:
        """Test that pattern matching ignores case."""
        rule = QualityRule(pattern="*.JPG", quality={"webp": 95})
        assert RuleMatcher.matches_pattern(rule, "a/Photo.jpg")

    def test_pattern_ignores_directories(self) -> None:
        """Test that directory names never satisfy a pattern."""
        rule = QualityRule(pattern="hero*", quality={"webp": 95})
        assert not RuleMatcher.matches_pattern(rule, "hero/banner.jpg")

    def test_pattern_with_braces(self) -> None:
        """Test brace alternatives in patterns."""
        rule = QualityRule(pattern="*.{png,gif}", quality={"webp": 95})
        assert RuleMatcher.matches_pattern(rule, "icons/logo.png")
        assert not RuleMatcher.matches_pattern(rule, "icons/logo.jpg")


class TestRuleMatcherDirectory:
    """Tests for directory segment matching."""

    @pytest.mark.parametrize(
        "directory,path,expected",
        [
            ("images/", "images/a.png", True),
            ("images", "images/a.png", True),
            ("images/", "site/images/a.png", True),
            ("images/", "images-backup/a.png", False),
            ("images/", "myimages/a.png", False),
            ("products/", "my-products/x.png", False),
            ("products/shoes", "products/shoes/red/a.jpg", True),
            ("products/shoes", "products/a.jpg", False),
            ("./images/", "images/a.png", True),
        ],
    )
    def test_directory_segments(self, directory: str, path: str, expected: bool) -> None:
        """Test directory matching on whole segments."""
        rule = QualityRule(directory=directory, quality={"webp": 60})
        assert RuleMatcher.matches_directory(rule, path) is expected

    def test_directory_normalizes_backslashes(self) -> None:
        """Test that both sides are normalized before matching."""
        rule = QualityRule(directory="products\\shoes", quality={"webp": 60})
        assert RuleMatcher.matches_directory(rule, "products\\shoes\\a.jpg")


class TestRuleMatcherSize:
    """Tests for size range matching."""

    def test_size_rule_without_dimensions_does_not_match(self) -> None:
        """Test that unknown size fails a size-bounded rule."""
        rule = QualityRule(min_width=1000, quality={"webp": 70})
        assert not RuleMatcher.matches_size(rule, None)

    def test_size_bounds_inclusive(self) -> None:
        """Test that bounds are inclusive."""
        rule = QualityRule(min_width=100, max_width=200, quality={"webp": 70})
        assert RuleMatcher.matches_size(rule, ImageDimensions(100, 10))
        assert RuleMatcher.matches_size(rule, ImageDimensions(200, 10))
        assert not RuleMatcher.matches_size(rule, ImageDimensions(201, 10))

    def test_height_bounds(self) -> None:
        """Test min and max height."""
        rule = QualityRule(min_height=50, max_height=60, quality={"webp": 70})
        assert RuleMatcher.matches_size(rule, ImageDimensions(10, 55))
        assert not RuleMatcher.matches_size(rule, ImageDimensions(10, 49))
        assert not RuleMatcher.matches_size(rule, ImageDimensions(10, 61))

    def test_rule_without_bounds_matches_any_size(self) -> None:
        """Test that the size clause is vacuous when absent."""
        rule = QualityRule(pattern="*", quality={"webp": 70})
        assert RuleMatcher.matches_size(rule, None)

    def test_matches_requires_every_clause(self) -> None:
        """Test conjunction of pattern, directory and size."""
        rule = QualityRule(
            pattern="*.png", directory="icons", max_width=64, quality={"webp": 70}
        )
        assert RuleMatcher.matches(rule, "icons/a.png", ImageDimensions(32, 32))
        assert not RuleMatcher.matches(rule, "icons/a.png", ImageDimensions(128, 32))
        assert not RuleMatcher.matches(rule, "logos/a.png", ImageDimensions(32, 32))
        assert not RuleMatcher.matches(rule, "icons/a.jpg", ImageDimensions(32, 32))


class TestSpecificityRanker:
    """Tests for specificity scoring."""

    def test_pattern_score(self) -> None:
        """Test pattern weight plus literal character bonus."""
        rule = QualityRule(pattern="*.png", quality={"webp": 70})
        assert SpecificityRanker.score(rule) == pytest.approx(4 + 4 / 5)

    def test_longer_literal_pattern_scores_higher(self) -> None:
        """Test that the bonus keeps growing with long literal patterns."""
        exact = QualityRule(pattern="product-hero.jpg", quality={"webp": 95})
        suffix = QualityRule(pattern="*-hero.jpg", quality={"webp": 60})
        assert SpecificityRanker.score(exact) > SpecificityRanker.score(suffix)
        assert SpecificityRanker.score(exact) < 5

    def test_longer_literal_pattern_wins_regardless_of_order(self) -> None:
        """Test that an exact name beats a broader pattern declared after it."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(pattern="product-hero.jpg", quality={"webp": 95}),
                QualityRule(pattern="*-hero.jpg", quality={"webp": 60}),
            ]
        )
        assert engine.resolve("product-hero.jpg", {"webp": 80}) == {"webp": 95}
        assert engine.matching_rules("product-hero.jpg") == [1, 0]

    def test_directory_score(self) -> None:
        """Test directory weight plus depth bonus."""
        rule = QualityRule(directory="products/shoes/", quality={"webp": 70})
        assert SpecificityRanker.score(rule) == pytest.approx(2 + 2 / 3)

    def test_deeper_directory_scores_higher(self) -> None:
        """Test that the depth bonus keeps growing with deep directories."""
        shallow = QualityRule(directory="a/b/c/d/e/f/g/h/i", quality={"webp": 70})
        deep = QualityRule(directory="a/b/c/d/e/f/g/h/i/j", quality={"webp": 70})
        assert SpecificityRanker.score(deep) > SpecificityRanker.score(shallow)
        assert SpecificityRanker.score(deep) < 3

    def test_size_score(self) -> None:
        """Test the size weight."""
        rule = QualityRule(min_width=10, quality={"webp": 70})
        assert SpecificityRanker.score(rule) == pytest.approx(1.0)

    def test_combination_bonus(self) -> None:
        """Test that combined criteria add two per criterion type."""
        rule = QualityRule(pattern="*.png", directory="icons", quality={"webp": 70})
        assert SpecificityRanker.criteria_count(rule) == 2
        assert SpecificityRanker.score(rule) == pytest.approx(4.8 + 2.5 + 4.0)

    def test_combined_rule_outranks_any_single_rule(self) -> None:
        """Test that pattern plus directory beats the strongest pure pattern."""
        combined = QualityRule(pattern="*", directory="a", quality={"webp": 70})
        strongest_pattern = QualityRule(pattern="x" * 40, quality={"webp": 70})
        assert SpecificityRanker.score(combined) > SpecificityRanker.score(strongest_pattern)


class TestQualityRuleResolutionEngine:
    """Tests for QualityRuleResolutionEngine."""

    def test_no_rules_returns_defaults(self) -> None:
        """Test that defaults pass through unchanged."""
        engine = QualityRuleResolutionEngine()
        resolved = engine.resolve("a.jpg", DEFAULTS)
        assert resolved == DEFAULTS
        assert resolved is not DEFAULTS

    def test_more_specific_rule_wins(self) -> None:
        """Test that the most specific rule has the final word."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(pattern="*-hero.*", quality={"webp": 95}),
                QualityRule(directory="products/", quality={"webp": 60}),
            ]
        )
        assert engine.resolve("products/shoe-hero.jpg", DEFAULTS)["webp"] == 95

    def test_non_overlapping_keys_survive(self) -> None:
        """Test that keys not named by a stronger rule keep earlier values."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(directory="products/", quality={"webp": 60, "avif": 50}),
                QualityRule(pattern="*.png", quality={"webp": 90}),
            ]
        )
        resolved = engine.resolve("products/logo.png", DEFAULTS)
        assert resolved == {"webp": 90, "avif": 50, "jpeg": 80}

    def test_combined_rule_beats_pattern_and_directory_rules(self) -> None:
        """Test that a pattern plus directory rule wins and broader keys survive."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(pattern="*-hero.*", quality={"webp": 90}),
                QualityRule(directory="products/", quality={"webp": 70, "avif": 60}),
                QualityRule(pattern="*-hero.*", directory="products/", quality={"webp": 95}),
            ]
        )

        resolved = engine.resolve("products/shoe-hero.jpg", {"webp": 80})

        assert resolved == {"webp": 95, "avif": 60}
        assert engine.matching_rules("products/shoe-hero.jpg") == [1, 0, 2]

    def test_equal_specificity_later_rule_wins(self) -> None:
        """Test the declaration-order tie break."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(pattern="*.jpg", quality={"webp": 70}),
                QualityRule(pattern="abc*.*", quality={"webp": 90}),
            ]
        )
        assert engine.specificity(0) == engine.specificity(1)
        assert engine.resolve("abc.jpg", DEFAULTS)["webp"] == 90
        assert engine.matching_rules("abc.jpg") == [0, 1]

    def test_size_rule_skipped_without_dimensions(self) -> None:
        """Test that size rules need dimensions."""
        engine = QualityRuleResolutionEngine(
            [QualityRule(min_width=1000, quality={"webp": 50})]
        )
        assert engine.needs_dimensions
        assert engine.resolve("big.jpg", DEFAULTS)["webp"] == 80
        assert engine.resolve("big.jpg", DEFAULTS, ImageDimensions(2000, 1000))["webp"] == 50

    def test_resolve_adds_keys_beyond_defaults(self) -> None:
        """Test that rule keys absent from defaults are added."""
        engine = QualityRuleResolutionEngine(
            [QualityRule(pattern="*", quality={"thumbnail": 40})]
        )
        resolved = engine.resolve("a.jpg", DEFAULTS)
        assert resolved["thumbnail"] == 40
        assert set(DEFAULTS) <= set(resolved)

    def test_explain_reports_every_rule(self) -> None:
        """Test that explain carries a verdict per rule and the result."""
        engine = QualityRuleResolutionEngine(
            [
                QualityRule(pattern="*.png", quality={"webp": 90}),
                QualityRule(directory="icons", max_width=64, quality={"webp": 40}),
            ]
        )
        explanation = engine.explain("icons/a.png", DEFAULTS, ImageDimensions(128, 128))

        assert len(explanation.verdicts) == 2
        first, second = explanation.verdicts
        assert first.pattern is True
        assert first.directory is None
        assert first.matched
        assert second.directory is True
        assert second.size is False
        assert not second.matched
        assert explanation.applied == [0]
        assert explanation.resolved["webp"] == 90
