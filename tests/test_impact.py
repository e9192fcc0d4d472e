"""
Tests for the environmental impact service.

Covers:
- Quality multiplier bonuses and the 1.5 cap
- Carbon estimate and category thresholds
- Sustainability score: base table, location, scale cap, clamping, rounding
- Five-dimension impact assessment
- Second-pass activity validation (strict > 70)
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.services.impact import (
    ActivityDescriptor,
    assess_activity_quality,
    assess_environmental_impact,
    calculate_carbon_footprint,
    calculate_sustainability_score,
    categorize_carbon_impact,
    round_half_up,
    validate_activity,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(42.5) == 43
        assert round_half_up(47.5) == 48

    def test_places(self):
        assert round_half_up(0.12345, 4) == pytest.approx(0.1235)


class TestActivityQuality:
    def test_no_evidence_is_neutral(self):
        assert assess_activity_quality(ActivityDescriptor("tree-planting")) == 1.0

    def test_bonuses_add_up(self):
        activity = ActivityDescriptor(
            "tree-planting", before_after_photos=True, measurable_outcomes=True,
        )
        assert assess_activity_quality(activity) == pytest.approx(1.4)

    def test_capped_at_one_and_a_half(self):
        activity = ActivityDescriptor(
            "tree-planting",
            documentation=("receipt.pdf",),
            before_after_photos=True,
            community_involvement=True,
            measurable_outcomes=True,
        )
        assert assess_activity_quality(activity) == 1.5


class TestCarbonFootprint:
    def test_tree_planting_scales_linearly(self):
        result = calculate_carbon_footprint(ActivityDescriptor("tree-planting", scale=2))
        assert result.carbon_impact == pytest.approx(-43.54)
        assert result.impact_category == "high_positive_impact"

    def test_unknown_type_has_no_impact(self):
        result = calculate_carbon_footprint(ActivityDescriptor("skydiving"))
        assert result.carbon_impact == 0
        assert result.impact_category == "low_positive_impact"

    def test_small_recycling_is_low_impact(self):
        result = calculate_carbon_footprint(ActivityDescriptor("recycling", scale=4))
        assert result.carbon_impact == pytest.approx(-2.0)
        assert result.impact_category == "low_positive_impact"

    @pytest.mark.parametrize("impact,category", [
        (1.0, "negative_impact"),
        (0.0, "low_positive_impact"),
        (-5.0, "medium_positive_impact"),
        (-14.9, "medium_positive_impact"),
        (-15.0, "high_positive_impact"),
    ])
    def test_category_thresholds(self, impact, category):
        assert categorize_carbon_impact(impact) == category


class TestSustainabilityScore:
    def test_tree_planting_baseline(self):
        result = calculate_sustainability_score(
            ActivityDescriptor("tree-planting", scale=1, location="urban")
        )
        assert result.score == 95
        assert result.breakdown.base_score == 95
        assert result.breakdown.location_multiplier == 1.0
        assert result.breakdown.scale_multiplier == 1

    def test_unknown_type_uses_default_base(self):
        assert calculate_sustainability_score(ActivityDescriptor("skydiving")).score == 50

    def test_clamped_to_100(self):
        result = calculate_sustainability_score(
            ActivityDescriptor("tree-planting", before_after_photos=True, measurable_outcomes=True)
        )
        assert result.score == 100

    def test_scale_multiplier_capped_at_two(self):
        result = calculate_sustainability_score(ActivityDescriptor("sustainable-transport", scale=5))
        assert result.breakdown.scale_multiplier == 2.0
        assert result.score == 100

    def test_half_point_rounds_up(self):
        result = calculate_sustainability_score(ActivityDescriptor("recycling", scale=0.5))
        assert result.score == 43

    def test_location_boost(self):
        urban = calculate_sustainability_score(ActivityDescriptor("sustainable-transport", location="urban"))
        protected = calculate_sustainability_score(
            ActivityDescriptor("sustainable-transport", location="protected_area")
        )
        assert protected.score > urban.score

    def test_score_always_in_range(self):
        for scale in (0.01, 0.5, 1, 2, 50):
            score = calculate_sustainability_score(ActivityDescriptor("composting", scale=scale)).score
            assert 0 <= score <= 100


class TestEnvironmentalImpact:
    def test_tree_planting_dimensions(self):
        result = assess_environmental_impact(ActivityDescriptor("tree-planting"))
        assert result.overall_score == pytest.approx(73.5)
        assert result.impact_level == "good"
        assert result.sustainability_rating == "B+"
        assert set(result.detailed_scores) == {
            "air_quality", "water_quality", "soil_health", "biodiversity", "waste_reduction",
        }

    def test_action_plan_targets_weak_dimensions(self):
        result = assess_environmental_impact(ActivityDescriptor("tree-planting"))
        assert result.action_plan == [
            "Improve water_quality through targeted actions",
            "Improve waste_reduction through targeted actions",
        ]

    def test_dimension_scores_capped(self):
        result = assess_environmental_impact(
            ActivityDescriptor("wildlife-conservation", before_after_photos=True)
        )
        assert max(result.detailed_scores.values()) == 100.0


class TestValidateActivity:
    def _validate(self, **overrides):
        kwargs = dict(
            relevance_score=0.85,
            authenticity_score=1.0,
            has_gps=True,
            timestamp=NOW - timedelta(hours=1),
            impact_potential=95,
            as_of=NOW,
        )
        kwargs.update(overrides)
        return validate_activity(**kwargs)

    def test_strong_activity_is_valid(self):
        result = self._validate()
        assert result.is_valid is True
        assert result.confidence == pytest.approx(96.0)
        assert result.fraud_risk == "low"

    def test_exactly_seventy_is_not_valid(self):
        result = self._validate(
            relevance_score=0.7, authenticity_score=0.7, timestamp=None, impact_potential=50,
        )
        assert result.confidence == pytest.approx(70.0)
        assert result.is_valid is False
        assert result.fraud_risk == "high"

    def test_future_timestamp_penalised(self):
        result = self._validate(timestamp=NOW + timedelta(hours=1))
        assert result.breakdown["time_consistency"] == 20.0

    def test_naive_timestamp_treated_as_utc(self):
        result = self._validate(timestamp=datetime(2026, 1, 15, 11, 0))
        assert result.breakdown["time_consistency"] == 100.0

    def test_missing_gps_recommends_location(self):
        result = self._validate(has_gps=False)
        assert result.breakdown["location_consistency"] == 60.0
        assert any("location" in r for r in result.recommendations)
