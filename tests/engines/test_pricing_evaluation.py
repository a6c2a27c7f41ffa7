"""
BizzyTrack — Pricing Rule Evaluation Tests
===========================================
Matching, adjustment arithmetic, ordering, approval and stats.
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from engines.pricing.evaluation import (
    PricingContext,
    PricingRule,
    RuleConditions,
    apply_adjustment,
    evaluate_pricing,
    js_day_of_week,
    parse_time_of_day,
    pricing_stats,
    rule_applies,
    summarise_approval,
)

BIZ = uuid.uuid4()
# Monday
MONDAY_NOON = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def make_rule(rule_id="r-1", **overrides):
    args = dict(
        rule_id=rule_id,
        business_id=BIZ,
        name=f"Rule {rule_id}",
        rule_type="quantity",
        adjustment_type="percentage",
        adjustment_value=Decimal("10"),
        target_entity="service",
    )
    args.update(overrides)
    return PricingRule(**args)


def ctx(**overrides):
    args = dict(base_price=10_000, at=MONDAY_NOON)
    args.update(overrides)
    return PricingContext(**args)


class TestRuleModel:
    def test_defaults(self):
        rule = make_rule()
        assert rule.priority == 50
        assert rule.is_active

    @pytest.mark.parametrize("field, value, message", [
        ("rule_type", "loyalty", "rule_type"),
        ("adjustment_type", "multiplier", "adjustment_type"),
        ("target_entity", "store", "target_entity"),
        ("priority", 101, "priority"),
        ("adjustment_value", Decimal("150"), "cannot exceed 100"),
    ])
    def test_invalid_rules(self, field, value, message):
        with pytest.raises(ValueError, match=message):
            make_rule(**{field: value})

    def test_validity_window_order(self):
        with pytest.raises(ValueError, match="valid_from"):
            make_rule(valid_from=date(2026, 5, 1), valid_until=date(2026, 4, 1))

    def test_conditions_validated(self):
        with pytest.raises(ValueError, match="min_quantity cannot exceed"):
            RuleConditions(min_quantity=10, max_quantity=2)
        with pytest.raises(ValueError, match="day_of_week"):
            RuleConditions(day_of_week=(7,))
        with pytest.raises(ValueError, match="HH:MM"):
            RuleConditions(time_of_day_start="noon")

    def test_payload_round_trip(self):
        rule = make_rule(
            conditions=RuleConditions(min_quantity=3, service_ids=("s-1",)),
            valid_from=date(2026, 1, 1),
        )
        data = rule.to_dict()
        data["business_id"] = BIZ
        assert PricingRule.from_payload(data) == rule


class TestContext:
    def test_base_price_positive_int(self):
        with pytest.raises(ValueError, match="positive"):
            ctx(base_price=0)
        with pytest.raises(TypeError, match="minor units"):
            ctx(base_price=99.5)

    def test_quantity_at_least_one(self):
        with pytest.raises(ValueError, match="quantity"):
            ctx(quantity=0)


class TestRuleApplies:
    def test_inactive_rule_never_applies(self):
        assert not rule_applies(make_rule(is_active=False), ctx())

    def test_validity_dates_inclusive(self):
        rule = make_rule(valid_from=date(2026, 3, 2), valid_until=date(2026, 3, 2))
        assert rule_applies(rule, ctx())
        assert not rule_applies(
            make_rule(valid_until=date(2026, 3, 1)), ctx(),
        )
        assert not rule_applies(
            make_rule(valid_from=date(2026, 3, 3)), ctx(),
        )

    def test_customer_category(self):
        rule = make_rule(
            rule_type="customer_category",
            conditions=RuleConditions(customer_category_id="vip"),
        )
        assert rule_applies(rule, ctx(customer_category_id="vip"))
        assert not rule_applies(rule, ctx(customer_category_id="walk-in"))

    def test_quantity_bounds_and_min_total(self):
        rule = make_rule(conditions=RuleConditions(
            min_quantity=3, max_quantity=10, min_total_amount=40_000,
        ))
        assert rule_applies(rule, ctx(quantity=5))
        assert not rule_applies(rule, ctx(quantity=2))
        assert not rule_applies(rule, ctx(quantity=11))
        # 3 × 10_000 is below the minimum total
        assert not rule_applies(rule, ctx(quantity=3))

    def test_day_of_week_sunday_is_zero(self):
        assert js_day_of_week(MONDAY_NOON) == 1
        assert js_day_of_week(datetime(2026, 3, 1, tzinfo=timezone.utc)) == 0

        rule = make_rule(rule_type="time_based",
                         conditions=RuleConditions(day_of_week=(1, 2)))
        assert rule_applies(rule, ctx())
        weekend = make_rule(rule_type="time_based",
                            conditions=RuleConditions(day_of_week=(0, 6)))
        assert not rule_applies(weekend, ctx())

    def test_time_window_inclusive(self):
        rule = make_rule(rule_type="time_based", conditions=RuleConditions(
            time_of_day_start="09:00", time_of_day_end="12:00",
        ))
        assert rule_applies(rule, ctx())
        assert not rule_applies(
            rule, ctx(at=datetime(2026, 3, 2, 12, 1, tzinfo=timezone.utc)),
        )

    def test_time_window_wraps_midnight(self):
        rule = make_rule(rule_type="time_based", conditions=RuleConditions(
            time_of_day_start="22:00", time_of_day_end="02:00",
        ))
        assert rule_applies(rule, ctx(at=datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc)))
        assert rule_applies(rule, ctx(at=datetime(2026, 3, 2, 1, 15, tzinfo=timezone.utc)))
        assert not rule_applies(rule, ctx())

    def test_bundle(self):
        rule = make_rule(rule_type="bundle", conditions=RuleConditions(
            package_id="pkg-1", service_ids=("s-1", "s-2"),
        ))
        assert rule_applies(rule, ctx(package_id="pkg-1", service_id="s-2"))
        assert not rule_applies(rule, ctx(package_id="pkg-1", service_id="s-9"))
        assert not rule_applies(rule, ctx(package_id="pkg-2", service_id="s-1"))

    def test_target_id_must_match(self):
        rule = make_rule(target_entity="customer", target_id="cust-1")
        assert rule_applies(rule, ctx(customer_id="cust-1"))
        assert not rule_applies(rule, ctx(customer_id="cust-2"))
        assert rule_applies(make_rule(target_entity="customer"), ctx())


class TestAdjustments:
    def test_percentage_rounds_half_up(self):
        rule = make_rule(adjustment_value=Decimal("12.5"))
        # 999 × 0.875 = 874.125
        assert apply_adjustment(rule, 999) == 874
        # 1001 × 0.875 = 875.875
        assert apply_adjustment(rule, 1001) == 876
        assert apply_adjustment(make_rule(adjustment_value=Decimal("50")), 3) == 2

    def test_fixed_clamped_at_zero(self):
        rule = make_rule(adjustment_type="fixed", adjustment_value=Decimal("2500"))
        assert apply_adjustment(rule, 10_000) == 7_500
        assert apply_adjustment(rule, 1_000) == 0

    def test_override(self):
        rule = make_rule(adjustment_type="override", adjustment_value=Decimal("4200"))
        assert apply_adjustment(rule, 10_000) == 4_200


class TestEvaluatePricing:
    def test_no_rules(self):
        evaluation = evaluate_pricing([], ctx(quantity=2))
        assert evaluation.final_price == 10_000
        assert evaluation.total_amount == 20_000
        assert evaluation.total_discount == 0
        assert evaluation.total_discount_percentage == Decimal("0.00")

    def test_rules_apply_cumulatively_by_priority(self):
        low = make_rule("r-low", priority=10, adjustment_type="fixed",
                        adjustment_value=Decimal("1000"))
        high = make_rule("r-high", priority=90, adjustment_value=Decimal("10"))
        evaluation = evaluate_pricing([low, high], ctx())

        assert [a.rule_id for a in evaluation.applied_rules] == ["r-high", "r-low"]
        assert evaluation.applied_rules[0].new_price == 9_000
        assert evaluation.applied_rules[1].price_before == 9_000
        assert evaluation.final_price == 8_000
        assert evaluation.total_discount_percentage == Decimal("20.00")

    def test_ties_broken_by_rule_id(self):
        b = make_rule("b", adjustment_type="override", adjustment_value=Decimal("500"))
        a = make_rule("a", adjustment_type="override", adjustment_value=Decimal("700"))
        evaluation = evaluate_pricing([b, a], ctx())
        assert [r.rule_id for r in evaluation.applied_rules] == ["a", "b"]
        assert evaluation.final_price == 500

    def test_deterministic(self):
        rules = [make_rule(f"r-{i}", priority=i + 1) for i in range(5)]
        first = evaluate_pricing(rules, ctx())
        second = evaluate_pricing(list(reversed(rules)), ctx())
        assert first == second

    def test_surcharge_keeps_percentage_at_zero(self):
        rule = make_rule(adjustment_type="override", adjustment_value=Decimal("12000"))
        evaluation = evaluate_pricing([rule], ctx())
        assert evaluation.total_discount == -2_000
        assert evaluation.total_discount_percentage == Decimal("0.00")
        assert evaluation.to_dict()["total_discount_percentage"] == "0.00"
        approval = summarise_approval(
            evaluation, user_discount_limit=Decimal("0"),
            approval_threshold=Decimal("20"),
        )
        assert not approval.requires_approval

    def test_to_dict(self):
        data = evaluate_pricing([make_rule()], ctx()).to_dict()
        assert data["final_price"] == 9_000
        assert data["applied_rules"][0]["adjustment_value"] == "10"


class TestApprovalAndStats:
    def test_within_limit(self):
        evaluation = evaluate_pricing([make_rule()], ctx())
        check = summarise_approval(evaluation, Decimal("15"), Decimal("25"))
        assert not check.requires_approval
        assert not check.exceeds_limit

    def test_above_user_limit(self):
        evaluation = evaluate_pricing([make_rule(adjustment_value=Decimal("30"))], ctx())
        check = summarise_approval(evaluation, Decimal("15"), Decimal("50"))
        assert check.requires_approval
        assert check.exceeds_limit

    def test_at_threshold(self):
        evaluation = evaluate_pricing([make_rule(adjustment_value=Decimal("20"))], ctx())
        check = summarise_approval(evaluation, Decimal("25"), Decimal("20"))
        assert check.requires_approval
        assert not check.exceeds_limit

    def test_zero_threshold_disables_threshold_check(self):
        evaluation = evaluate_pricing([make_rule(adjustment_value=Decimal("20"))], ctx())
        assert not summarise_approval(
            evaluation, Decimal("25"), Decimal("0"),
        ).requires_approval

    def test_stats(self):
        stats = pricing_stats([
            make_rule("a"),
            make_rule("b", is_active=False),
            make_rule("c", rule_type="bundle"),
        ])
        assert stats["total_rules"] == 3
        assert stats["active_rules"] == 2
        assert stats["inactive_rules"] == 1
        assert stats["by_type"]["quantity"] == {"total": 2, "active": 1}
        assert stats["by_type"]["time_based"] == {"total": 0, "active": 0}

    def test_parse_time_of_day(self):
        assert parse_time_of_day("9:05").minute == 5
