"""Unit tests for the single-rule deduction evaluator."""

from __future__ import annotations

from typing import Any

import pytest

from netpay.backend.app.models import FilerDetails
from netpay.backend.app.services.calculators import evaluate
from netpay.backend.config.rule_tables import load_country_rules
from netpay.backend.config.schema import Deductible, FilerPolicy

SINGLE = FilerDetails(age=30)


def build(**fields: Any) -> Deductible:
    fields.setdefault("name", "Rule")
    return Deductible.model_validate(fields)


def run(
    gross: float,
    deductible: Deductible,
    details: FilerDetails = SINGLE,
    accumulated: float = 0.0,
    **kwargs: Any,
) -> float:
    kwargs.setdefault("policies", ())
    return evaluate(gross, deductible, details, "TST", accumulated, **kwargs)


def test_percentage_applies_rate_to_gross() -> None:
    rule = build(kind="percentage", rate=0.1)

    assert run(50_000, rule) == pytest.approx(5_000)


def test_capped_base_limits_percentage_basis() -> None:
    rule = build(kind="percentage", rate=0.062, capped_base=168_600)

    assert run(500_000, rule) == pytest.approx(168_600 * 0.062)


def test_exempt_amount_is_subtracted_after_capping() -> None:
    rule = build(kind="percentage", rate=0.1, exempt_amount=10_000, capped_base=40_000)

    assert run(50_000, rule) == pytest.approx(3_000)
    assert run(5_000, rule) == 0.0


def test_progressive_brackets_are_sorted_before_accumulating() -> None:
    rule = build(
        kind="progressive",
        brackets=[{"threshold": 10_000, "rate": 0.2}, {"threshold": 0, "rate": 0.1}],
    )

    assert run(30_000, rule) == pytest.approx(10_000 * 0.1 + 20_000 * 0.2)


def test_income_below_lowest_threshold_is_untaxed() -> None:
    rule = build(kind="progressive", brackets=[{"threshold": 10_000, "rate": 0.2}])

    assert run(5_000, rule) == 0.0
    assert run(12_000, rule) == pytest.approx(400)


def test_bracket_boundary_is_continuous() -> None:
    rule = build(
        kind="progressive",
        brackets=[{"threshold": 0, "rate": 0.1}, {"threshold": 10_000, "rate": 0.3}],
    )
    epsilon = 0.01

    at_threshold = run(10_000, rule)
    above_threshold = run(10_000 + epsilon, rule)

    assert at_threshold == pytest.approx(1_000)
    assert above_threshold - at_threshold == pytest.approx(epsilon * 0.3)


@pytest.mark.parametrize(
    ("gross", "expected"),
    [(1_000, 36.0), (20, 20.0), (0, 0.0)],
)
def test_fixed_amount_never_exceeds_basis(gross: float, expected: float) -> None:
    rule = build(kind="fixed", amount=36)

    assert run(gross, rule) == pytest.approx(expected)


def test_fixed_credits_reduce_tax_and_floor_at_zero() -> None:
    rule = build(
        kind="progressive",
        fixed_credits=4_000,
        brackets=[{"threshold": 0, "rate": 0.2}],
    )

    assert run(30_000, rule) == pytest.approx(2_000)
    assert run(10_000, rule) == 0.0


def test_final_cap_limits_amount() -> None:
    rule = build(kind="percentage", rate=0.5, cap=900)

    assert run(10_000, rule) == 900


@pytest.mark.parametrize(
    ("age", "expected_rate"),
    [(30, 0.20), (55, 0.20), (56, 0.17), (60, 0.17), (61, 0.115), (None, 0.20)],
)
def test_age_bands_use_exclusive_lower_and_inclusive_upper_bounds(
    age: int | None, expected_rate: float
) -> None:
    rule = build(
        kind="percentage",
        rate=0.20,
        rates_by_age=[
            {"min_age": 0, "max_age": 55, "rate": 0.20},
            {"min_age": 55, "max_age": 60, "rate": 0.17},
            {"min_age": 60, "max_age": 65, "rate": 0.115},
        ],
    )

    assert run(10_000, rule, FilerDetails(age=age)) == pytest.approx(
        10_000 * expected_rate
    )


def test_age_outside_every_band_falls_back_to_default_rate() -> None:
    rule = build(
        kind="percentage",
        rate=0.05,
        rates_by_age=[{"min_age": 0, "max_age": 55, "rate": 0.20}],
    )

    assert run(10_000, rule, FilerDetails(age=80)) == pytest.approx(500)


def test_church_tax_requires_opt_in() -> None:
    rule = build(name="Church Tax", kind="percentage", rate=0.09, is_church_tax=True)

    assert run(80_000, rule, FilerDetails(church_tax=False), accumulated=10_000) == 0.0
    assert run(
        80_000, rule, FilerDetails(church_tax=True), accumulated=10_000
    ) == pytest.approx(900)


def test_dependent_tax_ignores_income() -> None:
    rule = build(kind="percentage", category="dependent_tax", rate=0.04)

    assert run(1_000_000, rule, accumulated=0.0) == 0.0
    assert run(1_000_000, rule, accumulated=50_000) == pytest.approx(2_000)


def test_surcharge_threshold_exempts_small_liabilities() -> None:
    rule = build(
        kind="percentage",
        category="dependent_tax",
        rate=0.055,
        surcharge_threshold=18_130,
    )

    assert run(60_000, rule, accumulated=18_000) == 0.0
    assert run(90_000, rule, accumulated=20_000) == pytest.approx(1_100)


def test_surcharge_phases_in_above_threshold() -> None:
    rule = build(
        kind="percentage",
        category="dependent_tax",
        rate=0.055,
        surcharge_threshold=18_130,
        surcharge_phase_in_rate=0.119,
    )

    assert run(0, rule, accumulated=18_130) == 0.0
    assert run(0, rule, accumulated=20_000) == pytest.approx(1_870 * 0.119)
    assert run(0, rule, accumulated=40_000) == pytest.approx(40_000 * 0.055)


def test_taper_withdraws_exemption_above_threshold() -> None:
    rule = build(
        kind="progressive",
        exempt_amount=12_570,
        taper={"threshold": 100_000, "rate": 0.5},
        brackets=[{"threshold": 0, "rate": 0.2}],
    )

    assert run(90_000, rule) == pytest.approx((90_000 - 12_570) * 0.2)
    assert run(110_000, rule) == pytest.approx((110_000 - 7_570) * 0.2)
    assert run(130_000, rule) == pytest.approx(130_000 * 0.2)


def test_credit_rule_phases_out_base_credit() -> None:
    rule = build(
        kind="credit_progressive",
        exempt_amount=3_055,
        brackets=[
            {"threshold": 0, "rate": 0.0},
            {"threshold": 28_406, "rate": 0.0668},
        ],
    )

    assert run(20_000, rule) == pytest.approx(3_055)
    assert run(40_000, rule) == pytest.approx(3_055 - (40_000 - 28_406) * 0.0668)
    assert run(200_000, rule) == 0.0
    assert run(0, rule) == 0.0


def test_credit_rule_builds_up_with_negative_rates() -> None:
    rule = build(
        kind="credit_progressive",
        exempt_amount=0,
        cap=3_500,
        brackets=[{"threshold": 0, "rate": -0.10}],
    )

    assert run(20_000, rule) == pytest.approx(2_000)
    assert run(100_000, rule) == 3_500


@pytest.mark.parametrize(
    "rule",
    [
        build(kind="percentage", rate=0.1),
        build(kind="fixed", amount=100),
        build(kind="progressive", brackets=[{"threshold": 0, "rate": 0.2}]),
        build(
            kind="credit_progressive",
            exempt_amount=500,
            brackets=[{"threshold": 0, "rate": 0.0}],
        ),
    ],
    ids=["percentage", "fixed", "progressive", "credit"],
)
@pytest.mark.parametrize("gross", [0, -25_000])
def test_non_positive_income_yields_zero(rule: Deductible, gross: float) -> None:
    assert run(gross, rule) == 0.0


def test_taxable_income_basis_is_used_when_requested() -> None:
    rule = build(kind="percentage", rate=0.1, use_taxable_income=True)

    assert run(50_000, rule, taxable_income=40_000) == pytest.approx(4_000)
    assert run(50_000, rule) == pytest.approx(5_000)


def test_income_splitting_policy_halves_then_doubles() -> None:
    rule = build(
        kind="progressive",
        category="primary_income_tax",
        brackets=[{"threshold": 0, "rate": 0.1}, {"threshold": 10_000, "rate": 0.3}],
    )
    policies = (
        FilerPolicy(
            category="primary_income_tax", filer_state="married", income_splitting=True
        ),
    )

    single = run(40_000, rule, FilerDetails(), policies=policies)
    married = run(
        40_000, rule, FilerDetails(marital_status="married"), policies=policies
    )

    assert single == pytest.approx(1_000 + 30_000 * 0.3)
    assert married == pytest.approx(2 * (1_000 + 10_000 * 0.3))


def test_waived_policy_returns_zero() -> None:
    rule = build(kind="percentage", category="social_contribution", rate=0.0975)
    policies = (
        FilerPolicy(category="social_contribution", filer_state="expat", waived=True),
    )

    assert run(100_000, rule, FilerDetails(is_expat=True), policies=policies) == 0.0
    assert run(100_000, rule, FilerDetails(), policies=policies) == pytest.approx(9_750)


def test_basis_factor_scales_income() -> None:
    rule = build(kind="percentage", category="primary_income_tax", rate=0.1)
    policies = (
        FilerPolicy(
            category="primary_income_tax", filer_state="expat", basis_factor=0.7
        ),
    )

    expat = FilerDetails(is_expat=True)

    assert run(100_000, rule, expat, policies=policies) == pytest.approx(7_000)


def test_substituted_brackets_and_credits_from_shipped_tables() -> None:
    rules = load_country_rules("IRL")
    paye = rules.federal_deductibles[0]

    single = evaluate(60_000, paye, FilerDetails(), "IRL")
    married = evaluate(60_000, paye, FilerDetails(marital_status="married"), "IRL")

    assert single == pytest.approx(44_000 * 0.2 + 16_000 * 0.4 - 4_000)
    assert married == pytest.approx(53_000 * 0.2 + 7_000 * 0.4 - 6_000)
