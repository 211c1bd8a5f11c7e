"""Aggregate every applicable rule into a net pay result."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from netpay.backend.app.models import CalculationResult, DeductionResult, UserInputs
from netpay.backend.config.rule_tables import load_country_rules, normalise_code
from netpay.backend.config.schema import (
    CountryRules,
    Deductible,
    RuleCategory,
    SubNationalRule,
    UnknownJurisdictionError,
)

from .deductions import evaluate

_LOGGER = logging.getLogger(__name__)

MARGINAL_PROBE = 100.0


@dataclass
class _RunningTotals:
    """State threaded through the ordered rule evaluation."""

    taxable_income: float
    accumulated_income_tax: float = 0.0
    credits_applied: float = 0.0
    breakdown: list[DeductionResult] = field(default_factory=list)

    @property
    def credit_room(self) -> float:
        return max(0.0, self.accumulated_income_tax - self.credits_applied)


def resolve_country(
    code: str, rule_table: Mapping[str, CountryRules] | None = None
) -> CountryRules:
    """Return the rules for ``code`` from ``rule_table`` or the shipped tables."""

    if rule_table is None:
        return load_country_rules(code)
    normalised = normalise_code(code)
    try:
        return rule_table[normalised]
    except KeyError as exc:
        raise UnknownJurisdictionError(normalised) from exc


def _resolve_region(country: CountryRules, region_id: str | None) -> SubNationalRule | None:
    region = country.get_region(region_id)
    if region is None and region_id:
        _LOGGER.debug(
            "Sub-region %s not configured for %s; applying national rules only",
            region_id,
            country.code,
        )
    return region


def _apply_rule(
    totals: _RunningTotals,
    deductible: Deductible,
    amount: float,
    *,
    display_name: str,
    feeds_income_tax: bool,
) -> None:
    if deductible.is_credit:
        applied = min(amount, totals.credit_room)
        totals.credits_applied += applied
        if applied > 0:
            totals.breakdown.append(
                DeductionResult(
                    name=display_name,
                    amount=-applied,
                    description=deductible.description,
                )
            )
        return

    if feeds_income_tax and deductible.category is RuleCategory.PRIMARY_INCOME_TAX:
        totals.accumulated_income_tax += amount

    if deductible.reduces_taxable_income:
        totals.taxable_income = max(0.0, totals.taxable_income - amount)

    if deductible.is_relief or amount <= 0:
        return

    totals.breakdown.append(
        DeductionResult(
            name=display_name,
            amount=amount,
            description=deductible.description,
            is_employer=deductible.employer_paid,
        )
    )


def _evaluate_rules(
    gross_annual: float, inputs: UserInputs, country: CountryRules
) -> _RunningTotals:
    region = _resolve_region(country, inputs.sub_region)
    replaced = set(region.replaces) if region is not None else set()
    totals = _RunningTotals(taxable_income=gross_annual)

    def _run(deductible: Deductible, display_name: str, feeds: bool) -> None:
        amount = evaluate(
            gross_annual,
            deductible,
            inputs.details,
            country.code,
            totals.accumulated_income_tax,
            taxable_income=totals.taxable_income,
            policies=country.policies,
        )
        _apply_rule(
            totals,
            deductible,
            amount,
            display_name=display_name,
            feeds_income_tax=feeds,
        )

    for deductible in country.federal_deductibles:
        if deductible.id in replaced:
            continue
        _run(deductible, deductible.name, True)

    if region is not None:
        for deductible in region.deductibles:
            _run(deductible, f"{region.name} - {deductible.name}", False)

    return totals


def _employee_total(breakdown: list[DeductionResult]) -> float:
    return max(0.0, sum(entry.amount for entry in breakdown if not entry.is_employer))


def net_annual_for_gross(
    gross_annual: float,
    inputs: UserInputs,
    rule_table: Mapping[str, CountryRules] | None = None,
) -> float:
    """Return annual net pay at ``gross_annual`` for the filer in ``inputs``."""

    country = resolve_country(inputs.country, rule_table)
    gross = max(0.0, gross_annual)
    totals = _evaluate_rules(gross, inputs, country)
    return gross - _employee_total(totals.breakdown)


def calculate_net_pay(
    inputs: UserInputs,
    rule_table: Mapping[str, CountryRules] | None = None,
) -> CalculationResult:
    """Compute the full gross-to-net result for ``inputs``.

    Raises :class:`UnknownJurisdictionError` when the country is not
    configured. An unknown sub-region falls back to national rules.
    """

    country = resolve_country(inputs.country, rule_table)
    gross_annual = max(0.0, inputs.gross_annual)

    totals = _evaluate_rules(gross_annual, inputs, country)
    breakdown = tuple(totals.breakdown)
    employee_total = _employee_total(totals.breakdown)
    employer_total = sum(entry.amount for entry in breakdown if entry.is_employer)

    net_annual = gross_annual - employee_total
    net_monthly = net_annual / 12

    probe_gross = gross_annual + MARGINAL_PROBE
    probe_totals = _evaluate_rules(probe_gross, inputs, country)
    marginal_rate = max(
        0.0, (_employee_total(probe_totals.breakdown) - employee_total) / MARGINAL_PROBE
    )

    personal_costs = inputs.costs.monthly_total

    return CalculationResult(
        gross_annual=gross_annual,
        gross_monthly=gross_annual / 12,
        net_annual=net_annual,
        net_monthly=net_monthly,
        net_weekly=net_annual / 52,
        net_bi_weekly=net_annual / 26,
        total_deductions_annual=employee_total,
        total_deductions_monthly=employee_total / 12,
        employer_contributions_annual=employer_total,
        deductions_breakdown=breakdown,
        disposable_monthly=net_monthly - personal_costs,
        personal_costs_total=personal_costs,
        marginal_rate=marginal_rate,
        annual_bonus=max(0.0, inputs.annual_bonus),
        currency=country.currency,
    )
