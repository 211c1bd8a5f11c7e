"""Evaluate a single deductible rule for one filer."""

from __future__ import annotations

from collections.abc import Sequence

from netpay.backend.app.models import FilerDetails
from netpay.backend.config.schema import (
    DeductionKind,
    Deductible,
    FilerPolicy,
    TaxBracket,
)

from .policies import ResolvedPolicy, resolve_policy
from .utils import calculate_progressive_tax


def _dependent_tax(
    deductible: Deductible, details: FilerDetails, accumulated_income_tax: float
) -> float:
    if deductible.is_church_tax and not details.church_tax:
        return 0.0
    threshold = deductible.surcharge_threshold
    if threshold is not None and accumulated_income_tax < threshold:
        return 0.0
    owed = max(0.0, accumulated_income_tax * (deductible.rate or 0.0))
    phase_in = deductible.surcharge_phase_in_rate
    if threshold is not None and phase_in is not None:
        # Only the tax above the threshold is reachable until the full rate wins.
        owed = min(owed, (accumulated_income_tax - threshold) * phase_in)
    return owed


def effective_rate(deductible: Deductible, age: int | None) -> float:
    """Return the age-banded rate for ``age`` or the rule's default rate."""

    if age is not None:
        for band in deductible.rates_by_age:
            if band.matches(age):
                return band.rate
    return deductible.rate or 0.0


def _exempt_amount(
    deductible: Deductible, policy: ResolvedPolicy, gross_annual_income: float
) -> float:
    if policy.exempt_amount is not None:
        exempt = policy.exempt_amount
    else:
        exempt = deductible.exempt_amount or 0.0
    if deductible.taper is not None:
        exempt -= deductible.taper.reduction(
            gross_annual_income * policy.basis_factor
        )
    return max(0.0, exempt)


def _progressive(
    basis: float, brackets: Sequence[TaxBracket], policy: ResolvedPolicy
) -> float:
    if policy.income_splitting:
        return 2 * calculate_progressive_tax(basis / 2, brackets)
    return calculate_progressive_tax(basis, brackets)


def evaluate(
    gross_annual_income: float,
    deductible: Deductible,
    details: FilerDetails,
    jurisdiction_code: str,
    accumulated_income_tax: float = 0.0,
    *,
    taxable_income: float | None = None,
    policies: Sequence[FilerPolicy] | None = None,
) -> float:
    """Return the annual amount owed under ``deductible`` (always >= 0).

    Dependent taxes are computed off ``accumulated_income_tax`` instead of
    income. Every other rule works on a basis derived from gross income, or
    from ``taxable_income`` when the rule asks for the running taxable base,
    adjusted by any filer policy configured for ``jurisdiction_code``.
    For credit rules the value is the size of the credit.
    """

    if deductible.is_dependent_tax:
        return _dependent_tax(deductible, details, accumulated_income_tax)

    policy = resolve_policy(jurisdiction_code, deductible, details, policies)
    if policy.waived:
        return 0.0

    rate = effective_rate(deductible, details.age)

    if deductible.use_taxable_income and taxable_income is not None:
        basis = taxable_income
    else:
        basis = gross_annual_income
    basis = max(0.0, basis) * policy.basis_factor
    if deductible.capped_base is not None:
        basis = min(basis, deductible.capped_base)

    exempt = _exempt_amount(deductible, policy, gross_annual_income)
    brackets = policy.brackets if policy.brackets is not None else deductible.brackets

    if deductible.kind is DeductionKind.CREDIT_PROGRESSIVE:
        if basis <= 0:
            return 0.0
        amount = max(0.0, exempt - calculate_progressive_tax(basis, brackets))
    else:
        basis = max(0.0, basis - exempt)
        if deductible.kind is DeductionKind.PERCENTAGE:
            amount = basis * rate
        elif deductible.kind is DeductionKind.FIXED:
            amount = min(deductible.amount or 0.0, basis) if basis > 0 else 0.0
        else:
            amount = _progressive(basis, brackets, policy)

        credits = (
            policy.fixed_credits
            if policy.fixed_credits is not None
            else deductible.fixed_credits or 0.0
        )
        amount = max(0.0, amount - credits)

    if deductible.cap is not None:
        amount = min(amount, deductible.cap)

    return max(0.0, amount)
