"""Resolve jurisdiction carve-outs for a filer's circumstances.

Married-filer tables, expat waivers and partial-taxation rulings are data in
each jurisdiction's ``policies`` list. This module turns the rows matching a
filer into a single set of overrides for the evaluator.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from netpay.backend.app.models import FilerDetails
from netpay.backend.config.rule_tables import (
    Deductible,
    FilerPolicy,
    FilerState,
    UnknownJurisdictionError,
    load_country_rules,
)
from netpay.backend.config.schema import TaxBracket


@dataclass(frozen=True)
class ResolvedPolicy:
    """Overrides applying to one deductible for one filer."""

    exempt_amount: float | None = None
    brackets: tuple[TaxBracket, ...] | None = None
    fixed_credits: float | None = None
    income_splitting: bool = False
    basis_factor: float = 1.0
    waived: bool = False


NO_OVERRIDE = ResolvedPolicy()


def filer_states(details: FilerDetails) -> frozenset[FilerState]:
    """Return the policy states a filer qualifies for."""

    states: set[FilerState] = set()
    if details.is_married:
        states.add(FilerState.MARRIED)
    if details.is_expat:
        states.add(FilerState.EXPAT)
    return frozenset(states)


def policies_for(jurisdiction_code: str) -> tuple[FilerPolicy, ...]:
    """Return the configured policies for ``jurisdiction_code``."""

    try:
        return load_country_rules(jurisdiction_code).policies
    except UnknownJurisdictionError:
        return ()


def resolve_policy(
    jurisdiction_code: str,
    deductible: Deductible,
    details: FilerDetails,
    policies: Sequence[FilerPolicy] | None = None,
) -> ResolvedPolicy:
    """Merge every policy row that applies to ``deductible`` for this filer.

    Rows are applied in declaration order; a later row's explicit values
    override an earlier row's.
    """

    states = filer_states(details)
    if not states:
        return NO_OVERRIDE

    rows = policies if policies is not None else policies_for(jurisdiction_code)
    matching = [row for row in rows if row.applies_to(deductible, states)]
    if not matching:
        return NO_OVERRIDE

    exempt_amount: float | None = None
    brackets: tuple[TaxBracket, ...] | None = None
    fixed_credits: float | None = None
    income_splitting = False
    basis_factor = 1.0
    waived = False

    for row in matching:
        if row.exempt_amount is not None:
            exempt_amount = row.exempt_amount
        if row.brackets is not None:
            brackets = row.brackets
            income_splitting = False
        if row.income_splitting:
            income_splitting = True
            brackets = None
        if row.fixed_credits is not None:
            fixed_credits = row.fixed_credits
        if row.basis_factor is not None:
            basis_factor = row.basis_factor
        waived = waived or row.waived

    return ResolvedPolicy(
        exempt_amount=exempt_amount,
        brackets=brackets,
        fixed_credits=fixed_credits,
        income_splitting=income_splitting,
        basis_factor=basis_factor,
        waived=waived,
    )
