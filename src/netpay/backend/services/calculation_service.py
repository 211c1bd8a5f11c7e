"""Orchestrate request validation, rule lookup, and net pay calculations.

The service validates payloads with the shared API models, converts them into
engine inputs, runs the forward or reverse calculation and rounds the result
for JSON responses. Profiling hooks live here so the calculators stay pure.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from contextlib import contextmanager
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from netpay.backend.app.models import (
    CalculationRequest,
    CalculationResponse,
    CalculationResult,
    DeductionEntry,
    FilerDetails,
    GrossFromNetRequest,
    GrossFromNetResponse,
    PayloadValidationError,
    PersonalCosts,
    UserInputs,
)
from netpay.backend.app.services.calculators import (
    calculate_net_pay,
    round_currency,
    round_rate,
    solve_gross_for_net_detailed,
)
from netpay.backend.config.rule_tables import (
    CountryRules,
    UnknownJurisdictionError,
    load_country_rules,
)

_LOGGER = logging.getLogger(__name__)


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("NETPAY_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _validate_request(model: type, payload: Mapping[str, Any] | Any) -> Any:
    if not isinstance(payload, Mapping):
        raise PayloadValidationError("Calculation payload must be a mapping")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError.from_validation_error(exc) from exc


def _resolve_rules(country: str, sub_region: str | None) -> CountryRules:
    try:
        rules = load_country_rules(country)
    except UnknownJurisdictionError as exc:
        raise PayloadValidationError(str(exc), ("country",)) from exc

    if sub_region and rules.get_region(sub_region) is None:
        label = (rules.sub_national_label or "sub-region").lower()
        raise PayloadValidationError(
            f"Unknown {label} '{sub_region}' for {rules.code}", ("sub_region",)
        )
    return rules


def _build_inputs(
    request: CalculationRequest | GrossFromNetRequest, gross_income: float
) -> UserInputs:
    return UserInputs(
        gross_income=gross_income,
        frequency=request.frequency,
        country=request.country,
        sub_region=request.sub_region,
        details=FilerDetails(**request.details.model_dump()),
        costs=PersonalCosts(**request.costs.model_dump()),
        annual_bonus=request.annual_bonus,
    )


def _serialise_result(
    result: CalculationResult, inputs: UserInputs
) -> dict[str, Any]:
    effective_rate = (
        result.total_deductions_annual / result.gross_annual
        if result.gross_annual > 0
        else 0.0
    )
    response = CalculationResponse(
        country=inputs.country,
        sub_region=inputs.sub_region,
        currency=result.currency,
        gross_annual=round_currency(result.gross_annual),
        gross_monthly=round_currency(result.gross_monthly),
        net_annual=round_currency(result.net_annual),
        net_monthly=round_currency(result.net_monthly),
        net_weekly=round_currency(result.net_weekly),
        net_bi_weekly=round_currency(result.net_bi_weekly),
        total_deductions_annual=round_currency(result.total_deductions_annual),
        total_deductions_monthly=round_currency(result.total_deductions_monthly),
        employer_contributions_annual=round_currency(
            result.employer_contributions_annual
        ),
        effective_rate=round_rate(effective_rate),
        marginal_rate=round_rate(result.marginal_rate),
        deductions=[
            DeductionEntry(
                name=entry.name,
                amount=round_currency(entry.amount),
                description=entry.description,
                is_employer=entry.is_employer,
            )
            for entry in result.deductions_breakdown
        ],
        personal_costs_total=round_currency(result.personal_costs_total),
        disposable_monthly=round_currency(result.disposable_monthly),
        annual_bonus=round_currency(result.annual_bonus),
    )
    return response.model_dump()


def calculate_net_pay_payload(payload: Mapping[str, Any] | Any) -> dict[str, Any]:
    """Validate ``payload``, run the forward calculation and serialise it."""

    timings: dict[str, float] | None = {} if _profiling_enabled() else None

    with _profile_section("validate", timings):
        request = _validate_request(CalculationRequest, payload)
        _resolve_rules(request.country, request.sub_region)
        inputs = _build_inputs(request, request.gross_income)

    with _profile_section("calculate", timings):
        result = calculate_net_pay(inputs)

    with _profile_section("serialise", timings):
        response = _serialise_result(result, inputs)

    if timings is not None:
        _LOGGER.debug(
            "Net pay calculation timings for %s: %s",
            inputs.country,
            {name: round(duration, 6) for name, duration in timings.items()},
        )

    return response


def solve_gross_payload(payload: Mapping[str, Any] | Any) -> dict[str, Any]:
    """Validate ``payload`` and solve for the gross income behind ``target_net``."""

    timings: dict[str, float] | None = {} if _profiling_enabled() else None

    with _profile_section("validate", timings):
        request = _validate_request(GrossFromNetRequest, payload)
        _resolve_rules(request.country, request.sub_region)
        inputs = _build_inputs(request, 0.0)

    with _profile_section("solve", timings):
        solution = solve_gross_for_net_detailed(request.target_net, inputs)

    if timings is not None:
        _LOGGER.debug(
            "Gross-from-net timings for %s: %s",
            inputs.country,
            {name: round(duration, 6) for name, duration in timings.items()},
        )

    rules = load_country_rules(inputs.country)
    response = GrossFromNetResponse(
        country=inputs.country,
        sub_region=inputs.sub_region,
        currency=rules.currency,
        frequency=inputs.frequency,
        target_net=round_currency(request.target_net),
        gross=round_currency(solution.gross),
        residual=round_currency(solution.residual),
        converged=solution.converged,
        iterations=solution.iterations,
    )
    return response.model_dump()


__all__ = ["calculate_net_pay_payload", "solve_gross_payload"]
