"""Utilities for validating jurisdiction rule tables and surfacing issues.

Schema validation rejects tables the engine cannot evaluate. The checks here
flag tables that load fine but are probably wrong: unsorted brackets, rates
outside ``0..1``, policies the UI can never trigger, and similar slips.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from .rule_tables import (
    ConfigurationError,
    CountryRules,
    DeductionKind,
    Deductible,
    FilerState,
    RuleCategory,
    TaxBracket,
    available_jurisdictions,
    load_country_rules,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_brackets(
    scope: str, brackets: Sequence[TaxBracket], *, allow_negative: bool
) -> list[str]:
    errors: list[str] = []
    thresholds = [bracket.threshold for bracket in brackets]
    if thresholds != sorted(thresholds):
        errors.append(_format_scope(scope, "brackets should be sorted by threshold"))
    if len(set(thresholds)) != len(thresholds):
        errors.append(_format_scope(scope, "duplicate bracket thresholds detected"))

    for bracket in brackets:
        lower = -1 if allow_negative else 0
        if bracket.rate < lower or bracket.rate > 1:
            errors.append(
                _format_scope(
                    scope,
                    f"bracket rate {bracket.rate} at {bracket.threshold} "
                    "must be between 0 and 1",
                )
            )
    return errors


def _validate_deductible(scope: str, deductible: Deductible) -> list[str]:
    errors: list[str] = []
    is_credit = deductible.kind is DeductionKind.CREDIT_PROGRESSIVE

    if deductible.rate is not None and not 0 <= deductible.rate <= 1:
        errors.append(
            _format_scope(scope, f"rate {deductible.rate} must be between 0 and 1")
        )

    for band in deductible.rates_by_age:
        if band.rate > 1:
            errors.append(
                _format_scope(
                    scope,
                    f"age band {band.min_age}-{band.max_age} rate must not exceed 1",
                )
            )

    if deductible.brackets:
        errors.extend(
            _validate_brackets(scope, deductible.brackets, allow_negative=is_credit)
        )

    if deductible.source_url and not deductible.source_url.startswith(
        ("http://", "https://")
    ):
        errors.append(_format_scope(scope, "source URL must be absolute"))

    return errors


def _validate_dependent_order(
    scope: str, deductibles: Sequence[Deductible], has_primary: bool
) -> list[str]:
    errors: list[str] = []
    seen_primary = has_primary
    for deductible in deductibles:
        if deductible.category is RuleCategory.PRIMARY_INCOME_TAX:
            seen_primary = True
        elif deductible.is_dependent_tax and not seen_primary:
            errors.append(
                _format_scope(
                    f"{scope}.{deductible.id}",
                    "dependent tax is evaluated before any primary income tax",
                )
            )
    return errors


def _validate_options(rules: CountryRules) -> list[str]:
    errors: list[str] = []
    option_flags = {
        FilerState.MARRIED: rules.has_marital_status_option,
        FilerState.EXPAT: rules.has_expat_option,
    }
    for index, policy in enumerate(rules.policies):
        scope = f"policies[{index}]"
        if not option_flags[policy.filer_state]:
            errors.append(
                _format_scope(
                    scope,
                    f"'{policy.filer_state.value}' policy is unreachable without the "
                    "matching jurisdiction option",
                )
            )
        if policy.brackets:
            errors.extend(
                _validate_brackets(scope, policy.brackets, allow_negative=False)
            )

    deductibles = list(rules.federal_deductibles)
    for region in rules.sub_national_rules:
        deductibles.extend(region.deductibles)
    if any(d.is_church_tax for d in deductibles) and not rules.has_church_tax_option:
        errors.append(
            _format_scope(
                "options", "church tax is configured but has_church_tax_option is false"
            )
        )
    return errors


def validate_country_rules(rules: CountryRules) -> list[str]:
    """Return a list of validation issues for the provided rule table."""

    errors: list[str] = []

    for deductible in rules.federal_deductibles:
        errors.extend(_validate_deductible(f"federal.{deductible.id}", deductible))
    errors.extend(
        _validate_dependent_order("federal", rules.federal_deductibles, False)
    )

    has_federal_primary = any(
        deductible.category is RuleCategory.PRIMARY_INCOME_TAX
        for deductible in rules.federal_deductibles
    )
    for region in rules.sub_national_rules:
        scope = f"regions.{region.id}"
        for deductible in region.deductibles:
            errors.extend(_validate_deductible(f"{scope}.{deductible.id}", deductible))
        errors.extend(
            _validate_dependent_order(scope, region.deductibles, has_federal_primary)
        )

    errors.extend(_validate_options(rules))

    for source in rules.sources:
        if source.url and not source.url.startswith(("http://", "https://")):
            errors.append(
                _format_scope(f"sources.{source.label}", "URL must be absolute")
            )

    return errors


def validate_all_jurisdictions(
    codes: Sequence[str] | None = None,
) -> dict[str, list[str]]:
    """Validate configured jurisdictions and return issues keyed by code."""

    targets = codes or available_jurisdictions()
    results: dict[str, list[str]] = {}
    for code in targets:
        rules = load_country_rules(code)
        results[rules.code] = validate_country_rules(rules)
    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate jurisdiction rule tables and report issues helpful to contributors."
        )
    )
    parser.add_argument(
        "codes",
        nargs="*",
        help="Specific jurisdiction codes to validate (defaults to all configured)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    codes = args.codes or available_jurisdictions()

    if not codes:
        parser.print_help()
        return 1

    exit_code = 0

    for code in codes:
        label = code.upper()
        try:
            rules = load_country_rules(code)
        except (FileNotFoundError, LookupError, ConfigurationError) as error:
            print(f"[{label}] failed to load rules: {error}")
            exit_code = 1
            continue

        issues = validate_country_rules(rules)
        if issues:
            exit_code = 1
            print(f"[{label}] {len(issues)} issue(s) detected:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{label}] OK")

    return exit_code


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
