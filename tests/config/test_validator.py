from netpay.backend.config.rule_tables import load_country_rules
from netpay.backend.config.validator import (
    main,
    validate_all_jurisdictions,
    validate_country_rules,
)


def test_shipped_rule_tables_are_valid() -> None:
    results = validate_all_jurisdictions()
    assert all(not issues for issues in results.values()), results


def test_validator_flags_unsorted_brackets() -> None:
    usa = load_country_rules("USA")
    federal_tax = usa.federal_deductibles[0]
    shuffled = federal_tax.model_copy(
        update={"brackets": tuple(reversed(federal_tax.brackets))}
    )
    broken = usa.model_copy(
        update={"federal_deductibles": (shuffled,) + usa.federal_deductibles[1:]}
    )

    errors = validate_country_rules(broken)

    assert any(
        "federal.federal_income_tax" in error and "sorted" in error for error in errors
    )


def test_validator_flags_rates_above_one() -> None:
    usa = load_country_rules("USA")
    social_security = usa.federal_deductibles[1].model_copy(update={"rate": 6.2})
    broken = usa.model_copy(
        update={
            "federal_deductibles": (
                usa.federal_deductibles[0],
                social_security,
                usa.federal_deductibles[2],
            )
        }
    )

    errors = validate_country_rules(broken)

    assert any(
        "social_security" in error and "between 0 and 1" in error for error in errors
    )


def test_validator_flags_unreachable_policies() -> None:
    usa = load_country_rules("USA")
    broken = usa.model_copy(update={"has_marital_status_option": False})

    errors = validate_country_rules(broken)

    assert any(error.startswith("policies[0]") for error in errors)


def test_validator_flags_church_tax_without_option() -> None:
    germany = load_country_rules("DEU")
    broken = germany.model_copy(update={"has_church_tax_option": False})

    errors = validate_country_rules(broken)

    assert any("has_church_tax_option" in error for error in errors)


def test_validator_flags_dependent_tax_before_income_tax() -> None:
    germany = load_country_rules("DEU")
    church = next(rule for rule in germany.federal_deductibles if rule.is_church_tax)
    others = tuple(rule for rule in germany.federal_deductibles if rule is not church)
    broken = germany.model_copy(update={"federal_deductibles": (church,) + others})

    errors = validate_country_rules(broken)

    assert any("federal.church_tax" in error for error in errors)


def test_cli_reports_success_and_failure(capsys) -> None:
    assert main(["USA", "sgp"]) == 0
    output = capsys.readouterr().out
    assert "[USA] OK" in output
    assert "[SGP] OK" in output

    assert main(["XXX"]) == 1
    assert "failed to load rules" in capsys.readouterr().out
