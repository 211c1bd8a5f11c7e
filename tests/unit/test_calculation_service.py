"""Unit tests for the calculation service."""

from __future__ import annotations

import logging

import pytest

from netpay.backend.app.models import PayloadValidationError
from netpay.backend.services.calculation_service import (
    _profiling_enabled,
    calculate_net_pay_payload,
    solve_gross_payload,
)


def test_forward_payload_is_rounded_and_serialised() -> None:
    result = calculate_net_pay_payload(
        {"country": "usa", "gross_income": 100_000, "details": {"age": 30}}
    )

    assert result["country"] == "USA"
    assert result["currency"] == "USD"
    assert result["net_annual"] == pytest.approx(78_509.0)
    assert result["total_deductions_annual"] == pytest.approx(21_491.0)
    assert result["effective_rate"] == pytest.approx(0.2149)
    assert result["marginal_rate"] == pytest.approx(0.2965)
    assert [entry["name"] for entry in result["deductions"]] == [
        "Federal Income Tax",
        "Social Security (OASDI)",
        "Medicare",
    ]
    assert result["deductions"][0]["amount"] == pytest.approx(13_841.0)


def test_monthly_payload_with_costs() -> None:
    result = calculate_net_pay_payload(
        {
            "country": "GBR",
            "sub_region": "ENG",
            "frequency": "monthly",
            "gross_income": 4_000,
            "costs": {"rent": 1_100, "groceries": 300, "debt": 250},
        }
    )

    assert result["gross_annual"] == pytest.approx(48_000)
    assert result["personal_costs_total"] == pytest.approx(1_400)
    assert result["disposable_monthly"] == pytest.approx(
        result["net_monthly"] - 1_400, abs=0.01
    )


def test_zero_income_has_zero_effective_rate() -> None:
    result = calculate_net_pay_payload({"country": "DEU", "gross_income": 0})

    assert result["net_annual"] == 0
    assert result["effective_rate"] == 0
    assert result["deductions"] == []


@pytest.mark.parametrize(
    ("payload", "message", "fields"),
    [
        (
            {"country": "USA", "gross_income": -1},
            "value cannot be negative",
            ("gross_income",),
        ),
        ({"country": "USA"}, "gross_income", ("gross_income",)),
        (
            {"country": "USA", "gross_income": 1, "unknown": True},
            "unknown",
            ("unknown",),
        ),
        (
            {"country": "XXX", "gross_income": 1},
            "Jurisdiction 'XXX' is not configured",
            ("country",),
        ),
        (
            {"country": "USA", "sub_region": "ZZ", "gross_income": 1},
            "Unknown state 'ZZ' for USA",
            ("sub_region",),
        ),
        (
            {
                "country": "DEU",
                "gross_income": 1,
                "details": {"marital_status": "widowed"},
            },
            "details.marital_status",
            ("details.marital_status",),
        ),
    ],
)
def test_invalid_payloads_raise_value_error(
    payload: dict, message: str, fields: tuple[str, ...]
) -> None:
    with pytest.raises(PayloadValidationError) as excinfo:
        calculate_net_pay_payload(payload)

    assert isinstance(excinfo.value, ValueError)
    assert message in str(excinfo.value)
    assert excinfo.value.fields == fields


def test_non_mapping_payload_is_rejected() -> None:
    with pytest.raises(PayloadValidationError) as excinfo:
        calculate_net_pay_payload(["USA", 1])

    assert excinfo.value.fields == ()


def test_reverse_payload_round_trips() -> None:
    result = solve_gross_payload({"country": "USA", "target_net": 78_509})

    assert result["converged"] is True
    assert result["gross"] == pytest.approx(100_000, abs=5)
    assert abs(result["residual"]) <= 1
    assert result["frequency"] == "annual"
    assert result["currency"] == "USD"


def test_reverse_payload_requires_non_negative_target() -> None:
    with pytest.raises(ValueError) as excinfo:
        solve_gross_payload({"country": "USA", "target_net": -5})

    assert "target_net" in str(excinfo.value)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("1", True), ("yes", True), ("On", True), ("", False), ("0", False)],
)
def test_profiling_flag(
    monkeypatch: pytest.MonkeyPatch, value: str, expected: bool
) -> None:
    monkeypatch.setenv("NETPAY_PROFILE_CALCULATIONS", value)

    assert _profiling_enabled() is expected


def test_profiling_logs_section_timings(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("NETPAY_PROFILE_CALCULATIONS", "true")

    with caplog.at_level(
        logging.DEBUG, logger="netpay.backend.services.calculation_service"
    ):
        calculate_net_pay_payload({"country": "SGP", "gross_income": 90_000})

    assert "Net pay calculation timings for SGP" in caplog.text
    assert "calculate" in caplog.text
