#!/usr/bin/env python3
"""Collect baseline timings for forward and reverse net pay calculations."""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from time import perf_counter
from typing import Any, Callable

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from netpay.backend.services.calculation_service import (  # noqa: E402
    calculate_net_pay_payload,
    solve_gross_payload,
)

SAMPLE_SCENARIOS: dict[str, dict[str, Any]] = {
    "usa_california": {
        "country": "USA",
        "sub_region": "CA",
        "gross_income": 120000,
        "details": {"age": 34, "marital_status": "married"},
    },
    "deu_church": {
        "country": "DEU",
        "gross_income": 72000,
        "details": {"age": 41, "church_tax": True},
    },
    "can_quebec": {
        "country": "CAN",
        "sub_region": "QC",
        "gross_income": 8500,
        "frequency": "monthly",
    },
}


def _time(
    call: Callable[[dict[str, Any]], Any], payload: dict[str, Any], iterations: int
) -> dict[str, float]:
    call(payload)  # Warm rule-table caches
    start = perf_counter()
    for _ in range(iterations):
        call(payload)
    elapsed = perf_counter() - start
    return {
        "iterations": iterations,
        "total_ms": elapsed * 1000,
        "average_ms": (elapsed / iterations) * 1000,
    }


def measure_forward(iterations: int) -> dict[str, dict[str, float]]:
    """Return timing statistics for repeated gross-to-net calculations."""

    return {
        name: _time(calculate_net_pay_payload, payload, iterations)
        for name, payload in SAMPLE_SCENARIOS.items()
    }


def measure_reverse(iterations: int) -> dict[str, dict[str, float]]:
    """Return timing statistics for repeated net-to-gross solves."""

    results: dict[str, dict[str, float]] = {}
    for name, scenario in SAMPLE_SCENARIOS.items():
        payload = dict(scenario)
        gross = payload.pop("gross_income")
        payload["target_net"] = gross * 0.7
        results[name] = _time(solve_gross_payload, payload, iterations)
    return results


def main() -> None:
    iterations = int(os.getenv("NETPAY_PROFILE_ITERATIONS", "75"))
    report = {
        "forward": measure_forward(iterations),
        "reverse": measure_reverse(max(1, iterations // 5)),
    }
    print(json.dumps(report, indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
