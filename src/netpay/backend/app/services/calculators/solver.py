"""Invert the net pay aggregator: find the gross income for a target net.

Net pay is piecewise linear in gross income with kinks at every bracket
threshold and cap, so the solve brackets the root and bisects rather than
relying on derivatives.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from netpay.backend.app.models import UserInputs
from netpay.backend.config.schema import CountryRules

from .net_pay import net_annual_for_gross, resolve_country

_LOGGER = logging.getLogger(__name__)

MAX_EXPANSIONS = 20
MAX_BISECTIONS = 50
TOLERANCE = 1.0
INITIAL_CEILING_FACTOR = 3.0


@dataclass(frozen=True)
class GrossSolution:
    """Solver outcome expressed in the caller's input frequency.

    ``residual`` is ``net(gross) - target`` for the returned estimate.
    ``converged`` is ``False`` when the estimate is a best effort.
    """

    gross: float
    residual: float
    converged: bool
    iterations: int


def solve_gross_for_net_detailed(
    target_net: float,
    base_inputs: UserInputs,
    rule_table: Mapping[str, CountryRules] | None = None,
) -> GrossSolution:
    """Return the gross income whose net pay matches ``target_net``."""

    if target_net <= 0:
        return GrossSolution(gross=0.0, residual=0.0, converged=True, iterations=0)

    # Fail fast on an unknown country before iterating.
    resolve_country(base_inputs.country, rule_table)

    periods = base_inputs.periods_per_year
    target = target_net * periods

    def net_at(gross: float) -> float:
        return net_annual_for_gross(gross, base_inputs, rule_table)

    low = target
    high = target * INITIAL_CEILING_FACTOR
    expansions = 0
    while net_at(high) < target and expansions < MAX_EXPANSIONS:
        low = high
        high *= 2
        expansions += 1

    estimate = low
    residual = 0.0
    converged = False
    iterations = 0
    for iterations in range(1, MAX_BISECTIONS + 1):
        estimate = (low + high) / 2
        residual = net_at(estimate) - target
        if abs(residual) <= TOLERANCE:
            converged = True
            break
        if residual < 0:
            low = estimate
        else:
            high = estimate

    if converged:
        _LOGGER.debug(
            "Solved %s net %.2f after %d expansions and %d bisections",
            base_inputs.country,
            target,
            expansions,
            iterations,
        )
    else:
        _LOGGER.warning(
            "Gross-from-net solve for %s did not converge; residual %.4f",
            base_inputs.country,
            residual,
        )

    return GrossSolution(
        gross=estimate / periods,
        residual=residual / periods,
        converged=converged,
        iterations=expansions + iterations,
    )


def solve_gross_for_net(
    target_net: float,
    base_inputs: UserInputs,
    rule_table: Mapping[str, CountryRules] | None = None,
) -> float:
    """Return only the gross estimate from :func:`solve_gross_for_net_detailed`."""

    return solve_gross_for_net_detailed(target_net, base_inputs, rule_table).gross
