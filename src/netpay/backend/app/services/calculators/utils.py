"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Sequence

from netpay.backend.config.schema import TaxBracket


def sort_brackets(brackets: Sequence[TaxBracket]) -> list[TaxBracket]:
    """Return ``brackets`` ordered by ascending threshold."""

    return sorted(brackets, key=lambda bracket: bracket.threshold)


def calculate_progressive_tax(amount: float, brackets: Sequence[TaxBracket]) -> float:
    """Calculate marginal tax for ``amount`` using threshold-based ``brackets``.

    Each tier taxes the slice of ``amount`` between its threshold and the next
    tier's threshold. Brackets are sorted first so configuration order does not
    matter. Income below the lowest threshold is untaxed.
    """

    if amount <= 0 or not brackets:
        return 0.0

    ordered = sort_brackets(brackets)
    total = 0.0

    for index, bracket in enumerate(ordered):
        if amount <= bracket.threshold:
            break
        upper = (
            ordered[index + 1].threshold if index + 1 < len(ordered) else None
        )
        if upper is None or amount < upper:
            total += (amount - bracket.threshold) * bracket.rate
            break
        total += (upper - bracket.threshold) * bracket.rate

    return total


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)
