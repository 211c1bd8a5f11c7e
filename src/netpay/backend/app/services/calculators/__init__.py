"""Domain-specific calculation helpers."""

from .deductions import effective_rate, evaluate
from .net_pay import calculate_net_pay, net_annual_for_gross, resolve_country
from .policies import NO_OVERRIDE, ResolvedPolicy, filer_states, resolve_policy
from .solver import GrossSolution, solve_gross_for_net, solve_gross_for_net_detailed
from .utils import calculate_progressive_tax, round_currency, round_rate

__all__ = [
    "GrossSolution",
    "NO_OVERRIDE",
    "ResolvedPolicy",
    "calculate_net_pay",
    "calculate_progressive_tax",
    "effective_rate",
    "evaluate",
    "filer_states",
    "net_annual_for_gross",
    "resolve_country",
    "resolve_policy",
    "round_currency",
    "round_rate",
    "solve_gross_for_net",
    "solve_gross_for_net_detailed",
]
