"""Service-layer helpers for the NetPay backend."""

from .calculation_service import calculate_net_pay_payload, solve_gross_payload
from .request_parser import parse_calculation_payload

__all__ = [
    "calculate_net_pay_payload",
    "parse_calculation_payload",
    "solve_gross_payload",
]
