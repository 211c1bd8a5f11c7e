"""REST endpoints for net pay calculations."""

from __future__ import annotations

from typing import Any

from flask import Blueprint, jsonify, request

from netpay.backend.services import calculation_service, request_parser

blueprint = Blueprint("calculations", __name__, url_prefix="/api/v1")


@blueprint.post("/calculations")
def create_calculation() -> tuple[Any, int]:
    """Compute net pay for the submitted gross income."""

    payload = request_parser.parse_calculation_payload(request)
    result = calculation_service.calculate_net_pay_payload(payload)
    return jsonify(result), 200


@blueprint.post("/calculations/gross-from-net")
def create_gross_from_net() -> tuple[Any, int]:
    """Solve for the gross income that yields the submitted net target."""

    payload = request_parser.parse_calculation_payload(request)
    result = calculation_service.solve_gross_payload(payload)
    return jsonify(result), 200
