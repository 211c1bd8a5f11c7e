"""Helpers for normalising incoming calculation requests."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flask import Request
from werkzeug.exceptions import BadRequest


def _resolve_country(req: Request, payload: dict[str, Any]) -> None:
    """Populate ``country`` from the query string when the body omits it."""

    country = payload.get("country")
    if isinstance(country, str) and country.strip():
        return

    country_param = req.args.get("country")
    if country_param:
        payload["country"] = country_param.strip().upper()


def parse_calculation_payload(req: Request) -> dict[str, Any]:
    """Extract and validate a JSON payload from ``req``."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")

    payload = dict(data)
    _resolve_country(req, payload)

    return payload
