"""Unit tests for calculation request parsing helpers."""

from __future__ import annotations

import pytest
from flask import Flask, request
from werkzeug.exceptions import BadRequest

from netpay.backend.services.request_parser import parse_calculation_payload


def test_parse_payload_uses_country_query_parameter(app: Flask) -> None:
    """The query string should supply the country when the body omits it."""

    with app.test_request_context(
        "/api/v1/calculations?country=deu",
        method="POST",
        json={"gross_income": 50_000},
    ):
        payload = parse_calculation_payload(request)

    assert payload["country"] == "DEU"


def test_parse_payload_preserves_explicit_country(app: Flask) -> None:
    """A country in the body wins over the query string."""

    with app.test_request_context(
        "/api/v1/calculations?country=DEU",
        method="POST",
        json={"country": "USA", "gross_income": 50_000},
    ):
        payload = parse_calculation_payload(request)

    assert payload["country"] == "USA"


def test_parse_payload_rejects_non_object(app: Flask) -> None:
    """Non-object JSON payloads should trigger BadRequest responses."""

    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        json=["not", "an", "object"],
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)


def test_parse_payload_rejects_invalid_json(app: Flask) -> None:
    with app.test_request_context(
        "/api/v1/calculations",
        method="POST",
        data="{not json",
        content_type="application/json",
    ):
        with pytest.raises(BadRequest):
            parse_calculation_payload(request)
