"""Expose jurisdiction metadata consumed by front-end clients.

Clients use these endpoints to populate country and region pickers and to
show which filer options apply, without duplicating rule tables.
"""

from __future__ import annotations

from functools import lru_cache
from importlib import metadata
from typing import Any

from flask import Blueprint, jsonify

from netpay.backend.app.http import not_found
from netpay.backend.config.rule_tables import (
    CountryRules,
    UnknownJurisdictionError,
    available_jurisdictions,
    load_country_rules,
)

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")

DEFAULT_JURISDICTION = "USA"
DISTRIBUTION_NAME = "netpay"
UNKNOWN_VERSION = "0+unknown"


@lru_cache(maxsize=1)
def get_project_version() -> str:
    """Return the installed ``netpay`` version.

    A plain source checkout has no distribution metadata and reports
    ``UNKNOWN_VERSION``.
    """

    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return UNKNOWN_VERSION


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the jurisdiction manifest."""

    supported = list(available_jurisdictions())
    if DEFAULT_JURISDICTION in supported:
        default = DEFAULT_JURISDICTION
    else:
        default = supported[0] if supported else None
    return {
        "version": get_project_version(),
        "supported_jurisdictions": supported,
        "default_jurisdiction": default,
    }


def _serialise_summary(rules: CountryRules) -> dict[str, Any]:
    return {
        "code": rules.code,
        "name": rules.name,
        "currency": rules.currency,
        "currency_symbol": rules.currency_symbol,
        "exchange_rate_per_usd": rules.exchange_rate_per_usd,
        "sub_national_label": rules.sub_national_label,
        "regions": [
            {"id": region.id, "name": region.name}
            for region in rules.sub_national_rules
        ],
        "options": {
            "marital_status": rules.has_marital_status_option,
            "church_tax": rules.has_church_tax_option,
            "expat": rules.has_expat_option,
        },
    }


def _serialise_detail(rules: CountryRules) -> dict[str, Any]:
    payload = _serialise_summary(rules)
    payload["federal_deductibles"] = [
        deductible.model_dump(mode="json", exclude_none=True)
        for deductible in rules.federal_deductibles
    ]
    payload["regions"] = [
        region.model_dump(mode="json", exclude_none=True)
        for region in rules.sub_national_rules
    ]
    payload["policies"] = [
        policy.model_dump(mode="json", exclude_none=True)
        for policy in rules.policies
    ]
    payload["sources"] = [
        source.model_dump(mode="json", exclude_none=True) for source in rules.sources
    ]
    return payload


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    """Expose lightweight application metadata such as the version identifier."""

    return jsonify(get_configuration_metadata()), 200


@blueprint.get("/jurisdictions")
def list_jurisdictions() -> tuple[Any, int]:
    """Return every configured jurisdiction with lightweight metadata."""

    default = get_configuration_metadata()["default_jurisdiction"]
    payload = {
        "jurisdictions": [
            _serialise_summary(load_country_rules(code))
            for code in available_jurisdictions()
        ],
        "default_jurisdiction": default,
    }
    return jsonify(payload), 200


@blueprint.get("/jurisdictions/<code>")
def get_jurisdiction(code: str) -> tuple[Any, int]:
    """Return the full rule table for a single jurisdiction."""

    try:
        rules = load_country_rules(code)
    except UnknownJurisdictionError as exc:
        return not_found(str(exc)).to_response()

    return jsonify(_serialise_detail(rules)), 200
