"""Rule-table loader wrapping the shared schema models."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .schema import (
    AgeRateBand,
    ConfigurationError,
    CountryRules,
    DeductionKind,
    Deductible,
    FilerPolicy,
    FilerState,
    JurisdictionManifest,
    RuleCategory,
    RuleSource,
    SubNationalRule,
    TaperRule,
    TaxBracket,
    UnknownJurisdictionError,
)

CONFIG_DIRECTORY = Path(__file__).resolve().parent / "data"
MANIFEST_FILE = CONFIG_DIRECTORY / "manifest.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigurationError("Rule files must define a mapping at the top level")
    return data


def normalise_code(code: str) -> str:
    """Return the canonical upper-case form of a jurisdiction code."""

    return str(code).strip().upper()


@lru_cache(maxsize=1)
def load_manifest() -> JurisdictionManifest:
    """Load and cache the jurisdiction manifest."""

    if not MANIFEST_FILE.exists():
        raise FileNotFoundError("Rule-table manifest not found")

    raw_manifest = _load_yaml(MANIFEST_FILE)

    try:
        return JurisdictionManifest.model_validate(raw_manifest)
    except ValidationError as error:  # pragma: no cover
        raise ConfigurationError(f"Manifest validation failed: {error}") from error


def available_jurisdictions() -> tuple[str, ...]:
    """Return the jurisdiction codes declared in the manifest, in manifest order."""

    return load_manifest().supported_codes


@lru_cache(maxsize=64)
def load_country_rules(code: str) -> CountryRules:
    """Load the rules for ``code`` from disk."""

    normalised = normalise_code(code)
    try:
        manifest_entry = load_manifest().get_entry(normalised)
    except KeyError as exc:
        raise UnknownJurisdictionError(normalised) from exc

    rules_file = CONFIG_DIRECTORY / manifest_entry.resolved_filename
    if not rules_file.exists():
        raise FileNotFoundError(
            f"Rule file for jurisdiction {normalised} missing: {rules_file.name}"
        )

    raw_rules = _load_yaml(rules_file)
    raw_rules.setdefault("code", normalised)

    try:
        rules = CountryRules.model_validate(raw_rules)
    except ValidationError as error:
        raise ConfigurationError(
            f"Rule validation failed for {normalised}: {error}"
        ) from error

    if rules.code != normalised:
        raise ConfigurationError(
            f"Jurisdiction code mismatch: expected {normalised}, found {rules.code}"
        )

    return rules


@lru_cache(maxsize=1)
def load_rule_table() -> Mapping[str, CountryRules]:
    """Return a read-only mapping of every configured jurisdiction."""

    return MappingProxyType(
        {code: load_country_rules(code) for code in available_jurisdictions()}
    )


def clear_caches() -> None:
    """Drop cached rule tables so the next lookup re-reads the data files."""

    load_rule_table.cache_clear()
    load_country_rules.cache_clear()
    load_manifest.cache_clear()


__all__ = [
    "AgeRateBand",
    "CONFIG_DIRECTORY",
    "ConfigurationError",
    "CountryRules",
    "DeductionKind",
    "Deductible",
    "FilerPolicy",
    "FilerState",
    "JurisdictionManifest",
    "MANIFEST_FILE",
    "RuleCategory",
    "RuleSource",
    "SubNationalRule",
    "TaperRule",
    "TaxBracket",
    "UnknownJurisdictionError",
    "available_jurisdictions",
    "clear_caches",
    "load_country_rules",
    "load_manifest",
    "load_rule_table",
    "normalise_code",
]
