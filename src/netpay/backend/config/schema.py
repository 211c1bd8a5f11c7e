"""Pydantic models describing the jurisdiction rule-table schema."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when rule-table values violate schema expectations."""


class UnknownJurisdictionError(LookupError):
    """Raised when a jurisdiction code is not declared in the manifest."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code

    def __str__(self) -> str:
        return f"Jurisdiction '{self.code}' is not configured"


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class DeductionKind(str, Enum):
    """How a deductible turns its basis into an amount."""

    PERCENTAGE = "percentage"
    PROGRESSIVE = "progressive"
    FIXED = "fixed"
    CREDIT_PROGRESSIVE = "credit_progressive"


class RuleCategory(str, Enum):
    """Semantic tag used to dispatch jurisdiction-specific behaviour."""

    PRIMARY_INCOME_TAX = "primary_income_tax"
    SOCIAL_CONTRIBUTION = "social_contribution"
    DEPENDENT_TAX = "dependent_tax"
    OTHER = "other"


class FilerState(str, Enum):
    """Filer circumstances that can trigger a policy override."""

    MARRIED = "married"
    EXPAT = "expat"


_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    """Return a lowercase identifier derived from a display label."""

    return _SLUG_PATTERN.sub("_", value.lower()).strip("_")


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value in {0, "0", "false", "False", None}:
        return False
    if value in {1, "1", "true", "True"}:
        return True
    raise ConfigurationError("Boolean flags must be explicit true/false values")


def _require_non_negative(value: float | None, label: str) -> None:
    if value is not None and value < 0:
        raise ConfigurationError(f"{label} must be non-negative")


class TaxBracket(ImmutableModel):
    """A marginal tier applying from ``threshold`` up to the next tier."""

    threshold: float = 0.0
    rate: float

    @model_validator(mode="after")
    def _validate_threshold(self) -> TaxBracket:
        if self.threshold < 0:
            raise ConfigurationError("Bracket thresholds must be non-negative")
        return self


class AgeRateBand(ImmutableModel):
    """Rate override for filers with ``min_age < age <= max_age``."""

    min_age: int
    max_age: int
    rate: float

    @model_validator(mode="after")
    def _validate_band(self) -> AgeRateBand:
        if self.min_age < 0:
            raise ConfigurationError("Age bands must start at a non-negative age")
        if self.max_age <= self.min_age:
            raise ConfigurationError("Age bands require max_age greater than min_age")
        if self.rate < 0:
            raise ConfigurationError("Age band rates must be non-negative")
        return self

    def matches(self, age: int) -> bool:
        return self.min_age < age <= self.max_age


class TaperRule(ImmutableModel):
    """Withdraws an exemption as income rises above ``threshold``."""

    threshold: float
    rate: float

    @model_validator(mode="after")
    def _validate_values(self) -> TaperRule:
        _require_non_negative(self.threshold, "Taper thresholds")
        _require_non_negative(self.rate, "Taper rates")
        return self

    def reduction(self, income: float) -> float:
        if income <= self.threshold:
            return 0.0
        return (income - self.threshold) * self.rate


class Deductible(ImmutableModel):
    """One tax or contribution rule applied to a filer's income."""

    id: str
    name: str
    description: str | None = None
    category: RuleCategory = RuleCategory.OTHER
    kind: DeductionKind
    rate: float | None = None
    amount: float | None = None
    brackets: tuple[TaxBracket, ...] = ()
    capped_base: float | None = None
    exempt_amount: float | None = None
    fixed_credits: float | None = None
    cap: float | None = None
    rates_by_age: tuple[AgeRateBand, ...] = ()
    taper: TaperRule | None = None
    is_church_tax: bool = False
    surcharge_threshold: float | None = None
    surcharge_phase_in_rate: float | None = None
    reduces_tax: bool = False
    employer_paid: bool = False
    reduces_taxable_income: bool = False
    use_taxable_income: bool = False
    is_relief: bool = False
    source_url: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_identifier(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Deductible definitions must be mappings")
        prepared = dict(data)
        if not prepared.get("id") and isinstance(prepared.get("name"), str):
            prepared["id"] = slugify(prepared["name"])
        if prepared.get("is_church_tax") and "category" not in prepared:
            prepared["category"] = RuleCategory.DEPENDENT_TAX
        return prepared

    @field_validator(
        "is_church_tax",
        "reduces_tax",
        "employer_paid",
        "reduces_taxable_income",
        "use_taxable_income",
        "is_relief",
        mode="before",
    )
    @classmethod
    def _coerce_flags(cls, value: Any) -> bool:
        return _coerce_boolean(value)

    @model_validator(mode="after")
    def _validate_rule(self) -> Deductible:
        if not self.id:
            raise ConfigurationError("Deductibles require a non-empty identifier")

        for label, value in (
            ("capped_base", self.capped_base),
            ("exempt_amount", self.exempt_amount),
            ("fixed_credits", self.fixed_credits),
            ("cap", self.cap),
            ("amount", self.amount),
            ("surcharge_threshold", self.surcharge_threshold),
            ("surcharge_phase_in_rate", self.surcharge_phase_in_rate),
        ):
            _require_non_negative(value, f"Deductible '{self.id}' {label}")

        phase_in = self.surcharge_phase_in_rate
        if phase_in is not None and self.surcharge_threshold is None:
            raise ConfigurationError(
                f"Deductible '{self.id}' phase-in rate requires a surcharge_threshold"
            )

        if self.is_church_tax and self.category is not RuleCategory.DEPENDENT_TAX:
            raise ConfigurationError(
                f"Church tax '{self.id}' must use the dependent_tax category"
            )

        if self.is_dependent_tax:
            if self.rate is None:
                raise ConfigurationError(
                    f"Dependent tax '{self.id}' must define the rate applied to income tax"
                )
            _require_non_negative(self.rate, f"Dependent tax '{self.id}' rate")
            return self

        if self.kind is DeductionKind.PERCENTAGE:
            if self.rate is None and not self.rates_by_age:
                raise ConfigurationError(
                    f"Percentage deductible '{self.id}' requires 'rate' or 'rates_by_age'"
                )
            _require_non_negative(self.rate, f"Deductible '{self.id}' rate")
        elif self.kind is DeductionKind.FIXED:
            if self.amount is None:
                raise ConfigurationError(f"Fixed deductible '{self.id}' requires 'amount'")
        elif not self.brackets:
            raise ConfigurationError(
                f"Progressive deductible '{self.id}' requires at least one bracket"
            )

        if self.kind is DeductionKind.PROGRESSIVE:
            if any(bracket.rate < 0 for bracket in self.brackets):
                raise ConfigurationError(
                    f"Progressive deductible '{self.id}' cannot use negative rates"
                )

        return self

    @property
    def is_dependent_tax(self) -> bool:
        return self.category is RuleCategory.DEPENDENT_TAX or self.is_church_tax

    @property
    def is_credit(self) -> bool:
        """Whether the amount reduces the filer's liability instead of adding to it."""

        return self.kind is DeductionKind.CREDIT_PROGRESSIVE or self.reduces_tax


def _unique_identifiers(entries: Iterable[Any], scope: str) -> None:
    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            raise ConfigurationError(f"Duplicate identifier '{entry.id}' in {scope}")
        seen.add(entry.id)


class SubNationalRule(ImmutableModel):
    """A state, province, canton or nation with its own deductibles."""

    id: str
    name: str
    deductibles: tuple[Deductible, ...] = ()
    replaces: tuple[str, ...] = ()

    @field_validator("deductibles", "replaces", mode="before")
    @classmethod
    def _default_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @model_validator(mode="after")
    def _validate_region(self) -> SubNationalRule:
        _unique_identifiers(self.deductibles, f"region '{self.id}'")
        return self


class FilerPolicy(ImmutableModel):
    """Jurisdiction carve-out keyed by rule category and filer state.

    A policy applies to every deductible in ``category`` (optionally narrowed
    to a single ``rule`` identifier) when the filer is in ``filer_state``.
    Any override left unset keeps the deductible's own value.
    """

    category: RuleCategory
    rule: str | None = None
    filer_state: FilerState
    exempt_amount: float | None = None
    brackets: tuple[TaxBracket, ...] | None = None
    fixed_credits: float | None = None
    income_splitting: bool = False
    basis_factor: float | None = None
    waived: bool = False

    @model_validator(mode="after")
    def _validate_policy(self) -> FilerPolicy:
        _require_non_negative(self.exempt_amount, "Policy exempt_amount")
        _require_non_negative(self.fixed_credits, "Policy fixed_credits")
        _require_non_negative(self.basis_factor, "Policy basis_factor")
        if self.income_splitting and self.brackets is not None:
            raise ConfigurationError(
                "Policies must choose either income splitting or substitute brackets"
            )
        if self.brackets is not None and not self.brackets:
            raise ConfigurationError("Substitute bracket tables cannot be empty")
        return self

    def applies_to(self, deductible: Deductible, states: frozenset[FilerState]) -> bool:
        if self.filer_state not in states:
            return False
        if self.category is not deductible.category:
            return False
        return self.rule is None or self.rule == deductible.id


class RuleSource(ImmutableModel):
    """Provenance for the figures in a jurisdiction's rules."""

    label: str
    url: str | None = None
    date: str | None = None


class CountryRules(ImmutableModel):
    """Structured representation of one jurisdiction's payroll rules."""

    code: str
    name: str
    currency: str
    currency_symbol: str = ""
    exchange_rate_per_usd: float = 1.0
    federal_deductibles: tuple[Deductible, ...] = ()
    sub_national_label: str | None = None
    sub_national_rules: tuple[SubNationalRule, ...] = ()
    policies: tuple[FilerPolicy, ...] = ()
    sources: tuple[RuleSource, ...] = ()
    has_marital_status_option: bool = False
    has_church_tax_option: bool = False
    has_expat_option: bool = False

    @field_validator("code", mode="before")
    @classmethod
    def _normalise_code(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ConfigurationError("Jurisdiction code must be a non-empty string")
        return value.strip().upper()

    @field_validator(
        "federal_deductibles", "sub_national_rules", "policies", "sources", mode="before"
    )
    @classmethod
    def _default_empty(cls, value: Any) -> Any:
        return () if value is None else value

    @model_validator(mode="after")
    def _validate_country(self) -> Self:
        if self.exchange_rate_per_usd <= 0:
            raise ConfigurationError("Exchange rates must be positive")

        _unique_identifiers(self.federal_deductibles, f"{self.code} federal deductibles")
        _unique_identifiers(self.sub_national_rules, f"{self.code} sub-national rules")

        federal_ids = {deductible.id for deductible in self.federal_deductibles}
        known_ids = set(federal_ids)
        for region in self.sub_national_rules:
            missing = [rule for rule in region.replaces if rule not in federal_ids]
            if missing:
                raise ConfigurationError(
                    f"Region '{region.id}' replaces unknown federal rules: {missing}"
                )
            known_ids.update(deductible.id for deductible in region.deductibles)

        for policy in self.policies:
            if policy.rule is not None and policy.rule not in known_ids:
                raise ConfigurationError(
                    f"Policy targets unknown rule '{policy.rule}' in {self.code}"
                )
        return self

    def get_region(self, region_id: str | None) -> SubNationalRule | None:
        if not region_id:
            return None
        for region in self.sub_national_rules:
            if region.id == region_id:
                return region
        return None

    @computed_field
    @property
    def region_ids(self) -> tuple[str, ...]:
        return tuple(region.id for region in self.sub_national_rules)


class JurisdictionManifestEntry(ImmutableModel):
    """Entry describing a supported jurisdiction in the manifest."""

    code: str
    filename: str | None = None
    status: str = "active"

    @field_validator("code", mode="before")
    @classmethod
    def _normalise_code(cls, value: Any) -> str:
        return str(value).strip().upper()

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.code.lower()}.yaml"


class JurisdictionManifest(ImmutableModel):
    """Manifest describing the available jurisdiction rule files."""

    jurisdictions: tuple[JurisdictionManifestEntry, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _validate_codes(self) -> JurisdictionManifest:
        seen: set[str] = set()
        for entry in self.jurisdictions:
            if entry.code in seen:
                raise ConfigurationError(
                    f"Duplicate jurisdiction {entry.code} declared in the manifest"
                )
            seen.add(entry.code)
        return self

    def get_entry(self, code: str) -> JurisdictionManifestEntry:
        normalised = code.strip().upper()
        for entry in self.jurisdictions:
            if entry.code == normalised:
                return entry
        raise KeyError(code)

    @computed_field
    @property
    def supported_codes(self) -> tuple[str, ...]:
        return tuple(entry.code for entry in self.jurisdictions)


__all__ = [
    "AgeRateBand",
    "ConfigurationError",
    "CountryRules",
    "DeductionKind",
    "Deductible",
    "FilerPolicy",
    "FilerState",
    "ImmutableModel",
    "JurisdictionManifest",
    "JurisdictionManifestEntry",
    "RuleCategory",
    "RuleSource",
    "SubNationalRule",
    "TaperRule",
    "TaxBracket",
    "UnknownJurisdictionError",
    "ValidationError",
    "slugify",
]
