"""Pydantic models describing the public API surface."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

__all__ = [
    "CalculationRequest",
    "CalculationResponse",
    "CostsInput",
    "DeductionEntry",
    "DetailsInput",
    "GrossFromNetRequest",
    "GrossFromNetResponse",
    "PayloadValidationError",
    "format_validation_error",
    "validation_error_fields",
]


class DetailsInput(BaseModel):
    """Filer circumstances supplied by the client."""

    model_config = ConfigDict(extra="forbid")

    age: int | None = Field(default=None, ge=0, le=130)
    marital_status: Literal["single", "married"] = "single"
    church_tax: bool = False
    is_expat: bool = False


class CostsInput(BaseModel):
    """Monthly living costs supplied by the client."""

    model_config = ConfigDict(extra="forbid")

    rent: float = Field(default=0.0, ge=0)
    groceries: float = Field(default=0.0, ge=0)
    utilities: float = Field(default=0.0, ge=0)
    transport: float = Field(default=0.0, ge=0)
    insurance: float = Field(default=0.0, ge=0)
    emergency_fund: float = Field(default=0.0, ge=0)
    debt: float = Field(default=0.0, ge=0)
    freedom_fund: float = Field(default=0.0, ge=0)


class _JurisdictionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    country: str = Field(..., min_length=2, max_length=3)
    sub_region: str | None = None
    frequency: Literal["monthly", "annual"] = "annual"
    details: DetailsInput = Field(default_factory=DetailsInput)
    costs: CostsInput = Field(default_factory=CostsInput)
    annual_bonus: float = Field(default=0.0, ge=0)

    @field_validator("country", mode="before")
    @classmethod
    def _normalise_country(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class CalculationRequest(_JurisdictionRequest):
    """Payload accepted by the forward gross-to-net endpoint."""

    gross_income: float = Field(..., ge=0)


class GrossFromNetRequest(_JurisdictionRequest):
    """Payload accepted by the reverse net-to-gross endpoint."""

    target_net: float = Field(..., ge=0)


class DeductionEntry(BaseModel):
    """Serialised breakdown line."""

    name: str
    amount: float
    description: str | None = None
    is_employer: bool = False


class CalculationResponse(BaseModel):
    """Serialised forward calculation result."""

    country: str
    sub_region: str | None = None
    currency: str
    gross_annual: float
    gross_monthly: float
    net_annual: float
    net_monthly: float
    net_weekly: float
    net_bi_weekly: float
    total_deductions_annual: float
    total_deductions_monthly: float
    employer_contributions_annual: float
    effective_rate: float
    marginal_rate: float
    deductions: list[DeductionEntry]
    personal_costs_total: float
    disposable_monthly: float
    annual_bonus: float


class GrossFromNetResponse(BaseModel):
    """Serialised reverse solve result."""

    country: str
    sub_region: str | None = None
    currency: str
    frequency: Literal["monthly", "annual"]
    target_net: float
    gross: float
    residual: float
    converged: bool
    iterations: int


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"


def validation_error_fields(error: ValidationError) -> tuple[str, ...]:
    """Return the dotted locations of every rejected field, without repeats."""

    fields: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        if location and location not in fields:
            fields.append(location)
    return tuple(fields)


class PayloadValidationError(ValueError):
    """A calculation request was rejected; ``fields`` names what to correct."""

    def __init__(self, message: str, fields: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> PayloadValidationError:
        return cls(format_validation_error(error), validation_error_fields(error))
