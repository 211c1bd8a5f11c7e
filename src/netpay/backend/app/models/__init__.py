"""Typed inputs and results shared across the calculation services.

User inputs are frozen Pydantic models so that the engine can trust their
shape, while derived results are lightweight frozen dataclasses that the
service layer rounds and serialises for HTTP responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .api import (
    CalculationRequest,
    CalculationResponse,
    DeductionEntry,
    GrossFromNetRequest,
    GrossFromNetResponse,
    PayloadValidationError,
    format_validation_error,
    validation_error_fields,
)

__all__ = [
    "CalculationRequest",
    "CalculationResponse",
    "CalculationResult",
    "DeductionEntry",
    "DeductionResult",
    "FilerDetails",
    "Frequency",
    "GrossFromNetRequest",
    "GrossFromNetResponse",
    "PayloadValidationError",
    "PersonalCosts",
    "UserInputs",
    "format_validation_error",
    "validation_error_fields",
]

Frequency = Literal["monthly", "annual"]


class _FrozenInput(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class FilerDetails(_FrozenInput):
    """Personal circumstances that select age bands and filer policies."""

    age: int | None = Field(default=None, ge=0, le=130)
    marital_status: Literal["single", "married"] = "single"
    church_tax: bool = False
    is_expat: bool = False

    @property
    def is_married(self) -> bool:
        return self.marital_status == "married"


class PersonalCosts(_FrozenInput):
    """Monthly living costs used for the disposable-income figure."""

    rent: float = 0.0
    groceries: float = 0.0
    utilities: float = 0.0
    transport: float = 0.0
    insurance: float = 0.0
    emergency_fund: float = 0.0
    debt: float = 0.0
    freedom_fund: float = 0.0

    @property
    def monthly_total(self) -> float:
        """Sum of the costs subtracted from net pay.

        ``debt`` and ``freedom_fund`` are tracked for display only.
        """

        return (
            self.rent
            + self.groceries
            + self.utilities
            + self.transport
            + self.insurance
            + self.emergency_fund
        )


class UserInputs(_FrozenInput):
    """Everything the engine needs to evaluate one filer."""

    gross_income: float
    frequency: Frequency = "annual"
    country: str
    sub_region: str | None = None
    details: FilerDetails = Field(default_factory=FilerDetails)
    costs: PersonalCosts = Field(default_factory=PersonalCosts)
    annual_bonus: float = 0.0

    @field_validator("country", mode="before")
    @classmethod
    def _normalise_country(cls, value: object) -> str:
        return str(value).strip().upper()

    @field_validator("sub_region", mode="before")
    @classmethod
    def _blank_region(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def periods_per_year(self) -> int:
        return 12 if self.frequency == "monthly" else 1

    @property
    def gross_annual(self) -> float:
        return self.gross_income * self.periods_per_year

    def with_annual_gross(self, gross_annual: float) -> UserInputs:
        """Return a copy evaluated at ``gross_annual`` on an annual basis."""

        return self.model_copy(
            update={"gross_income": gross_annual, "frequency": "annual"}
        )


@dataclass(frozen=True)
class DeductionResult:
    """One line of the deductions breakdown."""

    name: str
    amount: float
    description: str | None = None
    is_employer: bool = False


@dataclass(frozen=True)
class CalculationResult:
    """Annual and per-period figures produced by the net pay aggregator."""

    gross_annual: float
    gross_monthly: float
    net_annual: float
    net_monthly: float
    net_weekly: float
    net_bi_weekly: float
    total_deductions_annual: float
    total_deductions_monthly: float
    employer_contributions_annual: float
    deductions_breakdown: tuple[DeductionResult, ...]
    disposable_monthly: float
    personal_costs_total: float
    marginal_rate: float
    annual_bonus: float
    currency: str
