"""Problem responses returned by the NetPay API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import jsonify

from .models import PayloadValidationError


@dataclass(frozen=True)
class ProblemResponse:
    """RFC 7807-style error body.

    ``fields`` lists the dotted request locations a client has to correct,
    for example ``details.age`` or ``sub_region``. It is omitted when the
    problem is not tied to a specific field.
    """

    error: str
    status: int
    message: str | None = None
    fields: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, "status": self.status}
        if self.message:
            payload["message"] = self.message
        if self.fields:
            payload["fields"] = list(self.fields)
        return payload

    def to_response(self) -> tuple[Any, int]:
        return jsonify(self.as_dict()), self.status


def bad_request(message: str | None) -> ProblemResponse:
    """Problem for bodies that could not be parsed at all."""

    return ProblemResponse("bad_request", 400, message or "Invalid request")


def not_found(message: str) -> ProblemResponse:
    return ProblemResponse("not_found", 404, message)


def validation_problem(error: ValueError) -> ProblemResponse:
    """Problem for a rejected calculation request, naming fields when known."""

    fields = error.fields if isinstance(error, PayloadValidationError) else ()
    return ProblemResponse("validation_error", 400, str(error), fields)


__all__ = ["ProblemResponse", "bad_request", "not_found", "validation_problem"]
