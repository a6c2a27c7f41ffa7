"""
BizzyTrack Command Layer — Request Validation Errors
=====================================================
Typed engine requests validate their fields in ``__post_init__`` and
report every problem at once.

Usage:
    errors = FieldErrors()
    errors.check(bool(self.name), "name", "name must be non-empty.")
    errors.raise_if_any()
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class RequestValidationError(ValueError):
    """A ValueError carrying one FieldError per invalid field."""

    def __init__(self, errors: List[FieldError]):
        if not errors:
            raise ValueError("RequestValidationError needs at least one error.")
        self.errors = tuple(errors)
        super().__init__(" ".join(e.message for e in self.errors))

    def to_details(self) -> dict:
        return {"errors": [e.to_dict() for e in self.errors]}


class FieldErrors:
    def __init__(self) -> None:
        self._errors: List[FieldError] = []

    def add(self, field: str, message: str) -> None:
        self._errors.append(FieldError(field=field, message=message))

    def check(self, condition: bool, field: str, message: str) -> None:
        if not condition:
            self.add(field, message)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def raise_if_any(self) -> None:
        if self._errors:
            raise RequestValidationError(self._errors)
