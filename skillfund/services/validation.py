"""Form validation helpers shared by the service modules.

Validation runs before any backend call. Field errors are collected and
raised together so a page can show every message at once.
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Mapping


class ValidationError(Exception):
    """Raised when submitted form data is invalid."""

    def __init__(self, errors: dict[str, str]):
        super().__init__("; ".join(errors.values()))
        self.errors = errors


class FormReader:
    """Collects field errors while reading values out of a submitted form."""

    def __init__(self, form: Mapping[str, Any]):
        self.form = form
        self.errors: dict[str, str] = {}

    def text(self, name: str, *, required: str | None = None) -> str:
        value = (self.form.get(name) or "").strip()
        if not value and required:
            self.errors[name] = required
        return value

    def number(
        self,
        name: str,
        *,
        required: str | None = None,
        minimum: float | None = None,
        minimum_message: str | None = None,
        exclusive: bool = False,
    ) -> float | None:
        raw = (str(self.form.get(name) or "")).strip()
        if not raw:
            if required:
                self.errors[name] = required
            return None
        try:
            value = float(raw)
        except ValueError:
            value = math.nan
        # float() also accepts "nan" and "inf"
        if not math.isfinite(value):
            self.errors[name] = "Must be a number"
            return None
        if minimum is not None:
            too_small = value <= minimum if exclusive else value < minimum
            if too_small:
                self.errors[name] = minimum_message or f"Must be at least {minimum:g}"
                return None
        return value

    def date(self, name: str, *, required: str | None = None) -> str | None:
        raw = self.text(name, required=required)
        if not raw:
            return None
        try:
            return date.fromisoformat(raw).isoformat()
        except ValueError:
            self.errors[name] = "Enter a valid date (YYYY-MM-DD)"
            return None

    def choice(self, name: str, choices: list[str], *, required: str) -> str:
        value = self.text(name, required=required)
        if value and value not in choices:
            self.errors[name] = f"Choose one of: {', '.join(choices)}"
        return value

    def fail(self, name: str, message: str) -> None:
        self.errors.setdefault(name, message)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(dict(self.errors))


def split_csv(value: str | None) -> list[str]:
    """Split a comma separated field, trimming and dropping blanks and repeats."""
    items: list[str] = []
    for part in (value or "").split(","):
        part = part.strip()
        if part and part not in items:
            items.append(part)
    return items
