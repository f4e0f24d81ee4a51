"""Severity definitions for audit findings."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Enumerate the supported severity levels for findings."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"

    @property
    def rank(self) -> int:
        """Return an integer ranking; higher is more severe."""

        ordering = {
            Severity.CRITICAL: 3,
            Severity.HIGH: 2,
            Severity.MEDIUM: 1,
        }
        return ordering[self]

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            choices = ", ".join(severity.value for severity in cls)
            raise ValueError(f"Unknown severity {value!r} (expected one of: {choices})") from None


SEVERITY_ORDER = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM)
