# orderflow/services/address_validator.py
import re
from typing import List, NamedTuple

from orderflow.domain.errors import Violation
from orderflow.domain.models import ShippingAddress


class FieldRule(NamedTuple):
    attr: str
    field: str
    label: str
    min_len: int
    max_len: int
    pattern: str
    charset: str


RULES = (
    FieldRule("full_name", "fullName", "Full name", 2, 100, r"[a-zA-Z\s'.,-]+",
              "letters, spaces, hyphens, apostrophes, and periods"),
    FieldRule("street", "street", "Street address", 5, 200, r"[a-zA-Z0-9\s,.#-]+",
              "letters, numbers, spaces, and , . # -"),
    FieldRule("city", "city", "City", 2, 100, r"[a-zA-Z\s-]+",
              "letters, spaces, and hyphens"),
    FieldRule("state", "state", "State/Province", 2, 50, r"[a-zA-Z\s-]+",
              "letters, spaces, and hyphens"),
    FieldRule("postal_code", "postalCode", "Postal code", 3, 10, r"[a-zA-Z0-9\s-]+",
              "letters, numbers, spaces, and hyphens"),
    FieldRule("country", "country", "Country", 2, 50, r"[a-zA-Z\s]+",
              "letters and spaces"),
)


class AddressValidator:
    """Shape checks for a shipping address; returns every violation, never raises."""

    def validate(self, address: ShippingAddress) -> List[Violation]:
        violations = []
        for rule in RULES:
            violation = self._check(rule, getattr(address, rule.attr) or "")
            if violation is not None:
                violations.append(violation)
        return violations

    @staticmethod
    def _check(rule: FieldRule, raw: str) -> Violation | None:
        value = raw.strip()
        field = f"shippingAddress.{rule.field}"

        if not value:
            return Violation("REQUIRED_FIELD", f"{rule.label} is required", field=field)
        if len(value) < rule.min_len:
            return Violation(
                "INVALID_LENGTH", f"{rule.label} must be at least {rule.min_len} characters", field=field
            )
        if len(value) > rule.max_len:
            return Violation(
                "INVALID_LENGTH", f"{rule.label} must not exceed {rule.max_len} characters", field=field
            )
        if not re.fullmatch(rule.pattern, value):
            return Violation(
                "INVALID_FORMAT", f"{rule.label} can only contain {rule.charset}", field=field
            )
        return None
