"""Field validators.

Every validator has the signature ``validator(value, values) -> ValidationResult``
where ``values`` is the full (read-only) answer map including derived values.
Validators are total: they never raise, whatever the input type, and report
an absent value with a dedicated "required" message.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from reliefdesk.core.coerce import is_blank, normalise_token, optional_decimal, parse_date

REQUIRED_MESSAGE = "This field is required"

_SSN_RE = re.compile(r"^\d{3}-?\d{2}-?\d{4}$")
_PHONE_RE = re.compile(r"^\(?([0-9]{3})\)?[-. ]?([0-9]{3})[-. ]?([0-9]{4})$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
_ROUTING_RE = re.compile(r"^\d{9}$")
_ACCOUNT_RE = re.compile(r"^\d{4,17}$")
_TAX_YEAR_RE = re.compile(r"^\d{4}$")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    ok: bool
    message: str | None = None

    def __bool__(self) -> bool:
        return self.ok


OK = ValidationResult(True)

Validator = Callable[[Any, Mapping[str, Any]], ValidationResult]


def fail(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def _text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return str(value)
    return None


def check_required(value: Any, message: str = REQUIRED_MESSAGE) -> ValidationResult:
    return fail(message) if is_blank(value) else OK


# ----------------------------------------------------------------------
# format validators
# ----------------------------------------------------------------------
def _pattern(regex: re.Pattern[str], message: str) -> Validator:
    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        text = _text(value)
        if text is None or not regex.match(text):
            return fail(message)
        return OK

    return validate


ssn = _pattern(_SSN_RE, "Valid SSN is required")
phone = _pattern(_PHONE_RE, "Valid phone number is required")
email = _pattern(_EMAIL_RE, "Valid email address is required")
zip_code = _pattern(_ZIP_RE, "Valid ZIP code is required")
routing_number = _pattern(_ROUTING_RE, "Routing number must be 9 digits")
account_number = _pattern(_ACCOUNT_RE, "Account number must be 4 to 17 digits")


def tax_year(value: Any, values: Mapping[str, Any]) -> ValidationResult:
    if is_blank(value):
        return fail(REQUIRED_MESSAGE)
    text = _text(value)
    if text is None or not _TAX_YEAR_RE.match(text):
        return fail("Tax year must be a four digit year")
    if not 1900 <= int(text) <= date.today().year:
        return fail("Tax year is out of range")
    return OK


MONEY_LIMIT = Decimal("1e12")


def money(minimum: Any = 0, message: str | None = None) -> Validator:
    """Amount validator accepting numbers and numeric strings."""

    floor = optional_decimal(minimum) or Decimal("0")
    below = message or f"Amount must be at least ${floor:,}"

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        amount = optional_decimal(value)
        if amount is None:
            return fail("Enter a valid amount")
        if amount < floor:
            return fail(below)
        if amount > MONEY_LIMIT:
            return fail("Amount is too large")
        return OK

    return validate


def day_of_month(first: int = 1, last: int = 28) -> Validator:
    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        amount = optional_decimal(value)
        if amount is None or amount != amount.to_integral_value() or not first <= amount <= last:
            return fail(f"Choose a day between {first} and {last}")
        return OK

    return validate


def date_value(value: Any, values: Mapping[str, Any]) -> ValidationResult:
    if is_blank(value):
        return fail(REQUIRED_MESSAGE)
    if parse_date(value) is None:
        return fail("Enter a valid date (YYYY-MM-DD)")
    return OK


def not_in_future(value: Any, values: Mapping[str, Any]) -> ValidationResult:
    result = date_value(value, values)
    if not result:
        return result
    if parse_date(value) > date.today():
        return fail("Date cannot be in the future")
    return OK


# ----------------------------------------------------------------------
# text, choice and collection validators
# ----------------------------------------------------------------------
def non_empty(value: Any, values: Mapping[str, Any]) -> ValidationResult:
    return check_required(value)


def min_length(length: int, message: str | None = None) -> Validator:
    """Free text of at least ``length`` characters (narratives, explanations)."""

    too_short = message or f"Please provide a detailed explanation (at least {length} characters)"

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        if not isinstance(value, str) or len(value.strip()) < length:
            return fail(too_short)
        return OK

    return validate


def one_of(choices: Iterable[str], message: str = "Please select a valid option") -> Validator:
    allowed = {normalise_token(choice) for choice in choices}

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        if isinstance(value, (list, dict)) or normalise_token(value) not in allowed:
            return fail(message)
        return OK

    return validate


def many_of(choices: Iterable[str], message: str = "Please select valid options") -> Validator:
    allowed = {normalise_token(choice) for choice in choices}

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        if not isinstance(value, (list, tuple)):
            return fail(message)
        if any(normalise_token(item) not in allowed for item in value):
            return fail(message)
        return OK

    return validate


def boolean(value: Any, values: Mapping[str, Any]) -> ValidationResult:
    if value is None:
        return fail("Please answer this question")
    if not isinstance(value, bool):
        return fail("Please answer yes or no")
    return OK


def must_be_true(message: str) -> Validator:
    """Acknowledgements and certifications that must be explicitly accepted."""

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        return OK if value is True else fail(message)

    return validate


def min_items(count: int, message: str | None = None) -> Validator:
    too_few = message or f"Please select at least {count}"

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(too_few)
        if not isinstance(value, (list, tuple)) or len(value) < count:
            return fail(too_few)
        return OK

    return validate


def min_documents(count: int, message: str | None = None) -> Validator:
    """At least ``count`` uploaded documents with a name and a positive size."""

    too_few = message or "Please upload supporting documentation"

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if not isinstance(value, (list, tuple)):
            return fail(too_few)
        usable = 0
        for item in value:
            name = getattr(item, "name", None)
            size = getattr(item, "size_bytes", None)
            if isinstance(item, Mapping):
                name = item.get("name")
                size = item.get("size_bytes")
            if isinstance(name, str) and name.strip() and isinstance(size, int) and size > 0:
                usable += 1
        return OK if usable >= count else fail(too_few)

    return validate


# ----------------------------------------------------------------------
# composite validators
# ----------------------------------------------------------------------
def date_before(other_key: str, message: str, *, or_equal: bool = False) -> Validator:
    """The field's date must precede the date stored under ``other_key``.

    When either side is missing or unparseable the comparison is skipped; the
    format itself is checked by :func:`date_value`.
    """

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        mine = parse_date(value)
        other = parse_date(values.get(other_key)) if isinstance(values, Mapping) else None
        if mine is None or other is None:
            return OK
        if mine < other or (or_equal and mine == other):
            return OK
        return fail(message)

    return validate


def date_after(other_key: str, message: str) -> Validator:
    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        if is_blank(value):
            return fail(REQUIRED_MESSAGE)
        mine = parse_date(value)
        other = parse_date(values.get(other_key)) if isinstance(values, Mapping) else None
        if mine is None or other is None or mine > other:
            return OK
        return fail(message)

    return validate


def required_if(predicate: Callable[[Mapping[str, Any]], bool], message: str = REQUIRED_MESSAGE) -> Validator:
    """Conditional presence check evaluated against the current answers."""

    def validate(value: Any, values: Mapping[str, Any]) -> ValidationResult:
        try:
            needed = bool(predicate(values))
        except (KeyError, TypeError, ValueError, AttributeError):
            needed = False
        if needed and is_blank(value):
            return fail(message)
        return OK

    return validate


def run_validator(validator: Validator, value: Any, values: Mapping[str, Any]) -> ValidationResult:
    """Invoke ``validator`` and normalise its return value.

    Custom validators may return a bare bool or an ``(ok, message)`` tuple.
    """

    outcome = validator(value, values)
    if isinstance(outcome, ValidationResult):
        return outcome
    if isinstance(outcome, tuple) and len(outcome) == 2:
        return ValidationResult(bool(outcome[0]), outcome[1])
    return OK if outcome else fail("Invalid value")
