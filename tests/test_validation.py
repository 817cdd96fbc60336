import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from reliefdesk.core import validation as v
from reliefdesk.core.validation import REQUIRED_MESSAGE, ValidationResult


ALL_VALIDATORS = [
    v.ssn,
    v.phone,
    v.email,
    v.zip_code,
    v.routing_number,
    v.account_number,
    v.tax_year,
    v.money(25),
    v.day_of_month(),
    v.date_value,
    v.not_in_future,
    v.non_empty,
    v.min_length(50),
    v.one_of(["a", "b"]),
    v.many_of(["a", "b"]),
    v.boolean,
    v.must_be_true("must accept"),
    v.min_items(1),
    v.min_documents(1),
    v.date_before("other", "too late"),
    v.date_after("other", "too early"),
    v.required_if(lambda values: values["missing"]),
]

ODD_INPUTS = [None, "", "   ", 0, -1, 3.5, True, [], {}, ["x"], {"name": 1}, object(), "2024-13-45"]


@pytest.mark.parametrize("validator", ALL_VALIDATORS)
def test_validators_never_raise(validator):
    for value in ODD_INPUTS:
        result = validator(value, {"other": "garbage"})
        assert isinstance(result, ValidationResult)


def test_absent_values_report_required():
    for validator in (v.ssn, v.phone, v.money(1), v.date_value, v.min_length(10), v.one_of(["a"])):
        result = validator(None, {})
        assert not result.ok
        assert result.message == REQUIRED_MESSAGE


def test_format_validators():
    assert v.ssn("123-45-6789", {}).ok
    assert v.ssn("123456789", {}).ok
    assert v.ssn("12-345", {}).message == "Valid SSN is required"
    assert v.phone("(555) 123-4567", {}).ok
    assert v.phone("555.123.4567", {}).ok
    assert v.phone("12345", {}).message == "Valid phone number is required"
    assert v.email("someone@example.com", {}).ok
    assert not v.email("someone@", {}).ok
    assert v.zip_code("94107-1234", {}).ok
    assert not v.zip_code("9410", {}).ok
    assert v.routing_number("021000021", {}).ok
    assert not v.routing_number("0210", {}).ok


def test_tax_year_range():
    assert v.tax_year("2023", {}).ok
    assert v.tax_year(2020, {}).ok
    assert not v.tax_year("1800", {}).ok
    assert not v.tax_year(str(date.today().year + 1), {}).ok
    assert not v.tax_year("20x3", {}).ok


def test_money_and_day_of_month():
    minimum = v.money(25, "Minimum payment is $25")
    assert minimum("$1,250.00", {}).ok
    assert minimum("10", {}).message == "Minimum payment is $25"
    assert minimum("lots", {}).message == "Enter a valid amount"
    assert v.money(0)("0", {}).ok
    assert v.money(0)("1e400", {}).message == "Enter a valid amount"
    assert v.money(0)("2000000000000", {}).message == "Amount is too large"
    assert v.money(0)("1000000000000", {}).ok

    day = v.day_of_month(1, 28)
    assert day("15", {}).ok
    assert not day(29, {}).ok
    assert not day(15.5, {}).ok


def test_narrative_minimum_length():
    check = v.min_length(100)
    assert check("x" * 100, {}).ok
    result = check("too short", {})
    assert result.message == "Please provide a detailed explanation (at least 100 characters)"


def test_choices_are_normalised():
    assert v.one_of(["non-streamlined"])("Non_Streamlined", {}).ok
    assert not v.one_of(["a", "b"])("c", {}).ok
    assert v.many_of(["bank-levy", "wage-garnishment"])(["bank_levy"], {}).ok
    assert not v.many_of(["a"])(["a", "z"], {}).ok


def test_acknowledgements_require_literal_true():
    accept = v.must_be_true("You must accept the terms")
    assert accept(True, {}).ok
    assert accept("true", {}).message == "You must accept the terms"
    assert not accept(None, {}).ok


def test_documents_need_name_and_size():
    check = v.min_documents(1)
    assert not check([], {}).ok
    assert not check([{"name": "w2.pdf", "size_bytes": 0}], {}).ok
    assert check([{"name": "w2.pdf", "size_bytes": 2048}], {}).ok


def test_date_ordering_validators():
    values = {"marriage_date": "2010-06-01"}
    after = v.date_after("marriage_date", "Separation date must be after the marriage date")
    assert after("2015-01-01", values).ok
    assert after("2009-01-01", values).message == "Separation date must be after the marriage date"
    assert after("2009-01-01", {}).ok

    before = v.date_before("end", "must precede end")
    assert before("2020-01-01", {"end": "2021-01-01"}).ok
    assert not before("2021-01-01", {"end": "2021-01-01"}).ok
    assert v.date_before("end", "x", or_equal=True)("2021-01-01", {"end": "2021-01-01"}).ok


def test_not_in_future():
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    assert v.not_in_future(tomorrow, {}).message == "Date cannot be in the future"
    assert v.not_in_future("2020-02-29", {}).ok


def test_required_if_and_run_validator():
    conditional = v.required_if(lambda values: values.get("hardship") is True, "Please explain the hardship")
    assert conditional(None, {"hardship": False}).ok
    assert conditional(None, {"hardship": True}).message == "Please explain the hardship"

    assert v.run_validator(lambda value, values: True, 1, {}).ok
    assert v.run_validator(lambda value, values: (False, "nope"), 1, {}).message == "nope"
    assert v.run_validator(lambda value, values: 0, 1, {}).message == "Invalid value"
