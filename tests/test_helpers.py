"""
Conversion helper tests
"""
from app.utils.helpers import (
    convert_dimension,
    convert_weight,
    format_dimensions,
    safe_float,
    safe_int,
    safe_str,
)


def test_safe_conversions():
    assert safe_str(None) == ""
    assert safe_int("12") == 12
    assert safe_int("Not Ranked") == 0
    assert safe_float("7.25") == 7.25
    assert safe_float(None) == 0.0


def test_inches_converted_to_cm():
    assert convert_dimension("12") == {"imperial": '12"', "metric": "30.5 cm", "rawValue": 12.0}


def test_metric_dimension_passed_through():
    assert convert_dimension("30 cm")["metric"] == "30 cm"


def test_zero_dimension_is_missing():
    assert convert_dimension("0")["rawValue"] is None


def test_weight_converted_to_kg():
    assert convert_weight("2.8")["metric"] == "1.3 kg"
    assert convert_weight("1.2 kg")["metric"] == "1.2 kg"


def test_format_dimensions_skips_missing_sides():
    result = format_dimensions("12", "0", "3")
    assert result["metric"] == "W: 30.5 cm × D: 7.6 cm"
    assert result["hasDimensions"] is True


def test_format_dimensions_all_missing():
    assert format_dimensions("", "", "")["hasDimensions"] is False
