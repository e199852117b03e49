from paper_trading.utils.formatting import format_large_number, format_percent, format_price


def test_format_price():
    assert format_price(65_432.1) == "$65,432.10"
    assert format_price(12.5) == "$12.50"
    assert format_price(1.23456) == "$1.2346"
    assert format_price(0.00123) == "$0.00123"
    assert format_price(0.000123) == "$0.000123"
    assert format_price(-1_500) == "-$1,500.00"


def test_format_percent():
    assert format_percent(1.234) == "+1.23%"
    assert format_percent(-0.5) == "-0.50%"


def test_format_large_number():
    assert format_large_number(1_500_000_000) == "$1.50B"
    assert format_large_number(2_500_000) == "$2.50M"
    assert format_large_number(999) == "$999.00"
