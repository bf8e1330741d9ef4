from datetime import date

import pytest

from periods import month_period, parse_month


def test_month_period_uses_real_month_length() -> None:
    feb = month_period("2024-02")
    assert feb.start == date(2024, 2, 1)
    assert feb.end == date(2024, 2, 29)

    assert month_period("2023-02").end == date(2023, 2, 28)
    assert month_period("2024-04").end == date(2024, 4, 30)


def test_month_period_wraps_december() -> None:
    dec = month_period("2024-12")
    assert dec.start == date(2024, 12, 1)
    assert dec.end == date(2024, 12, 31)


@pytest.mark.parametrize("value", ["2024-13", "2024-00", "24-01", "2024/01", ""])
def test_parse_month_rejects_bad_values(value) -> None:
    with pytest.raises(ValueError):
        parse_month(value)
