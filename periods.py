import re
from dataclasses import dataclass
from datetime import date

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


@dataclass(frozen=True)
class Period:
    slug: str
    start: date
    end: date


def parse_month(month: str) -> tuple[int, int]:
    if not isinstance(month, str) or not MONTH_PATTERN.match(month):
        raise ValueError("Invalid month format (expected YYYY-MM)")
    year, month_number = month.split("-")
    return int(year), int(month_number)


def month_period(month: str) -> Period:
    year, month_number = parse_month(month)
    first = date(year, month_number, 1)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return Period(month, first, next_month - date.resolution)
