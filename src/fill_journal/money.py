from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

# Six decimal digits of precision.
SCALE = 1_000_000


@dataclass(frozen=True, order=True)
class Money:
    """Monetary amount held as an integer count of millionths.

    Fee and PnL totals are accumulated in this form so that summing many
    small values does not drift the way binary floats do.
    """

    raw: int = 0

    def __add__(self, other: Money) -> Money:
        return Money(self.raw + other.raw)

    def __sub__(self, other: Money) -> Money:
        return Money(self.raw - other.raw)

    def __neg__(self) -> Money:
        return Money(-self.raw)

    def __bool__(self) -> bool:
        return self.raw != 0

    def scale(self, factor: float) -> Money:
        return Money(_round_half_up(self.raw * factor))

    def divide(self, divisor: float) -> Money:
        if divisor == 0:
            return ZERO
        return Money(_round_half_up(self.raw / divisor))

    def ratio(self, other: Money) -> float:
        return safe_div(self.raw, other.raw)

    def to_float(self) -> float:
        return self.raw / SCALE


ZERO = Money(0)


def to_money(value: float) -> Money:
    return Money(_round_half_up(value * SCALE))


def from_money(value: Money) -> float:
    return value.to_float()


def sum_money(values: Iterable[float | Money]) -> Money:
    total = 0
    for value in values:
        total += value.raw if isinstance(value, Money) else to_money(value).raw
    return Money(total)


def safe_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))
