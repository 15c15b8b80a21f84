from decimal import Decimal, ROUND_HALF_EVEN, ROUND_HALF_UP
from typing import Iterable
from .models import CHF, chf

FIVE_CENTIMES = Decimal("0.05")


def round_to_increment(amount: CHF, inc: CHF) -> CHF:
    if inc <= 0:
        return amount
    # nearest multiple of inc, half away from zero
    return (amount / inc).to_integral_value(rounding=ROUND_HALF_UP) * inc


def round_to_places(amount: CHF, places: int) -> CHF:
    """Banker's rounding to `places` decimals."""
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def round_whole(amount: CHF) -> CHF:
    return round_to_places(amount, 0)


def round_five_centimes(amount: CHF) -> CHF:
    """Round to the next 5 Rappen, then drop residual noise below 1 Rappen."""
    return round_to_places(round_to_increment(amount, FIVE_CENTIMES), 2)


def multiply_percent(amount: CHF, percent: float | int | Decimal, places: int) -> CHF:
    """amount * percent / 100, rounded half-to-even at `places` decimals."""
    return round_to_places(amount * chf(percent) / Decimal(100), places)


def add_many(amounts: Iterable[CHF]) -> CHF:
    return sum(amounts, Decimal(0))


def max_of(*amounts: CHF) -> CHF:
    return max(amounts)
