from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple, Union

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    # str() keeps the shortest repr, so 10.005 stays 10.005 and not 10.00499...
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round_half_up(value: Number, places: int) -> float:
    exponent = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP))


def line_total(items: Iterable[Tuple[Number, Number]]) -> Decimal:
    """Exact sum of ``price * quantity`` pairs."""
    total = Decimal(0)
    for price, quantity in items:
        total += to_decimal(price) * to_decimal(quantity)
    return total
