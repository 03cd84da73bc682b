"""3K5 quota allocator.

A manufacturing employer may hire foreign workers up to its average
domestic headcount multiplied by a regulator-assigned allocation rate.
The rate is a base grade (10%-35%) plus an optional "extra" surcharge
grade, never more than 40% in total.

Rounding rule (labour regulation wording): if the first decimal digit of
the raw product is greater than zero the quota is rounded up, otherwise
it is rounded down.

Deterministic — pure functions, Decimal arithmetic.
"""

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal

MAX_ALLOCATION_RATE = Decimal("0.40")

BASE_RATES: tuple[Decimal, ...] = (
    Decimal("0.10"),  # grade D
    Decimal("0.15"),  # grade C
    Decimal("0.20"),  # grade B
    Decimal("0.25"),  # grade A
    Decimal("0.35"),  # grade A+
)

EXTRA_RATES: tuple[Decimal, ...] = (
    Decimal("0.00"),
    Decimal("0.05"),
    Decimal("0.10"),
    Decimal("0.15"),
)


def _to_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so 0.15 becomes Decimal("0.15"), not its binary expansion
    return Decimal(str(value))


def compose_allocation_rate(
    base_rate: Decimal | float | str,
    extra_rate: Decimal | float | str = Decimal("0"),
    apply_extra: bool = False,
) -> Decimal:
    """Combine base and extra rates, capped at 40%.

    The extra rate only counts when ``apply_extra`` is set.
    """
    base = _to_decimal(base_rate)
    extra = _to_decimal(extra_rate) if apply_extra else Decimal("0")
    if base < 0 or extra < 0:
        msg = "Allocation rates must not be negative."
        raise ValueError(msg)
    return min(MAX_ALLOCATION_RATE, base + extra)


def calculate_3k5_quota(labor_count: int, rate: Decimal | float | str) -> int:
    """Return the foreign-worker quota for a domestic headcount and rate.

    Raises:
        ValueError: labor_count is negative or rate is outside [0, 0.40].
    """
    if labor_count < 0:
        msg = f"labor_count must be >= 0, got {labor_count}"
        raise ValueError(msg)

    rate_d = _to_decimal(rate)
    if rate_d < 0 or rate_d > MAX_ALLOCATION_RATE:
        msg = f"rate must be within [0, {MAX_ALLOCATION_RATE}], got {rate_d}"
        raise ValueError(msg)

    raw = Decimal(labor_count) * rate_d
    if raw == raw.to_integral_value():
        return int(raw)

    first_decimal = int((raw * 10) % 10)
    if first_decimal > 0:
        return int(raw.to_integral_value(rounding=ROUND_CEILING))
    return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def describe_quota(labor_count: int, rate: Decimal | float | str) -> str:
    """Human-readable quota arithmetic, e.g. ``125 × 15% = 19``."""
    rate_d = _to_decimal(rate)
    percent = (rate_d * 100).normalize()
    quota = calculate_3k5_quota(labor_count, rate_d)
    return f"{labor_count} × {percent:f}% = {quota}"
