from __future__ import annotations

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from oi_history.config import Rounding
from oi_history.models import strike_key

DEFAULT_STRIKE_STEP = 50.0

# decimal's ROUND_HALF_UP resolves ties away from zero.
_ROUNDING_MODES = {
    "half_away_from_zero": ROUND_HALF_UP,
    "half_even": ROUND_HALF_EVEN,
}


def atm_strike(
    underlying_value: float,
    *,
    step: float = DEFAULT_STRIKE_STEP,
    rounding: Rounding = "half_away_from_zero",
) -> float:
    """
    Nearest listed strike to the underlying.

    Uses Decimal arithmetic so a spot that sits exactly halfway between two
    strikes always resolves the same way regardless of float representation.
    """
    try:
        spot = Decimal(str(underlying_value))
        grid = Decimal(str(step))
        units = (spot / grid).quantize(Decimal(1), rounding=_ROUNDING_MODES.get(rounding, ROUND_HALF_UP))
    except (InvalidOperation, ZeroDivisionError):
        return 0.0
    return float(units * grid)


def strike_band(atm: float, strike_count: int, *, step: float = DEFAULT_STRIKE_STEP) -> list[float]:
    """Strikes centred on `atm`, `(strike_count - 1) // 2` on each side."""
    half = max(int(strike_count) - 1, 0) // 2
    return [strike_key(atm + k * step) for k in range(-half, half + 1)]
