"""
Fixed-point power primitive.

The curve consumes a single operation:

    power(base_n, base_d, exp_n, exp_d) -> (mantissa, shift)

approximating (base_n / base_d) ** (exp_n / exp_d) as mantissa / 2**shift.
Callers floor the result with ``mantissa >> shift``.

DecimalPower evaluates the power with the standard ``decimal`` module at a
precision well above the 256-bit result range, then picks the largest
binary precision in [MIN_PRECISION, MAX_PRECISION] that keeps the mantissa
inside 256 bits.
"""

from __future__ import annotations

import logging
from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Protocol, Tuple

from .errors import CurveArithmeticError

logger = logging.getLogger(__name__)


MIN_PRECISION = 32
MAX_PRECISION = 127
MANTISSA_BITS = 256

# Enough significant digits for a 256-bit mantissa plus guard digits.
DECIMAL_DIGITS = 100


class PowerPrimitive(Protocol):
    """Protocol for the fixed-point exponentiation dependency."""

    def power(
        self,
        base_n: int,
        base_d: int,
        exp_n: int,
        exp_d: int,
    ) -> Tuple[int, int]:
        """
        Approximate (base_n / base_d) ** (exp_n / exp_d).

        Returns:
            (mantissa, shift) such that the value ~= mantissa / 2**shift
        """
        ...


class DecimalPower:
    """Power primitive backed by high-precision ``decimal`` arithmetic."""

    def __init__(self, digits: int = DECIMAL_DIGITS) -> None:
        if digits < 80:
            raise ValueError("digits must be at least 80 to cover 256-bit results")
        self._digits = digits

    def power(self, base_n: int, base_d: int, exp_n: int, exp_d: int) -> Tuple[int, int]:
        if base_d <= 0 or exp_d <= 0:
            raise CurveArithmeticError(
                f"power denominators must be positive: base_d={base_d}, exp_d={exp_d}"
            )
        if base_n < 0 or exp_n < 0:
            raise CurveArithmeticError(
                f"power operands must be non-negative: base_n={base_n}, exp_n={exp_n}"
            )
        if base_n == 0:
            return 0, MAX_PRECISION

        with localcontext() as ctx:
            ctx.prec = self._digits
            base = Decimal(base_n) / Decimal(base_d)
            exponent = Decimal(exp_n) / Decimal(exp_d)
            value = base ** exponent

            integer_bits = int(value.to_integral_value(rounding=ROUND_FLOOR)).bit_length()
            shift = min(MAX_PRECISION, MANTISSA_BITS - integer_bits)
            if shift < MIN_PRECISION:
                raise CurveArithmeticError(
                    f"power result overflows {MANTISSA_BITS} bits: "
                    f"({base_n}/{base_d})^({exp_n}/{exp_d})"
                )
            mantissa = int((value * (Decimal(2) ** shift)).to_integral_value(rounding=ROUND_FLOOR))

        if mantissa.bit_length() > MANTISSA_BITS:
            raise CurveArithmeticError(f"power mantissa overflows {MANTISSA_BITS} bits")
        return mantissa, shift
