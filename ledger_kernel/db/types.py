"""
Module: ledger_kernel.db.types
Responsibility: Precision constants and helper functions for ledger money.
    Centralizes rounding and amount validation so that every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money columns are Numeric(20, 2): 18 integer digits, 2 fractional digits.
    - No floats anywhere in the kernel.  All monetary amounts use Decimal.
    - round_money() is the only sanctioned rounding function.

Failure modes:
    - InvalidAmountError from validate_amount() for non-positive, non-finite,
      over-precise, or over-large amounts.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ledger_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
MONEY_INTEGER_DIGITS = 18
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0.00")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_money(value: Decimal | int | str | None) -> Decimal:
    """Coerce a database aggregate or literal into a 2dp Decimal.

    None (an empty SUM) becomes zero.  Floats are rejected.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Money values must not be floats")
    return round_money(Decimal(value))


def validate_amount(amount: Decimal) -> Decimal:
    """
    Validate a posting amount without rounding it.

    Preconditions: amount is a Decimal (ints are accepted and widened).
    Postconditions: Returns the amount quantized to 2 places.  The value is
        unchanged -- an amount that would need rounding is rejected.

    Raises:
        InvalidAmountError: If the amount is not a finite Decimal, is zero or
            negative, carries more than 2 fractional digits, or exceeds
            18 integer digits.
    """
    if isinstance(amount, bool) or not isinstance(amount, (Decimal, int)):
        raise InvalidAmountError(str(amount), "amount must be a Decimal")

    value = Decimal(amount)
    if not value.is_finite():
        raise InvalidAmountError(str(amount), "amount must be finite")
    if value <= 0:
        raise InvalidAmountError(str(amount), "amount must be strictly positive")

    try:
        quantized = value.quantize(Decimal("0.01"))
    except InvalidOperation:
        raise InvalidAmountError(str(amount), "amount is out of range") from None
    if quantized != value:
        raise InvalidAmountError(
            str(amount), f"amount has more than {MONEY_DECIMAL_PLACES} decimal places"
        )
    if quantized.adjusted() >= MONEY_INTEGER_DIGITS:
        raise InvalidAmountError(
            str(amount), f"amount exceeds {MONEY_INTEGER_DIGITS} integer digits"
        )
    return quantized
