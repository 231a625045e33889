from __future__ import annotations

from decimal import Decimal, InvalidOperation


def raw_to_decimal(raw: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to its human-readable decimal value.

    Args:
        raw: Amount in the token's smallest denomination.
        decimals: Number of decimal places of the token.

    Returns:
        ``raw / 10**decimals`` as an exact ``Decimal``.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    # Built from the tuple so no context precision is applied.
    sign, digits, exponent = Decimal(raw).as_tuple()
    return Decimal((sign, digits, int(exponent) - decimals))


def decimal_to_raw(amount: str | Decimal | int, decimals: int) -> int:
    """Convert a decimal amount to a raw integer amount.

    The fractional part is right-padded with zeros, or truncated, to exactly
    ``decimals`` digits. No floating point multiplication is involved, so large
    values keep every digit.

    Args:
        amount: Decimal string (``"1.5"``, ``"2E-7"``), ``Decimal`` or ``int``.
        decimals: Number of decimal places of the token.

    Raises:
        ValueError: If the amount is negative, not a finite number, or
            ``decimals`` is negative.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    if isinstance(amount, float):
        raise TypeError("float amounts are not accepted; pass a str or Decimal")

    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid decimal amount: {amount!r}")
    if value.is_signed() and value != 0:
        raise ValueError(f"Amount must be non-negative, got {amount!r}")

    plain = format(value.copy_abs(), "f")
    whole, _, fraction = plain.partition(".")
    fraction = fraction[:decimals].ljust(decimals, "0")
    return int(whole + fraction)
