"""
Fixed-point formatting of integer token amounts.

`format_big_int` prints an integer amount with `base_decimals` implied decimal
places, trimming trailing zeros of the fraction; `parse_big_int` is its exact
inverse.
"""

from typing import Optional

from withdrawals.custom_errors import InputValidationError

ETHER_DECIMALS = 18


def format_wei(amount: Optional[int]) -> str:
    return format_big_int(amount, ETHER_DECIMALS)


def format_big_int(amount: Optional[int], base_decimals: int) -> str:
    if amount is None:
        return "0"

    if base_decimals < 0:
        raise InputValidationError("`base_decimals` must be non-negative")

    negative = amount < 0
    value = -amount if negative else amount

    int_part, remainder = divmod(value, 10**base_decimals)

    if remainder == 0:
        result = str(int_part)
    else:
        fraction = str(remainder).rjust(base_decimals, "0").rstrip("0")
        result = f"{int_part}.{fraction}"

    return f"-{result}" if negative else result


def parse_big_int(value: str, base_decimals: int) -> int:
    text = value.strip()

    negative = text.startswith("-")
    if negative:
        text = text[1:]

    int_text, _, fraction = text.partition(".")

    if not int_text.isdigit() or (fraction and not fraction.isdigit()):
        raise InputValidationError(f"could not parse decimal amount: {value}")

    if len(fraction) > base_decimals:
        raise InputValidationError(
            f"`{value}` has more than {base_decimals} decimal places"
        )

    amount = int(int_text) * 10**base_decimals + int(fraction.ljust(base_decimals, "0") or "0")

    return -amount if negative else amount
