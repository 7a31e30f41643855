"""Order number validation."""

import re

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def luhn(num: str) -> bool:
    """Return whether ``num`` is a valid number under the Luhn algorithm."""
    if not _INTEGER.fullmatch(num):
        return False
    number = int(num)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return False
    if number < 0:
        # Only the truncated last digit is counted for negative numbers.
        return number % 10 == 0

    total = 0
    for position, char in enumerate(reversed(str(number))):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit = digit % 10 + digit // 10
        total += digit
    return total % 10 == 0