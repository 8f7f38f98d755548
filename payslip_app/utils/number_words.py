"""
Amount-in-words conversion for payslips.

12345 -> "Twelve Thousand Three Hundred Forty Five"
"""

from decimal import Decimal, ROUND_DOWN
from typing import List, Union

_ONES = [
    "zero", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine",
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen",
    "seventeen", "eighteen", "nineteen",
]

_TENS = [
    "", "", "twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety",
]

_SCALES = [
    (10 ** 15, "quadrillion"),
    (10 ** 12, "trillion"),
    (10 ** 9, "billion"),
    (10 ** 6, "million"),
    (10 ** 3, "thousand"),
]


def _below_thousand(n: int) -> List[str]:
    words: List[str] = []
    if n >= 100:
        words += [_ONES[n // 100], "hundred"]
        n %= 100
    if n >= 20:
        words.append(_TENS[n // 10])
        n %= 10
        if n:
            words.append(_ONES[n])
    elif n or not words:
        words.append(_ONES[n])
    return words


def _integer_words(n: int) -> List[str]:
    if n == 0:
        return ["zero"]

    words: List[str] = []
    for scale, name in _SCALES:
        if n >= scale:
            words += _integer_words(n // scale) + [name]
            n %= scale
    if n:
        words += _below_thousand(n)
    return words


def amount_to_words(amount: Union[Decimal, int, float, str]) -> str:
    """
    Spell out an amount, title-casing each word.

    The fractional part is truncated before conversion.
    Negative amounts are prefixed with "Minus".
    """
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_DOWN)
    n = int(value)

    words = _integer_words(abs(n))
    if n < 0:
        words.insert(0, "minus")

    return " ".join(word.capitalize() for word in words)
