"""Number formatting used when composing notification messages."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation


def format_amount(amount: float | int | Decimal | str | None) -> str:
    """Render ``amount`` without a trailing ``.0`` for whole numbers.

    ``500`` and ``500.0`` both render as ``"500"`` while ``500.25`` keeps its
    fractional part. Values that are not numbers are rendered as-is.
    """

    if amount is None:
        return "0"
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        return str(amount)
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return format(value.normalize(), "f")


def format_indian_grouping(amount: float | int | Decimal) -> str:
    """Group digits the way the ``en-IN`` locale does (``12,34,567.5``)."""

    text = format_amount(amount)
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    whole, _, fraction = text.partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups: list[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}" if fraction else f"{sign}{whole}"
