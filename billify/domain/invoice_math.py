# billify/domain/invoice_math.py
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Union

from billify.delivery.schemas.invoice import InvoiceItem

Number = Union[int, float, Decimal]

STANDARD_GST_RATE = 18
_CENT = Decimal("0.01")

_ONES = ["", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
         "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen",
         "Eighteen", "Nineteen"]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class GstBreakdown:
    taxable_amount: Decimal
    rate: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    is_inter_state: bool

    @property
    def total_tax(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount + self.igst_amount

    @property
    def half_rate(self) -> Decimal:
        return self.rate / 2


def is_intra_state(issuer_state: str, client_state: str) -> bool:
    issuer = (issuer_state or "").strip().casefold()
    client = (client_state or "").strip().casefold()
    return bool(issuer) and issuer == client


def calculate_gst(amount: Number, rate: Number, issuer_state: str, client_state: str) -> GstBreakdown:
    """Split GST into CGST+SGST (same state) or IGST (different or unknown states)."""
    taxable = _money(amount)
    rate = Decimal(str(rate))
    zero = Decimal("0.00")

    if is_intra_state(issuer_state, client_state):
        half = _money(taxable * rate / 200)
        return GstBreakdown(taxable, rate, half, half, zero, is_inter_state=False)
    return GstBreakdown(taxable, rate, zero, zero, _money(taxable * rate / 100), is_inter_state=True)


def line_total(item: InvoiceItem) -> Decimal:
    if item.line_total is not None:
        return _money(item.line_total)
    return _money(Decimal(str(item.quantity)) * Decimal(str(item.unit_price)))


def taxable_value(items: Iterable[InvoiceItem]) -> Decimal:
    return sum((line_total(item) for item in items), Decimal("0.00"))


def format_currency(amount) -> str:
    if amount is None:
        return "0.00"
    return f"{_money(amount):.2f}"


def format_indian_currency(amount) -> str:
    """``11800`` -> ``11,800.00``; lakh/crore digit grouping."""
    value = _money(amount or 0)
    sign = "-" if value < 0 else ""
    whole, fraction = f"{abs(value):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}{whole}.{fraction}"


# --- Amount in words (Indian numbering) ---
def _two_digits(n: int) -> str:
    if n < 20:
        return _ONES[n]
    digit = n % 10
    return f"{_TENS[n // 10]}{' ' + _ONES[digit] if digit else ''}"


def _three_digits(n: int) -> str:
    if n < 100:
        return _two_digits(n)
    rest = n % 100
    return f"{_ONES[n // 100]} Hundred{' ' + _two_digits(rest) if rest else ''}"


def _integer_words(n: int) -> str:
    if n < 1000:
        return _three_digits(n)

    crore, n = divmod(n, 10_000_000)
    lakh, n = divmod(n, 100_000)
    thousand, remainder = divmod(n, 1000)

    words = []
    if crore:
        words.append(f"{_integer_words(crore)} Crore")
    if lakh:
        words.append(f"{_two_digits(lakh)} Lakh")
    if thousand:
        words.append(f"{_two_digits(thousand)} Thousand")
    if remainder:
        words.append(_three_digits(remainder))
    return " ".join(words)


def amount_in_words(amount: Number) -> str:
    """11800 -> "Eleven Thousand Eight Hundred"; 100000 -> "One Lakh"."""
    value = _money(amount)
    if value < 0:
        raise ValueError("amount must not be negative")
    rupees = int(value)
    paise = int((value - rupees) * 100)

    words = _integer_words(rupees) if rupees else "Zero"
    if paise:
        return f"{words} And {_two_digits(paise)} Paise"
    return words
