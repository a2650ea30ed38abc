"""Currency utilities for the storefront client.

Internal unit: cents (smallest USD unit, 100 cents = $1).
Display unit: dollars, formatted as "$12.34".

Every money field on the wire is an integer number of cents; the client
only converts for display and for rate-based estimates.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

CENTS_PER_DOLLAR: int = 100


# ─── conversion helpers ───────────────────────────────────────────────────────


def dollars_to_cents(dollars: float) -> int:
    """Convert dollars to cents (round half-up). $1 = 100 cents."""
    return apply_rate(CENTS_PER_DOLLAR, dollars)


def cents_to_dollars(cents: int) -> float:
    """Convert cents to dollars. 100 cents = $1."""
    return cents / CENTS_PER_DOLLAR


def apply_rate(cents: int, rate: float) -> int:
    """Multiply an amount by a rate, rounding half-up to whole cents.

    ``round()`` rounds halves to even, which would turn a 382.5 cent tax
    into 382; storefront totals round halves up.
    """
    value = Decimal(cents) * Decimal(str(rate))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_price(cents: int) -> str:
    """Format cents as a dollar string, e.g. 1999 -> "$19.99"."""
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / CENTS_PER_DOLLAR:.2f}"
