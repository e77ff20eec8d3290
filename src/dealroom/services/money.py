# src/dealroom/services/money.py
"""Decimal/minor-unit conversions and the commission breakdown."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from dealroom.services.errors import ValidationError

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")


def parse_amount(value: Any, *, field: str = "amount") -> Decimal:
    """Parse a positive currency amount with at most two decimal places.

    Raises:
        ValidationError: for missing, non-numeric, non-finite or non-positive input.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as err:
        raise ValidationError(f"{field} must be a number") from err
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    if amount != amount.quantize(_CENT):
        raise ValidationError(f"{field} supports at most two decimal places")
    return amount


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (paise/cents)."""
    return int((amount * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    """Convert integer minor units back to a two-place decimal."""
    return (Decimal(minor) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


@dataclass(frozen=True)
class PaymentBreakdown:
    """Commission split of an agreed amount, all figures in minor units."""

    commission_percentage: Decimal
    total_minor: int
    commission_minor: int
    net_minor: int
    advance_minor: int
    final_minor: int

    def as_display(self) -> dict[str, Any]:
        """Return the breakdown in major units for API responses."""
        return {
            "commission_percentage": self.commission_percentage,
            "total_amount": from_minor_units(self.total_minor),
            "commission_amount": from_minor_units(self.commission_minor),
            "net_amount": from_minor_units(self.net_minor),
            "advance_amount": from_minor_units(self.advance_minor),
            "final_amount": from_minor_units(self.final_minor),
        }


def compute_payment_breakdown(
    agreed_amount: Decimal,
    commission_percentage: Decimal,
    advance_percentage: int,
) -> PaymentBreakdown:
    """Split ``agreed_amount`` into commission, advance and final payouts.

    Commission is rounded half-up to the nearest minor unit; the advance is
    floored and the final payout takes the remainder, so
    ``advance + final == net`` holds exactly.
    """
    if not 0 <= commission_percentage <= 100:
        raise ValidationError("commission percentage must be between 0 and 100")
    if not 0 <= advance_percentage <= 100:
        raise ValidationError("advance percentage must be between 0 and 100")

    total_minor = to_minor_units(agreed_amount)
    commission_minor = int(
        (Decimal(total_minor) * commission_percentage / 100).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    )
    net_minor = total_minor - commission_minor
    advance_minor = net_minor * advance_percentage // 100
    final_minor = net_minor - advance_minor
    return PaymentBreakdown(
        commission_percentage=commission_percentage,
        total_minor=total_minor,
        commission_minor=commission_minor,
        net_minor=net_minor,
        advance_minor=advance_minor,
        final_minor=final_minor,
    )


_CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}


def format_amount(amount: Decimal, currency: str) -> str:
    """Render ``amount`` for message bodies, e.g. ``₹1000.00``."""
    symbol = _CURRENCY_SYMBOLS.get(currency.upper())
    value = amount.quantize(_CENT)
    if symbol is None:
        return f"{currency.upper()} {value}"
    return f"{symbol}{value}"
