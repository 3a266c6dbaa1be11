"""
Pure invoice arithmetic and merge helpers.

Kept free of Flask and the session so they can be unit tested directly.
"""
from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from app.cwms.utils import money, normalize_text

INVOICE_TYPES = ("Inward", "Outward", "Transporter")
STATUSES = ("pending", "partial", "paid")


def line_amount(quantity: Decimal | None, rate: Decimal | None, amount: Decimal | None = None) -> Decimal:
    """Explicit amount wins; otherwise quantity x rate (missing parts count as zero)."""
    if amount is not None:
        return money(amount)
    return money((quantity or Decimal("0")) * (rate or Decimal("0")))


def compute_totals(
    subtotal: Decimal,
    additional_charges: Decimal,
    cgst_rate: Decimal,
    sgst_rate: Decimal,
) -> dict[str, Decimal]:
    """
    Taxes apply to subtotal + additional charges:

        cgst = (subtotal + charges) * cgst_rate / 100
        grand_total = subtotal + charges + cgst + sgst
    """
    subtotal = money(subtotal)
    additional_charges = money(additional_charges)
    base = subtotal + additional_charges
    cgst = money(base * cgst_rate / Decimal("100"))
    sgst = money(base * sgst_rate / Decimal("100"))
    return {
        "subtotal": subtotal,
        "additional_charges": additional_charges,
        "cgst": cgst,
        "sgst": sgst,
        "grand_total": money(base + cgst + sgst),
    }


def derive_status(grand_total: Decimal, payment_received: Decimal) -> str:
    grand_total = money(grand_total)
    payment_received = money(payment_received)
    if grand_total > 0 and payment_received >= grand_total:
        return "paid"
    if payment_received > 0:
        return "partial"
    return "pending"


def unique_in_order(values: Iterable[Any]) -> list[str]:
    """Drop blanks and repeats, keeping first-seen order."""
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        text = normalize_text(value)
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return out


def split_new_lines(
    new_lines: list[dict[str, Any]],
    represented_entry_ids: set[int],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Partition incoming material lines into (kept, skipped).

    A line tied to an inward entry that already has a line on the invoice is
    skipped so the entry is never billed twice. Lines without an entry are
    always kept.
    """
    seen = set(represented_entry_ids)
    kept: list[dict[str, Any]] = []
    skipped: list[dict[str, Any]] = []
    for line in new_lines:
        entry_id = line.get("inward_entry_id")
        if entry_id is not None and entry_id in seen:
            skipped.append(line)
            continue
        if entry_id is not None:
            seen.add(entry_id)
        kept.append(line)
    return kept, skipped
