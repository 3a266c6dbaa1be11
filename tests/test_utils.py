"""
Unit tests for pure helpers: money rounding, number sequences, month buckets,
pagination math and invoice arithmetic.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from app.cwms.api import pagination_meta
from app.cwms.modules.invoices.utils import (
    compute_totals,
    derive_status,
    line_amount,
    split_new_lines,
    unique_in_order,
)
from app.cwms.utils import last_n_months, money, monthly_prefix, next_serial, parse_date, parse_decimal


class TestMoney:
    def test_rounds_half_up(self):
        assert money(Decimal("2.345")) == Decimal("2.35")
        assert money(Decimal("2.344")) == Decimal("2.34")

    def test_none_is_zero(self):
        assert money(None) == Decimal("0.00")

    def test_accepts_float(self):
        assert money(0.1 + 0.2) == Decimal("0.30")


class TestParsing:
    def test_parse_date_accepts_iso_timestamp(self):
        assert parse_date("2026-01-10T08:30:00.000Z") == date(2026, 1, 10)
        assert parse_date(datetime(2026, 1, 10, 8, 30)) == date(2026, 1, 10)
        assert parse_date("") is None

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_date("10/01/2026")

    def test_parse_decimal(self):
        assert parse_decimal("1,250.50") == Decimal("1250.50")
        assert parse_decimal(3) == Decimal("3")
        assert parse_decimal("") is None
        with pytest.raises(ValueError):
            parse_decimal("abc")


class TestNextSerial:
    def test_first_of_month(self):
        prefix = monthly_prefix("LOT", date(2026, 1, 5))
        assert prefix == "LOT-202601"
        assert next_serial(prefix, []) == "LOT-202601-0001"

    def test_uses_numeric_max(self):
        existing = ["INV-202601-0009", "INV-202601-0010", "INV-202601-0002"]
        assert next_serial("INV-202601", existing) == "INV-202601-0011"

    def test_grows_past_width(self):
        assert next_serial("LOT-202601", ["LOT-202601-9999"]) == "LOT-202601-10000"

    def test_ignores_non_numeric_tails(self):
        assert next_serial("LOT-202601", ["LOT-202601-ABC", "LOT-202601-0003"]) == "LOT-202601-0004"


class TestLastNMonths:
    def test_oldest_first_ending_this_month(self):
        assert last_n_months(3, date(2026, 2, 14)) == ["2025-12", "2026-01", "2026-02"]

    def test_at_least_one(self):
        assert last_n_months(0, date(2026, 2, 14)) == ["2026-02"]


class TestPaginationMeta:
    @pytest.mark.parametrize(
        "page,limit,total,pages",
        [(1, 20, 0, 0), (1, 20, 20, 1), (1, 20, 21, 2), (3, 7, 50, 8)],
    )
    def test_total_pages_is_ceiling(self, page, limit, total, pages):
        assert pagination_meta(page, limit, total)["totalPages"] == pages

    def test_has_next_and_prev(self):
        meta = pagination_meta(2, 10, 25)
        assert meta["hasNext"] is True
        assert meta["hasPrev"] is True
        meta = pagination_meta(3, 10, 25)
        assert meta["hasNext"] is False


class TestInvoiceTotals:
    def test_taxes_apply_to_subtotal_plus_charges(self):
        totals = compute_totals(Decimal("1000"), Decimal("100"), Decimal("9"), Decimal("9"))
        assert totals["cgst"] == Decimal("99.00")
        assert totals["sgst"] == Decimal("99.00")
        assert totals["grand_total"] == Decimal("1298.00")

    def test_grand_total_is_sum_of_parts(self):
        totals = compute_totals(Decimal("333.33"), Decimal("0"), Decimal("2.5"), Decimal("2.5"))
        parts = totals["subtotal"] + totals["additional_charges"] + totals["cgst"] + totals["sgst"]
        assert totals["grand_total"] == parts

    def test_line_amount(self):
        assert line_amount(Decimal("2.5"), Decimal("1000")) == Decimal("2500.00")
        assert line_amount(Decimal("2.5"), None) == Decimal("0.00")
        assert line_amount(Decimal("2.5"), Decimal("1000"), Decimal("99")) == Decimal("99.00")


class TestDeriveStatus:
    def test_pending_when_nothing_paid(self):
        assert derive_status(Decimal("100"), Decimal("0")) == "pending"

    def test_partial(self):
        assert derive_status(Decimal("100"), Decimal("40")) == "partial"

    def test_paid_when_covered(self):
        assert derive_status(Decimal("100"), Decimal("100")) == "paid"
        assert derive_status(Decimal("100"), Decimal("150")) == "paid"

    def test_zero_total_never_paid(self):
        assert derive_status(Decimal("0"), Decimal("0")) == "pending"


class TestMergeHelpers:
    def test_unique_in_order(self):
        assert unique_in_order(["MF-2", "MF-1", "", None, "MF-2", " MF-1 "]) == ["MF-2", "MF-1"]

    def test_split_new_lines_skips_already_billed_entries(self):
        lines = [
            {"material_name": "A", "inward_entry_id": 1},
            {"material_name": "B", "inward_entry_id": 2},
            {"material_name": "C", "inward_entry_id": None},
            {"material_name": "B again", "inward_entry_id": 2},
        ]
        kept, skipped = split_new_lines(lines, {1})
        assert [line["material_name"] for line in kept] == ["B", "C"]
        assert [line["material_name"] for line in skipped] == ["A", "B again"]
