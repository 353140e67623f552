"""Line and document totals for devis / factures"""

from decimal import Decimal

import pytest

from bulbiz.pricing import (
    QUOTE_TEMPLATES,
    calc_line_total,
    calc_line_tva,
    calc_totals,
    create_empty_item,
    template_items,
    to_decimal,
    vat_breakdown,
)


class TestLineFormula:
    def test_qty_times_price(self):
        assert calc_line_total({"qty": 3, "unit_price": 65}) == Decimal("195")

    def test_discount_percent(self):
        line = {"qty": 2, "unit_price": 100, "discount": 10}
        assert calc_line_total(line) == Decimal("180")

    def test_tva_uses_line_rate(self):
        line = {"qty": 1, "unit_price": 35, "vat_rate": 20}
        assert calc_line_tva(line) == Decimal("7")

    def test_invalid_inputs_count_as_zero(self):
        assert to_decimal("abc") == Decimal(0)
        assert to_decimal(None) == Decimal(0)
        assert to_decimal("12,5") == Decimal("12.5")
        assert calc_line_total({"qty": "x", "unit_price": 10}) == Decimal(0)


class TestDocumentTotals:
    def test_ttc_is_ht_plus_tva(self):
        lines = [
            {"qty": 1, "unit_price": 35, "vat_rate": 20},
            {"qty": 1.5, "unit_price": 65, "vat_rate": 10},
            {"qty": 3, "unit_price": 12.33, "vat_rate": 5.5, "discount": 7},
        ]
        totals = calc_totals(lines)
        assert totals["total_ht"] + totals["total_tva"] == totals["total_ttc"]

    def test_rounding_half_up_to_cent(self):
        # 0.125 HT rounds up to 0.13
        totals = calc_totals([{"qty": 1, "unit_price": "0.125", "vat_rate": 0}])
        assert totals["total_ht"] == Decimal("0.13")
        assert totals["total_tva"] == Decimal("0.00")

    def test_lines_are_independent(self):
        a = {"qty": 2, "unit_price": 50, "vat_rate": 10}
        b = {"qty": 1, "unit_price": 20, "vat_rate": 20}
        together = calc_totals([a, b])
        assert together["total_ht"] == calc_totals([a])["total_ht"] + calc_totals([b])["total_ht"]

    def test_empty_document(self):
        totals = calc_totals([])
        assert totals == {"total_ht": Decimal("0.00"), "total_tva": Decimal("0.00"), "total_ttc": Decimal("0.00")}

    def test_vat_breakdown_groups_by_rate(self):
        lines = [
            {"qty": 1, "unit_price": 100, "vat_rate": 10},
            {"qty": 1, "unit_price": 50, "vat_rate": 10},
            {"qty": 1, "unit_price": 35, "vat_rate": 20},
        ]
        breakdown = vat_breakdown(lines)
        assert [row["vat_rate"] for row in breakdown] == [Decimal("10"), Decimal("20")]
        assert breakdown[0]["base_ht"] == Decimal("150.00")
        assert breakdown[0]["tva"] == Decimal("15.00")
        assert breakdown[1]["tva"] == Decimal("7.00")


class TestTemplates:
    def test_empty_item_defaults_by_type(self):
        assert create_empty_item("deplacement")["unit"] == "forfait"
        assert create_empty_item("main_oeuvre")["unit_price"] == 65
        assert create_empty_item("inconnu")["type"] == "standard"

    def test_template_copy_does_not_mutate_source(self):
        items = template_items("fuite", vat_rate_override=0)
        assert all(item["vat_rate"] == 0 for item in items)
        assert any(item["vat_rate"] != 0 for item in QUOTE_TEMPLATES["fuite"]["items"])

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            template_items("piscine")
