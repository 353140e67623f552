"""
Line-item pricing for devis and factures

Rounding policy: line amounts are kept exact (Decimal). The aggregated HT and
TVA are rounded half-up to the cent, then TTC = HT + TVA, so the three totals
always reconcile to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

CENT = Decimal("0.01")

UNIT_OPTIONS = ["u", "h", "m", "m²", "m³", "kg", "L", "forfait", "lot"]

VAT_RATES = (0, 5.5, 10, 20)

ITEM_TYPES = ("standard", "main_oeuvre", "deplacement")

ITEM_DEFAULTS = {
    "standard": {"label": "", "unit": "u", "unit_price": 0, "vat_rate": 10},
    "main_oeuvre": {"label": "Main d'œuvre", "unit": "h", "unit_price": 65, "vat_rate": 10},
    "deplacement": {"label": "Déplacement", "unit": "forfait", "unit_price": 35, "vat_rate": 20},
}


def _item(label, description, qty, unit, unit_price, vat_rate, item_type):
    return {
        "label": label,
        "description": description,
        "qty": qty,
        "unit": unit,
        "unit_price": unit_price,
        "vat_rate": vat_rate,
        "discount": 0,
        "type": item_type,
    }


QUOTE_TEMPLATES = {
    "fuite": {
        "label": "Intervention fuite",
        "items": [
            _item("Déplacement", "", 1, "forfait", 35, 20, "deplacement"),
            _item("Main d'œuvre", "Recherche et réparation de fuite", 1, "h", 65, 10, "main_oeuvre"),
            _item("Fournitures plomberie", "", 1, "lot", 25, 20, "standard"),
        ],
    },
    "chauffe_eau": {
        "label": "Remplacement chauffe-eau",
        "items": [
            _item("Déplacement", "", 1, "forfait", 35, 20, "deplacement"),
            _item("Chauffe-eau 200L", "Fourniture et pose", 1, "u", 650, 10, "standard"),
            _item("Raccordements", "Plomberie et électrique", 1, "forfait", 120, 10, "standard"),
            _item("Main d'œuvre", "Dépose ancien + pose", 3, "h", 65, 10, "main_oeuvre"),
            _item("Enlèvement ancien chauffe-eau", "", 1, "forfait", 50, 20, "standard"),
        ],
    },
    "debouchage": {
        "label": "Débouchage",
        "items": [
            _item("Déplacement", "", 1, "forfait", 35, 20, "deplacement"),
            _item(
                "Débouchage canalisation",
                "Furet mécanique ou haute pression",
                1,
                "forfait",
                150,
                10,
                "standard",
            ),
            _item("Main d'œuvre", "", 1, "h", 65, 10, "main_oeuvre"),
        ],
    },
}


def to_decimal(value: Any) -> Decimal:
    """Coerce a numeric input to Decimal; anything invalid counts as 0"""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        result = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not result.is_finite():
        return Decimal(0)
    return result


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def create_empty_item(item_type: str = "standard") -> dict:
    """New line pre-filled with the defaults of its type"""
    defaults = ITEM_DEFAULTS.get(item_type, ITEM_DEFAULTS["standard"])
    return {
        "label": defaults["label"],
        "description": "",
        "qty": 1,
        "unit": defaults["unit"],
        "unit_price": defaults["unit_price"],
        "vat_rate": defaults["vat_rate"],
        "discount": 0,
        "type": item_type if item_type in ITEM_DEFAULTS else "standard",
    }


def calc_line_total(item: Any) -> Decimal:
    """qty * unit_price * (1 - discount/100), exact"""
    base = to_decimal(_field(item, "qty")) * to_decimal(_field(item, "unit_price"))
    return base - base * to_decimal(_field(item, "discount")) / 100


def calc_line_tva(item: Any) -> Decimal:
    return calc_line_total(item) * to_decimal(_field(item, "vat_rate")) / 100


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calc_totals(items: Iterable[Any]) -> dict:
    """Aggregate HT / TVA / TTC for a list of lines (dicts or ORM rows)"""
    items = list(items)
    total_ht = round_cents(sum((calc_line_total(i) for i in items), Decimal(0)))
    total_tva = round_cents(sum((calc_line_tva(i) for i in items), Decimal(0)))
    return {"total_ht": total_ht, "total_tva": total_tva, "total_ttc": total_ht + total_tva}


def vat_breakdown(items: Iterable[Any]) -> list[dict]:
    """TVA grouped by rate, as printed at the bottom of a devis"""
    buckets: dict[Decimal, dict] = {}
    for item in items:
        rate = to_decimal(_field(item, "vat_rate"))
        bucket = buckets.setdefault(rate, {"base": Decimal(0), "tva": Decimal(0)})
        bucket["base"] += calc_line_total(item)
        bucket["tva"] += calc_line_tva(item)
    return [
        {"vat_rate": rate, "base_ht": round_cents(b["base"]), "tva": round_cents(b["tva"])}
        for rate, b in sorted(buckets.items())
    ]


def template_items(template_key: str, vat_rate_override: Optional[float] = None) -> list[dict]:
    """Copy the lines of a devis template; raises KeyError for unknown templates"""
    items = [dict(item) for item in QUOTE_TEMPLATES[template_key]["items"]]
    if vat_rate_override is not None:
        for item in items:
            item["vat_rate"] = vat_rate_override
    return items
