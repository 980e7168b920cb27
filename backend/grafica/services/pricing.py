from typing import Dict, Any

from grafica.models.draft import DEFAULT_MARKUP, ServiceTotals
from grafica.services.normalize import field, to_list, to_number, to_optional_number

LINEAR_UNIT = "m"
AREA_UNIT = "m2"


def material_quantity(item: Any) -> float:
    """Effective material usage: meters for linear stock, m² for area stock."""
    raw_qty = field(item, "quantity")
    qty = 1.0 if raw_qty is None else to_number(raw_qty, default=1.0)
    unit = field(item, "unit")
    if unit == LINEAR_UNIT:
        return qty * to_number(field(item, "meters"))
    if unit == AREA_UNIT:
        return qty * to_number(field(item, "width")) * to_number(field(item, "height"))
    return 0.0


def material_cost(item: Any) -> float:
    return material_quantity(item) * to_number(field(item, "unit_cost_snapshot"))


def ink_cost(ink: Any) -> float:
    ml = field(ink, "ml_used")
    if ml is None:
        ml = field(ink, "ml")
    return (to_number(ml) / 1000.0) * to_number(field(ink, "cost_per_liter_snapshot"))


def labor_cost(labor: Any) -> float:
    return to_number(field(labor, "hours")) * to_number(field(labor, "hourly_rate"))


def _adjustment_value(adj: Any) -> float:
    if isinstance(adj, (int, float, str)):
        return to_number(adj)
    return to_number(field(adj, "value"))


def _labor_lines(draft: Any):
    labor = field(draft, "labor")
    if labor is not None:
        return to_list(labor)
    hours = field(draft, "labor_hours")
    rate = field(draft, "labor_rate")
    if hours is None and rate is None:
        return []
    return [{"hours": hours, "hourly_rate": rate}]


class PriceEngine:
    """Cost/price/margin calculator for service orders.

    Inputs may be `ServiceDraft` models, plain dicts or any object exposing
    the same attribute names. Missing or malformed numbers count as zero, so
    `compute_totals` never raises; validating the form is the caller's job.
    """

    def _parts(self, draft: Any) -> Dict[str, float]:
        items = to_list(field(draft, "items"))
        inks = to_list(field(draft, "inks"))
        return {
            "materials": sum(material_cost(i) for i in items if i is not None),
            "inks": sum(ink_cost(i) for i in inks if i is not None),
            "labor": sum(labor_cost(l) for l in _labor_lines(draft) if l is not None),
            "extras": sum(_adjustment_value(e) for e in to_list(field(draft, "extras")) if e is not None),
            "discounts": sum(_adjustment_value(d) for d in to_list(field(draft, "discounts")) if d is not None),
        }

    def _markup(self, draft: Any) -> float:
        raw = field(draft, "markup")
        return DEFAULT_MARKUP if raw is None else to_number(raw, default=DEFAULT_MARKUP)

    def compute_totals(self, draft: Any) -> ServiceTotals:
        parts = self._parts(draft)
        total_cost = parts["materials"] + parts["inks"] + parts["labor"] + parts["extras"] - parts["discounts"]

        manual_price = to_optional_number(field(draft, "manual_price"))
        if manual_price is not None:
            price = manual_price
        else:
            price = total_cost * (1 + self._markup(draft) / 100.0)

        profit = price - total_cost
        margin = profit / price if price > 0 else 0.0
        return ServiceTotals(total_cost=total_cost, price=price, profit=profit, margin=margin)

    def estimate(self, draft: Any) -> Dict[str, Any]:
        parts = self._parts(draft)
        totals = self.compute_totals(draft)
        manual_price = to_optional_number(field(draft, "manual_price"))
        markup = self._markup(draft)

        return {
            "materials_cost": parts["materials"],
            "inks_cost": parts["inks"],
            "labor_cost": parts["labor"],
            "extras": parts["extras"],
            "discounts": parts["discounts"],
            "markup_pct": markup,
            "manual_price_applied": manual_price is not None,
            "total_cost": totals.total_cost,
            "price": totals.price,
            "profit": totals.profit,
            "margin": totals.margin,
            "final_price": round(totals.price, 2),
            "breakdown": {
                "base": totals.total_cost,
                "markup_amount": totals.total_cost * markup / 100.0,
                "manual_adjustment": (totals.price - totals.total_cost * (1 + markup / 100.0))
                if manual_price is not None else 0.0,
            },
        }


_engine = PriceEngine()


def compute_totals(draft: Any) -> ServiceTotals:
    return _engine.compute_totals(draft)
