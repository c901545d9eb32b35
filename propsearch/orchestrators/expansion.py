# propsearch/orchestrators/expansion.py
"""
Suggestions for widening a request that produced too few valid listings.

Order: nearby locations, budget increase, relaxed area, broader property
type, then a generic fallback. The generic entry is always present, so the
list is never empty.
"""

from __future__ import annotations

from propsearch.core.intent.parser import format_cl
from propsearch.core.matching import strip_accents
from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.labels import AreaUnit, Currency, Operation, PropertyType
from propsearch.schemas.models import ExpansionSuggestion, SearchIntent, SearchPolicy

MAX_NEARBY = 3


def _money(amount: float, currency: Currency) -> str:
    return f"{format_cl(amount)} UF" if currency is Currency.UF else f"${format_cl(amount)}"


def request_text(
    intent: SearchIntent,
    *,
    location: str | None = None,
    budget: float | None = None,
    area_amount: float | None = None,
    property_type: PropertyType | None = None,
) -> str:
    """Rewrite the request as a plain Spanish query with selected fields replaced."""
    ptype = property_type or intent.property_type
    parts = [ptype.value if ptype is not PropertyType.unknown else "propiedad"]
    parts.append("en arriendo" if intent.operation is Operation.rent else "en venta")
    place = location or (intent.location.name if intent.location else None)
    if place:
        parts.append(f"en {place}")
    if intent.zone_qualifier and location is None:
        parts.append(intent.zone_qualifier.tag)
    if intent.area:
        amount = area_amount if area_amount is not None else intent.area.amount
        unit = "hectáreas" if intent.area.unit is AreaUnit.ha else "m2"
        parts.append(f"de {amount:g} {unit}")
    if intent.bedrooms_min:
        parts.append(f"{intent.bedrooms_min} dormitorios")
    if intent.budget:
        parts.append(f"hasta {_money(budget if budget is not None else intent.budget.amount, intent.budget.currency)}")
    return " ".join(parts)


def _nearby(intent: SearchIntent, tables: SearchTables) -> list[str]:
    if intent.location is None:
        return []
    target = strip_accents(intent.location.name).lower()
    for city, near in tables.nearby_locations.items():
        if strip_accents(city).lower() == target:
            return list(near[:MAX_NEARBY])
    return []


def build_suggestions(
    intent: SearchIntent | None,
    policy: SearchPolicy | None = None,
    tables: SearchTables | None = None,
) -> list[ExpansionSuggestion]:
    pol = policy or SearchPolicy()
    t = tables or default_tables()
    out: list[ExpansionSuggestion] = []

    if intent is not None:
        near = _nearby(intent, t)
        if near:
            out.append(
                ExpansionSuggestion(
                    kind="location",
                    description=f"Include nearby areas: {', '.join(near)}",
                    query=request_text(intent, location=near[0]),
                )
            )

        if intent.budget is not None and pol.budget_expansion_pct > 0:
            raised = round(intent.budget.amount * (1 + pol.budget_expansion_pct / 100.0))
            out.append(
                ExpansionSuggestion(
                    kind="budget",
                    description=(
                        f"Raise the budget by {pol.budget_expansion_pct:g}% "
                        f"to {_money(raised, intent.budget.currency)}"
                    ),
                    query=request_text(intent, budget=raised),
                )
            )

        if intent.area is not None and pol.area_relax_pct > 0:
            relaxed = round(intent.area.amount * (1 - pol.area_relax_pct / 100.0), 2)
            out.append(
                ExpansionSuggestion(
                    kind="area",
                    description=f"Accept a smaller area: from {relaxed:g} {intent.area.unit.value}",
                    query=request_text(intent, area_amount=relaxed),
                )
            )

        broader = t.broader_types.get(intent.property_type.value, ())
        if broader:
            alt = PropertyType(broader[0])
            out.append(
                ExpansionSuggestion(
                    kind="property_type",
                    description=f"Also consider: {', '.join(broader)}",
                    query=request_text(intent, property_type=alt),
                )
            )

    out.append(
        ExpansionSuggestion(
            kind="generic",
            description=(
                "Search the main portals directly (portalinmobiliario.com, yapo.cl, toctoc.com) "
                "or loosen the strictest constraint"
            ),
        )
    )
    return out


__all__ = ["build_suggestions", "request_text"]
