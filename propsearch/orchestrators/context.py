# propsearch/orchestrators/context.py
"""
Grounding block for the downstream language model.

Every URL the model may cite is listed once in a numbered allow-list, and
every allow-listed URL is the URL of a candidate in the result. Listing
pages get their own section so they are never presented as single
properties.
"""

from __future__ import annotations

from collections.abc import Sequence

from propsearch.core.intent.parser import format_cl, summarize_intent
from propsearch.core.policy.domains import DomainPolicy, extract_domain
from propsearch.schemas.labels import TrustTier, Vertical
from propsearch.schemas.models import (
    Candidate,
    ContextPayload,
    ExpansionSuggestion,
    ExtractedFacts,
    ResolvedZoneSet,
    SearchIntent,
)

CONTENT_EXCERPT_CHARS = 2000
FALLBACK_PORTALS = "portalinmobiliario.com, yapo.cl, toctoc.com"


def facts_line(f: ExtractedFacts | None) -> str:
    if f is None:
        return ""
    points: list[str] = []
    if f.price_uf is not None:
        points.append(f"Price: {format_cl(f.price_uf)} UF")
    if f.price_clp is not None:
        points.append(f"Price: ${format_cl(f.price_clp)}")
    if f.area_m2 is not None:
        points.append(f"Area: {format_cl(f.area_m2)} m²")
    if f.price_per_m2 is not None:
        points.append(f"Price/m²: ${format_cl(f.price_per_m2)}")
    if f.bedrooms is not None:
        points.append(f"{f.bedrooms} bedrooms")
    if f.bathrooms is not None:
        points.append(f"{f.bathrooms} bathrooms")
    return " | ".join(points)


def _entry(num: int, c: Candidate, vertical: Vertical, policy: DomainPolicy) -> list[str]:
    category = c.facts.url_category.value if c.facts else "unknown"
    tier = policy.get_tier(c.url, vertical)
    tier_label = f" [Tier {tier.value}]" if tier is not TrustTier.none else ""
    lines = [
        f"[{num}] [{category}]{tier_label} {c.title or '(untitled)'}",
        f"    URL: {c.url}",
        f"    Domain: {extract_domain(c.url) or 'unknown'}",
    ]
    if c.snippet:
        lines.append(f"    Excerpt: {c.snippet}")
    facts = facts_line(c.facts)
    if facts:
        lines.append(f"    Extracted data: {facts}")
    if c.validation and c.validation.warnings:
        lines.append(f"    Warnings: {'; '.join(c.validation.warnings)}")
    if c.rerank_note:
        lines.append(f"    Note: {c.rerank_note}")
    if c.page_text:
        lines.append(f"    Content: {c.page_text[:CONTENT_EXCERPT_CHARS]}")
    return lines


def build_context(
    query: str,
    vertical: Vertical,
    results: Sequence[Candidate],
    listing_pages: Sequence[Candidate] = (),
    *,
    intent: SearchIntent | None = None,
    zones: ResolvedZoneSet | None = None,
    insufficient: bool = False,
    suggestions: Sequence[ExpansionSuggestion] = (),
    policy: DomainPolicy | None = None,
) -> ContextPayload:
    pol = policy or DomainPolicy()

    if not results and not listing_pages:
        text = (
            f'SEARCH for "{query}": no results were found. Tell the user the search returned nothing '
            f"and suggest searching the portals directly: {FALLBACK_PORTALS}. Do not invent listings."
        )
        if suggestions:
            text += "\nSuggestions:\n" + "\n".join(f"  - {s.description}" for s in suggestions)
        return ContextPayload(text=text, allowed_urls=())

    out: list[str] = [f'SEARCH RESULTS for "{query}" (vertical: {vertical.value})']
    if intent is not None:
        out.append(f"Request: {summarize_intent(intent)}")
    if zones is not None and zones.resolved:
        out.append(
            f"Zone '{zones.qualifier}' in {zones.city}: {', '.join(zones.sectors_matching)} "
            f"(confidence {zones.confidence.value})"
        )
        if zones.sectors_excluded:
            out.append(f"Outside the zone: {', '.join(zones.sectors_excluded)}")
    out.append(
        "INSTRUCTION: these are ALL the results found. Cite only the numbered URLs below. "
        "Do not add properties, prices, sectors or data that are not listed here."
    )
    out.append("")

    allowed: list[str] = []
    if results:
        out.append("Individual listings:")
        for c in results:
            allowed.append(c.url)
            out.extend(_entry(len(allowed), c, vertical, pol))
            out.append("")
    else:
        out.append("No individual listings passed validation.")
        out.append("")

    if listing_pages:
        out.append("Search/listing pages (each groups several properties; not individual listings):")
        for c in listing_pages:
            allowed.append(c.url)
            out.extend(_entry(len(allowed), c, vertical, pol))
            out.append("")

    if insufficient:
        out.append("NOTICE: fewer valid listings than expected. Say so explicitly.")
        for s in suggestions:
            out.append(f"  - {s.description}")
        out.append("")

    out.append("Allowed URLs:")
    out.extend(f"[{i}] {u}" for i, u in enumerate(allowed, start=1))
    out.append("END OF RESULTS. Every statement must come from the data above; say so when something is missing.")
    return ContextPayload(text="\n".join(out), allowed_urls=tuple(allowed))


__all__ = ["build_context", "facts_line"]
