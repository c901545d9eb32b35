# propsearch/core/tables.py
"""
Lookup tables for the search pipeline (gazetteers, keyword sets, domain tiers).

Purpose
-------
Keep every piece of reference data in one immutable object that is built once
per process and passed to the components that need it. Nothing in the
pipeline mutates a table; tests substitute a modified copy instead.

Design
------
- `SearchTables` is a frozen dataclass. Mapping fields are wrapped in
  `MappingProxyType` so callers cannot mutate them by accident.
- `default_tables()` returns the built-in tables (cached), optionally merged
  with a JSON file named by `PROPSEARCH_TABLES_PATH`.
- `load_tables(path, base=...)` merges a JSON override file over `base`:
  mapping fields are merged key-by-key, sequence fields are replaced.

Public API
----------
- QualifierSpec
- SearchTables
- default_tables()
- load_tables(path, base=None)
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

logger = logging.getLogger(__name__)

TABLES_ENV = "PROPSEARCH_TABLES_PATH"


def _ro(d: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(d))


# =========================
# Intent tables
# =========================

_PROPERTY_TYPES: dict[str, str] = {
    "parcela": "parcela",
    "parcelas": "parcela",
    "terreno": "terreno",
    "terrenos": "terreno",
    "lote": "terreno",
    "lotes": "terreno",
    "sitio": "sitio",
    "sitios": "sitio",
    "casa": "casa",
    "casas": "casa",
    "cabaña": "casa",
    "cabana": "casa",
    "cabañas": "casa",
    "cabanas": "casa",
    "depto": "departamento",
    "deptos": "departamento",
    "dpto": "departamento",
    "dptos": "departamento",
    "departamento": "departamento",
    "departamentos": "departamento",
    "local": "local",
    "locales": "local",
    "local comercial": "local",
    "bodega": "bodega",
    "bodegas": "bodega",
    "campo": "campo",
    "campos": "campo",
    "fundo": "campo",
    "fundos": "campo",
    "chacra": "campo",
    "oficina": "oficina",
    "oficinas": "oficina",
}

# normalized key → display name; accented and unaccented spellings both map.
_LOCATIONS: dict[str, str] = {
    # Araucanía
    "temuco": "Temuco",
    "padre las casas": "Padre Las Casas",
    "villarrica": "Villarrica",
    "pucon": "Pucón",
    "pucón": "Pucón",
    "melipeuco": "Melipeuco",
    "cunco": "Cunco",
    "curacautin": "Curacautín",
    "curacautín": "Curacautín",
    "lonquimay": "Lonquimay",
    "victoria": "Victoria",
    "angol": "Angol",
    "collipulli": "Collipulli",
    "lautaro": "Lautaro",
    "nueva imperial": "Nueva Imperial",
    "carahue": "Carahue",
    "pitrufquen": "Pitrufquén",
    "pitrufquén": "Pitrufquén",
    "freire": "Freire",
    "gorbea": "Gorbea",
    "loncoche": "Loncoche",
    # Los Ríos
    "valdivia": "Valdivia",
    "los lagos": "Los Lagos",
    "panguipulli": "Panguipulli",
    "mariquina": "Mariquina",
    "la union": "La Unión",
    "la unión": "La Unión",
    "rio bueno": "Río Bueno",
    "río bueno": "Río Bueno",
    "futrono": "Futrono",
    "lago ranco": "Lago Ranco",
    # Los Lagos
    "puerto montt": "Puerto Montt",
    "osorno": "Osorno",
    "puerto varas": "Puerto Varas",
    "frutillar": "Frutillar",
    "llanquihue": "Llanquihue",
    "castro": "Castro",
    "ancud": "Ancud",
    "calbuco": "Calbuco",
    "hualaihue": "Hualaihué",
    "hualaihué": "Hualaihué",
    "hornopiren": "Hornopirén",
    "hornopirén": "Hornopirén",
    "chaiten": "Chaitén",
    "chaitén": "Chaitén",
    # Metropolitana
    "santiago": "Santiago",
    "providencia": "Providencia",
    "las condes": "Las Condes",
    "nunoa": "Ñuñoa",
    "ñuñoa": "Ñuñoa",
    "vitacura": "Vitacura",
    "lo barnechea": "Lo Barnechea",
    "la reina": "La Reina",
    "penalolen": "Peñalolén",
    "peñalolén": "Peñalolén",
    "macul": "Macul",
    "la florida": "La Florida",
    "puente alto": "Puente Alto",
    "maipu": "Maipú",
    "maipú": "Maipú",
    "san bernardo": "San Bernardo",
    "colina": "Colina",
    "chicureo": "Chicureo",
    "buin": "Buin",
    "paine": "Paine",
    "talagante": "Talagante",
    "penaflor": "Peñaflor",
    "peñaflor": "Peñaflor",
    "melipilla": "Melipilla",
    "isla de maipo": "Isla de Maipo",
    # Valparaíso
    "valparaiso": "Valparaíso",
    "valparaíso": "Valparaíso",
    "vina del mar": "Viña del Mar",
    "viña del mar": "Viña del Mar",
    "con con": "Concón",
    "concon": "Concón",
    "concón": "Concón",
    "quilpue": "Quilpué",
    "quilpué": "Quilpué",
    "villa alemana": "Villa Alemana",
    "quillota": "Quillota",
    "la calera": "La Calera",
    "limache": "Limache",
    "olmue": "Olmué",
    "olmué": "Olmué",
    "san antonio": "San Antonio",
    "algarrobo": "Algarrobo",
    "el quisco": "El Quisco",
    "el tabo": "El Tabo",
    "cartagena": "Cartagena",
    "santo domingo": "Santo Domingo",
    # Biobío / Ñuble
    "concepcion": "Concepción",
    "concepción": "Concepción",
    "talcahuano": "Talcahuano",
    "chiguayante": "Chiguayante",
    "san pedro de la paz": "San Pedro de la Paz",
    "los angeles": "Los Ángeles",
    "los ángeles": "Los Ángeles",
    "chillan": "Chillán",
    "chillán": "Chillán",
    # O'Higgins
    "rancagua": "Rancagua",
    "machali": "Machalí",
    "machalí": "Machalí",
    "san fernando": "San Fernando",
    "santa cruz": "Santa Cruz",
    "pichilemu": "Pichilemu",
    # Maule
    "talca": "Talca",
    "curico": "Curicó",
    "curicó": "Curicó",
    "linares": "Linares",
    "constitucion": "Constitución",
    "constitución": "Constitución",
    # Coquimbo
    "la serena": "La Serena",
    "coquimbo": "Coquimbo",
    "ovalle": "Ovalle",
    "vicuna": "Vicuña",
    "vicuña": "Vicuña",
    # Norte
    "antofagasta": "Antofagasta",
    "iquique": "Iquique",
    "arica": "Arica",
    "calama": "Calama",
    "copiapo": "Copiapó",
    "copiapó": "Copiapó",
    # Austral
    "punta arenas": "Punta Arenas",
    "coyhaique": "Coyhaique",
    "puerto natales": "Puerto Natales",
}

# Words the "en <place>" fallback must never accept as a place.
_LOCATION_STOPWORDS: tuple[str, ...] = (
    "venta",
    "arriendo",
    "oferta",
    "el",
    "la",
    "los",
    "las",
    "un",
    "una",
    "portalinmobiliario",
    "yapo",
    "toctoc",
    "chile",
    "uf",
    "pesos",
)

_FEATURES: dict[str, str] = {
    "agua": "agua",
    "agua potable": "agua potable",
    "luz": "luz",
    "electricidad": "electricidad",
    "camino": "camino",
    "acceso pavimentado": "acceso pavimentado",
    "orilla lago": "orilla de lago",
    "orilla de lago": "orilla de lago",
    "orilla rio": "orilla de río",
    "orilla río": "orilla de río",
    "orilla de rio": "orilla de río",
    "orilla de río": "orilla de río",
    "vista al mar": "vista al mar",
    "vista mar": "vista al mar",
    "piscina": "piscina",
    "estacionamiento": "estacionamiento",
    "bodega": "bodega",
    "quincho": "quincho",
    "locomocion": "locomoción",
    "locomoción": "locomoción",
    "cerca del centro": "cerca del centro",
    "rol propio": "rol propio",
    "escritura": "escritura",
    "factibilidad": "factibilidad",
    "bosque": "bosque nativo",
    "bosque nativo": "bosque nativo",
    "rio": "río",
    "río": "río",
    "lago": "lago",
    "playa": "playa",
}

# Nice-to-have features; everything else recognised is a hard requirement.
_SOFT_FEATURES: tuple[str, ...] = (
    "piscina",
    "quincho",
    "vista al mar",
    "bosque nativo",
    "orilla de lago",
    "orilla de río",
    "estacionamiento",
)


@dataclass(frozen=True, slots=True)
class QualifierSpec:
    """One zone-qualifier rule: regex → canonical tag plus implied context."""

    pattern: str
    tag: str
    urban: bool | None = None
    priorities: tuple[str, ...] = ()
    hard: bool = False
    premium: bool = False

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> QualifierSpec:
        return cls(
            pattern=str(d["pattern"]),
            tag=str(d["tag"]),
            urban=d.get("urban"),
            priorities=tuple(d.get("priorities") or ()),
            hard=bool(d.get("hard", False)),
            premium=bool(d.get("premium", False)),
        )


# Evaluated in order; first match wins.
_QUALIFIERS: tuple[QualifierSpec, ...] = (
    QualifierSpec(
        r"\b(?:barrio|sector)\s+alto\b",
        "sector alto",
        urban=True,
        priorities=("location", "safety", "connectivity"),
        hard=True,
        premium=True,
    ),
    QualifierSpec(
        r"\b(?:barrio|sector)\s+(?:exclusiv|premium|residencial)\w*",
        "sector exclusivo",
        urban=True,
        priorities=("location", "safety"),
        hard=True,
        premium=True,
    ),
    QualifierSpec(
        r"\b(?:barrio|zona)\s+(?:tranquil|residencial)\w*",
        "zona residencial",
        urban=True,
        priorities=("location", "safety"),
    ),
    QualifierSpec(
        r"\bcondominio(?:\s+cerrado)?\b",
        "condominio",
        urban=True,
        priorities=("safety", "location"),
        hard=True,
        premium=True,
    ),
    QualifierSpec(
        r"\b(?:sector|barrio)\s+(?:oriente|poniente|norte|sur|centro)\b",
        "sector orientación",
        urban=True,
        priorities=("location",),
    ),
    QualifierSpec(
        r"\b(?:buena|mejor)(?:es)?\s+(?:zona|barrio|sector)\b",
        "mejor zona",
        urban=True,
        priorities=("location", "safety", "schools"),
        premium=True,
    ),
    QualifierSpec(
        r"\b(?:zona|sector)\s+(?:segur|tranquil)\w*",
        "zona segura",
        urban=True,
        priorities=("safety", "location"),
    ),
    QualifierSpec(
        r"\b(?:cerca\s+del?\s+centro|c[ée]ntric\w*)",
        "céntrico",
        urban=True,
        priorities=("connectivity", "location"),
    ),
    QualifierSpec(
        r"\b(?:rural|parcela\s+de\s+agrado|fuera\s+de\s+la\s+ciudad)\b",
        "rural",
        urban=False,
        priorities=("price", "location"),
    ),
)

_RURAL_MARKERS: tuple[str, ...] = (
    r"\bparcela de agrado\b",
    r"\bfuera de la ciudad\b",
    r"\bcamino a\b",
    r"\bruta\b",
    r"\bkm\s+\d",
    r"\bsector rural\b",
)

# =========================
# Domain tables
# =========================

_DOMAIN_TIERS: dict[str, dict[str, tuple[str, ...]]] = {
    "real_estate": {
        "A": ("portalinmobiliario.com", "toctoc.com", "goplaceit.com"),
        "B": (
            "yapo.cl",
            "mercadolibre.cl",
            "chilepropiedades.cl",
            "icasas.cl",
            "mitula.cl",
            "propiedades.emol.com",
        ),
    },
    "legal": {
        "A": (
            "leychile.cl",
            "bcn.cl",
            "diariooficial.interior.gob.cl",
            "pjud.cl",
            "contraloria.cl",
            "sii.cl",
            "tesoreria.cl",
            "minvu.gob.cl",
            "mop.gob.cl",
            "dga.mop.gob.cl",
        ),
        "B": (),
    },
    "retail": {
        "A": (
            "solotodo.cl",
            "falabella.com",
            "paris.cl",
            "ripley.cl",
            "sodimac.cl",
            "spdigital.cl",
            "pcfactory.cl",
            "lider.cl",
            "jumbo.cl",
        ),
        "B": (),
    },
    "news": {
        "A": (
            "latercera.com",
            "emol.com",
            "cooperativa.cl",
            "biobiochile.cl",
            "cnnchile.com",
            "24horas.cl",
            "df.cl",
        ),
        "B": (),
    },
}

# Substring keyword lists for vertical detection (matched against " <lowered text> ").
_VERTICAL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "legal": (
        "ley ",
        "código",
        "codigo",
        "artículo",
        "articulo",
        "decreto",
        "norma",
        "jurídic",
        "juridic",
        "legal",
        "constitución política",
        "constitucion politica",
        "reglamento",
        "ordenanza",
        "dfl ",
        "dfl-",
    ),
    "real_estate": (
        "casa",
        "depto",
        "departamento",
        "parcela",
        "terreno",
        "sitio",
        "propiedad",
        "lote",
        "campo",
        "inmueble",
        "condominio",
        "cabaña",
        "cabana",
        "hectárea",
        "hectarea",
        "fundo",
        "chacra",
    ),
    "real_estate_weak": (" uf ", "dormitorio", " m2", "m²", "hectáreas", "arriendo", "venta"),
    "financial_guard": (
        "dólar",
        "dolar",
        "euro",
        "tipo de cambio",
        "divisa",
        "cotización",
        "cotizacion",
        "peso chileno",
        "bitcoin",
        "criptomoneda",
        "tasa de interés",
        "tasa de interes",
        "inflación",
        "inflacion",
        "bolsa de",
        "acciones de",
    ),
    "news": (
        "noticia",
        "hoy ",
        "últimas",
        "ultimas",
        "reciente",
        "periódico",
        "periodico",
        "prensa",
        "diario",
        "actualidad",
    ),
    "retail": (
        "comprar",
        "precio",
        "tienda",
        "producto",
        "oferta",
        "descuento",
        "notebook",
        "celular",
        "televisor",
        "electrodoméstico",
        "comparar precio",
    ),
}

# =========================
# Query tables
# =========================

_ABBREVIATIONS: tuple[tuple[str, str], ...] = (
    (r"\b1d\b", "1 dormitorio"),
    (r"\b2d\b", "2 dormitorios"),
    (r"\b3d\b", "3 dormitorios"),
    (r"\b4d\b", "4 dormitorios"),
    (r"\b5d\b", "5 dormitorios"),
    (r"\b1b\b", "1 baño"),
    (r"\b2b\b", "2 baños"),
    (r"\b3b\b", "3 baños"),
    (r"\b4b\b", "4 baños"),
)

# Meta-instructions users type that pollute provider queries.
_INSTRUCTION_NOISE: tuple[str, ...] = (
    r"datos?\s*reales?",
    r"tabla\s+link",
    r"m[ií]nimo\s+\d+\s+propiedades?",
    r"caracter[ií]sticas?\s*(?:y\s+)?rating",
    r"val\s+m2\s+construido",
    r"m2\s+terreno",
    r"m2\s+casa",
    r"\+[\-/]\s*\d+\s*uf",
    r"\brating\b",
    r"\benlace\b",
    r"\bcon\s+links?\b",
    r"\blinks?\b",
    r"\bpor favor\b",
    r"\bgracias\b",
    r"\bmu[ée]strame\b",
    r"\bbusca\s+",
    r"\bencuentra\s+",
)

_VERTICAL_HINTS: dict[str, tuple[str, ...]] = {
    "legal": ("leychile.cl bcn.cl", "Chile legislación vigente"),
    "news": ("latercera.com emol.com cooperativa.cl", "Chile hoy"),
    "retail": ("precio Chile", "solotodo.cl falabella.com"),
    "general": ("Chile",),
}

# =========================
# Ranking tables
# =========================

# Hosts that never hold source content (engines, social, video).
_BLOCKED_HOSTS: tuple[str, ...] = (
    "google.com",
    "google.cl",
    "bing.com",
    "duckduckgo.com",
    "yahoo.com",
    "search.yahoo.com",
    "yandex.com",
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "tiktok.com",
    "linkedin.com",
    "pinterest.com",
    "youtube.com",
    "youtu.be",
    "vimeo.com",
)

_TRACKING_PARAMS: tuple[str, ...] = (
    "gclid",
    "fbclid",
    "msclkid",
    "dclid",
    "yclid",
    "mc_cid",
    "mc_eid",
    "_ga",
    "_gl",
    "ref",
    "ref_src",
    "srsltid",
)

_TRACKING_PREFIXES: tuple[str, ...] = ("utm_",)

_RANK_STOPWORDS: tuple[str, ...] = (
    "de",
    "la",
    "el",
    "en",
    "y",
    "a",
    "los",
    "las",
    "del",
    "un",
    "una",
    "con",
    "por",
    "para",
    "que",
    "se",
    "es",
)

_LISTING_SIGNALS: tuple[str, ...] = (
    "dormitorio",
    "baño",
    "m²",
    "m2",
    "uf",
    "superficie",
    "venta",
    "arriendo",
    "precio",
    "estacionamiento",
    "terreno",
)

_INFORMATIONAL_MARKERS: tuple[str, ...] = (
    "blog",
    "guía",
    "guia",
    "consejos",
    "tips",
    "cómo",
    "como comprar",
    "qué es",
    "que es",
    "noticias",
    "requisitos",
    "tendencias",
)

# =========================
# Zone tables
# =========================

# city → qualifier tag → {"sectors": (...), "excluded": (...)}
_KNOWN_SECTORS: dict[str, dict[str, dict[str, tuple[str, ...]]]] = {
    "Temuco": {
        "sector alto": {
            "sectors": (
                "Pueblo Nuevo",
                "Pedro de Valdivia Norte",
                "Av. Alemania",
                "Avenida Alemania",
                "Las Quilas",
                "Labranza Alto",
                "Portal Temuco",
                "Nielol",
            ),
            "excluded": (
                "Amanecer",
                "Santa Rosa",
                "Pedro de Valdivia Sur",
                "Labranza",
                "Pueblo Nuevo Sur",
                "Villa Los Creadores",
            ),
        },
        "sector exclusivo": {
            "sectors": ("Pueblo Nuevo", "Av. Alemania", "Las Quilas", "Portal Temuco"),
            "excluded": ("Amanecer", "Santa Rosa", "Labranza"),
        },
    },
    "Santiago": {
        "sector alto": {
            "sectors": ("Las Condes", "Vitacura", "Lo Barnechea", "Providencia", "La Reina", "Ñuñoa"),
            "excluded": ("Puente Alto", "La Pintana", "San Bernardo", "Maipú", "El Bosque", "Cerro Navia"),
        },
        "sector exclusivo": {
            "sectors": ("Vitacura", "Lo Barnechea", "Las Condes"),
            "excluded": ("Puente Alto", "La Pintana", "San Bernardo"),
        },
    },
    "Concepción": {
        "sector alto": {
            "sectors": (
                "San Pedro de la Paz",
                "Lomas de San Sebastián",
                "Pedro de Valdivia",
                "Lomas de San Andrés",
                "Barrio Universitario",
            ),
            "excluded": ("Coronel", "Lota", "Hualpén centro"),
        },
    },
    "Valparaíso": {
        "sector alto": {
            "sectors": ("Viña del Mar", "Reñaca", "Concón", "Cerro Alegre", "Cerro Concepción"),
            "excluded": ("Placilla", "Rodelillo"),
        },
    },
    "La Serena": {
        "sector alto": {
            "sectors": ("Av. del Mar", "Peñuelas", "San Joaquín", "Las Compañías Alto"),
            "excluded": ("Las Compañías Bajo",),
        },
    },
    "Puerto Montt": {
        "sector alto": {
            "sectors": ("Pelluco", "Chamiza", "Alerce Alto", "Mirasol"),
            "excluded": ("Alerce Bajo", "Población Modelo"),
        },
    },
}

_SECTOR_STOPWORDS: tuple[str, ...] = (
    "Chile",
    "Región",
    "País",
    "Nacional",
    "Todos",
    "Según",
    "También",
    "Además",
    "Pero",
    "Sin",
    "Con",
    "Por",
    "Para",
    "Las",
    "Los",
    "Del",
    "Que",
    "Como",
    "Más",
    "Muy",
)

_PREMIUM_INDICATORS: tuple[str, ...] = (
    "alto",
    "exclusiv",
    "premium",
    "mejor",
    "residencial",
    "segur",
    "tranquil",
    "universidad",
    "privad",
)

_NON_PREMIUM_INDICATORS: tuple[str, ...] = (
    "popular",
    "económic",
    "economic",
    "social",
    "villa",
    "población",
    "periféri",
    "industri",
    "comerc",
)

# Neighbouring comunas offered when a search comes back thin.
_NEARBY_LOCATIONS: dict[str, tuple[str, ...]] = {
    "Temuco": ("Padre Las Casas", "Lautaro", "Freire", "Vilcún"),
    "Villarrica": ("Pucón", "Lican Ray", "Loncoche"),
    "Pucón": ("Villarrica", "Curarrehue", "Caburgua"),
    "Valdivia": ("Los Lagos", "Mariquina", "Corral"),
    "Puerto Montt": ("Puerto Varas", "Llanquihue", "Calbuco"),
    "Puerto Varas": ("Puerto Montt", "Frutillar", "Llanquihue"),
    "Osorno": ("Río Negro", "Purranque", "Puyehue"),
    "Santiago": ("Providencia", "Ñuñoa", "Las Condes"),
    "Las Condes": ("Vitacura", "Lo Barnechea", "La Reina"),
    "Providencia": ("Ñuñoa", "Las Condes", "Santiago"),
    "Ñuñoa": ("Providencia", "Macul", "La Reina"),
    "Maipú": ("Cerrillos", "Pudahuel", "Padre Hurtado"),
    "Colina": ("Chicureo", "Lampa", "Til Til"),
    "Valparaíso": ("Viña del Mar", "Quilpué", "Concón"),
    "Viña del Mar": ("Concón", "Valparaíso", "Quilpué"),
    "Concepción": ("San Pedro de la Paz", "Chiguayante", "Talcahuano"),
    "La Serena": ("Coquimbo", "Vicuña", "Ovalle"),
    "Rancagua": ("Machalí", "Graneros", "Doñihue"),
    "Talca": ("Maule", "San Clemente", "Pencahue"),
    "Chillán": ("Chillán Viejo", "Bulnes", "San Carlos"),
}

# Broader property types offered when a type filter is too tight.
_BROADER_TYPES: dict[str, tuple[str, ...]] = {
    "parcela": ("terreno", "campo"),
    "terreno": ("sitio", "parcela"),
    "sitio": ("terreno",),
    "casa": ("departamento", "parcela"),
    "departamento": ("casa",),
    "campo": ("parcela",),
    "oficina": ("local",),
    "local": ("oficina", "bodega"),
    "bodega": ("local",),
}


# =========================
# Container
# =========================


@dataclass(frozen=True, slots=True)
class SearchTables:
    """Immutable bundle of every lookup table the pipeline reads."""

    property_types: Mapping[str, str] = field(default_factory=lambda: _ro(_PROPERTY_TYPES))
    locations: Mapping[str, str] = field(default_factory=lambda: _ro(_LOCATIONS))
    location_stopwords: frozenset[str] = frozenset(_LOCATION_STOPWORDS)
    features: Mapping[str, str] = field(default_factory=lambda: _ro(_FEATURES))
    soft_features: frozenset[str] = frozenset(_SOFT_FEATURES)
    qualifiers: tuple[QualifierSpec, ...] = _QUALIFIERS
    rural_markers: tuple[str, ...] = _RURAL_MARKERS
    domain_tiers: Mapping[str, Mapping[str, tuple[str, ...]]] = field(
        default_factory=lambda: _freeze(_DOMAIN_TIERS)
    )
    vertical_keywords: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _ro(_VERTICAL_KEYWORDS))
    abbreviations: tuple[tuple[str, str], ...] = _ABBREVIATIONS
    instruction_noise: tuple[str, ...] = _INSTRUCTION_NOISE
    vertical_hints: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _ro(_VERTICAL_HINTS))
    blocked_hosts: tuple[str, ...] = _BLOCKED_HOSTS
    tracking_params: frozenset[str] = frozenset(_TRACKING_PARAMS)
    tracking_prefixes: tuple[str, ...] = _TRACKING_PREFIXES
    rank_stopwords: frozenset[str] = frozenset(_RANK_STOPWORDS)
    listing_signals: tuple[str, ...] = _LISTING_SIGNALS
    informational_markers: tuple[str, ...] = _INFORMATIONAL_MARKERS
    known_sectors: Mapping[str, Mapping[str, Mapping[str, tuple[str, ...]]]] = field(
        default_factory=lambda: _freeze(_KNOWN_SECTORS)
    )
    sector_stopwords: frozenset[str] = frozenset(_SECTOR_STOPWORDS)
    premium_indicators: tuple[str, ...] = _PREMIUM_INDICATORS
    non_premium_indicators: tuple[str, ...] = _NON_PREMIUM_INDICATORS
    nearby_locations: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _ro(_NEARBY_LOCATIONS))
    broader_types: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: _ro(_BROADER_TYPES))

    def with_overrides(self, overrides: Mapping[str, Any]) -> SearchTables:
        """Return a copy with `overrides` merged in (unknown keys are ignored with a warning)."""
        known = {f.name: f for f in fields(self)}
        updates: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown table override %r", key)
                continue
            updates[key] = _coerce(key, getattr(self, key), value)
        return replace(self, **updates) if updates else self


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return _ro({str(k): _freeze(v) for k, v in value.items()})
    if isinstance(value, list | tuple):
        return tuple(_freeze(v) for v in value)
    return value


def _coerce(name: str, current: Any, value: Any) -> Any:
    if name == "qualifiers":
        return tuple(v if isinstance(v, QualifierSpec) else QualifierSpec.from_dict(v) for v in value)
    if isinstance(current, frozenset):
        return frozenset(value)
    if isinstance(current, Mapping):
        if not isinstance(value, Mapping):
            raise TypeError(f"table {name!r} expects a mapping")
        merged = dict(current)
        merged.update({str(k): _freeze(v) for k, v in value.items()})
        return _ro(merged)
    if isinstance(current, tuple):
        return _freeze(list(value))
    return value


def load_tables(path: str | Path, *, base: SearchTables | None = None) -> SearchTables:
    """Merge the JSON object stored at `path` over `base` (defaults when None)."""
    p = Path(path)
    data = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"table override file must hold a JSON object: {p}")
    return (base or SearchTables()).with_overrides(data)


@lru_cache(maxsize=1)
def default_tables() -> SearchTables:
    """Process-wide tables; honours PROPSEARCH_TABLES_PATH once, at first use."""
    path = os.getenv(TABLES_ENV)
    if path:
        try:
            return load_tables(path)
        except (OSError, ValueError, TypeError, KeyError) as exc:
            logger.warning("Could not load table overrides from %s (%s); using defaults", path, exc)
    return SearchTables()


__all__ = ["QualifierSpec", "SearchTables", "default_tables", "load_tables", "TABLES_ENV"]
